# api/middleware.py
"""
Request tracking middleware.
"""
import time
import uuid
import logging
from typing import Callable
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from api.utils import hash_user_id_for_logging

logger = logging.getLogger("wellness-api.middleware")

MAX_REQUEST_ID_LENGTH = 64


def _is_uuid(value: str) -> bool:
    return len(value) == 36 and value.count('-') == 4


class ObservabilityMiddleware(BaseHTTPMiddleware):
    """
    - Reuses the caller's X-Request-ID or generates one
    - Times the request and reports it in X-Response-Time
    - Logs start/finish with hashed ids instead of raw ones
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        incoming = request.headers.get("x-request-id", "").strip()
        request_id = incoming[:MAX_REQUEST_ID_LENGTH] if incoming else str(uuid.uuid4())

        # ids in the path (medication, couple, entry) are hashed before logging
        id_hash = None
        for part in request.url.path.split('/'):
            if _is_uuid(part):
                id_hash = hash_user_id_for_logging(part)
                break

        session_hash = None
        session_id = request.headers.get("x-session-id")
        if session_id:
            session_hash = hash_user_id_for_logging(session_id)

        start_time = time.perf_counter()
        request.state.request_id = request_id

        logger.info(
            f"Request started: request_id={request_id} {request.method} {request.url.path} "
            f"id_hash={id_hash or 'none'} session={session_hash or 'none'}"
        )

        try:
            response = await call_next(request)
        except Exception as e:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.error(
                f"Request failed: request_id={request_id}, "
                f"error={str(e)}, "
                f"duration={duration_ms:.2f}ms",
                exc_info=True
            )
            raise

        duration_ms = (time.perf_counter() - start_time) * 1000
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{duration_ms:.2f}ms"

        logger.info(
            f"Request completed: request_id={request_id}, "
            f"status={response.status_code}, "
            f"duration={duration_ms:.2f}ms"
        )
        return response


def get_request_id(request: Request) -> str:
    """Request ID assigned by the middleware, or "unknown"."""
    return getattr(request.state, 'request_id', 'unknown')
