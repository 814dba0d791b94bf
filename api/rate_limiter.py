"""
Rate limiting configuration for the Wellness Tracker API.

Limits are configurable via environment variables using the
"number/period" format: "10/minute", "100/hour", "1000/day".
"""
import os
import hashlib
import logging
from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from fastapi import Request
from fastapi.responses import JSONResponse

logger = logging.getLogger("wellness-api.rate_limiter")

DEFAULT_RATE_LIMIT = os.getenv("RATE_LIMIT_DEFAULT", "120/minute")
WRITE_RATE_LIMIT = os.getenv("RATE_LIMIT_WRITES", "60/minute")
AUTH_RATE_LIMIT = os.getenv("RATE_LIMIT_AUTH", "5/minute")

logger.info(f"Rate limiting configured - Default: {DEFAULT_RATE_LIMIT}, "
            f"Writes: {WRITE_RATE_LIMIT}, Auth: {AUTH_RATE_LIMIT}")


def get_client_key(request: Request) -> str:
    """
    Rate limit identity for a request.

    Signed-in callers are keyed by a hash of their bearer token, anonymous
    ones by X-Session-ID, everybody else by client IP.
    """
    authorization = request.headers.get("authorization", "")
    if authorization.lower().startswith("bearer "):
        token = authorization.split(" ", 1)[1].strip()
        if token:
            return "token:" + hashlib.sha256(token.encode()).hexdigest()[:16]

    session_id = request.headers.get("x-session-id")
    if session_id:
        return f"session:{session_id.strip()[:64]}"

    return get_remote_address(request)


limiter = Limiter(
    key_func=get_client_key,
    default_limits=[DEFAULT_RATE_LIMIT],
    # redis://host:port/db for shared counters across workers
    storage_uri=os.getenv("RATE_LIMIT_STORAGE_URI", "memory://"),
)


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """
    JSON 429 with a Retry-After header.
    """
    logger.warning(
        f"Rate limit exceeded for {get_client_key(request)} "
        f"on path {request.url.path}"
    )

    retry_after = getattr(exc, 'retry_after', 60)
    return JSONResponse(
        status_code=429,
        content={
            "error": "rate_limit_exceeded",
            "message": "Too many requests. Please slow down and try again later.",
            "detail": str(exc.detail) if hasattr(exc, 'detail') else "Rate limit exceeded",
            "retry_after": retry_after
        },
        headers={
            "Retry-After": str(retry_after)
        }
    )
