"""
Tests for request tracking, error handling, rate limiting and CORS.
"""
import json
from unittest.mock import MagicMock, patch

import pytest
from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
from postgrest.exceptions import APIError

from api.rate_limiter import get_client_key
from api.utils import handle_postgrest_error, hash_user_id_for_logging, validate_uuid_or_400
from main import global_exception_handler


class TestObservabilityMiddleware:
    def test_adds_request_id_and_response_time(self, client):
        response = client.get("/")

        request_id = response.headers["X-Request-ID"]
        assert len(request_id) == 36
        assert request_id.count('-') == 4
        assert response.headers["X-Response-Time"].endswith("ms")

    def test_reuses_incoming_request_id(self, client):
        response = client.get("/health", headers={"X-Request-ID": "trace-abc"})
        assert response.headers["X-Request-ID"] == "trace-abc"

    def test_truncates_long_request_id(self, client):
        response = client.get("/health", headers={"X-Request-ID": "x" * 200})
        assert len(response.headers["X-Request-ID"]) == 64

    def test_unique_request_ids(self, client):
        assert client.get("/").headers["X-Request-ID"] != client.get("/").headers["X-Request-ID"]

    def test_health(self, client):
        body = client.get("/health").json()
        assert body["status"] == "healthy"
        assert body["version"] == "1.0.0"


class TestGlobalErrorHandler:
    @pytest.mark.asyncio
    async def test_returns_safe_message(self):
        request = MagicMock(spec=Request)
        request.method = "GET"
        request.url = "http://test.com/medications"

        response = await global_exception_handler(request, ValueError("sensitive internal detail"))

        assert isinstance(response, JSONResponse)
        assert response.status_code == 500
        body = json.loads(response.body.decode())
        assert body == {"detail": "Internal Server Error"}

    @pytest.mark.asyncio
    async def test_logs_full_traceback(self):
        request = MagicMock(spec=Request)
        request.method = "POST"
        request.url = "http://test.com/mood"

        with patch("main.logger") as mock_logger:
            await global_exception_handler(request, RuntimeError("boom"))

        mock_logger.exception.assert_called_once()
        assert mock_logger.exception.call_args.kwargs.get("exc_info") is True


class TestPostgrestErrorMapping:
    @pytest.mark.parametrize("code,status", [
        ("22P02", 400),
        ("PGRST116", 404),
        ("23505", 409),
        ("23503", 400),
        ("XX000", 500),
    ])
    def test_codes(self, code, status):
        with pytest.raises(HTTPException) as exc_info:
            handle_postgrest_error(APIError({"message": "failure", "code": code}), "user")
        assert exc_info.value.status_code == status

    def test_unknown_error_detail_is_safe(self):
        with pytest.raises(HTTPException) as exc_info:
            handle_postgrest_error(APIError({"message": "relation missing", "code": "42P01"}))
        assert exc_info.value.detail == "Database error: relation missing"

    def test_uuid_validation(self):
        value = "123e4567-e89b-12d3-a456-426614174000"
        assert validate_uuid_or_400(value) == value
        with pytest.raises(HTTPException) as exc_info:
            validate_uuid_or_400("abc", "todo_id")
        assert exc_info.value.status_code == 400
        assert "todo_id" in exc_info.value.detail

    def test_hash_user_id(self):
        assert hash_user_id_for_logging(None) == "anon"
        assert len(hash_user_id_for_logging("user")) == 8


class TestRateLimiting:
    def _request(self, headers):
        request = MagicMock(spec=Request)
        request.headers = headers
        request.client.host = "10.0.0.1"
        return request

    def test_client_key_prefers_token_then_session(self):
        token_key = get_client_key(self._request({"authorization": "Bearer abc", "x-session-id": "s"}))
        assert token_key.startswith("token:")
        assert "abc" not in token_key
        assert get_client_key(self._request({"x-session-id": "tab-1"})) == "session:tab-1"

    def test_magic_link_is_rate_limited(self, client):
        for _ in range(5):
            assert client.post("/auth/magic-link", json={"email": "a@example.com"}).status_code == 200

        response = client.post("/auth/magic-link", json={"email": "a@example.com"})

        assert response.status_code == 429
        assert response.json()["error"] == "rate_limit_exceeded"
        assert "Retry-After" in response.headers


class TestCors:
    def test_preflight_allows_session_headers(self, client):
        response = client.options(
            "/medications",
            headers={
                "Origin": "http://localhost:5173",
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "X-Session-ID",
            },
        )
        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "http://localhost:5173"

    def test_unknown_origin_not_allowed(self, client):
        response = client.get("/", headers={"Origin": "https://evil.example.com"})
        assert "access-control-allow-origin" not in response.headers
