"""Tests for global exception handlers.

Validates that all exception types are handled consistently with
proper HTTP status codes, error format, and no information leakage.
"""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from cardmarket.adapters.rate_limit.base import RateLimitDecision
from cardmarket.core.errors import (
    AppError,
    AuthenticationAppError,
    NotFoundAppError,
    RateLimitAppError,
    ValidationAppError,
)
from cardmarket.core.exception_handlers import setup_exception_handlers


@pytest.fixture
def app_with_handlers() -> FastAPI:
    """Create FastAPI app with exception handlers registered."""
    app = FastAPI()
    setup_exception_handlers(app)
    return app


@pytest.fixture
def client(app_with_handlers: FastAPI) -> TestClient:
    return TestClient(app_with_handlers)


class TestAppErrorHandler:
    """Test handler for AppError and subclasses."""

    def test_validation_error_returns_400(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-validation")
        async def endpoint():
            raise ValidationAppError(code="weak_password", message="Password does not meet security requirements")

        response = client.get("/test-validation")

        assert response.status_code == 400
        data = response.json()
        assert data["error"]["code"] == "weak_password"
        assert data["error"]["message"] == "Password does not meet security requirements"
        assert "request_id" in data["error"]
        assert "details" not in data["error"]

    def test_validation_error_includes_details(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-validation-details")
        async def endpoint():
            raise ValidationAppError(
                code="weak_password",
                message="Password does not meet security requirements",
                details={"password_errors": ["Password must contain at least one number"]},
            )

        response = client.get("/test-validation-details")

        assert response.status_code == 400
        assert response.json()["error"]["details"]["password_errors"] == [
            "Password must contain at least one number"
        ]

    def test_authentication_error_returns_401(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-auth")
        async def endpoint():
            raise AuthenticationAppError(code="unauthorized", message="Unauthorized")

        response = client.get("/test-auth")

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "unauthorized"

    def test_not_found_error_returns_404(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-missing")
        async def endpoint():
            raise NotFoundAppError(code="user_not_found", message="User not found or no password set")

        response = client.get("/test-missing")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "user_not_found"

    def test_rate_limit_error_returns_429_with_headers(self, client: TestClient, app_with_handlers: FastAPI):
        decision = RateLimitDecision(allowed=False, remaining_attempts=0, reset_time=1_700_007_200_000, blocked=True)

        @app_with_handlers.get("/test-limited")
        async def endpoint():
            raise RateLimitAppError(
                code="temporarily_blocked",
                message="Too many registration attempts. Try again after 2023-11-15T00:13:20+00:00",
                details={"remaining_attempts": 0, "reset_time": "2023-11-15T00:13:20+00:00"},
                decision=decision,
                retry_after_seconds=60,
                headers={"Retry-After": "60"},
            )

        response = client.get("/test-limited")

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "60"
        error = response.json()["error"]
        assert error["code"] == "temporarily_blocked"
        assert error["details"]["reset_time"] == "2023-11-15T00:13:20+00:00"

    def test_rate_limit_error_without_headers(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-limited-bare")
        async def endpoint():
            raise RateLimitAppError(code="rate_limited", message="Rate limit exceeded. Please try again later.")

        response = client.get("/test-limited-bare")

        assert response.status_code == 429
        assert "Retry-After" not in response.headers


class TestGeneralExceptionHandler:
    """Test fallback handler for unexpected exceptions."""

    def test_general_exception_handler_logic(self):
        from cardmarket.core.exception_handlers import general_exception_handler

        request = AsyncMock()
        request.url.path = "/test"
        request.method = "GET"

        exc = RuntimeError("Unexpected error: user store unavailable")
        response = asyncio.run(general_exception_handler(request, exc))

        data = json.loads(bytes(response.body).decode())
        assert response.status_code == 500
        assert data["error"]["code"] == "internal_server_error"
        assert "user store" not in data["error"]["message"]
        assert "request_id" in data["error"]

    def test_general_exception_handler_never_leaks_stack_trace(self):
        from cardmarket.core.exception_handlers import general_exception_handler

        request = AsyncMock()
        request.url.path = "/test"
        request.method = "GET"

        response = asyncio.run(general_exception_handler(request, ValueError("Test error with details")))

        response_text = bytes(response.body).decode()
        assert "Traceback" not in response_text
        assert "File \"" not in response_text
        assert "ValueError" not in response_text


class TestErrorHandlerIntegration:
    def test_setup_exception_handlers_registers_handlers(self, app_with_handlers: FastAPI):
        assert AppError in app_with_handlers.exception_handlers
        assert Exception in app_with_handlers.exception_handlers

    def test_multiple_handler_setups_does_not_fail(self):
        app = FastAPI()

        setup_exception_handlers(app)
        setup_exception_handlers(app)

        assert AppError in app.exception_handlers
