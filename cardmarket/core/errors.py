"""Application-level exception types.

This module defines domain errors used across services/adapters, enabling
consistent error handling, logging, and API responses.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, NotRequired, TypedDict

from cardmarket.adapters.rate_limit.base import RateLimitDecision


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional to keep backward compatibility while encouraging
    consistent shapes across the codebase.
    """

    code: str
    message: str
    hint: str
    http_status: int
    retry_after: float
    remaining_attempts: int
    reset_time: str
    password_errors: list[str]
    password_strength: str
    password_requirements: list[str]
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when input/config validation fails."""


class AuthenticationAppError(AppError):
    """Raised when the caller is not authenticated."""


class NotFoundAppError(AppError):
    """Raised when a referenced resource does not exist."""


@dataclass
class RateLimitAppError(AppError):
    """Raised when a guarded operation is refused by the rate limiter.

    Attributes:
        decision: The limiter decision that refused the attempt.
        retry_after_seconds: Seconds until retrying is useful.
    """

    decision: RateLimitDecision | None = None
    retry_after_seconds: int = 0
    headers: dict[str, str] = field(default_factory=dict)
