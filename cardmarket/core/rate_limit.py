"""Rate limiting wiring for FastAPI routes.

This module connects the limiter adapter to the HTTP layer.

Design goals:
- Minimal coupling: routes receive the limiter through a dependency and call
  ``enforce_rate_limit`` before the guarded operation.
- Explicit lifecycle: the limiter is created and its sweeper started by the
  application lifespan, and stored on ``app.state``.
- Swap-friendly: routes only see ``AbstractRateLimiter``.

Identity strategy:
- Authenticated operations pass the user id as identifier ("user:<id>").
- Anonymous operations are keyed by the left-most X-Forwarded-For address,
  then X-Real-IP, then the socket peer address.
"""

from __future__ import annotations

import logging
from typing import Callable

from fastapi import Request

from cardmarket.adapters.rate_limit.base import (
    AbstractRateLimiter,
    RateLimitDecision,
    RateLimitPolicy,
    system_clock_ms,
)
from cardmarket.adapters.rate_limit.identity import (
    FORWARDED_FOR_HEADER,
    REAL_IP_HEADER,
    resolve_client_identity,
)
from cardmarket.adapters.rate_limit.in_memory import InMemoryRateLimiter
from cardmarket.core.config import RateLimitSettings, settings
from cardmarket.core.errors import RateLimitAppError
from cardmarket.core.logging import hash_for_log

logger = logging.getLogger(__name__)


def create_rate_limiter(
    rate_limit_settings: RateLimitSettings | None = None,
    *,
    clock: Callable[[], int] = system_clock_ms,
) -> InMemoryRateLimiter:
    """Build a limiter from settings. The caller owns ``start``/``stop``."""

    cfg = rate_limit_settings or settings.rate_limit
    return InMemoryRateLimiter(
        sweep_interval_seconds=cfg.sweep_interval_seconds,
        clock=clock,
    )


def get_rate_limiter(request: Request) -> AbstractRateLimiter:
    """FastAPI dependency returning the application's limiter.

    Returns:
        AbstractRateLimiter: Limiter stored on ``app.state`` by the lifespan.
    """

    return request.app.state.rate_limiter


def build_request_context(request: Request) -> dict[str, str]:
    """Extract the headers the limiter derives client identity from.

    The socket peer address stands in for X-Real-IP when no proxy header is
    present, so direct clients are not all keyed as ``ip:unknown``.
    """

    context: dict[str, str] = {}
    forwarded_for = request.headers.get(FORWARDED_FOR_HEADER)
    real_ip = request.headers.get(REAL_IP_HEADER)

    if forwarded_for:
        context[FORWARDED_FOR_HEADER] = forwarded_for
    if real_ip:
        context[REAL_IP_HEADER] = real_ip
    elif request.client and request.client.host:
        context[REAL_IP_HEADER] = request.client.host
    return context


def _describe_block(action: str, decision: RateLimitDecision) -> tuple[str, str]:
    if decision.blocked:
        reset_iso = decision.reset_at.isoformat()
        label = action.replace("_", " ")
        return (
            "temporarily_blocked",
            f"Too many {label} attempts. Try again after {reset_iso}",
        )
    return "rate_limited", "Rate limit exceeded. Please try again later."


def enforce_rate_limit(
    request: Request,
    limiter: AbstractRateLimiter,
    policy: RateLimitPolicy,
    *,
    action: str,
    identifier: str | None = None,
) -> RateLimitDecision | None:
    """Record an attempt at a guarded operation and refuse it when over limit.

    Args:
        request: Incoming request, used for IP-derived identity.
        limiter: Limiter to consult.
        policy: Limits for the guarded operation.
        action: Short operation name for messages and logs (e.g. "registration").
        identifier: Authenticated user id; takes priority over the IP.

    Returns:
        The allowing decision, or None when rate limiting is disabled.

    Raises:
        RateLimitAppError: When the limiter refuses the attempt (HTTP 429).
    """

    if not settings.rate_limit.enabled:
        return None

    if identifier is not None:
        policy = policy.with_identifier(identifier)

    context = build_request_context(request)
    key_type = "user" if policy.identifier else "ip"
    key_hash = hash_for_log(resolve_client_identity(context, policy.identifier))

    decision = limiter.check(context, policy)
    if decision.allowed:
        logger.info(
            "rate_limit.allowed",
            extra={
                "action": action,
                "key_type": key_type,
                "key_hash": key_hash,
                "limit": policy.max_attempts,
                "remaining": decision.remaining_attempts,
                "window_ms": policy.window_ms,
            },
        )
        return decision

    retry_after = decision.retry_after_seconds(limiter.now_ms())
    code, message = _describe_block(action, decision)

    logger.warning(
        "rate_limit.exceeded",
        extra={
            "action": action,
            "key_type": key_type,
            "key_hash": key_hash,
            "limit": policy.max_attempts,
            "blocked": decision.blocked,
            "retry_after_s": retry_after,
        },
    )

    headers: dict[str, str] = {}
    if settings.rate_limit.include_headers:
        headers["Retry-After"] = str(retry_after)
        headers["X-RateLimit-Limit"] = str(policy.max_attempts)
        headers["X-RateLimit-Remaining"] = str(decision.remaining_attempts)
        headers["X-RateLimit-Reset"] = str(decision.reset_time // 1000)

    raise RateLimitAppError(
        code=code,
        message=message,
        details={
            "remaining_attempts": decision.remaining_attempts,
            "reset_time": decision.reset_at.isoformat(),
        },
        decision=decision,
        retry_after_seconds=retry_after,
        headers=headers,
    )


def reset_rate_limit(
    request: Request,
    limiter: AbstractRateLimiter,
    *,
    action: str,
    identifier: str | None = None,
) -> None:
    """Forgive prior attempts after a guarded operation succeeded."""

    context = build_request_context(request)
    limiter.reset(context, identifier)
    logger.info(
        "rate_limit.reset",
        extra={
            "action": action,
            "key_type": "user" if identifier else "ip",
            "key_hash": hash_for_log(resolve_client_identity(context, identifier)),
        },
    )
