"""Rate limit presets for the guarded marketplace operations."""

from __future__ import annotations

from cardmarket.adapters.rate_limit.base import RateLimitPolicy

_MINUTE_MS = 60 * 1000
_HOUR_MS = 60 * _MINUTE_MS

# 5 attempts per 15 minutes, then blocked for 30 minutes
LOGIN = RateLimitPolicy(
    window_ms=15 * _MINUTE_MS,
    max_attempts=5,
    block_duration_ms=30 * _MINUTE_MS,
)

# 3 attempts per hour, then blocked for 2 hours; keyed by user id at call time
PASSWORD_CHANGE = RateLimitPolicy(
    window_ms=_HOUR_MS,
    max_attempts=3,
    block_duration_ms=2 * _HOUR_MS,
)

# 3 attempts per hour per IP, then blocked for 2 hours
REGISTRATION = RateLimitPolicy(
    window_ms=_HOUR_MS,
    max_attempts=3,
    block_duration_ms=2 * _HOUR_MS,
)

# 100 requests per 15 minutes, then blocked for 30 minutes
API_GENERAL = RateLimitPolicy(
    window_ms=15 * _MINUTE_MS,
    max_attempts=100,
    block_duration_ms=30 * _MINUTE_MS,
)

RATE_LIMIT_POLICIES: dict[str, RateLimitPolicy] = {
    "login": LOGIN,
    "password_change": PASSWORD_CHANGE,
    "registration": REGISTRATION,
    "api_general": API_GENERAL,
}
