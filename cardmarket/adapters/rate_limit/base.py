"""Rate limiter interfaces.

The API should depend on this abstraction (not the concrete implementation)
so we can swap storage backends later with minimal changes.
"""

from __future__ import annotations

import math
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Mapping, Union

#: A pre-resolved client identity ("user:<id>" / "ip:<addr>") or the request
#: headers the identity can be derived from.
ClientContext = Union[str, Mapping[str, str]]


def system_clock_ms() -> int:
    """Current UNIX time in milliseconds."""
    return int(time.time() * 1000)


@dataclass(frozen=True)
class RateLimitPolicy:
    """Limits applied to one guarded operation.

    Attributes:
        window_ms: Length of the counting window in milliseconds.
        max_attempts: Attempts allowed within one window before blocking.
        block_duration_ms: Hard-block length once the quota is exceeded.
            ``None`` means twice the window.
        identifier: Optional explicit identity (e.g. authenticated user id)
            taking precedence over the IP-derived one.
    """

    window_ms: int
    max_attempts: int
    block_duration_ms: int | None = None
    identifier: str | None = None

    def __post_init__(self) -> None:
        if self.window_ms < 1:
            raise ValueError("window_ms must be >= 1")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.block_duration_ms is not None and self.block_duration_ms < 0:
            raise ValueError("block_duration_ms must be >= 0")

    @property
    def effective_block_duration_ms(self) -> int:
        if self.block_duration_ms is None:
            return self.window_ms * 2
        return self.block_duration_ms

    def with_identifier(self, identifier: str | None) -> "RateLimitPolicy":
        """Return a copy of this policy keyed on ``identifier``."""
        return replace(self, identifier=identifier)


@dataclass(frozen=True)
class RateLimitDecision:
    """Result of a rate limit check.

    Attributes:
        allowed: Whether the attempt may proceed.
        remaining_attempts: Attempts left in the current window (0 when denied).
        reset_time: Epoch milliseconds at which retrying is useful again,
            either the window end or the block end.
        blocked: Whether the identity is under a hard block.
    """

    allowed: bool
    remaining_attempts: int
    reset_time: int
    blocked: bool = False

    @property
    def reset_at(self) -> datetime:
        return datetime.fromtimestamp(self.reset_time / 1000, tz=timezone.utc)

    def retry_after_seconds(self, now_ms: int) -> int:
        """Whole seconds until ``reset_time``, never negative."""
        return max(0, int(math.ceil((self.reset_time - now_ms) / 1000)))


@dataclass
class RateLimitEntry:
    """Mutable per-identity counter state owned by a limiter store."""

    count: int
    reset_time: int
    blocked: bool = False
    block_until: int | None = None


class AbstractRateLimiter(ABC):
    """Interface for rate limiters."""

    def now_ms(self) -> int:
        """Current time as seen by this limiter, in epoch milliseconds."""
        return system_clock_ms()

    def start(self) -> None:
        """Start background housekeeping, if the implementation has any."""

    def stop(self) -> None:
        """Stop background housekeeping started by ``start``."""

    @abstractmethod
    def check(self, context: ClientContext, policy: RateLimitPolicy) -> RateLimitDecision:
        """Record an attempt and decide whether it is allowed.

        Args:
            context: Client identity or request headers to derive it from.
            policy: Limits for the guarded operation.

        Returns:
            RateLimitDecision describing whether the attempt may proceed.
        """
        raise NotImplementedError

    @abstractmethod
    def reset(self, context: ClientContext, identifier: str | None = None) -> None:
        """Forget all attempts recorded for the resolved identity.

        Args:
            context: Client identity or request headers to derive it from.
            identifier: Optional explicit identity, resolved as in ``check``.
        """
        raise NotImplementedError
