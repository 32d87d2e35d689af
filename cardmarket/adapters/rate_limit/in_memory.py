"""In-memory rate limiter with temporary hard blocks.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: check, reset and the background sweep share one lock.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable

from cardmarket.adapters.rate_limit.base import (
    AbstractRateLimiter,
    ClientContext,
    RateLimitDecision,
    RateLimitEntry,
    RateLimitPolicy,
    system_clock_ms,
)
from cardmarket.adapters.rate_limit.identity import resolve_client_identity

logger = logging.getLogger(__name__)

DEFAULT_SWEEP_INTERVAL_SECONDS = 5 * 60


class InMemoryRateLimiter(AbstractRateLimiter):
    """Counts attempts per client identity and blocks abusive clients.

    Each identity gets a window of ``policy.window_ms`` starting at its first
    attempt. Exceeding ``policy.max_attempts`` within the window puts the
    identity under a hard block for ``policy.block_duration_ms``; attempts
    made while blocked are rejected without extending the block.

    Entries whose window and block have both expired are removed by
    ``sweep()``, which a background thread runs every
    ``sweep_interval_seconds`` between ``start()`` and ``stop()``.

    Important:
        This limiter is per-process only. If the API runs with multiple workers
        (e.g., multiple Uvicorn/Gunicorn workers), each worker will enforce its
        own independent limits.
    """

    def __init__(
        self,
        *,
        sweep_interval_seconds: float = DEFAULT_SWEEP_INTERVAL_SECONDS,
        clock: Callable[[], int] = system_clock_ms,
    ) -> None:
        """Initialize the limiter.

        Args:
            sweep_interval_seconds: Seconds between background sweeps.
            clock: Time source returning UNIX time in milliseconds.

        Raises:
            ValueError: If sweep_interval_seconds is not positive.
        """
        if sweep_interval_seconds <= 0:
            raise ValueError("sweep_interval_seconds must be > 0")

        self._sweep_interval_seconds = sweep_interval_seconds
        self._clock = clock
        self._lock = threading.RLock()
        self._entries: dict[str, RateLimitEntry] = {}
        self._stop_event = threading.Event()
        self._sweeper: threading.Thread | None = None

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __enter__(self) -> "InMemoryRateLimiter":
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def now_ms(self) -> int:
        return self._clock()

    @property
    def running(self) -> bool:
        return self._sweeper is not None and self._sweeper.is_alive()

    def get_entry(self, identity: str) -> RateLimitEntry | None:
        """Return a snapshot of the stored state for ``identity`` (diagnostics and tests)."""
        with self._lock:
            entry = self._entries.get(identity)
            if entry is None:
                return None
            return RateLimitEntry(
                count=entry.count,
                reset_time=entry.reset_time,
                blocked=entry.blocked,
                block_until=entry.block_until,
            )

    def check(self, context: ClientContext, policy: RateLimitPolicy) -> RateLimitDecision:
        """Record one attempt for the resolved identity and decide on it.

        Args:
            context: Client identity or request headers to derive it from.
            policy: Limits for the guarded operation.

        Returns:
            RateLimitDecision. ``reset_time`` is the window end when allowed
            and the block end when denied.
        """
        identity = resolve_client_identity(context, policy.identifier)
        now = self._clock()

        with self._lock:
            entry = self._entries.get(identity)

            if entry is not None and self._is_blocked(entry, now):
                return RateLimitDecision(
                    allowed=False,
                    remaining_attempts=0,
                    reset_time=entry.block_until,  # type: ignore[arg-type]
                    blocked=True,
                )

            if entry is None or now > entry.reset_time:
                entry = RateLimitEntry(count=0, reset_time=now + policy.window_ms)
                self._entries[identity] = entry

            entry.count += 1

            if entry.count > policy.max_attempts:
                entry.blocked = True
                entry.block_until = now + policy.effective_block_duration_ms
                return RateLimitDecision(
                    allowed=False,
                    remaining_attempts=0,
                    reset_time=entry.block_until,
                    blocked=True,
                )

            return RateLimitDecision(
                allowed=True,
                remaining_attempts=policy.max_attempts - entry.count,
                reset_time=entry.reset_time,
            )

    def reset(self, context: ClientContext, identifier: str | None = None) -> None:
        identity = resolve_client_identity(context, identifier)
        with self._lock:
            self._entries.pop(identity, None)

    def sweep(self) -> int:
        """Remove entries whose window and block have both expired.

        Returns:
            Number of entries removed.
        """
        now = self._clock()
        with self._lock:
            expired = [
                identity
                for identity, entry in self._entries.items()
                if self._is_expired(entry, now)
            ]
            for identity in expired:
                del self._entries[identity]
            remaining = len(self._entries)

        if expired:
            logger.debug(
                "rate_limit.sweep",
                extra={"removed": len(expired), "entries": remaining},
            )
        return len(expired)

    def clear(self) -> None:
        """Drop all stored entries."""
        with self._lock:
            self._entries.clear()

    def start(self) -> None:
        """Start the background sweeper thread (no-op if already running)."""
        with self._lock:
            if self.running:
                return
            self._stop_event.clear()
            self._sweeper = threading.Thread(
                target=self._run_sweeper,
                name="rate-limit-sweeper",
                daemon=True,
            )
            self._sweeper.start()

        logger.info(
            "rate_limit.sweeper_started",
            extra={"interval_s": self._sweep_interval_seconds},
        )

    def stop(self, timeout: float | None = 5.0) -> None:
        """Stop the background sweeper thread and wait for it to exit."""
        with self._lock:
            sweeper = self._sweeper
            self._sweeper = None
        if sweeper is None:
            return

        self._stop_event.set()
        sweeper.join(timeout)
        logger.info("rate_limit.sweeper_stopped")

    def close(self) -> None:
        """Stop the sweeper and forget all state."""
        self.stop()
        self.clear()

    def _run_sweeper(self) -> None:
        while not self._stop_event.wait(self._sweep_interval_seconds):
            self.sweep()

    @staticmethod
    def _is_blocked(entry: RateLimitEntry, now: int) -> bool:
        return entry.blocked and entry.block_until is not None and now < entry.block_until

    @staticmethod
    def _is_expired(entry: RateLimitEntry, now: int) -> bool:
        if now <= entry.reset_time:
            return False
        return not entry.blocked or now > (entry.block_until or 0)
