"""Unit tests for the in-memory rate limiter adapter."""

import threading

import pytest

from cardmarket.adapters.rate_limit.base import RateLimitDecision, RateLimitPolicy
from cardmarket.adapters.rate_limit.in_memory import InMemoryRateLimiter


def _limiter(clock) -> InMemoryRateLimiter:
    return InMemoryRateLimiter(clock=clock)


def test_allows_up_to_max_attempts_then_blocks(clock) -> None:
    limiter = _limiter(clock)
    policy = RateLimitPolicy(window_ms=60_000, max_attempts=3)

    for _ in range(3):
        assert limiter.check("ip:1.2.3.4", policy).allowed is True

    denied = limiter.check("ip:1.2.3.4", policy)
    assert denied.allowed is False
    assert denied.blocked is True
    assert denied.remaining_attempts == 0


def test_remaining_attempts_decrease_by_one(clock) -> None:
    limiter = _limiter(clock)
    policy = RateLimitPolicy(window_ms=60_000, max_attempts=4)

    remaining = [limiter.check("k", policy).remaining_attempts for _ in range(4)]

    assert remaining == [3, 2, 1, 0]


def test_allowed_decision_reports_window_end(clock) -> None:
    limiter = _limiter(clock)
    policy = RateLimitPolicy(window_ms=60_000, max_attempts=3)
    start = clock()

    first = limiter.check("k", policy)
    clock.advance(10_000)
    second = limiter.check("k", policy)

    assert first.reset_time == start + 60_000
    assert second.reset_time == start + 60_000
    assert second.blocked is False


def test_documented_scenario(clock) -> None:
    clock.set(0)
    limiter = _limiter(clock)
    policy = RateLimitPolicy(window_ms=1000, max_attempts=2, block_duration_ms=5000)

    assert limiter.check("k", policy) == RateLimitDecision(
        allowed=True, remaining_attempts=1, reset_time=1000
    )

    clock.set(100)
    assert limiter.check("k", policy) == RateLimitDecision(
        allowed=True, remaining_attempts=0, reset_time=1000
    )

    clock.set(200)
    assert limiter.check("k", policy) == RateLimitDecision(
        allowed=False, remaining_attempts=0, reset_time=5200, blocked=True
    )

    clock.set(200 + 5001)
    healed = limiter.check("k", policy)
    assert healed.allowed is True
    assert healed.remaining_attempts == 1


def test_polling_while_blocked_does_not_extend_block(clock) -> None:
    limiter = _limiter(clock)
    policy = RateLimitPolicy(window_ms=1000, max_attempts=1, block_duration_ms=10_000)

    limiter.check("k", policy)
    blocked = limiter.check("k", policy)
    block_until = blocked.reset_time

    for _ in range(5):
        clock.advance(1_500)
        again = limiter.check("k", policy)
        assert again.allowed is False
        assert again.blocked is True
        assert again.remaining_attempts == 0
        assert again.reset_time == block_until

    entry = limiter.get_entry("k")
    assert entry is not None
    assert entry.count == 2
    assert entry.block_until == block_until


def test_block_defaults_to_twice_the_window(clock) -> None:
    limiter = _limiter(clock)
    policy = RateLimitPolicy(window_ms=1000, max_attempts=1)
    now = clock()

    limiter.check("k", policy)
    blocked = limiter.check("k", policy)

    assert blocked.reset_time == now + 2000


def test_starts_fresh_window_after_block_expires(clock) -> None:
    limiter = _limiter(clock)
    policy = RateLimitPolicy(window_ms=1000, max_attempts=2, block_duration_ms=3000)

    for _ in range(3):
        limiter.check("k", policy)

    clock.advance(3000)
    decision = limiter.check("k", policy)

    assert decision.allowed is True
    assert decision.remaining_attempts == 1
    entry = limiter.get_entry("k")
    assert entry.count == 1
    assert entry.blocked is False


def test_block_shorter_than_window_reblocks_inside_open_window(clock) -> None:
    limiter = _limiter(clock)
    policy = RateLimitPolicy(window_ms=60_000, max_attempts=1, block_duration_ms=1000)

    limiter.check("k", policy)
    assert limiter.check("k", policy).blocked is True

    clock.advance(1000)
    decision = limiter.check("k", policy)

    assert decision == RateLimitDecision(
        allowed=False, remaining_attempts=0, reset_time=clock() + 1000, blocked=True
    )
    assert limiter.get_entry("k").count == 3

    clock.advance(60_000)
    assert limiter.check("k", policy).allowed is True


def test_zero_block_duration_still_counts_in_window(clock) -> None:
    limiter = _limiter(clock)
    policy = RateLimitPolicy(window_ms=1000, max_attempts=1, block_duration_ms=0)

    assert limiter.check("k", policy).allowed is True
    assert limiter.check("k", policy).blocked is True
    assert limiter.check("k", policy).allowed is False
    assert limiter.get_entry("k").count == 3


def test_window_rollover_resets_counter(clock) -> None:
    limiter = _limiter(clock)
    policy = RateLimitPolicy(window_ms=1000, max_attempts=2)

    limiter.check("k", policy)
    limiter.check("k", policy)

    clock.advance(1001)
    decision = limiter.check("k", policy)

    assert decision.allowed is True
    assert decision.remaining_attempts == 1


def test_window_end_is_inclusive(clock) -> None:
    limiter = _limiter(clock)
    policy = RateLimitPolicy(window_ms=1000, max_attempts=2)

    limiter.check("k", policy)
    clock.advance(1000)

    assert limiter.check("k", policy).remaining_attempts == 0


def test_reset_forgets_blocked_identity(clock) -> None:
    limiter = _limiter(clock)
    policy = RateLimitPolicy(window_ms=60_000, max_attempts=1)

    limiter.check("k", policy)
    assert limiter.check("k", policy).blocked is True

    limiter.reset("k")

    decision = limiter.check("k", policy)
    assert decision.allowed is True
    assert decision.remaining_attempts == 0
    assert decision.reset_time == clock() + 60_000


def test_reset_unknown_identity_is_noop(clock) -> None:
    limiter = _limiter(clock)

    limiter.reset("never-seen")

    assert len(limiter) == 0


def test_identities_are_isolated(clock) -> None:
    limiter = _limiter(clock)
    policy = RateLimitPolicy(window_ms=60_000, max_attempts=2)

    limiter.check("ip:10.0.0.1", policy)
    limiter.check("ip:10.0.0.1", policy)
    assert limiter.check("ip:10.0.0.1", policy).allowed is False

    other = limiter.check("ip:10.0.0.2", policy)
    assert other.allowed is True
    assert other.remaining_attempts == 1


def test_user_identifier_overrides_ip(clock) -> None:
    limiter = _limiter(clock)
    policy = RateLimitPolicy(window_ms=60_000, max_attempts=3, identifier="user-42")

    limiter.check({"x-forwarded-for": "203.0.113.5"}, policy)
    second = limiter.check({"x-forwarded-for": "198.51.100.7"}, policy)

    assert second.remaining_attempts == 1
    assert limiter.get_entry("user:user-42").count == 2
    assert limiter.get_entry("ip:203.0.113.5") is None


def test_keys_on_first_forwarded_address(clock) -> None:
    limiter = _limiter(clock)
    policy = RateLimitPolicy(window_ms=60_000, max_attempts=3)

    limiter.check({"x-forwarded-for": "203.0.113.5, 70.41.3.18"}, policy)

    assert limiter.get_entry("ip:203.0.113.5") is not None
    assert limiter.get_entry("ip:203.0.113.5, 70.41.3.18") is None


def test_reset_uses_same_identity_rules(clock) -> None:
    limiter = _limiter(clock)
    policy = RateLimitPolicy(window_ms=60_000, max_attempts=3, identifier="user-7")

    limiter.check({"x-real-ip": "10.0.0.9"}, policy)
    limiter.reset({"x-real-ip": "10.0.0.9"}, "user-7")

    assert limiter.get_entry("user:user-7") is None


def test_missing_headers_share_unknown_identity(clock) -> None:
    limiter = _limiter(clock)
    policy = RateLimitPolicy(window_ms=60_000, max_attempts=3)

    limiter.check({}, policy)
    limiter.check({"user-agent": "curl"}, policy)

    assert limiter.get_entry("ip:unknown").count == 2


def test_concurrent_checks_never_exceed_quota(clock) -> None:
    limiter = _limiter(clock)
    policy = RateLimitPolicy(window_ms=60_000, max_attempts=25)
    results: list[bool] = []
    results_lock = threading.Lock()

    def _attempt() -> None:
        decision = limiter.check("shared", policy)
        with results_lock:
            results.append(decision.allowed)

    threads = [threading.Thread(target=_attempt) for _ in range(100)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert results.count(True) == 25
    assert results.count(False) == 75


@pytest.mark.parametrize(
    "kwargs",
    [
        {"window_ms": 0, "max_attempts": 1},
        {"window_ms": 1000, "max_attempts": 0},
        {"window_ms": 1000, "max_attempts": 1, "block_duration_ms": -1},
    ],
)
def test_invalid_policy_args(kwargs: dict) -> None:
    with pytest.raises(ValueError):
        RateLimitPolicy(**kwargs)


def test_invalid_constructor_args() -> None:
    with pytest.raises(ValueError):
        InMemoryRateLimiter(sweep_interval_seconds=0)
