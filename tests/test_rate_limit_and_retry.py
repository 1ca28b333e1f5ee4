import threading

import pytest

from src.geocoding.exceptions import TransientUpstreamFailure
from src.geocoding.rate_limiter import RateLimiter
from src.geocoding.retry import RetryPolicy


def test_first_slot_is_granted_immediately(clock):
    limiter = RateLimiter(min_interval=1.0, clock=clock.monotonic, sleep=clock.sleep)

    limiter.await_slot()

    assert clock.sleeps == []


def test_slot_waits_only_for_remaining_interval(clock):
    limiter = RateLimiter(min_interval=1.0, clock=clock.monotonic, sleep=clock.sleep)

    limiter.await_slot()
    clock.now += 0.25
    limiter.await_slot()

    assert clock.sleeps == [pytest.approx(0.75)]


def test_no_wait_after_interval_elapsed(clock):
    limiter = RateLimiter(min_interval=1.0, clock=clock.monotonic, sleep=clock.sleep)

    limiter.await_slot()
    clock.now += 3
    limiter.await_slot()

    assert clock.sleeps == []


def test_negative_interval_rejected():
    with pytest.raises(ValueError):
        RateLimiter(min_interval=-1)


def test_retry_returns_first_success(clock):
    policy = RetryPolicy(max_retries=3, sleep=clock.sleep)
    outcomes = iter([TransientUpstreamFailure("blip"), "ok"])

    def operation():
        outcome = next(outcomes)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    result = policy.execute(operation)

    assert result.succeeded
    assert result.value == "ok"
    assert result.attempts == 2
    assert clock.sleeps == [1.0]


def test_retry_exhaustion_is_reported_not_raised(clock):
    policy = RetryPolicy(max_retries=3, sleep=clock.sleep)
    calls = []

    def operation():
        calls.append(1)
        raise TransientUpstreamFailure("always down")

    result = policy.execute(operation)

    assert not result.succeeded
    assert result.attempts == 4
    assert len(calls) == 4
    assert isinstance(result.last_error, TransientUpstreamFailure)
    assert clock.sleeps == [1.0, 2.0, 4.0]


def test_non_transient_errors_propagate(clock):
    policy = RetryPolicy(max_retries=3, sleep=clock.sleep)

    def operation():
        raise KeyError("bug")

    with pytest.raises(KeyError):
        policy.execute(operation)
    assert clock.sleeps == []


def test_zero_retries_means_single_attempt(clock):
    policy = RetryPolicy(max_retries=0, sleep=clock.sleep)

    def operation():
        raise TransientUpstreamFailure("down")

    result = policy.execute(operation)

    assert result.attempts == 1
    assert clock.sleeps == []


def test_concurrent_callers_are_spaced_by_min_interval():
    limiter = RateLimiter(min_interval=0.2)
    grants = []
    grants_lock = threading.Lock()

    def worker():
        granted_at = limiter.await_slot()
        with grants_lock:
            grants.append(granted_at)

    threads = [threading.Thread(target=worker) for _ in range(5)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=10)

    grants.sort()
    assert len(grants) == 5
    gaps = [later - earlier for earlier, later in zip(grants, grants[1:])]
    # allow for float rounding in the monotonic clock
    assert all(gap >= 0.2 - 1e-6 for gap in gaps)
