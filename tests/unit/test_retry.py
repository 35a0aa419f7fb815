import pytest
from tenacity import stop_after_attempt, stop_after_delay, wait_fixed

from master_client.retry import (
    RetryPolicy,
    counting_retry,
    exponential_backoff_retry,
    time_bounded_retry,
)


def _drain(policy, limit=100):
    delays = []
    for _ in range(limit):
        delay = policy.next_delay()
        if delay is None:
            break
        delays.append(delay)
    return delays


def test_counting_retry_allows_exact_attempt_budget():
    policy = counting_retry(4)()

    assert policy.attempt_count == 1
    assert _drain(policy) == [0.0, 0.0, 0.0]
    assert policy.attempt_count == 4
    assert policy.exhausted


def test_exhaustion_is_sticky():
    policy = counting_retry(1)()

    assert policy.next_delay() is None
    assert policy.next_delay() is None
    assert policy.attempt_count == 1


def test_counting_retry_rejects_empty_budget():
    with pytest.raises(ValueError):
        counting_retry(0)


def test_exponential_backoff_doubles_up_to_cap():
    policy = exponential_backoff_retry(base_sleep=0.1, max_sleep=0.5, max_attempts=6)()

    delays = _drain(policy)

    assert delays == pytest.approx([0.1, 0.2, 0.4, 0.5, 0.5])


def test_policies_from_one_factory_are_independent():
    factory = exponential_backoff_retry(base_sleep=0.1, max_sleep=1.0, max_attempts=3)
    first = factory()
    first.next_delay()

    second = factory()

    assert second.attempt_count == 1
    assert second.next_delay() == pytest.approx(0.1)


def test_time_bounded_retry_stops_after_duration():
    policy = time_bounded_retry(max_duration=0.0, base_sleep=0.01, max_sleep=0.1)()

    assert policy.next_delay() is None


def test_time_bounded_retry_respects_attempt_cap():
    policy = time_bounded_retry(
        max_duration=60.0, base_sleep=0.01, max_sleep=0.05, max_attempts=3, jitter=False
    )()

    assert _drain(policy) == pytest.approx([0.01, 0.02])


def test_time_bounded_jitter_stays_within_bounds():
    policy = time_bounded_retry(
        max_duration=60.0, base_sleep=0.01, max_sleep=0.04, max_attempts=8
    )()

    for delay in _drain(policy):
        assert 0.01 <= delay <= 0.04 + 0.01


def test_custom_tenacity_strategies_are_supported():
    policy = RetryPolicy(stop=stop_after_attempt(3) | stop_after_delay(60), wait=wait_fixed(2))

    assert _drain(policy) == [2.0, 2.0]
