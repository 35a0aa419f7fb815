"""Retry policies driving the call executor.

A policy is a single-use sequence of decisions: after every failed attempt
the executor asks ``next_delay()`` and either sleeps for the returned
interval or gives up when it gets ``None``. The stop and wait rules are
tenacity strategies, evaluated against a ``RetryCallState`` owned by the
policy, so any tenacity ``stop_*``/``wait_*`` combination can be used.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any

from tenacity import (  # type: ignore[import]
    RetryCallState,
    stop_after_attempt,
    stop_after_delay,
    stop_never,
    wait_exponential,
    wait_none,
    wait_random,
)

logger = logging.getLogger(__name__)


class RetryPolicy:
    """Stateful retry decisions for one logical operation.

    Not thread-safe and not reusable; build a fresh instance per call through
    a ``RetryPolicyFactory``.
    """

    def __init__(self, stop: Any = stop_never, wait: Any = wait_none(), name: str = "retry") -> None:  # noqa: ANN401
        self.name = name
        self._stop = stop
        self._wait = wait
        self._state = RetryCallState(retry_object=None, fn=None, args=(), kwargs={})
        self._exhausted = False

    @property
    def attempt_count(self) -> int:
        """Number of attempts started so far, including the one in flight."""
        return self._state.attempt_number

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self._state.start_time

    @property
    def exhausted(self) -> bool:
        return self._exhausted

    def next_delay(self) -> float | None:
        """Decide whether another attempt is allowed after a failure.

        Returns the back-off interval in seconds, or None once the policy is
        exhausted. Exhaustion is sticky.
        """
        if self._exhausted:
            return None
        self._state.outcome_timestamp = time.monotonic()
        if self._stop(self._state):
            self._exhausted = True
            logger.debug("%s policy exhausted after %d attempts", self.name, self.attempt_count)
            return None
        delay = max(0.0, float(self._wait(self._state)))
        self._state.idle_for += delay
        self._state.attempt_number += 1
        return delay

    def __repr__(self) -> str:
        return f"RetryPolicy(name={self.name!r}, attempts={self.attempt_count})"


RetryPolicyFactory = Callable[[], RetryPolicy]


def counting_retry(max_attempts: int) -> RetryPolicyFactory:
    """Allow ``max_attempts`` attempts in total with no back-off."""
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    def factory() -> RetryPolicy:
        return RetryPolicy(stop=stop_after_attempt(max_attempts), wait=wait_none(), name="counting")

    return factory


def exponential_backoff_retry(
    base_sleep: float, max_sleep: float, max_attempts: int
) -> RetryPolicyFactory:
    """Allow ``max_attempts`` attempts, doubling the delay from ``base_sleep`` up to ``max_sleep``."""
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    def factory() -> RetryPolicy:
        return RetryPolicy(
            stop=stop_after_attempt(max_attempts),
            wait=wait_exponential(multiplier=base_sleep, max=max_sleep),
            name="exponential_backoff",
        )

    return factory


def time_bounded_retry(
    max_duration: float,
    base_sleep: float,
    max_sleep: float,
    max_attempts: int | None = None,
    jitter: bool = True,
) -> RetryPolicyFactory:
    """Retry with exponential back-off until ``max_duration`` seconds have passed.

    The attempt budget is additionally capped by ``max_attempts`` when given.
    """
    def factory() -> RetryPolicy:
        stop = stop_after_delay(max_duration)
        if max_attempts is not None:
            stop = stop | stop_after_attempt(max_attempts)
        wait = wait_exponential(multiplier=base_sleep, max=max_sleep)
        if jitter and base_sleep > 0:
            wait = wait + wait_random(0, base_sleep)
        return RetryPolicy(stop=stop, wait=wait, name="time_bounded")

    return factory


__all__ = [
    "RetryPolicy",
    "RetryPolicyFactory",
    "counting_retry",
    "exponential_backoff_retry",
    "time_bounded_retry",
]
