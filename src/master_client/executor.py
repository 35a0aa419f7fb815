"""Retry-driven execution of master RPCs.

``CallExecutor.execute`` runs one unit of remote work against the current
connection, retrying transient failures under a fresh retry policy:

1. connect (or reuse the live connection), hold it and run the work;
2. on success return at once;
3. on a fatal failure raise at once, without touching the retry policy;
4. on a transient failure invalidate the connection, ask the policy for a
   delay, sleep, and go back to 1 (which may land on another endpoint);
5. when the policy is exhausted raise ``RetriesExhaustedError`` chained to
   the last failure.

The back-off sleep is the only place a call blocks besides the RPC itself.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any, TypeVar

import grpc

from .connection import Connection, ConnectionManager
from .exceptions import RetriesExhaustedError, from_rpc_error, is_transient
from .observability import AttemptOutcome, AttemptRecord, RpcObserver, default_observer
from .retry import RetryPolicyFactory

logger = logging.getLogger(__name__)
T = TypeVar("T")

Work = Callable[[Any], T]


def describe_call(description: str, args: tuple[Any, ...]) -> str:
    """Render a ``%``-style argument summary; never raises."""
    if not args:
        return description
    try:
        return description % args
    except (TypeError, ValueError):
        return f"{description} {args!r}"


class CallExecutor:
    """Drives connect, retry and invalidate around one unit of remote work."""

    def __init__(
        self,
        connections: ConnectionManager,
        retry_policy_factory: RetryPolicyFactory,
        observer: RpcObserver | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._connections = connections
        self._retry_policy_factory = retry_policy_factory
        self._observer = observer if observer is not None else default_observer()
        self._sleep = sleep

    @property
    def connections(self) -> ConnectionManager:
        return self._connections

    def execute(self, work: Work[T], operation: str, description: str = "", *args: Any) -> T:
        """Run ``work(stub)`` until it succeeds, fails fatally, or retries run out.

        ``description`` and ``args`` form a ``%``-style summary of the call's
        arguments used in log lines and in the terminal error.
        """
        policy = self._retry_policy_factory()
        summary = describe_call(description, args)

        while True:
            attempt = policy.attempt_count
            connection: Connection | None = None
            started = time.monotonic()
            try:
                with self._connections.acquire() as connection:
                    result = work(connection.stub)
            except Exception as exc:
                error = from_rpc_error(exc) if isinstance(exc, grpc.RpcError) else exc
                elapsed = time.monotonic() - started
                if not is_transient(error):
                    self._report(operation, summary, attempt, AttemptOutcome.FATAL, elapsed, error)
                    if error is exc:
                        raise
                    raise error from exc

                self._report(operation, summary, attempt, AttemptOutcome.TRANSIENT, elapsed, error)
                logger.debug("Rpc %s failed (%d): %s", operation, attempt, error)
                if connection is not None:
                    self._connections.invalidate(connection)

                delay = policy.next_delay()
                if delay is None:
                    raise RetriesExhaustedError(
                        f"{operation}({summary})", policy.attempt_count, error
                    ) from error
                if delay > 0:
                    self._sleep(delay)
                continue

            self._report(
                operation, summary, attempt, AttemptOutcome.OK, time.monotonic() - started, None
            )
            return result

    def _report(
        self,
        operation: str,
        summary: str,
        attempt: int,
        outcome: AttemptOutcome,
        duration: float,
        error: BaseException | None,
    ) -> None:
        try:
            self._observer.on_attempt(
                AttemptRecord(
                    service=self._connections.identity.name,
                    operation=operation,
                    description=summary,
                    attempt=attempt,
                    outcome=outcome,
                    duration=duration,
                    error=error,
                )
            )
        except Exception as exc:  # noqa: BLE001
            logger.debug("Failed to report %s attempt %d: %s", operation, attempt, exc)
