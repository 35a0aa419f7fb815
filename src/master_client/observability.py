"""
Per-attempt reporting for master RPCs.

The executor reports every attempt, successful or not, to an ``RpcObserver``.
Observers write log lines and Prometheus metrics; the executor guards every
call into them, so a failing observer never changes the outcome of an RPC.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Protocol, runtime_checkable

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Histogram

from .logging_config import get_logger

logger = get_logger(__name__)


class AttemptOutcome(str, Enum):
    OK = "ok"
    TRANSIENT = "transient"
    FATAL = "fatal"


@dataclass(frozen=True)
class AttemptRecord:
    """What happened during one attempt of one operation."""

    service: str
    operation: str
    description: str
    attempt: int
    outcome: AttemptOutcome
    duration: float
    error: BaseException | None = None


@runtime_checkable
class RpcObserver(Protocol):
    def on_attempt(self, record: AttemptRecord) -> None:
        """Receive the record of a finished attempt."""
        ...


class LoggingRpcObserver:
    """Writes one log line per attempt.

    Each line carries ``operation``, ``attempt`` and ``outcome`` as record
    attributes, and ``client_name`` when the observer belongs to a named
    client, so ``JSONFormatter`` can emit them as fields.
    """

    def __init__(self, log: logging.Logger | None = None, client_name: str | None = None) -> None:
        self._log = log or get_logger("master_client.rpc")
        self._client_name = client_name

    def _extra(self, record: AttemptRecord) -> dict[str, object]:
        extra: dict[str, object] = {
            "operation": record.operation,
            "attempt": record.attempt,
            "outcome": record.outcome.value,
        }
        if self._client_name is not None:
            extra["client_name"] = self._client_name
        return extra

    def on_attempt(self, record: AttemptRecord) -> None:
        extra = self._extra(record)
        if record.outcome is AttemptOutcome.OK:
            self._log.debug(
                "Exit (OK): %s(%s) attempt %d in %.1f ms",
                record.operation,
                record.description,
                record.attempt,
                record.duration * 1000,
                extra=extra,
            )
        elif record.outcome is AttemptOutcome.TRANSIENT:
            self._log.warning(
                "Exit (Retryable): %s(%s) attempt %d in %.1f ms: %s",
                record.operation,
                record.description,
                record.attempt,
                record.duration * 1000,
                record.error,
                extra=extra,
            )
        else:
            self._log.info(
                "Exit (Error): %s(%s) attempt %d in %.1f ms: %s",
                record.operation,
                record.description,
                record.attempt,
                record.duration * 1000,
                record.error,
                extra=extra,
            )


class MetricsRpcObserver:
    """Prometheus counters and latency histograms for master RPC attempts."""

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self.registry = registry if registry is not None else CollectorRegistry()

        self.attempts_total = Counter(
            "master_client_rpc_attempts_total",
            "Total master RPC attempts",
            ["service", "operation", "outcome"],
            registry=self.registry,
        )

        self.attempt_duration = Histogram(
            "master_client_rpc_duration_seconds",
            "Master RPC attempt duration in seconds",
            ["service", "operation"],
            buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
            registry=self.registry,
        )

    def on_attempt(self, record: AttemptRecord) -> None:
        self.attempts_total.labels(
            service=record.service, operation=record.operation, outcome=record.outcome.value
        ).inc()
        self.attempt_duration.labels(
            service=record.service, operation=record.operation
        ).observe(record.duration)

    def attempt_count(self, service: str, operation: str, outcome: AttemptOutcome) -> float:
        value = self.registry.get_sample_value(
            "master_client_rpc_attempts_total",
            {"service": service, "operation": operation, "outcome": outcome.value},
        )
        return value or 0.0


class CompositeRpcObserver:
    """Fans one record out to several observers."""

    def __init__(self, observers: Iterable[RpcObserver]) -> None:
        self.observers = list(observers)

    def on_attempt(self, record: AttemptRecord) -> None:
        for observer in self.observers:
            try:
                observer.on_attempt(record)
            except Exception as exc:  # noqa: BLE001
                logger.debug("Observer %r failed: %s", observer, exc)


_process_metrics: MetricsRpcObserver | None = None
_process_metrics_lock = threading.Lock()


def default_metrics_observer() -> MetricsRpcObserver:
    """The process-wide metrics observer, registered on the default Prometheus registry.

    Built on first use and shared by every client, since the default registry
    rejects a second collector with the same metric names.
    """
    global _process_metrics
    with _process_metrics_lock:
        if _process_metrics is None:
            _process_metrics = MetricsRpcObserver(REGISTRY)
        return _process_metrics


def default_observer(client_name: str | None = None) -> RpcObserver:
    return CompositeRpcObserver(
        [LoggingRpcObserver(client_name=client_name), default_metrics_observer()]
    )
