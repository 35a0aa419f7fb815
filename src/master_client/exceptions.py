"""
Custom exceptions for master clients.

Every failure that reaches a caller is one of these types. Each carries the
canonical gRPC status code it corresponds to, and the executor uses
``is_transient`` to decide whether an attempt may be retried.
"""

from __future__ import annotations

import grpc

# Trailing metadata marker a standby master attaches to rejected calls.
NOT_PRIMARY_METADATA_KEY = "x-master-not-primary"


class MasterClientError(Exception):
    """Base exception class for master clients."""

    transient = False

    def __init__(self, message: str, status_code: grpc.StatusCode | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code if status_code is not None else grpc.StatusCode.INTERNAL


class UnavailableError(MasterClientError):
    """Raised when a master endpoint cannot be reached or resolved."""

    transient = True

    def __init__(self, message: str = "Master is currently unavailable.") -> None:
        super().__init__(message, grpc.StatusCode.UNAVAILABLE)


class NotPrimaryError(UnavailableError):
    """Raised when the contacted master is a standby rather than the primary."""

    def __init__(self, message: str = "Contacted master is not the primary.") -> None:
        super().__init__(message)


class DeadlineExceededError(MasterClientError):
    """Raised when a request times out."""

    transient = True

    def __init__(self, message: str = "The request timed out.") -> None:
        super().__init__(message, grpc.StatusCode.DEADLINE_EXCEEDED)


class CancelledError(MasterClientError):
    """Raised when a call was cancelled because its channel was torn down."""

    transient = True

    def __init__(self, message: str = "The request was cancelled.") -> None:
        super().__init__(message, grpc.StatusCode.CANCELLED)


class InvalidArgumentError(MasterClientError):
    """Raised for malformed request arguments."""

    def __init__(self, message: str) -> None:
        super().__init__(message, grpc.StatusCode.INVALID_ARGUMENT)


class NotFoundError(MasterClientError):
    """Raised when the master reports that the target does not exist."""

    def __init__(self, message: str) -> None:
        super().__init__(message, grpc.StatusCode.NOT_FOUND)


class PermissionDeniedError(MasterClientError):
    def __init__(self, message: str = "Permission denied.") -> None:
        super().__init__(message, grpc.StatusCode.PERMISSION_DENIED)


class UnauthenticatedError(MasterClientError):
    def __init__(self, message: str = "Authentication failed.") -> None:
        super().__init__(message, grpc.StatusCode.UNAUTHENTICATED)


class FailedPreconditionError(MasterClientError):
    def __init__(self, message: str) -> None:
        super().__init__(message, grpc.StatusCode.FAILED_PRECONDITION)


class ServiceVersionMismatchError(FailedPreconditionError):
    """Raised when the resolved master speaks a different protocol version."""

    def __init__(self, service_name: str, expected: int, actual: int, address: str) -> None:
        super().__init__(
            f"{service_name} version mismatch at {address}: "
            f"client expects {expected}, server reports {actual}"
        )
        self.service_name = service_name
        self.expected = expected
        self.actual = actual
        self.address = address


class ClientClosedError(FailedPreconditionError):
    def __init__(self, message: str = "Client is closed.") -> None:
        super().__init__(message)


class ResponseDecodingError(MasterClientError):
    """Raised when a response does not have the expected shape."""

    def __init__(self, message: str) -> None:
        super().__init__(message, grpc.StatusCode.DATA_LOSS)


class InternalError(MasterClientError):
    def __init__(self, message: str, status_code: grpc.StatusCode | None = None) -> None:
        super().__init__(message, status_code or grpc.StatusCode.INTERNAL)


class ConfigurationError(MasterClientError):
    """Raised when client configuration cannot be loaded."""

    def __init__(self, message: str) -> None:
        super().__init__(message, grpc.StatusCode.FAILED_PRECONDITION)


class RetriesExhaustedError(MasterClientError, OSError):
    """Raised when every attempt granted by the retry policy failed transiently.

    It is a terminal I/O failure, so it is also an ``OSError``.
    """

    def __init__(self, operation: str, attempts: int, last_error: BaseException) -> None:
        super().__init__(
            f"Failed after {attempts} attempts: {operation}: {last_error}",
            grpc.StatusCode.UNAVAILABLE,
        )
        self.operation = operation
        self.attempts = attempts
        self.last_error = last_error


_STATUS_TO_ERROR: dict[grpc.StatusCode, type[MasterClientError]] = {
    grpc.StatusCode.UNAVAILABLE: UnavailableError,
    grpc.StatusCode.DEADLINE_EXCEEDED: DeadlineExceededError,
    grpc.StatusCode.CANCELLED: CancelledError,
    grpc.StatusCode.INVALID_ARGUMENT: InvalidArgumentError,
    grpc.StatusCode.OUT_OF_RANGE: InvalidArgumentError,
    grpc.StatusCode.NOT_FOUND: NotFoundError,
    grpc.StatusCode.PERMISSION_DENIED: PermissionDeniedError,
    grpc.StatusCode.UNAUTHENTICATED: UnauthenticatedError,
    grpc.StatusCode.FAILED_PRECONDITION: FailedPreconditionError,
    grpc.StatusCode.DATA_LOSS: ResponseDecodingError,
}


def _is_not_primary(error: grpc.RpcError) -> bool:
    trailing = getattr(error, "trailing_metadata", None)
    if trailing is None:
        return False
    try:
        metadata = trailing() or ()
    except Exception:  # noqa: BLE001
        return False
    return any(
        key == NOT_PRIMARY_METADATA_KEY and str(value).lower() == "true" for key, value in metadata
    )


def from_rpc_error(error: grpc.RpcError) -> MasterClientError:
    """Map a transport failure onto the typed hierarchy.

    A standby master is recognized only by the ``x-master-not-primary``
    trailing metadata marker, whatever status code it used.
    """
    try:
        code = error.code()  # type: ignore[attr-defined]
        details = error.details() or code.name  # type: ignore[attr-defined]
    except AttributeError:
        return UnavailableError(str(error) or "RPC failed without a status")

    if _is_not_primary(error):
        return NotPrimaryError(details)

    error_class = _STATUS_TO_ERROR.get(code)
    if error_class is None:
        return InternalError(details, code)
    return error_class(details)


def is_transient(exc: BaseException) -> bool:
    """Return True if retrying the same request may succeed."""
    if isinstance(exc, MasterClientError):
        return exc.transient
    if isinstance(exc, grpc.RpcError):
        return from_rpc_error(exc).transient
    return isinstance(exc, (ConnectionError, TimeoutError))
