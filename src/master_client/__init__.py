"""
Resilient RPC clients for cluster masters.

Clients built here find the current primary master, keep one connection to
it, and retry transient failures with back-off, failing over to another
master when the one they talk to goes away.
"""

from .block import BlockMasterClient
from .config import ClientConfig, MasterAddress, RetryConfig, load_config
from .context import MasterClientContext
from .exceptions import (
    MasterClientError,
    NotPrimaryError,
    RetriesExhaustedError,
    ServiceVersionMismatchError,
    UnavailableError,
)
from .retry import counting_retry, exponential_backoff_retry, time_bounded_retry
from .selection import MasterSelectionPolicy, SelectionPolicyType

__version__ = "0.1.0"

__all__ = [
    "BlockMasterClient",
    "ClientConfig",
    "MasterAddress",
    "MasterClientContext",
    "MasterClientError",
    "MasterSelectionPolicy",
    "NotPrimaryError",
    "RetriesExhaustedError",
    "RetryConfig",
    "SelectionPolicyType",
    "ServiceVersionMismatchError",
    "UnavailableError",
    "counting_retry",
    "exponential_backoff_retry",
    "load_config",
    "time_bounded_retry",
]
