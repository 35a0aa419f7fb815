"""Master selection: which endpoint the next connection should target."""

from __future__ import annotations

import logging
import threading
from collections.abc import Sequence
from enum import Enum

from .config import MasterAddress
from .exceptions import UnavailableError
from .inquire import MasterInquireClient

logger = logging.getLogger(__name__)


class SelectionPolicyType(str, Enum):
    SPECIFIED = "specified"
    PRIMARY = "primary"
    ROTATING = "rotating"


class MasterSelectionPolicy:
    """Resolves the master endpoint for the next connection attempt.

    The variants form a closed set:

    * ``SPECIFIED`` always returns one fixed address; there is no failover.
    * ``PRIMARY`` asks an inquire client for the current primary and caches
      the answer until ``reset``.
    * ``ROTATING`` walks a fixed candidate list; every ``reset`` moves on to
      the next candidate, wrapping around.

    ``resolve`` and ``reset`` are safe to call from multiple threads.
    """

    def __init__(
        self,
        policy_type: SelectionPolicyType,
        *,
        address: MasterAddress | None = None,
        inquire_client: MasterInquireClient | None = None,
        candidates: Sequence[MasterAddress] = (),
    ) -> None:
        if policy_type is SelectionPolicyType.SPECIFIED and address is None:
            raise ValueError("SPECIFIED selection requires an address")
        if policy_type is SelectionPolicyType.PRIMARY and inquire_client is None:
            raise ValueError("PRIMARY selection requires an inquire client")
        if policy_type is SelectionPolicyType.ROTATING and not candidates:
            raise ValueError("ROTATING selection requires at least one candidate")
        self.policy_type = policy_type
        self._address = address
        self._inquire_client = inquire_client
        self._candidates = list(candidates)
        self._index = 0
        self._cached: MasterAddress | None = None
        self._lock = threading.Lock()

    @classmethod
    def specified(cls, address: MasterAddress) -> MasterSelectionPolicy:
        return cls(SelectionPolicyType.SPECIFIED, address=address)

    @classmethod
    def primary(cls, inquire_client: MasterInquireClient) -> MasterSelectionPolicy:
        return cls(SelectionPolicyType.PRIMARY, inquire_client=inquire_client)

    @classmethod
    def rotating(cls, candidates: Sequence[MasterAddress]) -> MasterSelectionPolicy:
        return cls(SelectionPolicyType.ROTATING, candidates=candidates)

    def resolve(self) -> MasterAddress:
        """Return the endpoint to connect to, or raise ``UnavailableError``."""
        with self._lock:
            if self.policy_type is SelectionPolicyType.SPECIFIED:
                return self._address  # type: ignore[return-value]
            if self.policy_type is SelectionPolicyType.ROTATING:
                return self._candidates[self._index]
            if self._cached is None:
                try:
                    self._cached = self._inquire_client.get_primary_rpc_address()  # type: ignore[union-attr]
                except UnavailableError:
                    raise
                except Exception as exc:
                    raise UnavailableError(f"Failed to look up primary master: {exc}") from exc
                logger.debug("Resolved primary master %s", self._cached)
            return self._cached

    def reset(self) -> None:
        """Forget the last answer so the next ``resolve`` may pick another endpoint."""
        with self._lock:
            if self.policy_type is SelectionPolicyType.ROTATING:
                self._index = (self._index + 1) % len(self._candidates)
            elif self.policy_type is SelectionPolicyType.PRIMARY:
                self._cached = None

    def candidates(self) -> list[MasterAddress]:
        if self.policy_type is SelectionPolicyType.SPECIFIED:
            return [self._address]  # type: ignore[list-item]
        if self.policy_type is SelectionPolicyType.ROTATING:
            return list(self._candidates)
        return self._inquire_client.get_master_rpc_addresses()  # type: ignore[union-attr]

    def __repr__(self) -> str:
        return f"MasterSelectionPolicy({self.policy_type.value})"
