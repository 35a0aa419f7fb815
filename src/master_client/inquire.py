"""Discovery of master endpoints.

An inquire client answers "which of the configured masters is the primary
right now". ``PollingMasterInquireClient`` asks every candidate in turn with
a cheap version RPC; standbys reject it with the not-primary marker.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import Any, Protocol, runtime_checkable

import grpc

from .config import MasterAddress
from .exceptions import MasterClientError, UnavailableError, from_rpc_error
from .identity import ServiceType
from .wire import ServiceVersionClientServiceStub, messages

logger = logging.getLogger(__name__)

PrimaryCheckFn = Callable[[MasterAddress], None]


@runtime_checkable
class MasterInquireClient(Protocol):
    """Protocol for locating the primary master."""

    def get_primary_rpc_address(self) -> MasterAddress:
        """Return the address of the current primary or raise ``UnavailableError``."""
        ...

    def get_master_rpc_addresses(self) -> list[MasterAddress]:
        """Return every configured master address."""
        ...


class SingleMasterInquireClient:
    """Inquire client for a deployment with exactly one master."""

    def __init__(self, address: MasterAddress) -> None:
        self._address = address

    def get_primary_rpc_address(self) -> MasterAddress:
        return self._address

    def get_master_rpc_addresses(self) -> list[MasterAddress]:
        return [self._address]


class ServiceVersionCheck:
    """Checks that a master answers version requests as the primary."""

    def __init__(
        self,
        service_type: ServiceType = ServiceType.BLOCK_MASTER_CLIENT_SERVICE,
        credentials: grpc.ChannelCredentials | None = None,
        timeout: float = 2.0,
        options: Sequence[tuple[str, Any]] = (),
    ) -> None:
        self.service_type = service_type
        self.credentials = credentials
        self.timeout = timeout
        self.options = list(options)

    def __call__(self, address: MasterAddress) -> None:
        if self.credentials is not None:
            channel = grpc.secure_channel(address.target, self.credentials, options=self.options)
        else:
            channel = grpc.insecure_channel(address.target, options=self.options)
        try:
            stub = ServiceVersionClientServiceStub(channel, timeout=self.timeout)
            stub.GetServiceVersion(
                messages.GetServiceVersionRequest(service_type=self.service_type.value)
            )
        except grpc.RpcError as exc:
            raise from_rpc_error(exc) from exc
        finally:
            channel.close()


class PollingMasterInquireClient:
    """Finds the primary by checking each candidate in order."""

    def __init__(self, addresses: Sequence[MasterAddress], check: PrimaryCheckFn | None = None) -> None:
        if not addresses:
            raise ValueError("PollingMasterInquireClient requires at least one address")
        self._addresses = list(addresses)
        self._check = check or ServiceVersionCheck()

    def get_primary_rpc_address(self) -> MasterAddress:
        for address in self._addresses:
            try:
                self._check(address)
            except (MasterClientError, OSError) as exc:
                logger.debug("Master %s is not an available primary: %s", address, exc)
                continue
            return address
        targets = ", ".join(address.target for address in self._addresses)
        raise UnavailableError(f"Failed to determine primary master from [{targets}]")

    def get_master_rpc_addresses(self) -> list[MasterAddress]:
        return list(self._addresses)
