"""Identities of the remote services master clients talk to."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ServiceType(str, Enum):
    """Services hosted by a master process."""

    BLOCK_MASTER_CLIENT_SERVICE = "BLOCK_MASTER_CLIENT_SERVICE"


@dataclass(frozen=True, slots=True)
class ServiceIdentity:
    """Which remote service a client type targets, and at which protocol version."""

    name: str
    service_type: ServiceType
    version: int

    def __str__(self) -> str:
        return f"{self.name}(v{self.version})"


BLOCK_MASTER_CLIENT_SERVICE = ServiceIdentity(
    name="BlockMasterClient",
    service_type=ServiceType.BLOCK_MASTER_CLIENT_SERVICE,
    version=2,
)
