"""Domain values returned by the block master client.

These are plain immutable values; they are only ever produced by decoding a
block master response (see ``conversions``).
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping


class BlockMasterInfoField(str, Enum):
    """Fields that can be requested from ``get_block_master_info``."""

    CAPACITY_BYTES = "CAPACITY_BYTES"
    CAPACITY_BYTES_ON_TIERS = "CAPACITY_BYTES_ON_TIERS"
    FREE_BYTES = "FREE_BYTES"
    LIVE_WORKER_NUM = "LIVE_WORKER_NUM"
    LOST_WORKER_NUM = "LOST_WORKER_NUM"
    USED_BYTES = "USED_BYTES"
    USED_BYTES_ON_TIERS = "USED_BYTES_ON_TIERS"

    @property
    def attribute(self) -> str:
        return self.value.lower()


class WorkerRange(str, Enum):
    """Which workers a worker report covers."""

    ALL = "ALL"
    LIVE = "LIVE"
    LOST = "LOST"
    SPECIFIED = "SPECIFIED"
    DECOMMISSIONED = "DECOMMISSIONED"


class WorkerInfoField(str, Enum):
    """Worker attributes that a worker report may include."""

    ADDRESS = "ADDRESS"
    BLOCK_COUNT = "BLOCK_COUNT"
    WORKER_CAPACITY_BYTES = "WORKER_CAPACITY_BYTES"
    WORKER_CAPACITY_BYTES_ON_TIERS = "WORKER_CAPACITY_BYTES_ON_TIERS"
    ID = "ID"
    LAST_CONTACT_SEC = "LAST_CONTACT_SEC"
    START_TIME_MS = "START_TIME_MS"
    STATE = "STATE"
    WORKER_USED_BYTES = "WORKER_USED_BYTES"
    WORKER_USED_BYTES_ON_TIERS = "WORKER_USED_BYTES_ON_TIERS"
    BUILD_VERSION = "BUILD_VERSION"


def _frozen_mapping(values: Mapping | None) -> Mapping:
    return MappingProxyType(dict(values or {}))


@dataclass(frozen=True, slots=True)
class WorkerNetAddress:
    host: str
    rpc_port: int = 0
    data_port: int = 0
    web_port: int = 0
    domain_socket_path: str = ""

    def __str__(self) -> str:
        return f"{self.host}:{self.rpc_port}"


@dataclass(frozen=True, slots=True)
class WorkerInfo:
    id: int
    address: WorkerNetAddress
    last_contact_sec: int = 0
    state: str = ""
    capacity_bytes: int = 0
    used_bytes: int = 0
    start_time_ms: int = 0
    capacity_bytes_on_tiers: Mapping[str, int] = field(default_factory=dict)
    used_bytes_on_tiers: Mapping[str, int] = field(default_factory=dict)
    block_count: int = 0
    version: str = ""
    revision: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "capacity_bytes_on_tiers", _frozen_mapping(self.capacity_bytes_on_tiers))
        object.__setattr__(self, "used_bytes_on_tiers", _frozen_mapping(self.used_bytes_on_tiers))


@dataclass(frozen=True, slots=True)
class BlockLocation:
    worker_id: int
    worker_address: WorkerNetAddress
    tier_alias: str = ""
    medium_type: str = ""


@dataclass(frozen=True, slots=True)
class BlockInfo:
    block_id: int
    length: int = 0
    locations: tuple[BlockLocation, ...] = ()


@dataclass(frozen=True, slots=True)
class BlockMasterInfo:
    """Aggregate block master counters; unrequested fields stay None."""

    capacity_bytes: int | None = None
    capacity_bytes_on_tiers: Mapping[str, int] | None = None
    free_bytes: int | None = None
    live_worker_num: int | None = None
    lost_worker_num: int | None = None
    used_bytes: int | None = None
    used_bytes_on_tiers: Mapping[str, int] | None = None

    def __post_init__(self) -> None:
        for name in ("capacity_bytes_on_tiers", "used_bytes_on_tiers"):
            value = getattr(self, name)
            if value is not None:
                object.__setattr__(self, name, _frozen_mapping(value))

    @property
    def populated_fields(self) -> frozenset[BlockMasterInfoField]:
        return frozenset(
            info_field for info_field in BlockMasterInfoField
            if getattr(self, info_field.attribute) is not None
        )


@dataclass(frozen=True, slots=True)
class WorkerLostStorageInfo:
    """Storage paths a worker reported as lost, keyed by tier alias."""

    address: WorkerNetAddress
    lost_storage: Mapping[str, tuple[str, ...]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "lost_storage",
            MappingProxyType({tier: tuple(paths) for tier, paths in self.lost_storage.items()}),
        )


@dataclass(frozen=True)
class GetWorkerReportOptions:
    """Selection criteria for ``get_worker_report``.

    ``addresses`` only applies to ``WorkerRange.SPECIFIED``; an empty
    ``field_range`` means every field.
    """

    worker_range: WorkerRange = WorkerRange.ALL
    field_range: frozenset[WorkerInfoField] = frozenset(WorkerInfoField)
    addresses: frozenset[str] = frozenset()

    @classmethod
    def defaults(cls) -> GetWorkerReportOptions:
        return cls()

    def with_addresses(self, addresses: Iterable[str]) -> GetWorkerReportOptions:
        return GetWorkerReportOptions(
            worker_range=WorkerRange.SPECIFIED,
            field_range=self.field_range,
            addresses=frozenset(addresses),
        )

    def __str__(self) -> str:
        fields = ",".join(sorted(f.value for f in self.field_range))
        return (
            f"GetWorkerReportOptions(range={self.worker_range.value}, "
            f"fields=[{fields}], addresses={sorted(self.addresses)})"
        )


@dataclass(frozen=True)
class DecommissionWorkerOptions:
    worker_name: str
    can_register_again: bool = True
