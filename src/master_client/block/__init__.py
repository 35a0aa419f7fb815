"""Block master client and the values it returns."""

from .client import BlockMasterClient
from .types import (
    BlockInfo,
    BlockLocation,
    BlockMasterInfo,
    BlockMasterInfoField,
    DecommissionWorkerOptions,
    GetWorkerReportOptions,
    WorkerInfo,
    WorkerInfoField,
    WorkerLostStorageInfo,
    WorkerNetAddress,
    WorkerRange,
)

__all__ = [
    "BlockInfo",
    "BlockLocation",
    "BlockMasterClient",
    "BlockMasterInfo",
    "BlockMasterInfoField",
    "DecommissionWorkerOptions",
    "GetWorkerReportOptions",
    "WorkerInfo",
    "WorkerInfoField",
    "WorkerLostStorageInfo",
    "WorkerNetAddress",
    "WorkerRange",
]
