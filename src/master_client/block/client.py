"""Block master client used by processes that need worker and block metadata."""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable
from types import TracebackType

import grpc

from ..config import MasterAddress
from ..connection import ChannelFactory, ConnectionManager
from ..context import MasterClientContext
from ..executor import CallExecutor
from ..identity import BLOCK_MASTER_CLIENT_SERVICE
from ..observability import RpcObserver, default_observer
from ..retry import RetryPolicyFactory
from ..selection import MasterSelectionPolicy
from ..wire import BlockMasterClientServiceStub
from . import conversions
from .types import (
    BlockInfo,
    BlockMasterInfo,
    BlockMasterInfoField,
    DecommissionWorkerOptions,
    GetWorkerReportOptions,
    WorkerInfo,
    WorkerLostStorageInfo,
)


class BlockMasterClient:
    """Thread-safe client for the block master.

    Every operation converts its arguments into a request, runs the RPC
    through the shared ``CallExecutor`` (which handles connecting, retrying
    and failing over), and converts the response into a domain value.

    Passing ``address`` pins the client to that master and disables
    failover; otherwise the selection policy from the context is used.
    """

    def __init__(
        self,
        context: MasterClientContext,
        address: MasterAddress | None = None,
        retry_policy_factory: RetryPolicyFactory | None = None,
        observer: RpcObserver | None = None,
        *,
        selection: MasterSelectionPolicy | None = None,
        channel_factory: ChannelFactory | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if selection is None:
            selection = (
                MasterSelectionPolicy.specified(address)
                if address is not None
                else context.selection_policy(BLOCK_MASTER_CLIENT_SERVICE.service_type)
            )
        self._context = context
        self._connections = ConnectionManager(
            context,
            BLOCK_MASTER_CLIENT_SERVICE,
            selection,
            after_connect=self._after_connect,
            channel_factory=channel_factory,
        )
        self._executor = CallExecutor(
            self._connections,
            retry_policy_factory or context.retry_policy_factory,
            observer=observer if observer is not None else default_observer(context.client_name),
            sleep=sleep,
        )

    def _after_connect(self, channel: grpc.Channel) -> BlockMasterClientServiceStub:
        return BlockMasterClientServiceStub(channel, timeout=self._context.config.rpc_timeout)

    @property
    def executor(self) -> CallExecutor:
        return self._executor

    @property
    def is_connected(self) -> bool:
        return self._connections.is_connected

    @property
    def is_closed(self) -> bool:
        return self._connections.is_closed

    @property
    def remote_address(self) -> MasterAddress | None:
        return self._connections.remote_address

    def connect(self) -> None:
        """Connect eagerly; normally the first RPC connects on demand."""
        self._executor.execute(lambda stub: None, "Connect")

    def close(self) -> None:
        self._connections.close()

    def __enter__(self) -> BlockMasterClient:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    # Operations

    def get_worker_info_list(self) -> list[WorkerInfo]:
        request = conversions.encode_get_worker_info_list()
        return self._executor.execute(
            lambda stub: conversions.decode_worker_info_list(stub.GetWorkerInfoList(request)),
            "GetWorkerInfoList",
        )

    def remove_decommissioned_worker(self, worker_name: str) -> None:
        request = conversions.encode_remove_decommissioned_worker(worker_name)
        self._executor.execute(
            lambda stub: stub.RemoveDecommissionedWorker(request),
            "RemoveDecommissionedWorker",
            "workerName=%s",
            worker_name,
        )

    def get_worker_report(self, options: GetWorkerReportOptions | None = None) -> list[WorkerInfo]:
        options = options or GetWorkerReportOptions.defaults()
        request = conversions.encode_get_worker_report(options)
        return self._executor.execute(
            lambda stub: conversions.decode_worker_info_list(stub.GetWorkerReport(request)),
            "GetWorkerReport",
            "options=%s",
            options,
        )

    def get_worker_lost_storage(self) -> list[WorkerLostStorageInfo]:
        request = conversions.encode_get_worker_lost_storage()
        return self._executor.execute(
            lambda stub: conversions.decode_worker_lost_storage(stub.GetWorkerLostStorage(request)),
            "GetWorkerLostStorage",
        )

    def get_block_info(self, block_id: int) -> BlockInfo:
        request = conversions.encode_get_block_info(block_id)
        return self._executor.execute(
            lambda stub: conversions.decode_block_info(stub.GetBlockInfo(request)),
            "GetBlockInfo",
            "blockId=%d",
            block_id,
        )

    def get_block_master_info(self, fields: Iterable[BlockMasterInfoField]) -> BlockMasterInfo:
        fields = frozenset(fields)
        request = conversions.encode_get_block_master_info(fields)
        return self._executor.execute(
            lambda stub: conversions.decode_block_master_info(
                stub.GetBlockMasterInfo(request), fields
            ),
            "GetBlockMasterInfo",
            "fields=%s",
            ",".join(request.filters),
        )

    def get_capacity_bytes(self) -> int:
        request = conversions.encode_get_capacity_bytes()
        return self._executor.execute(
            lambda stub: conversions.decode_bytes(stub.GetCapacityBytes(request)),
            "GetCapacityBytes",
        )

    def get_used_bytes(self) -> int:
        request = conversions.encode_get_used_bytes()
        return self._executor.execute(
            lambda stub: conversions.decode_bytes(stub.GetUsedBytes(request)),
            "GetUsedBytes",
        )

    def decommission_worker(self, options: DecommissionWorkerOptions) -> None:
        request = conversions.encode_decommission_worker(options)
        self._executor.execute(
            lambda stub: stub.DecommissionWorker(request),
            "DecommissionWorker",
            "workerName=%s,options=%s",
            options.worker_name,
            options,
        )
