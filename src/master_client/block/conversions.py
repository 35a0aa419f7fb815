"""Pure conversions between block master domain values and wire messages.

Encoders validate their arguments and raise ``InvalidArgumentError`` before
anything is sent; decoders accept any message that passed wire validation.
"""

from __future__ import annotations

from collections.abc import Iterable

from ..exceptions import InvalidArgumentError
from ..wire import messages
from .types import (
    BlockInfo,
    BlockLocation,
    BlockMasterInfo,
    BlockMasterInfoField,
    DecommissionWorkerOptions,
    GetWorkerReportOptions,
    WorkerInfo,
    WorkerLostStorageInfo,
    WorkerNetAddress,
    WorkerRange,
)

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1


def _require_worker_name(worker_name: object) -> str:
    if not isinstance(worker_name, str) or not worker_name.strip():
        raise InvalidArgumentError(f"worker name must be a non-empty string, got {worker_name!r}")
    return worker_name


# Encoders


def encode_get_worker_info_list() -> messages.GetWorkerInfoListRequest:
    return messages.GetWorkerInfoListRequest()


def encode_remove_decommissioned_worker(
    worker_name: str,
) -> messages.RemoveDecommissionedWorkerRequest:
    return messages.RemoveDecommissionedWorkerRequest(worker_name=_require_worker_name(worker_name))


def encode_get_worker_report(options: GetWorkerReportOptions) -> messages.GetWorkerReportRequest:
    if not isinstance(options, GetWorkerReportOptions):
        raise InvalidArgumentError(f"expected GetWorkerReportOptions, got {type(options).__name__}")
    if options.worker_range is WorkerRange.SPECIFIED and not options.addresses:
        raise InvalidArgumentError("SPECIFIED worker range requires at least one address")
    return messages.GetWorkerReportRequest(
        addresses=sorted(options.addresses),
        field_ranges=sorted(info_field.value for info_field in options.field_range),
        worker_range=options.worker_range.value,
    )


def encode_get_worker_lost_storage() -> messages.GetWorkerLostStorageRequest:
    return messages.GetWorkerLostStorageRequest()


def encode_get_block_info(block_id: int) -> messages.GetBlockInfoRequest:
    if isinstance(block_id, bool) or not isinstance(block_id, int):
        raise InvalidArgumentError(f"block id must be an integer, got {block_id!r}")
    if not INT64_MIN <= block_id <= INT64_MAX:
        raise InvalidArgumentError(f"block id {block_id} does not fit in 64 bits")
    return messages.GetBlockInfoRequest(block_id=block_id)


def encode_get_block_master_info(
    fields: Iterable[BlockMasterInfoField],
) -> messages.GetBlockMasterInfoRequest:
    filters = []
    for info_field in fields:
        try:
            filters.append(BlockMasterInfoField(info_field).value)
        except ValueError as exc:
            raise InvalidArgumentError(f"unknown block master info field {info_field!r}") from exc
    return messages.GetBlockMasterInfoRequest(filters=sorted(set(filters)))


def encode_get_capacity_bytes() -> messages.GetCapacityBytesRequest:
    return messages.GetCapacityBytesRequest()


def encode_get_used_bytes() -> messages.GetUsedBytesRequest:
    return messages.GetUsedBytesRequest()


def encode_decommission_worker(
    options: DecommissionWorkerOptions,
) -> messages.DecommissionWorkerRequest:
    if not isinstance(options, DecommissionWorkerOptions):
        raise InvalidArgumentError(
            f"expected DecommissionWorkerOptions, got {type(options).__name__}"
        )
    return messages.DecommissionWorkerRequest(
        worker_name=_require_worker_name(options.worker_name),
        can_register_again=options.can_register_again,
    )


# Decoders


def decode_worker_net_address(address: messages.WorkerNetAddress) -> WorkerNetAddress:
    return WorkerNetAddress(
        host=address.host,
        rpc_port=address.rpc_port,
        data_port=address.data_port,
        web_port=address.web_port,
        domain_socket_path=address.domain_socket_path,
    )


def decode_worker_info(info: messages.WorkerInfo) -> WorkerInfo:
    return WorkerInfo(
        id=info.id,
        address=decode_worker_net_address(info.address),
        last_contact_sec=info.last_contact_sec,
        state=info.state,
        capacity_bytes=info.capacity_bytes,
        used_bytes=info.used_bytes,
        start_time_ms=info.start_time_ms,
        capacity_bytes_on_tiers=info.capacity_bytes_on_tiers,
        used_bytes_on_tiers=info.used_bytes_on_tiers,
        block_count=info.block_count,
        version=info.version,
        revision=info.revision,
    )


def decode_worker_info_list(response: messages.GetWorkerInfoListResponse) -> list[WorkerInfo]:
    return [decode_worker_info(info) for info in response.worker_infos]


def decode_worker_lost_storage(
    response: messages.GetWorkerLostStorageResponse,
) -> list[WorkerLostStorageInfo]:
    return [
        WorkerLostStorageInfo(
            address=decode_worker_net_address(info.address),
            lost_storage={tier: tuple(paths) for tier, paths in info.lost_storage.items()},
        )
        for info in response.worker_lost_storage_info
    ]


def decode_block_info(response: messages.GetBlockInfoResponse) -> BlockInfo:
    block = response.block_info
    return BlockInfo(
        block_id=block.block_id,
        length=block.length,
        locations=tuple(
            BlockLocation(
                worker_id=location.worker_id,
                worker_address=decode_worker_net_address(location.worker_address),
                tier_alias=location.tier_alias,
                medium_type=location.medium_type,
            )
            for location in block.locations
        ),
    )


def decode_block_master_info(
    response: messages.GetBlockMasterInfoResponse,
    fields: Iterable[BlockMasterInfoField] | None = None,
) -> BlockMasterInfo:
    """Decode master info, keeping only ``fields`` when they are given."""
    info = response.block_master_info
    wanted = {BlockMasterInfoField(f) for f in fields} if fields is not None else set(BlockMasterInfoField)
    values = {
        info_field.attribute: getattr(info, info_field.attribute)
        for info_field in wanted
    }
    return BlockMasterInfo(**values)


def decode_bytes(response: messages.BytesResponse) -> int:
    return response.bytes
