"""
Wire messages of the block master client service.

Messages are pydantic models carried as JSON over gRPC. Validation on decode
is what turns a malformed response into a ``ResponseDecodingError``.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..exceptions import ResponseDecodingError


class WireMessage(BaseModel):
    """Base for every message sent over the wire."""

    model_config = ConfigDict(frozen=True, extra="ignore")


def serialize_message(message: WireMessage) -> bytes:
    return message.model_dump_json().encode("utf-8")


def decode_message(message_type: type[WireMessage], payload: bytes, method: str = "") -> WireMessage:
    """Decode ``payload`` as ``message_type`` or raise ``ResponseDecodingError``."""
    try:
        return message_type.model_validate_json(payload)
    except ValidationError as exc:
        where = f" from {method}" if method else ""
        raise ResponseDecodingError(
            f"Malformed {message_type.__name__}{where}: {exc.error_count()} validation error(s): "
            f"{exc.errors(include_url=False)[0]['msg']}"
        ) from exc


# Shared structures


class WorkerNetAddress(WireMessage):
    host: str
    rpc_port: int = 0
    data_port: int = 0
    web_port: int = 0
    domain_socket_path: str = ""


class WorkerInfo(WireMessage):
    id: int
    address: WorkerNetAddress
    last_contact_sec: int = 0
    state: str = ""
    capacity_bytes: int = Field(default=0, ge=0)
    used_bytes: int = Field(default=0, ge=0)
    start_time_ms: int = 0
    capacity_bytes_on_tiers: dict[str, int] = Field(default_factory=dict)
    used_bytes_on_tiers: dict[str, int] = Field(default_factory=dict)
    block_count: int = 0
    version: str = ""
    revision: str = ""


class BlockLocation(WireMessage):
    worker_id: int
    worker_address: WorkerNetAddress
    tier_alias: str = ""
    medium_type: str = ""


class BlockInfo(WireMessage):
    block_id: int
    length: int = 0
    locations: list[BlockLocation] = Field(default_factory=list)


class BlockMasterInfo(WireMessage):
    """Only the fields a caller asked for are populated."""

    capacity_bytes: int | None = None
    capacity_bytes_on_tiers: dict[str, int] | None = None
    free_bytes: int | None = None
    live_worker_num: int | None = None
    lost_worker_num: int | None = None
    used_bytes: int | None = None
    used_bytes_on_tiers: dict[str, int] | None = None


class WorkerLostStorageInfo(WireMessage):
    address: WorkerNetAddress
    lost_storage: dict[str, list[str]] = Field(default_factory=dict)


# Requests / responses


class GetWorkerInfoListRequest(WireMessage):
    pass


class GetWorkerInfoListResponse(WireMessage):
    worker_infos: list[WorkerInfo]


class RemoveDecommissionedWorkerRequest(WireMessage):
    worker_name: str = Field(min_length=1)


class RemoveDecommissionedWorkerResponse(WireMessage):
    pass


class GetWorkerReportRequest(WireMessage):
    addresses: list[str] = Field(default_factory=list)
    field_ranges: list[str] = Field(default_factory=list)
    worker_range: str = "ALL"


class GetWorkerLostStorageRequest(WireMessage):
    pass


class GetWorkerLostStorageResponse(WireMessage):
    worker_lost_storage_info: list[WorkerLostStorageInfo]


class GetBlockInfoRequest(WireMessage):
    block_id: int


class GetBlockInfoResponse(WireMessage):
    block_info: BlockInfo


class GetBlockMasterInfoRequest(WireMessage):
    filters: list[str] = Field(default_factory=list)


class GetBlockMasterInfoResponse(WireMessage):
    block_master_info: BlockMasterInfo


class GetCapacityBytesRequest(WireMessage):
    pass


class GetUsedBytesRequest(WireMessage):
    pass


class BytesResponse(WireMessage):
    bytes: int = Field(ge=0)


class DecommissionWorkerRequest(WireMessage):
    worker_name: str = Field(min_length=1)
    can_register_again: bool = True


class DecommissionWorkerResponse(WireMessage):
    pass


class GetServiceVersionRequest(WireMessage):
    service_type: str
    allowed_on_standby_masters: bool = False


class GetServiceVersionResponse(WireMessage):
    version: int
