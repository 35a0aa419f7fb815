"""Client stubs and server registration for the master gRPC services.

Laid out like generated gRPC code: a ``*Stub`` per service wrapping
``channel.unary_unary`` callables, a ``*Servicer`` base class, and an
``add_*Servicer_to_server`` function. Responses are requested as raw bytes
and decoded here so that shape violations surface as
``ResponseDecodingError`` instead of an opaque transport error.
"""

from __future__ import annotations

from typing import Any

import grpc

from . import messages

BLOCK_MASTER_SERVICE_NAME = "blockmaster.v1.BlockMasterClientService"
SERVICE_VERSION_SERVICE_NAME = "blockmaster.v1.ServiceVersionClientService"


class _UnaryMethod:
    """One unary-unary method bound to a channel."""

    def __init__(
        self,
        channel: grpc.Channel,
        service: str,
        method: str,
        response_type: type[messages.WireMessage],
        timeout: float | None,
    ) -> None:
        self.path = f"/{service}/{method}"
        self._response_type = response_type
        self._timeout = timeout
        self._callable = channel.unary_unary(
            self.path,
            request_serializer=messages.serialize_message,
            response_deserializer=None,
        )

    def __call__(
        self,
        request: messages.WireMessage,
        timeout: float | None = None,
        metadata: Any = None,  # noqa: ANN401
    ) -> Any:  # noqa: ANN401
        payload = self._callable(
            request,
            timeout=timeout if timeout is not None else self._timeout,
            metadata=metadata,
        )
        return messages.decode_message(self._response_type, payload, self.path)


class BlockMasterClientServiceStub:
    """Client stub for the block master client service."""

    def __init__(self, channel: grpc.Channel, timeout: float | None = None) -> None:
        def method(name: str, response_type: type[messages.WireMessage]) -> _UnaryMethod:
            return _UnaryMethod(channel, BLOCK_MASTER_SERVICE_NAME, name, response_type, timeout)

        self.GetWorkerInfoList = method("GetWorkerInfoList", messages.GetWorkerInfoListResponse)
        self.RemoveDecommissionedWorker = method(
            "RemoveDecommissionedWorker", messages.RemoveDecommissionedWorkerResponse
        )
        self.GetWorkerReport = method("GetWorkerReport", messages.GetWorkerInfoListResponse)
        self.GetWorkerLostStorage = method(
            "GetWorkerLostStorage", messages.GetWorkerLostStorageResponse
        )
        self.GetBlockInfo = method("GetBlockInfo", messages.GetBlockInfoResponse)
        self.GetBlockMasterInfo = method("GetBlockMasterInfo", messages.GetBlockMasterInfoResponse)
        self.GetCapacityBytes = method("GetCapacityBytes", messages.BytesResponse)
        self.GetUsedBytes = method("GetUsedBytes", messages.BytesResponse)
        self.DecommissionWorker = method("DecommissionWorker", messages.DecommissionWorkerResponse)


class ServiceVersionClientServiceStub:
    """Client stub for the service version negotiation service."""

    def __init__(self, channel: grpc.Channel, timeout: float | None = None) -> None:
        self.GetServiceVersion = _UnaryMethod(
            channel,
            SERVICE_VERSION_SERVICE_NAME,
            "GetServiceVersion",
            messages.GetServiceVersionResponse,
            timeout,
        )


def _unimplemented(context: grpc.ServicerContext) -> None:
    context.set_code(grpc.StatusCode.UNIMPLEMENTED)
    context.set_details("Method not implemented!")
    raise NotImplementedError("Method not implemented!")


class BlockMasterClientServiceServicer:
    """Server-side interface of the block master client service."""

    def GetWorkerInfoList(self, request, context):  # noqa: N802, ANN001, ANN201
        _unimplemented(context)

    def RemoveDecommissionedWorker(self, request, context):  # noqa: N802, ANN001, ANN201
        _unimplemented(context)

    def GetWorkerReport(self, request, context):  # noqa: N802, ANN001, ANN201
        _unimplemented(context)

    def GetWorkerLostStorage(self, request, context):  # noqa: N802, ANN001, ANN201
        _unimplemented(context)

    def GetBlockInfo(self, request, context):  # noqa: N802, ANN001, ANN201
        _unimplemented(context)

    def GetBlockMasterInfo(self, request, context):  # noqa: N802, ANN001, ANN201
        _unimplemented(context)

    def GetCapacityBytes(self, request, context):  # noqa: N802, ANN001, ANN201
        _unimplemented(context)

    def GetUsedBytes(self, request, context):  # noqa: N802, ANN001, ANN201
        _unimplemented(context)

    def DecommissionWorker(self, request, context):  # noqa: N802, ANN001, ANN201
        _unimplemented(context)


class ServiceVersionClientServiceServicer:
    def GetServiceVersion(self, request, context):  # noqa: N802, ANN001, ANN201
        _unimplemented(context)


def _handler(behavior: Any, request_type: type[messages.WireMessage]) -> grpc.RpcMethodHandler:  # noqa: ANN401
    return grpc.unary_unary_rpc_method_handler(
        behavior,
        request_deserializer=request_type.model_validate_json,
        response_serializer=messages.serialize_message,
    )


def add_BlockMasterClientServiceServicer_to_server(  # noqa: N802
    servicer: BlockMasterClientServiceServicer, server: grpc.Server
) -> None:
    rpc_method_handlers = {
        "GetWorkerInfoList": _handler(
            servicer.GetWorkerInfoList, messages.GetWorkerInfoListRequest
        ),
        "RemoveDecommissionedWorker": _handler(
            servicer.RemoveDecommissionedWorker, messages.RemoveDecommissionedWorkerRequest
        ),
        "GetWorkerReport": _handler(servicer.GetWorkerReport, messages.GetWorkerReportRequest),
        "GetWorkerLostStorage": _handler(
            servicer.GetWorkerLostStorage, messages.GetWorkerLostStorageRequest
        ),
        "GetBlockInfo": _handler(servicer.GetBlockInfo, messages.GetBlockInfoRequest),
        "GetBlockMasterInfo": _handler(
            servicer.GetBlockMasterInfo, messages.GetBlockMasterInfoRequest
        ),
        "GetCapacityBytes": _handler(servicer.GetCapacityBytes, messages.GetCapacityBytesRequest),
        "GetUsedBytes": _handler(servicer.GetUsedBytes, messages.GetUsedBytesRequest),
        "DecommissionWorker": _handler(
            servicer.DecommissionWorker, messages.DecommissionWorkerRequest
        ),
    }
    generic_handler = grpc.method_handlers_generic_handler(
        BLOCK_MASTER_SERVICE_NAME, rpc_method_handlers
    )
    server.add_generic_rpc_handlers((generic_handler,))


def add_ServiceVersionClientServiceServicer_to_server(  # noqa: N802
    servicer: ServiceVersionClientServiceServicer, server: grpc.Server
) -> None:
    rpc_method_handlers = {
        "GetServiceVersion": _handler(
            servicer.GetServiceVersion, messages.GetServiceVersionRequest
        ),
    }
    generic_handler = grpc.method_handlers_generic_handler(
        SERVICE_VERSION_SERVICE_NAME, rpc_method_handlers
    )
    server.add_generic_rpc_handlers((generic_handler,))
