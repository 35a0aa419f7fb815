"""Wire format of the master services: pydantic messages and gRPC stubs."""

from . import messages
from .stubs import (
    BLOCK_MASTER_SERVICE_NAME,
    SERVICE_VERSION_SERVICE_NAME,
    BlockMasterClientServiceServicer,
    BlockMasterClientServiceStub,
    ServiceVersionClientServiceServicer,
    ServiceVersionClientServiceStub,
    add_BlockMasterClientServiceServicer_to_server,
    add_ServiceVersionClientServiceServicer_to_server,
)

__all__ = [
    "BLOCK_MASTER_SERVICE_NAME",
    "SERVICE_VERSION_SERVICE_NAME",
    "BlockMasterClientServiceServicer",
    "BlockMasterClientServiceStub",
    "ServiceVersionClientServiceServicer",
    "ServiceVersionClientServiceStub",
    "add_BlockMasterClientServiceServicer_to_server",
    "add_ServiceVersionClientServiceServicer_to_server",
    "messages",
]
