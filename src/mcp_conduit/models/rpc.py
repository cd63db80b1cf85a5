"""
JSON-RPC 2.0 envelope models.
"""
import uuid
from typing import Any, Literal

from pydantic import Field

from .common import BasePydanticModel

JSONRPC_VERSION = "2.0"


def new_request_id() -> str:
    return str(uuid.uuid4())

class JsonRpcRequest(BasePydanticModel):
    jsonrpc: Literal["2.0"] = JSONRPC_VERSION
    id: str = Field(default_factory=new_request_id)
    method: str
    params: dict[str, Any] = Field(default_factory=dict)

class JsonRpcError(BasePydanticModel):
    code: int
    message: str
    data: Any = None

    model_config = {
        "extra": "ignore",
        "populate_by_name": True,
    }

class JsonRpcResponse(BasePydanticModel):
    jsonrpc: str = JSONRPC_VERSION
    id: str | int | None = None
    result: Any = None
    error: JsonRpcError | None = None

    # Servers add vendor fields; they are not our concern.
    model_config = {
        "extra": "ignore",
        "populate_by_name": True,
    }
