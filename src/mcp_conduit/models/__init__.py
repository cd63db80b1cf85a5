"""
Pydantic models for MCP Conduit.
"""
from .common import BasePydanticModel, TransportType
from .mcp import (
    UNKNOWN_TOOL_NAME,
    CallToolResult,
    ListToolsFailure,
    ListToolsResult,
    ListToolsSuccess,
    ServerConfig,
    ToolDescriptor,
)
from .rpc import JSONRPC_VERSION, JsonRpcError, JsonRpcRequest, JsonRpcResponse

__all__ = [
    "BasePydanticModel",
    "CallToolResult",
    "JSONRPC_VERSION",
    "JsonRpcError",
    "JsonRpcRequest",
    "JsonRpcResponse",
    "ListToolsFailure",
    "ListToolsResult",
    "ListToolsSuccess",
    "ServerConfig",
    "ToolDescriptor",
    "TransportType",
    "UNKNOWN_TOOL_NAME",
]
