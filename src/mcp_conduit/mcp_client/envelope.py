"""
JSON-RPC envelope helpers shared by every transport.

Both adapters funnel inbound payloads through :func:`validate_rpc_response`
so that version checks, error detection and id correlation behave the same
way regardless of how the bytes arrived.
"""
import json
from collections.abc import Mapping
from typing import Any

import structlog

from ..models.rpc import JSONRPC_VERSION, JsonRpcRequest, JsonRpcResponse
from .exceptions import MCPProtocolError, MCPToolInvocationError

logger = structlog.get_logger(__name__)


def create_rpc_request(method: str, params: dict[str, Any] | None = None) -> JsonRpcRequest:
    """Builds a JSONRPC 2.0 request with a fresh correlation id."""
    return JsonRpcRequest(method=method, params=params if params is not None else {})


def safely_parse_json(data: str) -> Any | None:
    try:
        return json.loads(data)
    except (TypeError, ValueError):
        return None


def response_matches(raw: Any, request_id: str) -> bool:
    """True when a decoded payload is the response to ``request_id``."""
    return isinstance(raw, Mapping) and raw.get("id") == request_id


def parse_rpc_body(text: str, request: JsonRpcRequest) -> JsonRpcResponse:
    """
    Decodes an HTTP response body into a validated JsonRpcResponse.
    An empty body is an implicit null result for the outstanding request.
    """
    trimmed = text.strip()
    if not trimmed:
        logger.debug("Empty response body treated as null result.", method=request.method, request_id=request.id)
        return JsonRpcResponse(jsonrpc=JSONRPC_VERSION, id=request.id, result=None)
    try:
        raw = json.loads(trimmed)
    except ValueError as e:
        logger.error("Failed to decode JSON response", error=str(e), response_text=trimmed[:500])
        raise MCPProtocolError(f"Failed to parse JSON-RPC response: {e}") from e
    return validate_rpc_response(raw, request)


def validate_rpc_response(raw: Any, request: JsonRpcRequest) -> JsonRpcResponse:
    """
    Checks a decoded payload against the outstanding request.

    Raises:
        MCPProtocolError: kind ``invalid_json`` for a non-object payload, a wrong
            ``jsonrpc`` version or a mismatched id.
        MCPToolInvocationError / MCPProtocolError: kind ``mcp_error`` when the
            server populated ``error``.
    """
    if not isinstance(raw, Mapping):
        raise MCPProtocolError(f"Invalid JSON-RPC response: expected an object, got {type(raw).__name__}.")

    version = raw.get("jsonrpc")
    if version != JSONRPC_VERSION:
        raise MCPProtocolError(f"Invalid JSON-RPC response: unsupported version {version!r}.")

    err = raw.get("error")
    if err is not None:
        err_msg, err_code, err_data = _unpack_error(err)
        logger.warning("JSONRPC error response received.", method=request.method, request_id=request.id, code=err_code, msg=err_msg)
        if request.method == "tools/call":
            tool_name = str(request.params.get("name", "unknown"))
            raise MCPToolInvocationError(tool_name=tool_name, message=err_msg, error_code=err_code, error_data=err_data)
        raise MCPProtocolError(err_msg, error_code=err_code, error_data=err_data, kind=MCPToolInvocationError.default_kind)

    if raw.get("id") != request.id:
        logger.error("JSONRPC response ID mismatch", expected_id=request.id, received_id=raw.get("id"))
        raise MCPProtocolError(f"JSON-RPC response id mismatch. Expected {request.id!r}, got {raw.get('id')!r}.")

    return JsonRpcResponse(jsonrpc=JSONRPC_VERSION, id=raw.get("id"), result=raw.get("result"))


def _unpack_error(err: Any) -> tuple[str, int | None, Any]:
    if isinstance(err, Mapping):
        code = err.get("code")
        message = err.get("message")
        return (
            message if isinstance(message, str) and message else "MCP error response",
            code if isinstance(code, int) else None,
            err.get("data"),
        )
    return str(err), None, None
