"""
Transport dispatch and the two public operations: list tools, call a tool.

Each call is self-contained: it builds its own client, deadline, warning sink
and (unless one is injected) its own aiohttp session, and releases them
before returning.
"""
from collections.abc import Mapping
from typing import Any

import aiohttp
import structlog
from pydantic import ValidationError

from ..config import Config
from ..models.common import TransportType
from ..models.mcp import (
    CallToolResult,
    ListToolsFailure,
    ListToolsResult,
    ListToolsSuccess,
    ServerConfig,
)
from .base_client import BaseMCPClient
from .diagnostics import WarningSink
from .exceptions import ErrorKind, MCPClientError
from .http_client import HTTPMCPClient
from .sse_client import SSEMCPClient

logger = structlog.get_logger(__name__)

_CLIENTS: dict[TransportType, type[BaseMCPClient]] = {
    TransportType.HTTP: HTTPMCPClient,
    TransportType.SSE: SSEMCPClient,
}


def parse_server_config(payload: Any) -> ServerConfig:
    """
    Validates an externally supplied server payload (e.g. a request body).

    Raises:
        MCPClientError: kind ``validation_failed`` when the URL does not parse
            as an absolute http(s) URL, the transport is unknown, or the
            payload is not an object.
    """
    if isinstance(payload, ServerConfig):
        return payload
    if not isinstance(payload, Mapping):
        raise MCPClientError("Server configuration must be an object.", kind=ErrorKind.VALIDATION_FAILED)
    try:
        return ServerConfig.model_validate(dict(payload))
    except ValidationError as e:
        details = "; ".join(f"{'.'.join(str(p) for p in err['loc']) or 'config'}: {err['msg']}" for err in e.errors())
        raise MCPClientError(f"Invalid server configuration: {details}", kind=ErrorKind.VALIDATION_FAILED) from e


def create_client(
    server_config: ServerConfig,
    app_config: Config | None = None,
    warnings: WarningSink | None = None,
    aiohttp_session: aiohttp.ClientSession | None = None,
) -> BaseMCPClient:
    """Picks the transport adapter for ``server_config``."""
    client_cls = _CLIENTS.get(TransportType(server_config.transport))
    if client_cls is None:
        raise MCPClientError(f"Unsupported transport: {server_config.transport}", kind=ErrorKind.VALIDATION_FAILED)
    return client_cls(server_config, app_config or Config(), warnings=warnings, aiohttp_session=aiohttp_session)


async def list_tools(
    server_config: ServerConfig,
    app_config: Config | None = None,
    warnings: WarningSink | None = None,
    aiohttp_session: aiohttp.ClientSession | None = None,
) -> ListToolsResult:
    """
    Lists the tools a server exposes. Never raises.

    Every failure becomes a :class:`ListToolsFailure` carrying the error kind,
    the HTTP status when one is known, and any warnings gathered on the way.
    """
    sink = warnings if warnings is not None else WarningSink()
    log = logger.bind(server_endpoint=server_config.url, transport=server_config.transport, method="tools/list")
    try:
        async with create_client(server_config, app_config, sink, aiohttp_session) as client:
            tools = await client.list_tools()
    except MCPClientError as e:
        log.warning("tools/list failed.", error_kind=e.kind.value, status=e.status, error_message=e.message)
        return ListToolsFailure(kind=e.kind.value, status=e.status, message=e.message, warnings=sink.as_list())
    except Exception as e:
        log.exception("Unexpected error while listing tools.", error_type=type(e).__name__)
        return ListToolsFailure(kind=ErrorKind.INTERNAL_ERROR.value, message=f"Failed to list tools: {e}", warnings=sink.as_list())

    log.info("tools/list succeeded.", tool_count=len(tools), warning_count=len(sink))
    return ListToolsSuccess(tools=tools, warnings=sink.as_list())


async def call_tool(
    server_config: ServerConfig,
    name: str,
    arguments: dict[str, Any] | None = None,
    app_config: Config | None = None,
    warnings: WarningSink | None = None,
    aiohttp_session: aiohttp.ClientSession | None = None,
) -> CallToolResult:
    """
    Invokes ``name`` with ``arguments`` and returns the server's raw result.

    Raises:
        MCPClientError: on any failure, including a JSON-RPC error reported by
            the server (kind ``mcp_error``). The message is meant to be shown
            to end users as-is.
    """
    sink = warnings if warnings is not None else WarningSink()
    log = logger.bind(server_endpoint=server_config.url, transport=server_config.transport, method="tools/call", tool_name=name)
    try:
        async with create_client(server_config, app_config, sink, aiohttp_session) as client:
            result = await client.call_tool(name, arguments)
    except MCPClientError as e:
        log.warning("tools/call failed.", error_kind=e.kind.value, status=e.status, error_message=e.message)
        raise
    except Exception as e:
        log.exception("Unexpected error while calling tool.", error_type=type(e).__name__)
        raise MCPClientError(f"Tool call failed: {e}", kind=ErrorKind.INTERNAL_ERROR) from e
    log.info("tools/call succeeded.", warning_count=len(sink))
    return CallToolResult(result=result)
