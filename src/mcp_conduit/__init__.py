"""MCP Conduit - client for listing and invoking tools on MCP servers.

Speaks JSON-RPC 2.0 over plain HTTP (with handshake and GET fallbacks for
partially conformant servers) or over an SSE-backed session.
"""

__version__ = "0.1.0"

from .config import Config  # noqa: E402
from .mcp_client import MCPClientError, call_tool, list_tools, parse_server_config  # noqa: E402
from .models import CallToolResult, ListToolsFailure, ListToolsSuccess, ServerConfig, TransportType  # noqa: E402

__all__ = [
    "CallToolResult",
    "Config",
    "ListToolsFailure",
    "ListToolsSuccess",
    "MCPClientError",
    "ServerConfig",
    "TransportType",
    "__version__",
    "call_tool",
    "list_tools",
    "parse_server_config",
]
