"""
MCP Protocol Client Implementation.

This module provides the JSONRPC 2.0 client for interacting with MCP servers
over plain HTTP or an SSE-backed session.
"""

from .base_client import BaseMCPClient
from .deadline import Deadline
from .diagnostics import WarningSink
from .dispatcher import call_tool, create_client, list_tools, parse_server_config
from .exceptions import (
    ErrorKind,
    MCPClientError,
    MCPConnectionError,
    MCPHTTPStatusError,
    MCPProtocolError,
    MCPTimeoutError,
    MCPToolInvocationError,
)
from .http_client import HTTPMCPClient
from .sse import SSEEvent, SSEParser, SSEStream
from .sse_client import SSEMCPClient, SSEState

__all__ = [
    "BaseMCPClient",
    "Deadline",
    "ErrorKind",
    "HTTPMCPClient",
    "MCPClientError",
    "MCPConnectionError",
    "MCPHTTPStatusError",
    "MCPProtocolError",
    "MCPTimeoutError",
    "MCPToolInvocationError",
    "SSEEvent",
    "SSEMCPClient",
    "SSEParser",
    "SSEState",
    "SSEStream",
    "WarningSink",
    "call_tool",
    "create_client",
    "list_tools",
    "parse_server_config",
]
