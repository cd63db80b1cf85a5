"""
Custom exceptions for the MCP client.

Every error carries a machine-readable ``kind`` (see :class:`ErrorKind`).
Callers should match on ``kind`` rather than on the exception class; the
subclasses only pin a sensible default kind and carry extra context.
"""
from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    VALIDATION_FAILED = "validation_failed"
    HANDSHAKE_FAILED = "handshake_failed"
    HTTP_ERROR = "http_error"
    NETWORK_ERROR = "network_error"
    TIMEOUT = "timeout"
    INVALID_JSON = "invalid_json"
    MCP_ERROR = "mcp_error"
    SSE_CONNECTION_FAILED = "sse_connection_failed"
    RPC_FAILED = "rpc_failed"
    NO_RESPONSE = "no_response"
    INTERNAL_ERROR = "internal_error"

class MCPClientError(Exception):
    """Base class for all MCP client errors."""
    default_kind = ErrorKind.INTERNAL_ERROR

    def __init__(self, message: str, kind: Optional[ErrorKind] = None, status: Optional[int] = None, body: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.kind = ErrorKind(kind) if kind is not None else self.default_kind
        self.status = status
        self.body = body

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"kind": self.kind.value, "message": self.message}
        if self.status is not None:
            payload["status"] = self.status
        return payload

class MCPConnectionError(MCPClientError):
    """Raised when there's an issue reaching the MCP server."""
    default_kind = ErrorKind.NETWORK_ERROR

class MCPTimeoutError(MCPConnectionError):
    """Raised when the per-call deadline is exceeded."""
    default_kind = ErrorKind.TIMEOUT

class MCPHTTPStatusError(MCPClientError):
    """Raised when the server answers with a non-2xx status.
    The raw response body is kept for diagnostics."""
    default_kind = ErrorKind.HTTP_ERROR

    def __init__(self, message: str, status: int, body: str = "", kind: Optional[ErrorKind] = None, url: Optional[str] = None):
        super().__init__(message, kind=kind, status=status, body=body)
        self.url = url

class MCPProtocolError(MCPClientError):
    """Raised for errors related to the JSONRPC protocol itself
    (e.g., malformed responses, unexpected message format)."""
    default_kind = ErrorKind.INVALID_JSON

    def __init__(self, message: str, error_code: Optional[int] = None, error_data: Optional[Any] = None, kind: Optional[ErrorKind] = None):
        super().__init__(message, kind=kind)
        self.error_code = error_code
        self.error_data = error_data

class MCPToolInvocationError(MCPProtocolError):
    """Raised when invoking a tool on the MCP server results in an error
    reported by the server's JSONRPC error response for that tool call."""
    default_kind = ErrorKind.MCP_ERROR

    def __init__(self, tool_name: str, message: str, error_code: Optional[int] = None, error_data: Optional[Any] = None):
        full_message = f"Error invoking tool '{tool_name}': {message}"
        super().__init__(full_message, error_code=error_code, error_data=error_data)
        self.tool_name = tool_name
        self.original_message = message
