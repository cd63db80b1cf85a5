"""
Base MCP Client Abstract Class.
"""
import abc
import asyncio
import random
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import aiohttp
import structlog

from .. import __version__
from ..config import Config, MCPClientConfig
from ..models.mcp import ServerConfig, ToolDescriptor
from ..models.rpc import JsonRpcRequest, JsonRpcResponse
from .deadline import Deadline
from .diagnostics import WarningSink
from .envelope import create_rpc_request
from .exceptions import MCPClientError, MCPConnectionError

T = TypeVar("T")


class BaseMCPClient(abc.ABC):
    """
    Abstract Base Class for an MCP (Model Context Protocol) client.

    One instance serves one public call: it owns the call's deadline, its
    warning sink and, unless one is injected, its aiohttp session. Nothing
    here is shared between concurrent calls.
    """

    transport_name = "abstract"

    def __init__(self, server_config: ServerConfig, config: Config, warnings: WarningSink | None = None, aiohttp_session: aiohttp.ClientSession | None = None):
        self.server_config = server_config
        self.config = config
        self.mcp_client_config: MCPClientConfig = config.mcp_client
        self._session = aiohttp_session
        self._owns_session = aiohttp_session is None # Injected sessions are closed by whoever made them

        self.logger = structlog.get_logger(__name__).bind(server_endpoint=server_config.url, transport=self.transport_name)
        self.warnings = warnings if warnings is not None else WarningSink(self.logger)

    @abc.abstractmethod
    async def _exchange(self, request: JsonRpcRequest, deadline: Deadline) -> JsonRpcResponse:
        """
        Sends one request and returns its validated response.
        This is the core method that transport-specific clients must implement.
        Every blocking operation inside must be bounded by ``deadline``.
        """

    def new_deadline(self) -> Deadline:
        timeout_ms = self.server_config.effective_timeout_ms(self.mcp_client_config.default_timeout_ms)
        return Deadline.from_timeout_ms(timeout_ms)

    async def send_request(self, method: str, params: dict[str, Any] | None = None) -> JsonRpcResponse:
        """Constructs a JSONRPC request, sends it under a fresh per-call deadline, and returns the response."""
        request = create_rpc_request(method, params)
        deadline = self.new_deadline()
        self.logger.debug("Sending request.", method=method, request_id=request.id, timeout_seconds=deadline.timeout_seconds)
        response = await self._exchange(request, deadline)
        self.logger.debug("Request completed.", method=method, request_id=request.id)
        return response

    async def list_tools(self) -> list[ToolDescriptor]:
        """Lists all tools available on the MCP server (``tools/list``)."""
        response = await self.send_request("tools/list", {})
        result = response.result if isinstance(response.result, dict) else {}
        raw_tools = result.get("tools")
        if not isinstance(raw_tools, list):
            raw_tools = []
        return [ToolDescriptor.from_raw(raw) for raw in raw_tools]

    async def call_tool(self, tool_name: str, arguments: dict[str, Any] | None = None) -> Any:
        """
        Invokes a tool (``tools/call``) and returns the raw ``result`` unmodified;
        interpreting it is the caller's business.
        """
        response = await self.send_request("tools/call", {"name": tool_name, "arguments": arguments if arguments is not None else {}})
        return response.result

    async def _with_retries(self, operation: Callable[[], Awaitable[T]], request: JsonRpcRequest, deadline: Deadline) -> T:
        """
        Runs ``operation`` up to ``max_attempts`` times, retrying only transient
        failures (network errors and timeouts) while the deadline allows it.
        Status and protocol errors propagate immediately.
        """
        max_attempts = self.mcp_client_config.max_attempts
        initial_backoff = self.mcp_client_config.initial_backoff_seconds
        max_backoff = self.mcp_client_config.max_backoff_seconds

        for attempt in range(max_attempts):
            log_attempt = self.logger.bind(attempt=attempt + 1, max_attempts=max_attempts, method=request.method, request_id=request.id)
            try:
                return await operation()
            except MCPConnectionError as e: # MCPTimeoutError included
                if attempt < max_attempts - 1 and not deadline.expired:
                    # Exponential backoff with full jitter, never past the deadline
                    capped_backoff = min(initial_backoff * (2 ** attempt), max_backoff, deadline.remaining())
                    backoff_time = random.uniform(0, capped_backoff)
                    log_attempt.warning(f"Transient error encountered. Retrying in {backoff_time:.2f}s...", error_message=str(e), error_kind=e.kind.value)
                    await asyncio.sleep(backoff_time)
                else:
                    log_attempt.error("Request failed after retries.", error_message=str(e), error_kind=e.kind.value)
                    raise
        raise MCPClientError(f"Request {request.method!r} made no attempts (max_attempts={max_attempts}).")

    def _base_headers(self) -> dict[str, str]:
        return {"User-Agent": f"{self.config.agent_name}/{__version__}"}

    def _caller_headers(self) -> dict[str, str]:
        return dict(self.server_config.headers or {})

    async def _get_session(self) -> aiohttp.ClientSession:
        """
        Returns the current aiohttp session or creates a new one if none exists.
        A session created here is owned by this client and closed in disconnect().
        """
        if self._session is None or self._session.closed:
            self.logger.debug("No existing aiohttp session or session closed, creating a new one.")
            client_cfg = self.mcp_client_config

            verify_ssl = True
            if self.server_config.url.startswith("https") and not client_cfg.ssl_verify:
                self.logger.warning("SSL verification is DISABLED for this client. This is insecure for production.")
                verify_ssl = False # Tells aiohttp to skip verification

            connector = aiohttp.TCPConnector(
                limit=client_cfg.connection_pool_total_limit,
                limit_per_host=client_cfg.connection_pool_per_host_limit,
                ttl_dns_cache=client_cfg.connection_pool_dns_cache_ttl_seconds,
                ssl=verify_ssl,
            )
            self._session = aiohttp.ClientSession(connector=connector)
            self._owns_session = True
        return self._session

    async def connect(self) -> None:
        """Prepares the aiohttp session. Network connections are opened per request."""
        await self._get_session()

    async def disconnect(self) -> None:
        """Closes the aiohttp session if this client created it."""
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        if self._owns_session:
            self._session = None

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.disconnect()
