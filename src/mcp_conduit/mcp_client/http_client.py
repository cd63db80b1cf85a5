"""
MCP Client implementation using HTTP/HTTPS request/response transport.
"""
from typing import Any
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import aiohttp

from .. import __version__
from ..models.rpc import JsonRpcRequest, JsonRpcResponse
from .base_client import BaseMCPClient
from .deadline import Deadline
from .envelope import create_rpc_request, parse_rpc_body
from .exceptions import (
    MCPClientError,
    MCPConnectionError,
    MCPHTTPStatusError,
)

# Handshake statuses that just mean "this server has no initialize here".
IGNORABLE_HANDSHAKE_STATUSES = frozenset({404, 405, 501})
# Statuses that suggest the path exists but does not take POST.
POST_REJECTED_STATUSES = frozenset({403, 404, 405})

JSON_CONTENT_TYPE = "application/json"


class HTTPMCPClient(BaseMCPClient):
    """
    MCP Client that communicates with an MCP server over plain HTTP or HTTPS.

    Servers in the wild are only partly conformant, so an exchange is:

    1. an optional ``initialize`` handshake (explicit handshake URL first, then
       the main URL) whose failures only produce warnings;
    2. a JSON POST of the real request;
    3. when the POST is rejected with 403/404/405, one GET retry carrying the
       whole payload in a query parameter.

    Network errors and timeouts on the POST in step 2 are retried (bounded by
    ``max_attempts`` and the call deadline). The GET in step 3 is sent once;
    status and protocol errors are never retried.
    """

    transport_name = "http"

    async def _exchange(self, request: JsonRpcRequest, deadline: Deadline) -> JsonRpcResponse:
        await self._handshake(deadline)
        try:
            return await self._post_with_fallback(request, deadline)
        except MCPHTTPStatusError as e:
            raise self._status_failure(request, e) from e

    async def _handshake(self, deadline: Deadline) -> None:
        handshake_url = self.server_config.handshake_url
        if handshake_url and await self._attempt_initialize(handshake_url, "Handshake", deadline):
            return
        await self._attempt_initialize(self.server_config.url, "Initialize", deadline)

    async def _attempt_initialize(self, url: str, label: str, deadline: Deadline) -> bool:
        """One initialize call. Never raises: every failure becomes a warning."""
        request = create_rpc_request(
            self.mcp_client_config.handshake_method,
            {
                "protocolVersion": self.mcp_client_config.protocol_version,
                "capabilities": {},
                "clientInfo": {"name": self.config.agent_name, "version": __version__},
            },
        )
        try:
            response_text = await self._post(url, request, deadline)
            parse_rpc_body(response_text, request)
        except MCPHTTPStatusError as e:
            verb = "responded with" if e.status in IGNORABLE_HANDSHAKE_STATUSES else "returned"
            self.warnings.add(f"{label} endpoint {url} {verb} status {e.status}; continuing without handshake.")
            return False
        except MCPClientError as e:
            self.warnings.add(f"{label} endpoint {url} failed: {e.message.rstrip('.')}; continuing without handshake.")
            return False
        self.logger.debug("Handshake succeeded.", handshake_endpoint=url)
        return True

    async def _post_with_fallback(self, request: JsonRpcRequest, deadline: Deadline) -> JsonRpcResponse:
        url = self.server_config.url
        try:
            response_text = await self._with_retries(lambda: self._post(url, request, deadline), request, deadline)
        except MCPHTTPStatusError as e:
            if e.status not in POST_REJECTED_STATUSES:
                raise
            if e.status == 404:
                self.warnings.add(f"POST {url} returned status 404; the endpoint may not accept POST.")
            self.warnings.add(
                f"POST {url} was rejected (status {e.status}); retrying with GET {self.mcp_client_config.fallback_query_param} query parameter."
            )
            # Sent once; only the POST is retried.
            response_text = await self._get(url, request, deadline)
        return parse_rpc_body(response_text, request)

    def _status_failure(self, request: JsonRpcRequest, error: MCPHTTPStatusError) -> MCPHTTPStatusError:
        # tools/list failures are what end users see first; name the URL and the likely cause.
        url = self.server_config.url
        if request.method == "tools/list":
            message = f"Couldn't list tools at {url} (status {error.status}). This server may not implement JSON-RPC at this path."
        else:
            message = f"Request failed at {url} (status {error.status})."
        return MCPHTTPStatusError(message, status=error.status, body=error.body or "", url=error.url)

    def _json_headers(self) -> dict[str, str]:
        return {
            **self._base_headers(),
            "Accept": JSON_CONTENT_TYPE,
            "Content-Type": JSON_CONTENT_TYPE,
            **self._caller_headers(),
        }

    async def _post(self, url: str, request: JsonRpcRequest, deadline: Deadline) -> str:
        return await self._fetch("POST", url, deadline, json=request.model_dump(), headers=self._json_headers())

    async def _get(self, url: str, request: JsonRpcRequest, deadline: Deadline) -> str:
        headers = {k: v for k, v in self._json_headers().items() if k.lower() != "content-type"}
        target = with_query_param(url, self.mcp_client_config.fallback_query_param, request.model_dump_json())
        return await self._fetch("GET", target, deadline, headers=headers)

    async def _fetch(self, method: str, url: str, deadline: Deadline, **kwargs: Any) -> str:
        """
        Performs one HTTP exchange and returns the body text of a 2xx response.

        Raises:
            MCPHTTPStatusError: non-2xx status, with the raw body attached.
            MCPTimeoutError: the call deadline passed.
            MCPConnectionError: any other transport-level failure.
        """
        session = await self._get_session()
        timeout = aiohttp.ClientTimeout(total=deadline.remaining(), connect=self.mcp_client_config.connect_timeout_seconds)
        self.logger.debug("Sending HTTP JSONRPC request", http_method=method, url=url)
        # The fallback GET carries the whole payload in its query; keep it out of messages.
        shown_url = without_query(url)
        try:
            async with deadline.guard(f"{method} {shown_url}"):
                async with session.request(method, url, timeout=timeout, **kwargs) as response:
                    response_text = await response.text(errors="replace")
                    self.logger.debug("Received HTTP response", status=response.status, content_length=len(response_text))
                    if not 200 <= response.status < 300:
                        self.logger.info("HTTP error status received", http_method=method, status=response.status, reason=response.reason, response_body=response_text[:500])
                        raise MCPHTTPStatusError(f"HTTP error {response.status} at {shown_url}", status=response.status, body=response_text, url=url)
                    return response_text
        except aiohttp.ClientConnectorError as e:
            self.logger.error("Client connector error", error_os_error=e.os_error, error_str=str(e))
            raise MCPConnectionError(f"Connection failed to {shown_url}: {e.os_error or str(e)}") from e
        except aiohttp.ClientError as e:
            self.logger.error("AIOHTTP client error", error_type=type(e).__name__, error_message=str(e))
            raise MCPConnectionError(f"HTTP client error for {shown_url}: {e}") from e


def with_query_param(url: str, name: str, value: str) -> str:
    """Returns ``url`` with query parameter ``name`` set to ``value`` (replacing any existing one)."""
    parts = urlsplit(url)
    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k != name]
    query.append((name, value))
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), parts.fragment))


def without_query(url: str) -> str:
    parts = urlsplit(url)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))
