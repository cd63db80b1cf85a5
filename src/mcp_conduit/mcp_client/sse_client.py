"""
MCP Client implementation using an SSE-backed session.
"""
from collections.abc import Callable
from enum import Enum
from urllib.parse import parse_qs, urljoin, urlsplit

import aiohttp

from ..models.rpc import JsonRpcRequest, JsonRpcResponse
from .base_client import BaseMCPClient
from .deadline import Deadline
from .envelope import response_matches, safely_parse_json, validate_rpc_response
from .exceptions import (
    ErrorKind,
    MCPClientError,
    MCPConnectionError,
    MCPHTTPStatusError,
    MCPTimeoutError,
)
from .sse import SSEEvent, SSEStream

ENDPOINT_EVENT = "endpoint"
MESSAGE_EVENT = "message"
SESSION_ID_PARAMS = ("sessionId", "session_id")


class SSEState(str, Enum):
    CONNECTING = "connecting"
    AWAITING_ENDPOINT = "awaiting_endpoint"
    SENDING = "sending"
    AWAITING_MESSAGE = "awaiting_message"
    DONE = "done"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


class SSEMCPClient(BaseMCPClient):
    """
    MCP Client for servers that answer over a Server-Sent-Events session.

    One exchange walks CONNECTING -> AWAITING_ENDPOINT -> SENDING ->
    AWAITING_MESSAGE and ends in DONE, FAILED or TIMED_OUT. The stream is
    opened first, the server's ``endpoint`` event names where to POST (and
    usually carries a session id), and the response arrives later on the same
    stream as a ``message`` event whose JSON-RPC id matches the request.
    Whatever state the exchange ends in, the stream connection is aborted
    exactly once.
    """

    transport_name = "sse"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.state: SSEState | None = None

    def _transition(self, state: SSEState, **log_fields) -> None:
        self.logger.debug("SSE state transition.", from_state=self.state.value if self.state else None, to_state=state.value, **log_fields)
        self.state = state

    async def _exchange(self, request: JsonRpcRequest, deadline: Deadline) -> JsonRpcResponse:
        stream_url = self.server_config.handshake_url or self.server_config.url
        self._transition(SSEState.CONNECTING, stream_url=stream_url, request_id=request.id)
        try:
            stream = await self._open_stream(stream_url, deadline)
            async with stream:
                self._transition(SSEState.AWAITING_ENDPOINT)
                post_url, session_id = await self._await_endpoint(stream, stream_url, deadline)

                self._transition(SSEState.SENDING, post_url=post_url, has_session=session_id is not None)
                await self._send(post_url, session_id, request, deadline)

                self._transition(SSEState.AWAITING_MESSAGE)
                event = await self._wait_for_event(
                    stream,
                    lambda evt: evt.event == MESSAGE_EVENT and response_matches(safely_parse_json(evt.data), request.id),
                    deadline,
                    f"waiting for response to {request.method}",
                    MCPClientError("No response message received before the SSE stream closed.", kind=ErrorKind.NO_RESPONSE),
                )
                response = validate_rpc_response(safely_parse_json(event.data), request)
            self._transition(SSEState.DONE)
            return response
        except MCPTimeoutError:
            self._transition(SSEState.TIMED_OUT)
            raise
        except MCPClientError as e:
            self._transition(SSEState.FAILED, error_kind=e.kind.value)
            raise

    async def _open_stream(self, url: str, deadline: Deadline) -> SSEStream:
        session = await self._get_session()
        headers = {
            **self._base_headers(),
            "Accept": "text/event-stream",
            "Cache-Control": "no-cache",
            **self._caller_headers(),
        }
        # The stream is long-lived; only the call deadline bounds it.
        timeout = aiohttp.ClientTimeout(total=None, connect=self.mcp_client_config.connect_timeout_seconds)
        try:
            response = await deadline.run(session.get(url, headers=headers, timeout=timeout), f"SSE connect {url}")
        except aiohttp.ClientError as e:
            self.logger.error("SSE connection error", error_type=type(e).__name__, error_message=str(e))
            raise MCPConnectionError(f"SSE connection to {url} failed: {e}") from e

        if not 200 <= response.status < 300:
            response.close()
            raise MCPHTTPStatusError(
                f"SSE connection failed with status {response.status}",
                status=response.status,
                kind=ErrorKind.SSE_CONNECTION_FAILED,
                url=url,
            )
        if response.content_length == 0:
            response.close()
            raise MCPClientError(f"SSE connection to {url} returned no body.", kind=ErrorKind.SSE_CONNECTION_FAILED, status=response.status)
        if response.content_type != "text/event-stream":
            self.logger.warning("Unexpected Content-Type for SSE stream", received_content_type=response.content_type)
        return SSEStream(response)

    async def _await_endpoint(self, stream: SSEStream, stream_url: str, deadline: Deadline) -> tuple[str, str | None]:
        event = await self._wait_for_event(
            stream,
            lambda evt: evt.event == ENDPOINT_EVENT,
            deadline,
            "waiting for SSE endpoint event",
            MCPClientError("SSE stream closed before an endpoint event arrived.", kind=ErrorKind.HANDSHAKE_FAILED),
        )
        path = event.data.strip()
        if not path:
            raise MCPClientError("SSE endpoint event carried no endpoint.", kind=ErrorKind.HANDSHAKE_FAILED)
        return resolve_endpoint(stream_url, path)

    async def _send(self, post_url: str, session_id: str | None, request: JsonRpcRequest, deadline: Deadline) -> None:
        session = await self._get_session()
        headers = {
            **self._base_headers(),
            "Accept": "application/json",
            "Content-Type": "application/json",
            **self._caller_headers(),
        }
        if session_id:
            headers[self.mcp_client_config.session_header] = session_id
        timeout = aiohttp.ClientTimeout(total=deadline.remaining(), connect=self.mcp_client_config.connect_timeout_seconds)
        try:
            async with deadline.guard(f"POST {post_url}"):
                async with session.post(post_url, json=request.model_dump(), headers=headers, timeout=timeout) as response:
                    body = await response.text(errors="replace")
                    # 202 Accepted is the usual answer: the real response comes over the stream.
                    if not 200 <= response.status < 300:
                        self.logger.error("RPC POST rejected", status=response.status, response_body=body[:500])
                        raise MCPHTTPStatusError(
                            f"RPC request to {post_url} failed with status {response.status}",
                            status=response.status,
                            body=body,
                            kind=ErrorKind.RPC_FAILED,
                            url=post_url,
                        )
        except aiohttp.ClientError as e:
            self.logger.error("AIOHTTP client error", error_type=type(e).__name__, error_message=str(e))
            raise MCPConnectionError(f"HTTP client error for {post_url}: {e}") from e

    async def _wait_for_event(
        self,
        stream: SSEStream,
        predicate: Callable[[SSEEvent], bool],
        deadline: Deadline,
        label: str,
        on_close: MCPClientError,
    ) -> SSEEvent:
        """Waits for a matching event; a closed or broken stream raises ``on_close``."""
        try:
            event = await stream.wait_for(predicate, deadline, label)
        except aiohttp.ClientError as e:
            self.logger.warning("SSE stream read failed.", error_type=type(e).__name__, error_message=str(e))
            raise on_close from e
        if event is None:
            raise on_close
        return event


def resolve_endpoint(stream_url: str, path: str) -> tuple[str, str | None]:
    """
    Resolves an ``endpoint`` event's data against the stream URL.
    Returns the absolute POST target and the session id it carries, if any.
    """
    post_url = urljoin(stream_url, path)
    query = parse_qs(urlsplit(post_url).query)
    for name in SESSION_ID_PARAMS:
        if query.get(name):
            return post_url, query[name][0]
    return post_url, None
