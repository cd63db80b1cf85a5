"""
Shared fixtures: in-process aiohttp servers that play the MCP server side.
"""
import asyncio
import json
from typing import Any

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from mcp_conduit.config import Config, MCPClientConfig

SAMPLE_TOOLS = [
    {"name": "echo", "description": "Echo the input back", "inputSchema": {"type": "object", "properties": {"text": {"type": "string"}}}},
    {"description": "A tool that forgot its name"},
]


def rpc_result(request_id: Any, result: Any) -> dict[str, Any]:
    return {"jsonrpc": "2.0", "id": request_id, "result": result}


def rpc_error(request_id: Any, code: int, message: str) -> dict[str, Any]:
    return {"jsonrpc": "2.0", "id": request_id, "error": {"code": code, "message": message}}


def sse_frame(payload: dict[str, Any], event: str = "message") -> bytes:
    return f"event: {event}\r\ndata: {json.dumps(payload)}\r\n\r\n".encode("utf-8")


@pytest.fixture
def app_config():
    return Config(mcp_client=MCPClientConfig(initial_backoff_seconds=0.0, max_backoff_seconds=0.0))


@pytest.fixture
async def serve():
    """Starts aiohttp applications on ephemeral ports; all are closed at teardown."""
    servers: list[TestServer] = []

    async def _serve(app: web.Application) -> TestServer:
        server = TestServer(app)
        await server.start_server()
        servers.append(server)
        return server

    yield _serve
    for server in servers:
        await server.close()


def server_url(server: TestServer, path: str) -> str:
    return str(server.make_url(path))


class FakeSSEServer:
    """
    An SSE-backed MCP server.

    ``mode`` decides what happens after a request is POSTed:
    ``respond`` sends an unrelated message then the matching response,
    ``close`` ends the stream without answering, ``silent`` never answers.
    """

    def __init__(
        self,
        mode: str = "respond",
        endpoint: str | None = "/messages?sessionId=abc123",
        result: Any = None,
        error: dict[str, Any] | None = None,
        stream_status: int = 200,
        post_status: int = 202,
    ):
        self.mode = mode
        self.endpoint = endpoint
        self.result = result if result is not None else {"tools": SAMPLE_TOOLS}
        self.error = error
        self.stream_status = stream_status
        self.post_status = post_status
        self.received: list[tuple[Any, dict[str, Any], dict[str, str]]] = []
        self.stream_requests: list[Any] = []
        self.disconnected = asyncio.Event()
        self._outbox: asyncio.Queue = asyncio.Queue()

    def app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/sse", self.stream)
        app.router.add_post("/messages", self.messages)
        return app

    async def stream(self, request: web.Request) -> web.StreamResponse:
        self.stream_requests.append(request.headers.copy())
        if self.stream_status != 200:
            return web.Response(status=self.stream_status, text="stream unavailable")

        response = web.StreamResponse(headers={"Content-Type": "text/event-stream", "Cache-Control": "no-cache"})
        await response.prepare(request)
        try:
            await response.write(b": connected\n\n")
            if self.endpoint is None:
                return response
            await response.write(f"event: endpoint\ndata: {self.endpoint}\n\n".encode("utf-8"))
            while True:
                if request.transport is None or request.transport.is_closing():
                    break
                try:
                    chunk = await asyncio.wait_for(self._outbox.get(), 0.05)
                except asyncio.TimeoutError:
                    continue
                if chunk is None:
                    return response
                await response.write(chunk)
        except ConnectionError:
            pass
        finally:
            self.disconnected.set()
        return response

    async def messages(self, request: web.Request) -> web.Response:
        payload = await request.json()
        self.received.append((request.headers.copy(), payload, dict(request.query)))
        if self.post_status >= 300:
            return web.Response(status=self.post_status, text="rejected")

        if self.mode == "respond":
            await self._outbox.put(sse_frame(rpc_result("not-" + str(payload["id"]), {"tools": []})))
            answer = rpc_error(payload["id"], self.error["code"], self.error["message"]) if self.error else rpc_result(payload["id"], self.result)
            frame = sse_frame(answer)
            # Split mid-frame so the client has to reassemble it.
            await self._outbox.put(frame[:17])
            await self._outbox.put(frame[17:])
        elif self.mode == "close":
            await self._outbox.put(None)
        return web.Response(status=202, text="Accepted")
