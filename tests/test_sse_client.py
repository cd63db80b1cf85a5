"""
Tests for SSEMCPClient: the endpoint/message session flow over a live stream.
"""
import asyncio

import pytest
from aiohttp import web

from conftest import FakeSSEServer, server_url
from mcp_conduit.mcp_client.dispatcher import call_tool, create_client, list_tools
from mcp_conduit.mcp_client.exceptions import ErrorKind, MCPClientError
from mcp_conduit.mcp_client.sse_client import SSEState, resolve_endpoint
from mcp_conduit.models.mcp import ListToolsFailure, ListToolsSuccess, ServerConfig


def sse_server(url: str, **kwargs) -> ServerConfig:
    return ServerConfig(url=url, transport="sse", **kwargs)


async def test_list_tools_over_sse_session(serve, app_config):
    fake = FakeSSEServer()
    server = await serve(fake.app())

    result = await list_tools(sse_server(server_url(server, "/sse"), headers={"X-Api-Key": "k"}), app_config)

    assert isinstance(result, ListToolsSuccess)
    assert [t.name for t in result.tools] == ["echo", "unknown_tool"]
    assert len(fake.received) == 1
    headers, payload, query = fake.received[0]
    assert payload["method"] == "tools/list"
    assert headers["Mcp-Session-Id"] == "abc123"
    assert headers["X-Api-Key"] == "k"
    assert query == {"sessionId": "abc123"}
    assert fake.stream_requests[0]["Accept"] == "text/event-stream"


async def test_handshake_url_is_used_as_stream(serve, app_config):
    fake = FakeSSEServer()
    server = await serve(fake.app())
    config = sse_server(server_url(server, "/not-a-stream"), handshakeUrl=server_url(server, "/sse"))

    result = await list_tools(config, app_config)

    assert result.ok is True


async def test_call_tool_over_sse(serve, app_config):
    fake = FakeSSEServer(result={"content": [{"type": "text", "text": "pong"}]})
    server = await serve(fake.app())

    result = await call_tool(sse_server(server_url(server, "/sse")), "ping", {"n": 1}, app_config)

    assert result.result == {"content": [{"type": "text", "text": "pong"}]}
    assert fake.received[0][1]["params"] == {"name": "ping", "arguments": {"n": 1}}


async def test_call_tool_error_over_sse(serve, app_config):
    fake = FakeSSEServer(error={"code": -32000, "message": "tool exploded"})
    server = await serve(fake.app())

    with pytest.raises(MCPClientError) as exc_info:
        await call_tool(sse_server(server_url(server, "/sse")), "boom", {}, app_config)

    assert exc_info.value.kind == ErrorKind.MCP_ERROR
    assert "tool exploded" in exc_info.value.message


async def test_client_state_reaches_done_and_stream_is_released(serve, app_config):
    fake = FakeSSEServer()
    server = await serve(fake.app())

    async with create_client(sse_server(server_url(server, "/sse")), app_config) as client:
        await client.list_tools()
        assert client.state is SSEState.DONE

    await asyncio.wait_for(fake.disconnected.wait(), 2)


async def test_timeout_aborts_the_stream(serve, app_config):
    fake = FakeSSEServer(mode="silent")
    server = await serve(fake.app())

    async with create_client(sse_server(server_url(server, "/sse"), timeoutMs=200), app_config) as client:
        with pytest.raises(MCPClientError) as exc_info:
            await client.list_tools()
        assert exc_info.value.kind == ErrorKind.TIMEOUT
        assert client.state is SSEState.TIMED_OUT

    await asyncio.wait_for(fake.disconnected.wait(), 2)


async def test_timeout_reported_by_list_tools(serve, app_config):
    fake = FakeSSEServer(mode="silent")
    server = await serve(fake.app())

    result = await list_tools(sse_server(server_url(server, "/sse"), timeoutMs=150), app_config)

    assert isinstance(result, ListToolsFailure)
    assert result.kind == "timeout"


async def test_stream_closed_without_answer_is_no_response(serve, app_config):
    fake = FakeSSEServer(mode="close")
    server = await serve(fake.app())

    result = await list_tools(sse_server(server_url(server, "/sse")), app_config)

    assert isinstance(result, ListToolsFailure)
    assert result.kind == "no_response"
    assert result.message == "No response message received before the SSE stream closed."


async def test_stream_closed_before_endpoint_is_handshake_failure(serve, app_config):
    fake = FakeSSEServer(endpoint=None)
    server = await serve(fake.app())

    result = await list_tools(sse_server(server_url(server, "/sse")), app_config)

    assert isinstance(result, ListToolsFailure)
    assert result.kind == "handshake_failed"
    assert fake.received == []


async def test_stream_rejected_is_connection_failure(serve, app_config):
    fake = FakeSSEServer(stream_status=503)
    server = await serve(fake.app())

    result = await list_tools(sse_server(server_url(server, "/sse")), app_config)

    assert isinstance(result, ListToolsFailure)
    assert result.kind == "sse_connection_failed"
    assert result.status == 503


async def test_rejected_post_is_rpc_failure(serve, app_config):
    fake = FakeSSEServer(post_status=500)
    server = await serve(fake.app())

    async with create_client(sse_server(server_url(server, "/sse")), app_config) as client:
        with pytest.raises(MCPClientError) as exc_info:
            await client.list_tools()
        assert client.state is SSEState.FAILED

    assert exc_info.value.kind == ErrorKind.RPC_FAILED
    assert exc_info.value.status == 500
    await asyncio.wait_for(fake.disconnected.wait(), 2)


async def test_slow_stream_headers_time_out(serve, app_config):
    async def stall(request):
        await asyncio.sleep(1)
        return web.Response(status=200, content_type="text/event-stream")

    app = web.Application()
    app.router.add_get("/sse", stall)
    server = await serve(app)

    async with create_client(sse_server(server_url(server, "/sse"), timeoutMs=100), app_config) as client:
        with pytest.raises(MCPClientError) as exc_info:
            await client.list_tools()
        assert client.state is SSEState.TIMED_OUT

    assert exc_info.value.kind == ErrorKind.TIMEOUT
    assert exc_info.value.message.startswith("SSE connect ")


@pytest.mark.parametrize("stream_url, data, expected", [
    ("http://h:8080/sse", "/messages?sessionId=abc", ("http://h:8080/messages?sessionId=abc", "abc")),
    ("http://h:8080/mcp/sse", "messages?session_id=xyz", ("http://h:8080/mcp/messages?session_id=xyz", "xyz")),
    ("http://h:8080/sse", "https://other.example/rpc", ("https://other.example/rpc", None)),
])
def test_resolve_endpoint(stream_url, data, expected):
    assert resolve_endpoint(stream_url, data) == expected
