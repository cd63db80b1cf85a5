"""
Server-Sent Events framing.

:class:`SSEParser` is a pure framing layer with no JSON-RPC knowledge: it
turns arbitrarily split byte chunks into :class:`SSEEvent` records.
:class:`SSEStream` drives a parser over an open aiohttp response.
"""
import codecs
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import aiohttp
import structlog

from .deadline import Deadline

logger = structlog.get_logger(__name__)

DEFAULT_EVENT_NAME = "message"


@dataclass(frozen=True)
class SSEEvent:
    event: str = DEFAULT_EVENT_NAME
    data: str = ""
    id: str | None = None


def parse_event_block(block: str) -> SSEEvent | None:
    """Parses one blank-line-delimited block. Comment-only blocks yield None."""
    event_name: str | None = None
    event_id: str | None = None
    data_lines: list[str] = []

    for line in block.split("\n"):
        line = line.rstrip()
        if not line or line.startswith(":"):
            continue
        field, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if field == "event":
            event_name = value.strip()
        elif field == "data":
            data_lines.append(value)
        elif field == "id":
            event_id = value
        # "retry" and unknown fields are ignored

    if event_name is None and not data_lines:
        return None
    return SSEEvent(event=event_name or DEFAULT_EVENT_NAME, data="\n".join(data_lines), id=event_id)


class SSEParser:
    """Incremental decoder; feed it chunks as they arrive."""

    def __init__(self):
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""

    def feed(self, chunk: bytes) -> list[SSEEvent]:
        # Normalize on the whole buffer so a \r\n split across chunks is still caught.
        self._buffer = (self._buffer + self._decoder.decode(chunk)).replace("\r\n", "\n")
        events: list[SSEEvent] = []
        while True:
            index = self._buffer.find("\n\n")
            if index == -1:
                break
            block = self._buffer[:index]
            self._buffer = self._buffer[index + 2:]
            event = parse_event_block(block)
            if event is not None:
                events.append(event)
        return events

    def flush(self) -> SSEEvent | None:
        """End of stream: parse whatever is left as one final event."""
        self._buffer = (self._buffer + self._decoder.decode(b"", final=True)).replace("\r\n", "\n")
        remaining, self._buffer = self._buffer, ""
        if not remaining.strip():
            return None
        return parse_event_block(remaining)


class SSEStream:
    """
    Reads events from an open ``text/event-stream`` response.

    The stream owns the response: :meth:`close` aborts the underlying
    connection (it is not returned to the pool) and is safe to call more
    than once; only the first call has any effect.
    """

    def __init__(self, response: aiohttp.ClientResponse, parser: SSEParser | None = None):
        self._response = response
        self._parser = parser or SSEParser()
        self._pending: list[SSEEvent] = []
        self._eof = False
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def next_event(self) -> SSEEvent | None:
        """The next event, or None once the server has closed the stream."""
        while not self._pending:
            if self._eof:
                return None
            chunk = await self._response.content.readany()
            if not chunk:
                self._eof = True
                final = self._parser.flush()
                if final is not None:
                    self._pending.append(final)
                continue
            self._pending.extend(self._parser.feed(chunk))
        return self._pending.pop(0)

    async def wait_for(self, predicate: Callable[[SSEEvent], bool], deadline: Deadline, label: str) -> SSEEvent | None:
        """
        Skips events until one satisfies ``predicate``.
        Returns None if the stream ends first; raises MCPTimeoutError when the deadline passes.
        """
        async with deadline.guard(label):
            while True:
                event = await self.next_event()
                if event is None:
                    return None
                if predicate(event):
                    return event
                logger.debug("Discarding SSE event.", sse_event=event.event, data_snippet=event.data[:200])

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._response.close()

    async def __aenter__(self) -> "SSEStream":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self.close()
