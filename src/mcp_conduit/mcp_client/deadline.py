"""
Per-call deadline threaded through every blocking step of an exchange.
"""
import asyncio
import time
from collections.abc import AsyncIterator, Awaitable
from contextlib import asynccontextmanager
from typing import TypeVar

import structlog

from .exceptions import MCPTimeoutError

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class Deadline:
    """
    An absolute point on the monotonic clock after which a call must give up.

    One Deadline is created per public call and handed to every network
    operation that call performs, so the handshake, the primary exchange, the
    fallback and any SSE reads all draw from the same budget.
    """

    def __init__(self, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        self._expires_at = time.monotonic() + timeout_seconds

    @classmethod
    def from_timeout_ms(cls, timeout_ms: int) -> "Deadline":
        return cls(timeout_ms / 1000.0)

    def remaining(self) -> float:
        """Seconds left, never negative."""
        return max(0.0, self._expires_at - time.monotonic())

    @property
    def expired(self) -> bool:
        return self.remaining() <= 0

    def _timeout_error(self, label: str) -> MCPTimeoutError:
        return MCPTimeoutError(f"{label} timed out after {self.timeout_seconds * 1000:.0f}ms.")

    @asynccontextmanager
    async def guard(self, label: str) -> AsyncIterator[None]:
        """
        Bounds the enclosed block by the remaining time.

        The timer is cancelled when the block exits, whichever way it exits.
        Expiry (ours, or a TimeoutError raised from within) surfaces as
        MCPTimeoutError so callers can tell it apart from protocol failures.
        """
        if self.expired:
            raise self._timeout_error(label)
        try:
            async with asyncio.timeout(self.remaining()):
                yield
        except TimeoutError as e:
            logger.debug("Deadline exceeded.", label=label, timeout_seconds=self.timeout_seconds)
            raise self._timeout_error(label) from e

    async def run(self, awaitable: Awaitable[T], label: str) -> T:
        """Awaits a single operation under this deadline."""
        close = getattr(awaitable, "close", None)
        if self.expired and callable(close):
            close() # never started; avoid the "never awaited" warning
        async with self.guard(label):
            return await awaitable
