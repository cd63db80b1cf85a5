"""
Caller-visible warning collection.
"""
from collections.abc import Iterator

import structlog

logger = structlog.get_logger(__name__)


class WarningSink:
    """
    Collects human-readable, non-fatal diagnostics for one call.

    Messages are deduplicated in arrival order and also logged, so a UI can
    show them while operators still see them in the structured log.
    """

    def __init__(self, bound_logger=None):
        self._messages: list[str] = []
        self.logger = bound_logger or logger

    def add(self, message: str) -> None:
        if message in self._messages:
            return
        self._messages.append(message)
        self.logger.warning("mcp_client_warning", detail=message)

    def as_list(self) -> list[str] | None:
        """A copy of the collected warnings, or None when there are none."""
        return list(self._messages) if self._messages else None

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._messages))
