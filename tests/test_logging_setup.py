"""
Tests for structlog configuration.
"""
import json
import logging

import pytest
import structlog

from mcp_conduit.config import LoggingConfig
from mcp_conduit.utils.logging_setup import configure_logging


@pytest.fixture(autouse=True)
def restore_logging():
    yield
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    structlog.reset_defaults()


def test_json_logs_written_to_file(tmp_path):
    log_file = tmp_path / "conduit.log"
    configure_logging(LoggingConfig(level="INFO", format="json", file=log_file))

    structlog.get_logger("mcp_conduit.test").info("tools/list succeeded.", tool_count=3)
    structlog.get_logger("mcp_conduit.test").debug("filtered out")

    lines = [json.loads(line) for line in log_file.read_text().splitlines() if line.strip()]
    assert len(lines) == 1
    assert lines[0]["event"] == "tools/list succeeded."
    assert lines[0]["tool_count"] == 3
    assert lines[0]["level"] == "info"
    assert "timestamp" in lines[0]


def test_unknown_level_falls_back_to_info():
    configure_logging(LoggingConfig(level="CHATTY", format="console"))

    assert logging.getLogger().level == logging.INFO
