"""Unit tests for logging configuration."""

from __future__ import annotations

import json
import logging
import logging.handlers
import sys
from io import StringIO
from pathlib import Path
from typing import Any

import pytest
import structlog

from pr_reviewer.config import LoggingConfig
from pr_reviewer.logging import (
    add_correlation_id,
    bind_review_context,
    get_correlation_id,
    get_logger,
    set_correlation_id,
    setup_logging,
)


@pytest.fixture(autouse=True)
def reset_logging() -> None:
    """Reset logging configuration before each test."""
    logging.getLogger().handlers.clear()
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()
    set_correlation_id(None)


@pytest.fixture
def capture_stream() -> StringIO:
    return StringIO()


@pytest.fixture
def json_config() -> LoggingConfig:
    return LoggingConfig(level="INFO", format="json", file=None)


def _capture(stream: StringIO) -> None:
    logging.getLogger().handlers[0].stream = stream


def test_default_handler_writes_to_stderr(json_config: LoggingConfig) -> None:
    """stdout is reserved for the MCP stdio transport."""
    setup_logging(json_config)

    handler = logging.getLogger().handlers[0]
    assert isinstance(handler, logging.StreamHandler)
    assert handler.stream is sys.stderr


def test_json_output_format(json_config: LoggingConfig, capture_stream: StringIO) -> None:
    setup_logging(json_config)
    _capture(capture_stream)

    get_logger("pr_reviewer.router").info("request_received", method="start_review")

    log_entry = json.loads(capture_stream.getvalue().strip())
    assert log_entry["event"] == "request_received"
    assert log_entry["method"] == "start_review"
    assert log_entry["level"] == "info"
    assert log_entry["logger"] == "pr_reviewer.router"
    assert "timestamp" in log_entry


def test_console_output_format(capture_stream: StringIO) -> None:
    setup_logging(LoggingConfig(level="DEBUG", format="console"))
    _capture(capture_stream)

    get_logger("test.module").debug("file_advanced", file_path="a.ts")

    output = capture_stream.getvalue()
    assert "file_advanced" in output
    assert "a.ts" in output
    with pytest.raises(json.JSONDecodeError):
        json.loads(output.strip())


def test_log_level_filtering(json_config: LoggingConfig, capture_stream: StringIO) -> None:
    setup_logging(json_config)
    _capture(capture_stream)
    logger = get_logger("test.module")

    logger.debug("debug_message")
    assert capture_stream.getvalue() == ""

    logger.warning("warning_message")
    assert "warning_message" in capture_stream.getvalue()


def test_correlation_id_binding(json_config: LoggingConfig, capture_stream: StringIO) -> None:
    setup_logging(json_config)
    _capture(capture_stream)
    logger = get_logger("test.module")

    set_correlation_id("corr-12345")
    assert get_correlation_id() == "corr-12345"
    logger.info("with_correlation")
    assert json.loads(capture_stream.getvalue().strip())["correlation_id"] == "corr-12345"

    set_correlation_id(None)
    capture_stream.truncate(0)
    capture_stream.seek(0)
    logger.info("without_correlation")
    assert "correlation_id" not in json.loads(capture_stream.getvalue().strip())


def test_correlation_id_processor() -> None:
    event_dict: dict[str, Any] = {"event": "test"}

    assert "correlation_id" not in add_correlation_id(None, "", event_dict.copy())

    set_correlation_id("test-id")
    assert add_correlation_id(None, "", event_dict.copy())["correlation_id"] == "test-id"


def test_review_context_binding(json_config: LoggingConfig, capture_stream: StringIO) -> None:
    setup_logging(json_config)
    _capture(capture_stream)

    bind_review_context(pr_id="42")
    get_logger("module1").info("event1")

    assert json.loads(capture_stream.getvalue().strip())["pr_id"] == "42"


def test_file_rotation_handler_configuration(tmp_path: Path) -> None:
    log_file = tmp_path / "logs" / "nested" / "pr-reviewer.log"
    config = LoggingConfig(
        level="INFO",
        format="json",
        file=log_file,
        rotation_size_mb=10,
        retention_count=3,
    )

    setup_logging(config)

    handler = logging.getLogger().handlers[0]
    assert isinstance(handler, logging.handlers.RotatingFileHandler)
    assert handler.maxBytes == 10 * 1024 * 1024
    assert handler.backupCount == 3

    get_logger("test.module").info("written_to_file", data="test")
    handler.flush()

    log_entry = json.loads(log_file.read_text().strip())
    assert log_entry["event"] == "written_to_file"


def test_exception_formatting(json_config: LoggingConfig, capture_stream: StringIO) -> None:
    setup_logging(json_config)
    _capture(capture_stream)

    try:
        raise ValueError("Test exception")
    except ValueError:
        get_logger("test.module").exception("request_crashed")

    log_entry = json.loads(capture_stream.getvalue().strip())
    assert log_entry["level"] == "error"
    assert "ValueError: Test exception" in log_entry["exception"]
