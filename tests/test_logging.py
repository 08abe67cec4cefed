"""Tests for logging module."""

from __future__ import annotations

import asyncio
import logging

import pytest

from kaleidoscope.events import Event
from kaleidoscope.logging import (
    LOGGER_NAME,
    LogEvent,
    QueueHandler,
    configure_logging,
    configure_tui_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _reset():
    reset_logging()
    yield
    reset_logging()


class TestLogEvent:
    """Tests for LogEvent."""

    def test_create_event(self):
        event = LogEvent(event_id="log-123", level="INFO", logger_name="test", message="Test message", line_no=42)
        assert event.level == "INFO"
        assert event.message == "Test message"
        assert event.line_no == 42

    def test_inherits_from_event(self):
        assert isinstance(LogEvent(event_id="test"), Event)


class TestQueueHandler:
    """Tests for QueueHandler."""

    def test_emit_to_queue(self):
        queue: asyncio.Queue = asyncio.Queue()
        handler = QueueHandler(queue)
        handler.setFormatter(logging.Formatter("%(message)s"))

        record = logging.LogRecord(
            name="test",
            level=logging.INFO,
            pathname="test.py",
            lineno=10,
            msg="Test message",
            args=(),
            exc_info=None,
            func="test_func",
        )
        handler.emit(record)

        event = queue.get_nowait()
        assert isinstance(event, LogEvent)
        assert event.message == "Test message"
        assert event.func_name == "test_func"
        assert event.line_no == 10


class TestConfigure:
    def test_get_logger_namespaces(self):
        assert get_logger("actions").name == "kaleidoscope.actions"
        assert get_logger("kaleidoscope.git").name == "kaleidoscope.git"

    def test_tui_logging_routes_to_queue(self):
        queue: asyncio.Queue = asyncio.Queue()
        configure_tui_logging(queue)

        get_logger("kaleidoscope.actions").info("Opened %d pane(s)", 3)
        get_logger("kaleidoscope.actions").debug("hidden")

        event = queue.get_nowait()
        assert event.message == "Opened 3 pane(s)"
        assert event.logger_name == "kaleidoscope.actions"
        assert queue.empty()

    def test_tui_logging_is_idempotent(self):
        first: asyncio.Queue = asyncio.Queue()
        second: asyncio.Queue = asyncio.Queue()
        configure_tui_logging(first)
        configure_tui_logging(second)

        get_logger("x").warning("once")
        assert first.qsize() == 1
        assert second.empty()

    def test_configure_logging_verbose(self):
        configure_logging(verbose=True)
        logger = logging.getLogger(LOGGER_NAME)
        assert logger.level == logging.DEBUG
        assert logging.getLogger("asyncio").level == logging.CRITICAL
        assert len(logger.handlers) == 1
        assert logger.propagate is False

        configure_logging(verbose=False)
        assert logger.level == logging.INFO
        assert len(logger.handlers) == 1


def test_status_text_prefixes_warnings():
    assert LogEvent(event_id="a", message="Launched 2/2 instance(s)").status_text == "Launched 2/2 instance(s)"
    warning = LogEvent(event_id="b", level="WARNING", levelno=logging.WARNING, message="Cleanup: kill-pane failed")
    assert warning.status_text == "WARNING: Cleanup: kill-pane failed"
