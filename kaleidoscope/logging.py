"""Logging for kaleidoscope.

Records go to stderr until the TUI takes over the terminal. From then on
they are turned into LogEvents on an asyncio queue, and the TUI shows the
latest one on its status line so log output never tears the screen.

Example:
    queue = asyncio.Queue()
    configure_tui_logging(queue)
    get_logger(__name__).info("Launched 3 instances")  # lands on the queue
"""

from __future__ import annotations

import logging
from asyncio import Queue
from dataclasses import dataclass

from kaleidoscope.events import Event

LOGGER_NAME = "kaleidoscope"

_tui_handler: QueueHandler | None = None


@dataclass
class LogEvent(Event):
    """One formatted log record bound for the status line."""

    level: str = "INFO"
    levelno: int = logging.INFO
    logger_name: str = ""
    message: str = ""
    func_name: str = ""
    line_no: int = 0

    @property
    def status_text(self) -> str:
        """Message as shown in the status bar; warnings and errors carry their level."""
        if self.levelno >= logging.WARNING:
            return f"{self.level}: {self.message}"
        return self.message


class QueueHandler(logging.Handler):
    """Handler that turns records into LogEvents on an asyncio queue."""

    def __init__(self, queue: Queue[LogEvent], level: int = logging.DEBUG) -> None:
        super().__init__(level)
        self.queue = queue

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self.queue.put_nowait(
                LogEvent(
                    event_id=f"log-{record.created:.0f}-{record.lineno}",
                    level=record.levelname,
                    levelno=record.levelno,
                    logger_name=record.name,
                    message=self.format(record),
                    func_name=record.funcName,
                    line_no=record.lineno,
                )
            )
        except Exception:
            self.handleError(record)


def _install(handler: logging.Handler, fmt: str, level: int) -> logging.Logger:
    """Make ``handler`` the only handler of the package logger."""
    handler.setFormatter(logging.Formatter(fmt))
    root = logging.getLogger(LOGGER_NAME)
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)
    root.propagate = False
    return root


def configure_logging(verbose: bool = False) -> None:
    """Log to stderr, at DEBUG when ``verbose`` and INFO otherwise.

    Also mutes asyncio, whose subprocess shutdown warnings would otherwise
    land on the terminal.
    """
    _install(logging.StreamHandler(), "%(levelname)s: %(message)s", logging.DEBUG if verbose else logging.INFO)
    logging.getLogger("asyncio").setLevel(logging.CRITICAL)


def configure_tui_logging(queue: Queue[LogEvent], level: int = logging.INFO) -> None:
    """Send package logs to ``queue`` instead of stderr.

    A second call is ignored until reset_logging() runs, so the first
    queue keeps receiving events.

    Args:
        queue: Receives one LogEvent per record.
        level: Minimum level captured.
    """
    global _tui_handler

    if _tui_handler is not None:
        return
    _tui_handler = QueueHandler(queue, level)
    _install(_tui_handler, "%(message)s", level)


def reset_logging() -> None:
    """Remove every handler from the package logger."""
    global _tui_handler

    logging.getLogger(LOGGER_NAME).handlers.clear()
    _tui_handler = None


def get_logger(name: str) -> logging.Logger:
    """Logger below ``kaleidoscope``; module names are used as-is."""
    if not name.startswith(LOGGER_NAME):
        name = f"{LOGGER_NAME}.{name}"
    return logging.getLogger(name)
