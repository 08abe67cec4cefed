"""Exception hierarchy for kaleidoscope.

All errors raised by the orchestration layer derive from KaleidoscopeError
so the TUI can turn them into status messages without catching unrelated
exceptions.
"""

from __future__ import annotations


class KaleidoscopeError(Exception):
    """Base exception for kaleidoscope errors."""

    pass


# =============================================================================
# Subprocess Errors
# =============================================================================


class ShellExecutionError(KaleidoscopeError):
    """Raised when an external command cannot be started or fails."""

    def __init__(self, command: str, returncode: int | None = None, stderr: str = ""):
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        detail = stderr.strip() or "no output"
        if returncode is None:
            super().__init__(f"{command}: {detail}")
        else:
            super().__init__(f"{command} exited with {returncode}: {detail}")


class ShellTimeoutError(ShellExecutionError):
    """Raised when an external command exceeds its timeout."""

    def __init__(self, command: str, timeout: float):
        self.timeout = timeout
        super().__init__(command, stderr=f"timed out after {timeout:.0f}s")


class GitError(ShellExecutionError):
    """Raised when a git command exits non-zero."""

    pass


class TmuxError(ShellExecutionError):
    """Raised when a tmux command exits non-zero."""

    pass


class NotInsideTmuxError(KaleidoscopeError):
    """Raised at startup when the process is not running inside tmux."""

    def __init__(self) -> None:
        super().__init__("not inside a tmux session; please start tmux and re-run")


# =============================================================================
# Registry Errors
# =============================================================================


class UnknownInstanceError(KaleidoscopeError):
    """Raised when a label does not name a registered instance."""

    def __init__(self, label: str):
        self.label = label
        super().__init__(f"Unknown instance: {label}")


class DuplicateLabelError(KaleidoscopeError):
    """Raised when registering a label that is already in use."""

    def __init__(self, label: str):
        self.label = label
        super().__init__(f"Instance label already in use: {label}")
