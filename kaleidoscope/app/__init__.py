"""TUI application module.

- Session: Owner of all interactive state
- SessionStateMachine: Active screen and transitions
- KaleidoscopeApp: prompt_toolkit front end
- Key / KeyInput: Terminal-independent key presses
"""

from __future__ import annotations

from kaleidoscope.app.commands import (
    BailCommand,
    FollowUpCommand,
    MergeCommand,
    parse_iteration_command,
)
from kaleidoscope.app.keys import Key, KeyInput, keys_for
from kaleidoscope.app.session import Session
from kaleidoscope.app.state import (
    VALID_TRANSITIONS,
    ScreenKind,
    SessionStateMachine,
)
from kaleidoscope.app.tui import KaleidoscopeApp

__all__ = [
    "VALID_TRANSITIONS",
    "BailCommand",
    "FollowUpCommand",
    "KaleidoscopeApp",
    "Key",
    "KeyInput",
    "MergeCommand",
    "ScreenKind",
    "Session",
    "SessionStateMachine",
    "keys_for",
    "parse_iteration_command",
]
