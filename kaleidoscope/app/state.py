"""Screen state management.

Each screen is its own dataclass carrying only the buffers it edits, and
the SessionStateMachine holds exactly one of them at a time.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import ClassVar

from kaleidoscope.autocomplete import Autocomplete
from kaleidoscope.buffer import LineBuffer
from kaleidoscope.events import ActionRequest
from kaleidoscope.logging import get_logger

logger = get_logger(__name__)


class ScreenKind(Enum):
    """Which screen is active.

    - SETUP: Collect branch, task, prompt, provider and models
    - ITERATION: Command line for /next, /wrap, /bail and @mentions
    - PROGRESS: An orchestration action is running
    - NEW_TASK: Collect the next task after /wrap
    - QUIT: Terminal; the session is over
    """

    SETUP = auto()
    ITERATION = auto()
    PROGRESS = auto()
    NEW_TASK = auto()
    QUIT = auto()


# Valid state transitions
VALID_TRANSITIONS: dict[ScreenKind, set[ScreenKind]] = {
    ScreenKind.SETUP: {ScreenKind.PROGRESS, ScreenKind.QUIT},
    ScreenKind.ITERATION: {ScreenKind.PROGRESS, ScreenKind.QUIT},
    ScreenKind.PROGRESS: {ScreenKind.SETUP, ScreenKind.ITERATION, ScreenKind.NEW_TASK, ScreenKind.QUIT},
    ScreenKind.NEW_TASK: {ScreenKind.PROGRESS, ScreenKind.QUIT},
    ScreenKind.QUIT: set(),
}


class SetupFocus(Enum):
    """Setup fields in Tab order."""

    BRANCH = auto()
    TASK = auto()
    PROMPT = auto()
    PROVIDER = auto()
    MODELS = auto()


class NewTaskFocus(Enum):
    TASK = auto()
    PROMPT = auto()


# -----------------------------------------------------------------------------
# Screens
# -----------------------------------------------------------------------------


@dataclass
class SetupScreen:
    kind: ClassVar[ScreenKind] = ScreenKind.SETUP

    branch: LineBuffer = field(default_factory=lambda: LineBuffer(single_line=True))
    task: LineBuffer = field(default_factory=lambda: LineBuffer(single_line=True))
    prompt: LineBuffer = field(default_factory=LineBuffer)
    focus: SetupFocus = SetupFocus.PROMPT
    provider_open: bool = False
    provider_hover: int = 0
    models_open: bool = False
    models_hover: int = 0

    def cycle_focus(self, step: int = 1, provider_index: int = 0) -> None:
        """Move focus ``step`` fields along the Tab order, closing dropdowns left behind."""
        order = list(SetupFocus)
        self.provider_open = False
        self.models_open = False
        self.focus = order[(order.index(self.focus) + step) % len(order)]
        if self.focus is SetupFocus.PROVIDER:
            self.provider_hover = provider_index
        elif self.focus is SetupFocus.MODELS:
            self.models_hover = 0


@dataclass
class IterationScreen:
    kind: ClassVar[ScreenKind] = ScreenKind.ITERATION

    command: LineBuffer = field(default_factory=LineBuffer)
    autocomplete: Autocomplete = field(default_factory=Autocomplete)


@dataclass
class ProgressScreen:
    """Waiting for ``request`` to complete.

    ``previous`` is restored when the action fails in a way that leaves the
    session where it was.
    """

    kind: ClassVar[ScreenKind] = ScreenKind.PROGRESS

    message: str
    request: ActionRequest
    previous: Screen


@dataclass
class NewTaskScreen:
    kind: ClassVar[ScreenKind] = ScreenKind.NEW_TASK

    task: LineBuffer = field(default_factory=lambda: LineBuffer(single_line=True))
    prompt: LineBuffer = field(default_factory=LineBuffer)
    focus: NewTaskFocus = NewTaskFocus.TASK

    def toggle_focus(self) -> None:
        self.focus = NewTaskFocus.PROMPT if self.focus is NewTaskFocus.TASK else NewTaskFocus.TASK


@dataclass
class QuitScreen:
    kind: ClassVar[ScreenKind] = ScreenKind.QUIT


Screen = SetupScreen | IterationScreen | ProgressScreen | NewTaskScreen | QuitScreen


# -----------------------------------------------------------------------------
# State Machine
# -----------------------------------------------------------------------------


class SessionStateMachine:
    """Holds the active screen.

    Invalid transitions are logged but still applied.
    """

    def __init__(self, initial: Screen | None = None) -> None:
        self._screen: Screen = initial if initial is not None else SetupScreen()

    @property
    def screen(self) -> Screen:
        return self._screen

    @property
    def kind(self) -> ScreenKind:
        return self._screen.kind

    @property
    def is_busy(self) -> bool:
        """An action is in flight."""
        return self.kind is ScreenKind.PROGRESS

    @property
    def is_finished(self) -> bool:
        return self.kind is ScreenKind.QUIT

    def transition(self, screen: Screen) -> bool:
        """Make ``screen`` the active screen.

        Returns:
            True if the transition was valid, False otherwise.
        """
        old_kind = self.kind
        new_kind = screen.kind
        is_valid = new_kind is old_kind or new_kind in VALID_TRANSITIONS.get(old_kind, set())
        if not is_valid:
            logger.warning("Invalid screen transition %s -> %s", old_kind.name, new_kind.name)

        self._screen = screen
        return is_valid

    def get_status_text(self) -> str:
        """Human-readable label for the active screen."""
        status_map = {
            ScreenKind.SETUP: "Setup",
            ScreenKind.ITERATION: "Iterate",
            ScreenKind.PROGRESS: "Working...",
            ScreenKind.NEW_TASK: "New task",
            ScreenKind.QUIT: "Done",
        }
        return status_map[self.kind]
