"""Rendering of the session into prompt_toolkit formatted text.

Everything here is read-only: the view looks at the Session and produces
``(style, text)`` fragments. The banner is drawn with Rich and converted
from ANSI.
"""

from __future__ import annotations

from io import StringIO

from prompt_toolkit.formatted_text import ANSI, StyleAndTextTuples, to_formatted_text
from rich.console import Console
from rich.text import Text

from kaleidoscope.app.session import Session
from kaleidoscope.app.state import (
    IterationScreen,
    NewTaskFocus,
    NewTaskScreen,
    ProgressScreen,
    QuitScreen,
    SetupFocus,
    SetupScreen,
)
from kaleidoscope.buffer import LineBuffer
from kaleidoscope.config import DEFAULT_SPINNER_FRAMES

HELP_TEXT = {
    "setup": "Tab/Shift+Tab: Next field | Enter: Launch | Ctrl+O: Newline | Space/Backspace: Add/Remove model | Esc: Quit",
    "iteration": "/next <label> | /wrap <label> | /bail | @<label> <text> | Tab: Complete | Esc: Quit",
    "new_task": "Tab: Switch field | Enter: Launch | Ctrl+O: Newline | Esc: Quit",
    "progress": "Please wait...",
}


def render_ansi(renderable: object, width: int = 80) -> str:
    """Render a Rich object to an ANSI string."""
    string_io = StringIO()
    console = Console(file=string_io, force_terminal=True, width=width, no_color=False)
    console.print(renderable, end="")
    return string_io.getvalue()


def render_buffer(buffer: LineBuffer, *, focused: bool, indent: str = "") -> StyleAndTextTuples:
    """Buffer rows with a block cursor drawn when ``focused``."""
    fragments: StyleAndTextTuples = []
    for index, line in enumerate(buffer.rows):
        if index:
            fragments.append(("", "\n"))
        fragments.append(("", indent))
        if not focused or index != buffer.row:
            fragments.append(("class:input", line))
            continue
        col = buffer.col
        fragments.append(("class:input", line[:col]))
        fragments.append(("class:cursor", line[col : col + 1] or " "))
        fragments.append(("class:input", line[col + 1 :]))
    return fragments


class SessionView:
    """Formatted text for the header, body and status bar of one session."""

    def __init__(self, session: Session, spinner_frames: list[str] | None = None) -> None:
        self.session = session
        self.spinner_frames = spinner_frames or list(DEFAULT_SPINNER_FRAMES)
        self._frame = 0
        self.last_log = ""

    def tick(self) -> None:
        """Advance the spinner one frame."""
        self._frame = (self._frame + 1) % len(self.spinner_frames)

    @property
    def spinner(self) -> str:
        return self.spinner_frames[self._frame]

    # =========================================================================
    # Regions
    # =========================================================================

    def header(self) -> StyleAndTextTuples:
        title = Text("Kaleidoscope", style="bold magenta")
        if self.session.feature_branch:
            title.append(f"  {self.session.feature_branch}", style="cyan")
            if self.session.task:
                title.append(f" / {self.session.task}", style="dim")
        return to_formatted_text(ANSI(render_ansi(title)))

    def body(self) -> StyleAndTextTuples:
        screen = self.session.screen
        match screen:
            case SetupScreen():
                return self._setup(screen)
            case IterationScreen():
                return self._iteration(screen)
            case ProgressScreen():
                return [("class:spinner", f"{self.spinner} "), ("", screen.message)]
            case NewTaskScreen():
                return self._new_task(screen)
            case QuitScreen():
                return [("class:dim", "Done.")]
        return []

    def status(self) -> StyleAndTextTuples:
        screen = self.session.screen
        help_key = {
            SetupScreen: "setup",
            IterationScreen: "iteration",
            NewTaskScreen: "new_task",
            ProgressScreen: "progress",
        }.get(type(screen))

        fragments: StyleAndTextTuples = [
            ("class:status-bar.mode", f" {self.session.machine.get_status_text()} "),
        ]
        message = self.session.status or self.last_log
        if message:
            fragments.append(("class:status-bar", " | "))
            fragments.append(("class:status-bar.message", message))
        if help_key:
            fragments.append(("class:status-bar", "\n "))
            fragments.append(("class:status-bar", HELP_TEXT[help_key]))
        return fragments

    # =========================================================================
    # Screens
    # =========================================================================

    def _label(self, text: str, focused: bool) -> tuple[str, str]:
        return ("class:label.focused" if focused else "class:label", text)

    def _setup(self, screen: SetupScreen) -> StyleAndTextTuples:
        session = self.session
        focus = screen.focus
        out: StyleAndTextTuples = []

        out.append(self._label("Branch: ", focus is SetupFocus.BRANCH))
        out.extend(render_buffer(screen.branch, focused=focus is SetupFocus.BRANCH))
        out.append(("", "\n"))
        out.append(self._label("Task:   ", focus is SetupFocus.TASK))
        out.extend(render_buffer(screen.task, focused=focus is SetupFocus.TASK))
        out.append(("", "\n\n"))
        out.append(self._label("Prompt:\n", focus is SetupFocus.PROMPT))
        out.extend(render_buffer(screen.prompt, focused=focus is SetupFocus.PROMPT, indent="  "))
        out.append(("", "\n\n"))

        out.append(self._label("Provider: ", focus is SetupFocus.PROVIDER))
        out.append(("class:value", session.provider))
        if screen.provider_open:
            for index, provider in enumerate(session.catalog.providers):
                marker = ">" if index == screen.provider_hover else " "
                style = "class:option.hover" if index == screen.provider_hover else "class:option"
                out.append(("", "\n"))
                out.append((style, f"  {marker} {provider}"))
        out.append(("", "\n"))

        out.append(self._label("Models: ", focus is SetupFocus.MODELS))
        if screen.models_open:
            for index, model in enumerate(session.catalog.models_for(session.provider)):
                count = session.selection.count(session.provider, model)
                hovered = index == screen.models_hover
                marker = ">" if hovered else " "
                style = "class:option.hover" if hovered else "class:option"
                out.append(("", "\n"))
                out.append((style, f"  {marker} [{count}] {model}"))
        else:
            selected = session.selection.selected(session.provider)
            summary = ", ".join(f"{model} x{count}" for model, count in selected) or "(none)"
            out.append(("class:value", summary))
        out.append(("", "\n\n"))

        labels = session.completion_labels()
        out.append(("class:label", "Selected: "))
        out.append(("class:value", " ".join(labels) if labels else "(none)"))
        return out

    def _iteration(self, screen: IterationScreen) -> StyleAndTextTuples:
        out: StyleAndTextTuples = [("class:label", "Instances:\n")]
        for instance in self.session.registry:
            out.append(("class:value", f"  @{instance.label}"))
            out.append(("class:dim", f"  {instance.model_id}  {instance.workspace.path}\n"))
        out.append(("", "\n"))
        out.append(("class:label.focused", "> "))
        out.extend(render_buffer(screen.command, focused=True))

        popup = screen.autocomplete
        if popup.active:
            for index, option in enumerate(popup.options):
                style = "class:option.hover" if index == popup.index else "class:option"
                out.append(("", "\n"))
                out.append((style, f"  {option}"))
        return out

    def _new_task(self, screen: NewTaskScreen) -> StyleAndTextTuples:
        focus = screen.focus
        out: StyleAndTextTuples = [
            ("class:dim", f"Feature branch: {self.session.feature_branch}\n\n"),
            self._label("Task:   ", focus is NewTaskFocus.TASK),
        ]
        out.extend(render_buffer(screen.task, focused=focus is NewTaskFocus.TASK))
        out.append(("", "\n\n"))
        out.append(self._label("Prompt:\n", focus is NewTaskFocus.PROMPT))
        out.extend(render_buffer(screen.prompt, focused=focus is NewTaskFocus.PROMPT, indent="  "))
        return out
