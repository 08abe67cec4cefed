"""prompt_toolkit application shell.

Translates key presses into KeyInputs for the Session, runs the action
requests it returns on the Orchestrator as asyncio tasks, and feeds each
completion back. The layout is three stacked windows: banner, screen body
and status bar.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Callable
from dataclasses import dataclass, field
from functools import partial

from prompt_toolkit import Application
from prompt_toolkit.input import Input
from prompt_toolkit.key_binding import KeyBindings, KeyPressEvent
from prompt_toolkit.layout import HSplit, Layout, Window
from prompt_toolkit.layout.controls import FormattedTextControl
from prompt_toolkit.output import Output
from prompt_toolkit.styles import Style

from kaleidoscope.actions import Orchestrator
from kaleidoscope.app.keys import Key, KeyInput
from kaleidoscope.app.session import Session
from kaleidoscope.app.view import SessionView
from kaleidoscope.config import UIConfig
from kaleidoscope.events import ActionComplete, ActionRequest, failed_completion
from kaleidoscope.logging import LogEvent, configure_tui_logging, get_logger, reset_logging

logger = get_logger(__name__)

# Single keys and key sequences bound to one Key each.
KEY_MAP: dict[Key, list[tuple[str, ...]]] = {
    Key.CANCEL: [("c-c",), ("escape",)],
    Key.ENTER: [("enter",)],
    Key.NEWLINE: [("c-o",)],
    Key.TAB: [("tab",)],
    Key.SHIFT_TAB: [("s-tab",)],
    Key.UP: [("up",)],
    Key.DOWN: [("down",)],
    Key.LEFT: [("left",)],
    Key.RIGHT: [("right",)],
    Key.WORD_LEFT: [("escape", "b"), ("c-left",)],
    Key.WORD_RIGHT: [("escape", "f"), ("c-right",)],
    Key.HOME: [("home",), ("c-a",)],
    Key.END: [("end",), ("c-e",)],
    Key.BACKSPACE: [("backspace",)],
    Key.BACKSPACE_WORD: [("escape", "backspace"), ("c-w",)],
    Key.BACKSPACE_LINE: [("c-u",)],
}


@dataclass
class KaleidoscopeApp:
    """Interactive front end for one Session.

    Usage:
        app = KaleidoscopeApp(session=session, orchestrator=orchestrator)
        await app.run()
    """

    session: Session
    orchestrator: Orchestrator
    ui: UIConfig = field(default_factory=UIConfig)

    _app: Application[None] | None = field(default=None, init=False)
    _view: SessionView | None = field(default=None, init=False)
    _action_task: asyncio.Task[ActionComplete] | None = field(default=None, init=False)

    @property
    def view(self) -> SessionView:
        if self._view is None:
            self._view = SessionView(self.session, self.ui.spinner_frames)
        return self._view

    # =========================================================================
    # Input
    # =========================================================================

    def feed(self, key: KeyInput) -> None:
        """Hand one key to the session and start whatever it requests."""
        request = self.session.handle(key)
        if request is not None:
            self._start_action(request)
        self._refresh()

    def _setup_keybindings(self) -> KeyBindings:
        kb = KeyBindings()

        def bind(key: Key) -> Callable[[KeyPressEvent], None]:
            def handler(event: KeyPressEvent) -> None:
                self.feed(KeyInput(key))

            return handler

        for key, sequences in KEY_MAP.items():
            for sequence in sequences:
                kb.add(*sequence)(bind(key))

        # Alt chords arrive as escape + key; only a bare escape cancels
        @kb.add("escape", "<any>")
        def ignore_meta_chord(event: KeyPressEvent) -> None:
            pass

        @kb.add("<any>")
        def handle_rune(event: KeyPressEvent) -> None:
            if event.data and event.data.isprintable():
                self.feed(KeyInput.rune(event.data))

        return kb

    def _setup_style(self) -> Style:
        """Set up UI styles."""
        return Style.from_dict({
            "status-bar": "bg:ansiblue fg:white",
            "status-bar.mode": "bg:ansigreen fg:black bold",
            "status-bar.message": "bg:ansiblue fg:ansiyellow",
            "label": "fg:ansicyan",
            "label.focused": "fg:ansimagenta bold",
            "value": "",
            "input": "",
            "cursor": "reverse",
            "option": "",
            "option.hover": "reverse",
            "spinner": "fg:ansimagenta bold",
            "dim": "fg:ansibrightblack",
        })

    # =========================================================================
    # Actions
    # =========================================================================

    def _start_action(self, request: ActionRequest) -> None:
        logger.debug("Starting %s", type(request).__name__)
        self._action_task = asyncio.create_task(self.orchestrator.dispatch(request))
        self._action_task.add_done_callback(partial(self._on_action_task_done, request))

    def _on_action_task_done(self, request: ActionRequest, task: asyncio.Task[ActionComplete]) -> None:
        """Callback when an action completes - uncaught exceptions become failed completions."""
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Uncaught exception in action task: %s: %s", type(exc).__name__, str(exc))
            completion = failed_completion(request, f"{type(exc).__name__}: {exc}")
        else:
            completion = task.result()

        self.session.complete(completion)
        self._refresh()

    def _refresh(self) -> None:
        if self._app is None:
            return
        if self.session.finished:
            if self._app.is_running and not self._app.future.done():
                self._app.exit()
            return
        self._app.invalidate()

    # =========================================================================
    # Background loops
    # =========================================================================

    async def _spin(self) -> None:
        while True:
            await asyncio.sleep(self.ui.spinner_interval)
            if self.session.machine.is_busy:
                self.view.tick()
                self._refresh()

    async def _drain_logs(self, queue: asyncio.Queue[LogEvent]) -> None:
        while True:
            event = await queue.get()
            self.view.last_log = event.status_text
            self._refresh()

    # =========================================================================
    # Main
    # =========================================================================

    async def run(self, *, input: Input | None = None, output: Output | None = None) -> None:
        """Run the TUI until the session reaches the quit screen.

        Args:
            input: Terminal input; stdin if None.
            output: Terminal output; stdout if None.
        """
        log_queue: asyncio.Queue[LogEvent] = asyncio.Queue()
        configure_tui_logging(log_queue)

        layout = Layout(
            HSplit([
                Window(content=FormattedTextControl(self.view.header), height=1),
                Window(content=FormattedTextControl(self.view.body), wrap_lines=True),
                Window(
                    content=FormattedTextControl(self.view.status),
                    height=2,
                    style="class:status-bar",
                    wrap_lines=True,
                ),
            ])
        )
        self._app = Application(
            layout=layout,
            key_bindings=self._setup_keybindings(),
            style=self._setup_style(),
            full_screen=True,
            input=input,
            output=output,
        )

        background = [
            asyncio.create_task(self._spin()),
            asyncio.create_task(self._drain_logs(log_queue)),
        ]
        try:
            await self._app.run_async()
        finally:
            for task in background:
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
            # Actions are never cancelled mid-flight
            if self._action_task and not self._action_task.done():
                with contextlib.suppress(Exception):
                    await self._action_task
            reset_logging()
