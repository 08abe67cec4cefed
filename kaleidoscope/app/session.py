"""Session: the single owner of all interactive state.

Key input is applied synchronously through ``handle``. When input asks for
a side effect, ``handle`` switches to the Progress screen and returns an
action request; the caller runs it and feeds the completion back through
``complete``. Nothing else mutates the session.

Example:
    session = Session(catalog)
    request = session.handle(KeyInput(Key.ENTER))
    if request is not None:
        session.complete(await orchestrator.dispatch(request))
"""

from __future__ import annotations

from collections.abc import Callable

from kaleidoscope.app.commands import (
    BailCommand,
    FollowUpCommand,
    MergeCommand,
    parse_iteration_command,
)
from kaleidoscope.app.keys import Key, KeyInput
from kaleidoscope.app.state import (
    IterationScreen,
    NewTaskFocus,
    NewTaskScreen,
    ProgressScreen,
    QuitScreen,
    Screen,
    ScreenKind,
    SessionStateMachine,
    SetupFocus,
    SetupScreen,
)
from kaleidoscope.buffer import LineBuffer
from kaleidoscope.events import (
    ActionComplete,
    ActionRequest,
    BailComplete,
    BailRequest,
    CleanupComplete,
    CleanupRequest,
    FollowUpComplete,
    FollowUpRequest,
    LaunchComplete,
    LaunchRequest,
    MergeComplete,
    MergeKind,
    MergeRequest,
    new_event_id,
)
from kaleidoscope.exceptions import DuplicateLabelError, UnknownInstanceError
from kaleidoscope.history import HistoryNavigator, HistoryStore
from kaleidoscope.logging import get_logger
from kaleidoscope.registry import InstanceRegistry
from kaleidoscope.selection import ProviderCatalog, SelectionTable

logger = get_logger(__name__)


class Session:
    """Screens, buffers, selection, history and instances of one run.

    Args:
        catalog: Providers and models offered in Setup.
        selection: Initial selection, e.g. restored from saved defaults.
        history: Shared prompt history.
        provider: Initially active provider.
        branch: Initial feature branch name.
        save_defaults: Ask launches to persist provider and selection.
        on_history_change: Called with the entries after every history push.
    """

    def __init__(
        self,
        catalog: ProviderCatalog,
        *,
        selection: SelectionTable | None = None,
        history: HistoryStore | None = None,
        provider: str | None = None,
        branch: str = "",
        save_defaults: bool = False,
        on_history_change: Callable[[list[str]], None] | None = None,
    ) -> None:
        self.catalog = catalog
        self.selection = selection or SelectionTable(catalog)
        self.history = history if history is not None else HistoryStore()
        self.registry = InstanceRegistry()
        self.prompt_history = HistoryNavigator(self.history)
        self.command_history = HistoryNavigator(self.history)
        self.provider_index = catalog.index_of(provider) if provider else 0
        self.save_defaults = save_defaults
        self.feature_branch = ""
        self.task = ""
        self.status = ""
        self._on_history_change = on_history_change

        setup = SetupScreen(branch=LineBuffer(branch, single_line=True))
        self.machine = SessionStateMachine(setup)

    # =========================================================================
    # Accessors
    # =========================================================================

    @property
    def screen(self) -> Screen:
        return self.machine.screen

    @property
    def kind(self) -> ScreenKind:
        return self.machine.kind

    @property
    def finished(self) -> bool:
        return self.machine.is_finished

    @property
    def pending(self) -> ActionRequest | None:
        """The in-flight request while on the Progress screen."""
        screen = self.screen
        return screen.request if isinstance(screen, ProgressScreen) else None

    @property
    def provider(self) -> str:
        providers = self.catalog.providers
        return providers[self.provider_index] if providers else ""

    def completion_labels(self) -> list[str]:
        """Labels offered by autocomplete: live instances, else what would launch."""
        labels = self.registry.labels()
        if labels:
            return labels
        return [unit.label for unit in self.selection.expand(self.provider, self.registry.taken_labels)]

    # =========================================================================
    # Input
    # =========================================================================

    def handle(self, key: KeyInput) -> ActionRequest | None:
        """Apply one key press.

        Returns:
            An action request to run, or None.
        """
        screen = self.screen
        if isinstance(screen, ProgressScreen | QuitScreen):
            return None
        if key.key is Key.CANCEL:
            return self._start(
                CleanupRequest(event_id=new_event_id("cleanup"), instances=self.registry.snapshot()),
                "Cleaning up panes, worktrees, and branches...",
            )

        match screen:
            case SetupScreen():
                return self._handle_setup(screen, key)
            case IterationScreen():
                return self._handle_iteration(screen, key)
            case NewTaskScreen():
                return self._handle_new_task(screen, key)
        return None

    def _edit(self, buffer: LineBuffer, key: KeyInput) -> bool:
        """Apply a plain editing key to ``buffer``; False if ``key`` is not one."""
        match key.key:
            case Key.RUNE:
                buffer.insert(key.text)
            case Key.NEWLINE:
                buffer.insert_newline()
            case Key.BACKSPACE:
                buffer.backspace_char()
            case Key.BACKSPACE_WORD:
                buffer.backspace_word()
            case Key.BACKSPACE_LINE:
                buffer.backspace_line()
            case Key.LEFT:
                buffer.move_char_left()
            case Key.RIGHT:
                buffer.move_char_right()
            case Key.WORD_LEFT:
                buffer.move_word_left()
            case Key.WORD_RIGHT:
                buffer.move_word_right()
            case Key.HOME:
                buffer.move_line_start()
            case Key.END:
                buffer.move_line_end()
            case _:
                return False
        return True

    # -------------------------------------------------------------------------
    # Setup
    # -------------------------------------------------------------------------

    def _handle_setup(self, screen: SetupScreen, key: KeyInput) -> ActionRequest | None:
        if key.key is Key.TAB:
            screen.cycle_focus(1, self.provider_index)
            return None
        if key.key is Key.SHIFT_TAB:
            screen.cycle_focus(-1, self.provider_index)
            return None

        match screen.focus:
            case SetupFocus.BRANCH | SetupFocus.TASK:
                if key.key is Key.ENTER:
                    screen.focus = SetupFocus.PROMPT
                else:
                    buffer = screen.branch if screen.focus is SetupFocus.BRANCH else screen.task
                    self._edit(buffer, key)
            case SetupFocus.PROMPT:
                return self._handle_setup_prompt(screen, key)
            case SetupFocus.PROVIDER:
                self._handle_provider(screen, key)
            case SetupFocus.MODELS:
                self._handle_models(screen, key)
        return None

    def _handle_setup_prompt(self, screen: SetupScreen, key: KeyInput) -> ActionRequest | None:
        buffer = screen.prompt
        match key.key:
            case Key.ENTER:
                if self.selection.total(self.provider) > 0:
                    return self._request_launch(screen.branch.text, screen.task.text, buffer.text)
                buffer.insert_newline()
            case Key.UP:
                if not self.prompt_history.older(buffer):
                    buffer.move_up()
            case Key.DOWN:
                if not self.prompt_history.newer(buffer):
                    buffer.move_down()
            case _:
                self._edit(buffer, key)
        return None

    def _handle_provider(self, screen: SetupScreen, key: KeyInput) -> None:
        last = len(self.catalog.providers) - 1
        if not screen.provider_open:
            if key.key in (Key.ENTER, Key.UP, Key.DOWN):
                screen.provider_open = True
                screen.provider_hover = self.provider_index
            return
        match key.key:
            case Key.UP:
                screen.provider_hover = max(0, screen.provider_hover - 1)
            case Key.DOWN:
                screen.provider_hover = min(last, screen.provider_hover + 1)
            case Key.ENTER:
                self.provider_index = screen.provider_hover
                screen.provider_open = False
                screen.models_hover = 0
            case Key.BACKSPACE:
                screen.provider_open = False

    def _handle_models(self, screen: SetupScreen, key: KeyInput) -> None:
        models = self.catalog.models_for(self.provider)
        if key.key is Key.ENTER:
            screen.models_open = not screen.models_open
            if screen.models_open:
                screen.models_hover = 0
            return
        if not screen.models_open:
            if key.key in (Key.UP, Key.DOWN):
                screen.models_open = True
                screen.models_hover = 0
            return
        if not models:
            return

        screen.models_hover = max(0, min(screen.models_hover, len(models) - 1))
        hovered = models[screen.models_hover]
        match key.key:
            case Key.UP:
                screen.models_hover = max(0, screen.models_hover - 1)
            case Key.DOWN:
                screen.models_hover = min(len(models) - 1, screen.models_hover + 1)
            case Key.RUNE if key.is_space:
                self.selection.increment(self.provider, hovered)
            case Key.BACKSPACE:
                self.selection.decrement(self.provider, hovered)

    # -------------------------------------------------------------------------
    # Iteration
    # -------------------------------------------------------------------------

    def _handle_iteration(self, screen: IterationScreen, key: KeyInput) -> ActionRequest | None:
        buffer = screen.command
        popup = screen.autocomplete

        match key.key:
            case Key.TAB:
                if popup.active:
                    popup.next()
                else:
                    popup.refresh(buffer, self.completion_labels(), allow_empty=True)
            case Key.ENTER:
                if popup.active:
                    popup.accept(buffer)
                    return None
                return self._submit_iteration(screen)
            case Key.UP:
                if popup.active:
                    popup.previous()
                elif not self.command_history.older(buffer):
                    buffer.move_up()
            case Key.DOWN:
                if popup.active:
                    popup.next()
                elif not self.command_history.newer(buffer):
                    buffer.move_down()
            case Key.RUNE:
                buffer.insert(key.text)
                if key.is_space:
                    popup.dismiss()
                else:
                    popup.refresh(buffer, self.completion_labels())
            case Key.BACKSPACE:
                at_row_start = buffer.col == 0
                buffer.backspace_char()
                if at_row_start:
                    popup.dismiss()
                else:
                    popup.refresh(buffer, self.completion_labels())
            case _:
                popup.dismiss()
                self._edit(buffer, key)
        return None

    def _submit_iteration(self, screen: IterationScreen) -> ActionRequest | None:
        buffer = screen.command
        command = parse_iteration_command(buffer.text)

        match command:
            case BailCommand():
                return self._start(
                    BailRequest(event_id=new_event_id("bail"), instances=self.registry.snapshot()),
                    "Cleaning up panes, worktrees, and branches...",
                )
            case MergeCommand(kind=kind, label=label):
                try:
                    instance = self.registry.require(label)
                except UnknownInstanceError as e:
                    self.status = str(e)
                    return None
                request = MergeRequest(
                    event_id=new_event_id(kind.value),
                    kind=kind,
                    branch=self.feature_branch,
                    winner=instance.snapshot(),
                    instances=self.registry.snapshot(),
                )
                return self._start(request, f"Merging and pushing changes from {label}...")
            case FollowUpCommand(label=label, text=text):
                try:
                    instance = self.registry.require(label)
                except UnknownInstanceError as e:
                    self.status = str(e)
                    return None
                instance.append_prompt(text)
                self._push_history(text)
                buffer.clear()
                self.command_history.reset()
                request = FollowUpRequest(event_id=new_event_id("followup"), instance=instance.snapshot(), text=text)
                return self._start(request, f"Sending to @{label}...")

        buffer.insert_newline()
        return None

    # -------------------------------------------------------------------------
    # New task
    # -------------------------------------------------------------------------

    def _handle_new_task(self, screen: NewTaskScreen, key: KeyInput) -> ActionRequest | None:
        if key.key in (Key.TAB, Key.SHIFT_TAB):
            screen.toggle_focus()
            return None

        if screen.focus is NewTaskFocus.TASK:
            if key.key is Key.ENTER:
                screen.focus = NewTaskFocus.PROMPT
            else:
                self._edit(screen.task, key)
            return None

        buffer = screen.prompt
        match key.key:
            case Key.ENTER:
                if not buffer.is_blank() and self.selection.total(self.provider) > 0:
                    return self._request_launch(self.feature_branch, screen.task.text, buffer.text)
                buffer.insert_newline()
            case Key.UP:
                buffer.move_up()
            case Key.DOWN:
                buffer.move_down()
            case _:
                self._edit(buffer, key)
        return None

    # =========================================================================
    # Requests
    # =========================================================================

    def _start(self, request: ActionRequest, message: str) -> ActionRequest:
        self.machine.transition(ProgressScreen(message=message, request=request, previous=self.screen))
        return request

    def _request_launch(self, branch: str, task: str, prompt: str) -> ActionRequest | None:
        branch = branch.strip()
        if not branch:
            self.status = "Branch name is required"
            return None

        units = self.selection.expand(self.provider, self.registry.taken_labels)
        if not units:
            self.status = "Select at least one model"
            return None

        request = LaunchRequest(
            event_id=new_event_id("launch"),
            branch=branch,
            task=task.strip(),
            prompt=prompt.strip(),
            provider=self.provider,
            units=tuple(units),
            save_defaults=self.save_defaults,
            defaults=self.selection.as_defaults(),
        )
        return self._start(request, f"Opening {len(units)} pane(s)...")

    def _push_history(self, entry: str) -> None:
        if self.history.push(entry) and self._on_history_change is not None:
            self._on_history_change(self.history.entries)

    # =========================================================================
    # Completions
    # =========================================================================

    def complete(self, message: ActionComplete) -> None:
        """Apply the completion of the in-flight action."""
        screen = self.screen
        if not isinstance(screen, ProgressScreen) or screen.request.event_id != message.event_id:
            logger.warning("Ignoring unexpected completion %s", type(message).__name__)
            return

        match message:
            case LaunchComplete():
                self._launch_complete(screen, message)
            case FollowUpComplete():
                self.status = f"Error sending to @{message.label}: {message.error}" if message.error else ""
                self.machine.transition(screen.previous)
            case MergeComplete():
                self._merge_complete(screen, message)
            case BailComplete() | CleanupComplete():
                self.registry.retire_all()
                self._report_cleanup(message.cleanup.errors)
                self.machine.transition(QuitScreen())

    def _launch_complete(self, screen: ProgressScreen, message: LaunchComplete) -> None:
        request = screen.request
        assert isinstance(request, LaunchRequest)

        if not message.succeeded:
            self.status = f"No instances launched: {message.error or 'unknown error'}"
            self.machine.transition(screen.previous)
            return

        for instance in message.launched:
            instance.append_prompt(request.prompt)
            try:
                self.registry.register(instance)
            except DuplicateLabelError as e:
                logger.warning("%s", e)
        self._push_history(request.prompt)
        self.prompt_history.reset()
        self.command_history.reset()

        self.feature_branch = request.branch
        self.task = request.task
        self.status = f"Launched {len(message.launched)}/{message.requested} instance(s)"
        if message.error:
            self.status += f"; last error: {message.error}"
        self.machine.transition(IterationScreen())

    def _merge_complete(self, screen: ProgressScreen, message: MergeComplete) -> None:
        if message.aborted:
            self.status = message.error or "Merge aborted"
            self.machine.transition(screen.previous)
            return

        self.registry.retire_all(merged=message.label if message.merged else None)
        self.command_history.reset()
        if message.error:
            self.status = message.error
        elif message.merged:
            self.status = f"Merged {message.label} into {self.feature_branch}"
        self._report_cleanup(message.cleanup.errors)

        if message.kind is MergeKind.WRAP:
            self.machine.transition(NewTaskScreen())
        else:
            self.machine.transition(QuitScreen())

    def _report_cleanup(self, errors: list[str]) -> None:
        for error in errors:
            logger.warning("Cleanup: %s", error)
