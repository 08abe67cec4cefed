"""Completion of slash commands, command arguments and @mentions.

The engine works on the current row of a LineBuffer. Three contexts are
recognised, checked in this order:

1. argument: ``/next <partial>`` or ``/wrap <partial>``; candidates are
   instance labels.
2. command: a token starting with ``/``; candidates are SLASH_COMMANDS.
3. mention: a token starting with ``@``; candidates are ``@`` + label.

Accepting a candidate replaces only the token left of the cursor.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum

from kaleidoscope.buffer import WHITESPACE, LineBuffer

SLASH_COMMANDS: tuple[str, ...] = ("/bail", "/next", "/wrap")
ARGUMENT_COMMANDS: frozenset[str] = frozenset({"/next", "/wrap"})


class ContextKind(str, Enum):
    ARGUMENT = "argument"
    COMMAND = "command"
    MENTION = "mention"


@dataclass(frozen=True)
class CompletionContext:
    """Token under completion.

    Attributes:
        kind: Which vocabulary applies.
        token: Text from ``start`` to the cursor.
        start: Column where the token begins.
    """

    kind: ContextKind
    token: str
    start: int

    @property
    def search(self) -> str:
        """Text candidates are prefix-matched against."""
        if self.kind is ContextKind.MENTION:
            return self.token[1:]
        return self.token


def _token_start(line: str, col: int) -> int:
    start = col
    while start > 0 and line[start - 1] not in WHITESPACE:
        start -= 1
    return start


def resolve_context(line: str, col: int) -> CompletionContext | None:
    """Work out what, if anything, the cursor is completing.

    Args:
        line: The cursor's row.
        col: Cursor column within ``line``.

    Returns:
        The completion context, or None when the cursor is not on a
        completable token.
    """
    col = max(0, min(col, len(line)))
    start = _token_start(line, col)
    token = line[start:col]

    head = line[:start].split()
    if len(head) == 1 and head[0] in ARGUMENT_COMMANDS:
        return CompletionContext(ContextKind.ARGUMENT, token, start)
    if token.startswith("/"):
        return CompletionContext(ContextKind.COMMAND, token, start)
    if token.startswith("@"):
        return CompletionContext(ContextKind.MENTION, token, start)
    return None


def candidates_for(context: CompletionContext, labels: Sequence[str]) -> list[str]:
    """Filter the context's vocabulary by the typed prefix, keeping order."""
    search = context.search
    match context.kind:
        case ContextKind.ARGUMENT:
            return [label for label in labels if label.startswith(search)]
        case ContextKind.COMMAND:
            return [command for command in SLASH_COMMANDS if command.startswith(search)]
        case ContextKind.MENTION:
            return [f"@{label}" for label in labels if label.startswith(search)]
    return []


class Autocomplete:
    """Popup state for one buffer.

    The session calls ``refresh`` after edits that keep the cursor on the
    token, and ``dismiss`` after anything that moves it away.
    """

    def __init__(self) -> None:
        self.context: CompletionContext | None = None
        self.options: list[str] = []
        self.index = 0

    @property
    def active(self) -> bool:
        return self.context is not None and bool(self.options)

    @property
    def hovered(self) -> str | None:
        if not self.active:
            return None
        return self.options[self.index]

    def dismiss(self) -> None:
        self.context = None
        self.options = []
        self.index = 0

    def refresh(self, buffer: LineBuffer, labels: Sequence[str], *, allow_empty: bool = False) -> bool:
        """Recompute candidates for the token under the cursor.

        Args:
            buffer: Buffer being edited.
            labels: Instance labels to offer, in registration order.
            allow_empty: Also activate on an empty argument token; used when
                the user explicitly asks for completion with Tab.

        Returns:
            Whether the popup is active afterwards.
        """
        context = resolve_context(buffer.current_line, buffer.col)
        if context is None or (not context.token and not allow_empty):
            self.dismiss()
            return False
        options = candidates_for(context, labels)
        if not options or options == [context.token]:
            self.dismiss()
            return False
        self.context = context
        self.options = options
        self.index = 0
        return True

    def next(self) -> None:
        if self.active:
            self.index = (self.index + 1) % len(self.options)

    def previous(self) -> None:
        if self.active:
            self.index = (self.index - 1) % len(self.options)

    def accept(self, buffer: LineBuffer) -> bool:
        """Replace the current token with the hovered candidate and close.

        Returns:
            False when there was nothing to accept.
        """
        choice = self.hovered
        context = self.context
        self.dismiss()
        if choice is None or context is None:
            return False
        buffer.replace_range(context.start, buffer.col, choice)
        return True
