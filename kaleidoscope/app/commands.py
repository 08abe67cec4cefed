"""Iteration command parsing.

The iteration buffer understands four commands on submit:

    /bail               discard every instance and quit
    /next <label>       merge <label>, discard the rest, quit
    /wrap <label>       merge <label>, discard the rest, start a new task
    @<label> <text>     send <text> to <label>'s agent

Anything else is not a command and Enter inserts a newline instead.
"""

from __future__ import annotations

from dataclasses import dataclass

from kaleidoscope.events import MergeKind


@dataclass(frozen=True)
class BailCommand:
    pass


@dataclass(frozen=True)
class MergeCommand:
    kind: MergeKind
    label: str


@dataclass(frozen=True)
class FollowUpCommand:
    label: str
    text: str


IterationCommand = BailCommand | MergeCommand | FollowUpCommand

MERGE_COMMANDS: dict[str, MergeKind] = {
    "/next": MergeKind.NEXT,
    "/wrap": MergeKind.WRAP,
}


def parse_iteration_command(text: str) -> IterationCommand | None:
    """Parse the whole iteration buffer.

    Args:
        text: Buffer content; surrounding whitespace is ignored.

    Returns:
        The command, or None when the text is not one.
    """
    text = text.strip()
    if text == "/bail":
        return BailCommand()

    head, _, rest = text.partition(" ")
    rest = rest.strip()

    if head in MERGE_COMMANDS:
        return MergeCommand(MERGE_COMMANDS[head], rest) if rest else None

    if head.startswith("@") and len(head) > 1 and rest:
        return FollowUpCommand(label=head[1:], text=rest)

    return None
