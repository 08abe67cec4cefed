"""Typed messages crossing the async boundary.

The session emits an action *request* when input asks for a side effect.
The TUI runs the matching Orchestrator action as an asyncio task, and the
task hands a *completion* back to the session. Requests carry detached
copies of everything the action needs so a running action never reads
live session state.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from kaleidoscope.registry import Instance
    from kaleidoscope.selection import LaunchUnit


def new_event_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8]}"


@dataclass
class Event:
    """Base class for requests and completions.

    Attributes:
        event_id: Correlates a request with its completion.
        timestamp: When the event was created.
    """

    event_id: str
    timestamp: datetime = field(default_factory=datetime.now)


class MergeKind(str, Enum):
    """What happens to the session after a merge."""

    NEXT = "next"  # session ends
    WRAP = "wrap"  # continue with a new task


# =============================================================================
# Requests
# =============================================================================


@dataclass
class LaunchRequest(Event):
    """Provision one worktree and pane per unit.

    Attributes:
        branch: Feature branch the worktrees fork from.
        task: Task name, part of each workspace identifier.
        prompt: Prompt given to every agent.
        provider: Active provider.
        units: Labelled provider/model bindings, in launch order.
        save_defaults: Persist ``provider`` and ``defaults`` before launching.
        defaults: ``provider -> models`` to persist when ``save_defaults``.
    """

    branch: str = ""
    task: str = ""
    prompt: str = ""
    provider: str = ""
    units: tuple[LaunchUnit, ...] = ()
    save_defaults: bool = False
    defaults: dict[str, list[str]] = field(default_factory=dict)


@dataclass
class FollowUpRequest(Event):
    """Interrupt an instance's pane and re-run its agent with new text."""

    instance: Instance | None = None
    text: str = ""


@dataclass
class MergeRequest(Event):
    """Commit, merge and push the winner, then clean up every instance."""

    kind: MergeKind = MergeKind.NEXT
    branch: str = ""
    winner: Instance | None = None
    instances: tuple[Instance, ...] = ()


@dataclass
class BailRequest(Event):
    """Discard every instance without merging."""

    instances: tuple[Instance, ...] = ()


@dataclass
class CleanupRequest(Event):
    """Tear down every instance; sent on cancel."""

    instances: tuple[Instance, ...] = ()


ActionRequest = LaunchRequest | FollowUpRequest | MergeRequest | BailRequest | CleanupRequest


# =============================================================================
# Completions
# =============================================================================


@dataclass
class LaunchComplete(Event):
    """Result of a launch.

    Attributes:
        launched: Instances whose worktree and pane both came up.
        requested: Number of units the launch attempted.
        error: Last per-unit failure, if any.
    """

    launched: tuple[Instance, ...] = ()
    requested: int = 0
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return bool(self.launched)


@dataclass
class FollowUpComplete(Event):
    label: str = ""
    error: str | None = None


@dataclass
class CleanupReport:
    """Per-resource teardown outcome shared by merge, bail and cleanup."""

    panes_killed: int = 0
    worktrees_removed: int = 0
    branches_deleted: int = 0
    errors: list[str] = field(default_factory=list)


@dataclass
class MergeComplete(Event):
    """Result of /next or /wrap.

    ``aborted`` means the feature branch checkout failed and nothing was
    merged or cleaned up; the session stays in Iteration.
    """

    kind: MergeKind = MergeKind.NEXT
    label: str = ""
    merged: bool = False
    pushed: bool = False
    aborted: bool = False
    error: str | None = None
    cleanup: CleanupReport = field(default_factory=CleanupReport)


@dataclass
class BailComplete(Event):
    cleanup: CleanupReport = field(default_factory=CleanupReport)


@dataclass
class CleanupComplete(Event):
    cleanup: CleanupReport = field(default_factory=CleanupReport)


ActionComplete = LaunchComplete | FollowUpComplete | MergeComplete | BailComplete | CleanupComplete


def failed_completion(request: ActionRequest, error: str) -> ActionComplete:
    """The completion reported for ``request`` when its action raised.

    Launch, follow-up and merge failures leave the session where it was;
    bail and cleanup still end it.
    """
    match request:
        case LaunchRequest():
            return LaunchComplete(event_id=request.event_id, requested=len(request.units), error=error)
        case FollowUpRequest():
            label = request.instance.label if request.instance else ""
            return FollowUpComplete(event_id=request.event_id, label=label, error=error)
        case MergeRequest():
            label = request.winner.label if request.winner else ""
            return MergeComplete(event_id=request.event_id, kind=request.kind, label=label, aborted=True, error=error)
        case BailRequest():
            return BailComplete(event_id=request.event_id, cleanup=CleanupReport(errors=[error]))
    return CleanupComplete(event_id=request.event_id, cleanup=CleanupReport(errors=[error]))
