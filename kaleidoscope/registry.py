"""Instance registry.

Tracks every launched agent instance by label: its provider/model binding,
tmux pane, git worktree and the prompts it has been given.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path

from kaleidoscope.exceptions import DuplicateLabelError, UnknownInstanceError


class InstanceState(str, Enum):
    """Lifecycle of an instance."""

    PROVISIONED = "provisioned"  # worktree created, no pane yet
    RUNNING = "running"  # pane open, agent started
    MERGED = "merged"  # picked by /next or /wrap
    DISCARDED = "discarded"  # torn down without merging


@dataclass(frozen=True)
class Workspace:
    """A git worktree checked out to its own temporary branch."""

    name: str
    path: Path
    branch: str


@dataclass
class Instance:
    """One launched agent run.

    Attributes:
        label: Session-unique name used in ``@label`` and ``/next label``.
        base_model: Model name without the duplicate suffix.
        provider: Provider the model was launched under.
        pane_id: tmux pane identifier (e.g. ``%12``).
        workspace: Worktree the agent works in.
        prompt_log: Prompts sent to this instance, oldest first.
        state: Lifecycle state.
    """

    label: str
    base_model: str
    provider: str
    pane_id: str
    workspace: Workspace
    prompt_log: list[str] = field(default_factory=list)
    state: InstanceState = InstanceState.PROVISIONED

    @property
    def model_id(self) -> str:
        return f"{self.provider}/{self.base_model}"

    def append_prompt(self, text: str) -> None:
        self.prompt_log.append(text)

    def snapshot(self) -> Instance:
        """Detached copy safe to hand to an async action."""
        return replace(self, prompt_log=list(self.prompt_log))


class InstanceRegistry:
    """Registered instances in launch order.

    Labels of instances that were torn down stay reserved so later
    launches in the same session never reuse them.
    """

    def __init__(self) -> None:
        self._instances: dict[str, Instance] = {}
        self._retired: set[str] = set()

    def register(self, instance: Instance) -> None:
        """Add an instance.

        Raises:
            DuplicateLabelError: If the label is active or was used earlier.
        """
        if instance.label in self._instances or instance.label in self._retired:
            raise DuplicateLabelError(instance.label)
        self._instances[instance.label] = instance

    def get(self, label: str) -> Instance | None:
        return self._instances.get(label)

    def require(self, label: str) -> Instance:
        """Get an instance or raise UnknownInstanceError."""
        instance = self._instances.get(label)
        if instance is None:
            raise UnknownInstanceError(label)
        return instance

    def labels(self) -> list[str]:
        return list(self._instances)

    @property
    def taken_labels(self) -> set[str]:
        """Labels that may not be handed out again."""
        return set(self._instances) | self._retired

    def snapshot(self) -> tuple[Instance, ...]:
        """Detached copies of all instances, in launch order."""
        return tuple(instance.snapshot() for instance in self._instances.values())

    def retire_all(self, merged: str | None = None) -> list[Instance]:
        """Remove every instance, marking ``merged`` as merged and the rest discarded.

        Returns:
            The removed instances.
        """
        removed = list(self._instances.values())
        for instance in removed:
            instance.state = InstanceState.MERGED if instance.label == merged else InstanceState.DISCARDED
        self._retired.update(self._instances)
        self._instances.clear()
        return removed

    def __contains__(self, label: object) -> bool:
        return label in self._instances

    def __len__(self) -> int:
        return len(self._instances)

    def __iter__(self) -> Iterator[Instance]:
        return iter(list(self._instances.values()))
