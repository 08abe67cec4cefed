"""Tests for kaleidoscope.registry module."""

from __future__ import annotations

from pathlib import Path

import pytest

from kaleidoscope.exceptions import DuplicateLabelError, UnknownInstanceError
from kaleidoscope.registry import Instance, InstanceRegistry, InstanceState, Workspace


def make_instance(label: str, model: str | None = None) -> Instance:
    return Instance(
        label=label,
        base_model=model or label,
        provider="OpenAI",
        pane_id=f"%{label}",
        workspace=Workspace(name=f"repo_{label}", path=Path("/tmp") / f"repo_{label}", branch=f"repo_{label}"),
        state=InstanceState.RUNNING,
    )


def test_register_keeps_launch_order():
    registry = InstanceRegistry()
    for label in ("gpt-5", "gpt-5-2", "o3"):
        registry.register(make_instance(label))

    assert registry.labels() == ["gpt-5", "gpt-5-2", "o3"]
    assert "o3" in registry
    assert len(registry) == 3
    assert [i.label for i in registry] == ["gpt-5", "gpt-5-2", "o3"]


def test_register_duplicate_raises():
    registry = InstanceRegistry()
    registry.register(make_instance("o3"))
    with pytest.raises(DuplicateLabelError):
        registry.register(make_instance("o3"))


def test_require_unknown_raises():
    registry = InstanceRegistry()
    assert registry.get("nope") is None
    with pytest.raises(UnknownInstanceError, match="Unknown instance: nope"):
        registry.require("nope")


def test_snapshot_is_detached():
    registry = InstanceRegistry()
    registry.register(make_instance("o3"))

    (copy,) = registry.snapshot()
    copy.append_prompt("changed")
    assert registry.require("o3").prompt_log == []


def test_retire_all_marks_states_and_reserves_labels():
    registry = InstanceRegistry()
    first, second = make_instance("a"), make_instance("b")
    registry.register(first)
    registry.register(second)

    removed = registry.retire_all(merged="b")

    assert removed == [first, second]
    assert first.state is InstanceState.DISCARDED
    assert second.state is InstanceState.MERGED
    assert len(registry) == 0
    assert registry.taken_labels == {"a", "b"}
    with pytest.raises(DuplicateLabelError):
        registry.register(make_instance("a"))


def test_retire_all_on_empty_registry():
    registry = InstanceRegistry()
    assert registry.retire_all() == []
