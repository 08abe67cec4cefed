"""Tests for the git and tmux wrappers."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from kaleidoscope.exceptions import GitError, TmuxError
from kaleidoscope.git import Git
from kaleidoscope.tmux import Tmux, inside_tmux

if TYPE_CHECKING:
    from tests.conftest import FakeRunner


def test_inside_tmux():
    assert inside_tmux({"TMUX": "/tmp/tmux-1000/default,123,0"})
    assert not inside_tmux({})
    assert not inside_tmux({"TMUX": ""})


@pytest.mark.asyncio
async def test_ensure_branch_creates(runner: FakeRunner, tmp_path: Path):
    git = Git(runner, tmp_path)
    assert await git.ensure_branch("feature") is True
    assert runner.commands("git") == [("checkout", "-b", "feature")]
    assert runner.cwds == [tmp_path]


@pytest.mark.asyncio
async def test_ensure_branch_falls_back_to_checkout(runner: FakeRunner, tmp_path: Path):
    runner.fail("checkout", "-b", stderr="already exists")
    git = Git(runner, tmp_path)
    assert await git.ensure_branch("feature") is False
    assert runner.commands("git")[-1] == ("checkout", "feature")


@pytest.mark.asyncio
async def test_worktree_commands_use_dash_c(runner: FakeRunner, tmp_path: Path):
    git = Git(runner, tmp_path)
    worktree = tmp_path / "wt"
    await git.stage_all(worktree)
    await git.commit(worktree, "msg")
    assert runner.commands("git") == [
        ("-C", str(worktree), "add", "."),
        ("-C", str(worktree), "commit", "-m", "msg"),
    ]


@pytest.mark.asyncio
async def test_git_failure_raises(runner: FakeRunner, tmp_path: Path):
    runner.fail("push", stderr="rejected")
    with pytest.raises(GitError, match="rejected"):
        await Git(runner, tmp_path).push("origin", "main")


@pytest.mark.asyncio
async def test_split_window(runner: FakeRunner, tmp_path: Path):
    tmux = Tmux(runner, shell="zsh")
    assert await tmux.split_window("echo hi", cwd=tmp_path) == "%1"
    assert runner.commands("tmux") == [
        ("split-window", "-v", "-P", "-F", "#{pane_id}", "-c", str(tmp_path), "zsh", "-lc", "echo hi"),
    ]


@pytest.mark.asyncio
async def test_send_text_presses_enter(runner: FakeRunner):
    await Tmux(runner).send_text("%3", "keep going")
    assert runner.commands("tmux") == [
        ("send-keys", "-t", "%3", "-l", "keep going"),
        ("send-keys", "-t", "%3", "Enter"),
    ]


@pytest.mark.asyncio
async def test_tmux_failure_raises(runner: FakeRunner):
    runner.fail("kill-pane", stderr="can't find pane")
    with pytest.raises(TmuxError):
        await Tmux(runner).kill_pane("%9")
