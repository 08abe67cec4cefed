"""Tests for kaleidoscope.shell module."""

from __future__ import annotations

from pathlib import Path

import pytest

from kaleidoscope.exceptions import GitError, ShellExecutionError, ShellTimeoutError
from kaleidoscope.shell import CommandResult, LocalRunner


@pytest.mark.asyncio
async def test_captures_output(tmp_path: Path):
    runner = LocalRunner()
    result = await runner(["sh", "-c", "pwd -P; echo oops >&2"], cwd=tmp_path)

    assert result.ok
    assert result.stdout.strip() == str(tmp_path.resolve())
    assert result.stderr.strip() == "oops"
    assert result.argv == ("sh", "-c", "pwd -P; echo oops >&2")


@pytest.mark.asyncio
async def test_nonzero_exit_is_not_raised():
    result = await LocalRunner()(["sh", "-c", "exit 3"])
    assert not result.ok
    assert result.returncode == 3


@pytest.mark.asyncio
async def test_timeout():
    with pytest.raises(ShellTimeoutError) as exc_info:
        await LocalRunner(default_timeout=0.2)(["sleep", "5"])
    assert exc_info.value.timeout == 0.2


@pytest.mark.asyncio
async def test_missing_program():
    with pytest.raises(ShellExecutionError, match="Command not found"):
        await LocalRunner()(["definitely-not-a-real-program-kaleidoscope"])


@pytest.mark.asyncio
async def test_empty_command():
    with pytest.raises(ShellExecutionError):
        await LocalRunner()([])


def test_check():
    ok = CommandResult(argv=("git", "status"), returncode=0)
    assert ok.check() is ok

    failed = CommandResult(argv=("git", "commit", "-m", "two words"), returncode=1, stderr="nothing to commit\n")
    with pytest.raises(GitError) as exc_info:
        failed.check(GitError)
    assert str(exc_info.value) == "git commit -m 'two words' exited with 1: nothing to commit"
    assert exc_info.value.returncode == 1
