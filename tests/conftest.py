"""Fixtures for kaleidoscope tests."""

from __future__ import annotations

import os
from collections.abc import Generator, Sequence
from pathlib import Path

import pytest

from kaleidoscope.actions import Orchestrator
from kaleidoscope.config import ConfigManager
from kaleidoscope.git import Git
from kaleidoscope.persistence import ProjectState
from kaleidoscope.selection import ProviderCatalog
from kaleidoscope.shell import CommandResult
from kaleidoscope.tmux import Tmux


def _contains(argv: tuple[str, ...], pattern: tuple[str, ...]) -> bool:
    """``pattern`` appears as a contiguous run inside ``argv``."""
    n = len(pattern)
    return any(argv[i : i + n] == pattern for i in range(len(argv) - n + 1))


class FakeRunner:
    """Records every command and answers git/tmux like a healthy system.

    ``split-window`` returns fresh pane ids ``%1``, ``%2``, ...; the current
    pane is ``%0``. Use ``fail`` to make matching commands exit non-zero.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, ...]] = []
        self.cwds: list[Path | None] = []
        self._failures: list[tuple[tuple[str, ...], str]] = []
        self._outputs: list[tuple[tuple[str, ...], str]] = []
        self._next_pane = 0

    def fail(self, *pattern: str, stderr: str = "boom") -> None:
        self._failures.append((pattern, stderr))

    def respond(self, *pattern: str, stdout: str) -> None:
        self._outputs.append((pattern, stdout))

    def commands(self, program: str) -> list[tuple[str, ...]]:
        """Recorded argv lists for ``program`` without the program name."""
        return [call[1:] for call in self.calls if call[0] == program]

    def ran(self, *pattern: str) -> bool:
        return any(_contains(call, pattern) for call in self.calls)

    async def __call__(
        self,
        argv: Sequence[str],
        *,
        cwd: Path | None = None,
        timeout: float | None = None,
    ) -> CommandResult:
        argv = tuple(argv)
        self.calls.append(argv)
        self.cwds.append(cwd)

        for pattern, stderr in self._failures:
            if _contains(argv, pattern):
                return CommandResult(argv, 1, "", stderr)
        for pattern, stdout in self._outputs:
            if _contains(argv, pattern):
                return CommandResult(argv, 0, stdout)

        if argv[:2] == ("tmux", "split-window"):
            self._next_pane += 1
            return CommandResult(argv, 0, f"%{self._next_pane}\n")
        if argv[:3] == ("tmux", "display-message", "-p"):
            return CommandResult(argv, 0, "%0\n")
        return CommandResult(argv, 0)


@pytest.fixture
def temp_home(tmp_path: Path) -> Path:
    """Create a temporary home directory."""
    home = tmp_path / "home"
    home.mkdir()
    return home


@pytest.fixture
def temp_config_dir(temp_home: Path) -> Path:
    """Create a temporary config directory under fake home."""
    config_dir = temp_home / ".config" / "kaleidoscope"
    config_dir.mkdir(parents=True)
    return config_dir


@pytest.fixture
def temp_project_dir(tmp_path: Path) -> Path:
    """Create a temporary project directory."""
    project_dir = tmp_path / "project"
    project_dir.mkdir()
    return project_dir


@pytest.fixture
def temp_state_dir(tmp_path: Path) -> Path:
    state_dir = tmp_path / "state"
    state_dir.mkdir()
    return state_dir


@pytest.fixture
def config_manager(temp_config_dir: Path, temp_project_dir: Path) -> ConfigManager:
    """Create a ConfigManager with temp directories."""
    return ConfigManager(config_dir=temp_config_dir, project_dir=temp_project_dir)


@pytest.fixture
def clean_env() -> Generator[None, None, None]:
    """Clean KALEIDOSCOPE_* environment variables before and after test."""
    saved_vars: dict[str, str] = {}
    for key in list(os.environ.keys()):
        if key.startswith("KALEIDOSCOPE_"):
            saved_vars[key] = os.environ.pop(key)

    yield

    for key in list(os.environ.keys()):
        if key.startswith("KALEIDOSCOPE_"):
            del os.environ[key]
    for key, value in saved_vars.items():
        os.environ[key] = value


@pytest.fixture
def catalog() -> ProviderCatalog:
    return ProviderCatalog.from_mapping({
        "OpenAI": ["gpt-5", "gpt-4.1", "o3"],
        "github-copilot": ["claude-sonnet-4", "gpt-5"],
    })


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def project_state(temp_project_dir: Path, temp_state_dir: Path) -> ProjectState:
    return ProjectState(temp_project_dir, temp_state_dir)


@pytest.fixture
def orchestrator(runner: FakeRunner, project_state: ProjectState, tmp_path: Path) -> Orchestrator:
    return Orchestrator(
        Git(runner, tmp_path / "repo"),
        Tmux(runner),
        project_state,
        repo_name="repo",
        worktree_root=tmp_path,
        run_command="npm test",
    )
