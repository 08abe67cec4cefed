"""Configuration management for kaleidoscope.

Configuration is loaded with project-level priority (no merging):

1. **config.toml**:
   - Global: ~/.config/kaleidoscope/config.toml
   - Project: .kaleidoscope.toml in the project root (overrides global entirely)
   - Contains: providers, agent, git, history, ui

2. **Environment variables** (KALEIDOSCOPE_*):
   - Scalar overrides merged on top of whichever file was loaded
   - The provider catalog can only be set from a file

The per-project defaults file ``.kaleidoscope`` (JSON, written by
``--set-default``) is persisted state, not configuration; see
kaleidoscope.persistence.
"""

from __future__ import annotations

import tempfile
import tomllib
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from kaleidoscope.agent import DEFAULT_AGENT_COMMAND
from kaleidoscope.history import HISTORY_MAX
from kaleidoscope.selection import ProviderCatalog

DEFAULT_PROVIDERS: dict[str, list[str]] = {
    "github-copilot": [
        "claude-sonnet-4.5",
        "claude-haiku-4.5",
        "gpt-5-mini",
        "gpt-5",
        "gemini-2.0-flash-001",
        "claude-opus-4",
        "grok-code-fast-1",
        "claude-3.5-sonnet",
        "o3-mini",
        "gpt-5-codex",
        "gpt-4o",
        "gpt-4.1",
        "o4-mini",
        "claude-opus-41",
        "claude-3.7-sonnet",
        "gemini-2.5-pro",
        "o3",
        "claude-sonnet-4",
        "claude-3.7-sonnet-thought",
    ],
    "OpenAI": ["gpt-5", "gpt-5-codex", "gpt-5-mini"],
}

DEFAULT_PROTECTED_BRANCHES = ["main", "master", "dev", "develop", "development"]

DEFAULT_SPINNER_FRAMES = ["⠋", "⠙", "⠹", "⠸", "⠼", "⠴", "⠦", "⠧", "⠇", "⠏"]


# =============================================================================
# Configuration Models
# =============================================================================


class AgentConfig(BaseModel):
    """How the coding agent is started in each pane."""

    command: str = DEFAULT_AGENT_COMMAND
    """Command template; ``{model}`` becomes provider/model and ``{prompt}`` the prompt."""

    shell: str = "bash"
    """Login shell used to run the pane script (invoked as ``<shell> -lc``)."""


class GitConfig(BaseModel):
    """Repository and worktree settings."""

    remote: str = "origin"
    """Remote the feature branch is pushed to after a merge."""

    worktree_root: str | None = None
    """Directory worktrees are created in. Defaults to the repository's parent directory."""

    command_timeout: float = 120.0
    """Seconds before a git or tmux command is terminated."""


class HistoryConfig(BaseModel):
    """Prompt history settings."""

    max_entries: int = Field(default=HISTORY_MAX, ge=1)
    """Entries kept per project."""

    state_dir: str | None = None
    """Directory holding kaleidoscope-history/. Defaults to the system temp dir."""

    @property
    def resolved_state_dir(self) -> Path:
        if self.state_dir:
            return Path(self.state_dir).expanduser()
        return Path(tempfile.gettempdir())


class UIConfig(BaseModel):
    """TUI presentation settings."""

    spinner_interval: float = 0.1
    """Seconds between spinner frames."""

    spinner_frames: list[str] = Field(default_factory=lambda: list(DEFAULT_SPINNER_FRAMES))

    protected_branches: list[str] = Field(default_factory=lambda: list(DEFAULT_PROTECTED_BRANCHES))
    """Branches never offered as the default feature branch."""


class KaleidoscopeConfig(BaseModel):
    """Complete kaleidoscope configuration."""

    providers: dict[str, list[str]] = Field(default_factory=lambda: {k: list(v) for k, v in DEFAULT_PROVIDERS.items()})
    """Ordered provider catalog: provider -> ordered model names."""

    agent: AgentConfig = Field(default_factory=AgentConfig)
    git: GitConfig = Field(default_factory=GitConfig)
    history: HistoryConfig = Field(default_factory=HistoryConfig)
    ui: UIConfig = Field(default_factory=UIConfig)

    @field_validator("providers")
    @classmethod
    def _non_empty_providers(cls, value: dict[str, list[str]]) -> dict[str, list[str]]:
        if not value:
            raise ValueError("at least one provider must be configured")
        return value

    def catalog(self) -> ProviderCatalog:
        return ProviderCatalog.from_mapping(self.providers)

    def worktree_root(self, repo_root: Path) -> Path:
        """Directory new worktrees are placed in."""
        if self.git.worktree_root:
            root = Path(self.git.worktree_root).expanduser()
            return root if root.is_absolute() else repo_root / root
        return repo_root.parent


# =============================================================================
# Environment Settings (using pydantic-settings)
# =============================================================================


class EnvSettings(BaseSettings):
    """Scalar overrides from KALEIDOSCOPE_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="KALEIDOSCOPE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # Agent
    agent_command: str | None = None
    shell: str | None = None

    # Git
    remote: str | None = None
    worktree_root: str | None = None
    command_timeout: float | None = None

    # History
    history_max: int | None = None
    state_dir: str | None = None

    # UI
    spinner_interval: float | None = None


# =============================================================================
# ConfigManager
# =============================================================================


class ConfigManager:
    """Loads configuration from global, project, and environment sources."""

    DEFAULT_CONFIG_DIR = Path.home() / ".config" / "kaleidoscope"
    PROJECT_CONFIG_FILE = ".kaleidoscope.toml"

    def __init__(
        self,
        config_dir: Path | None = None,
        project_dir: Path | None = None,
    ) -> None:
        self._config_dir = config_dir or self.DEFAULT_CONFIG_DIR
        self._project_dir = project_dir or Path.cwd()
        self._config: KaleidoscopeConfig | None = None
        self._loaded_sources: list[str] = []

    @property
    def config(self) -> KaleidoscopeConfig:
        """Get current configuration, loading if necessary."""
        if self._config is None:
            self._config = self.load()
        return self._config

    @property
    def loaded_sources(self) -> list[str]:
        return self._loaded_sources.copy()

    def get_global_config_file(self) -> Path:
        return self._config_dir / "config.toml"

    def get_project_config_file(self) -> Path:
        return self._project_dir / self.PROJECT_CONFIG_FILE

    def load(self) -> KaleidoscopeConfig:
        """Load configuration from all sources.

        Priority (higher wins):
        1. Environment overrides (merged on top)
        2. Project .kaleidoscope.toml, else global config.toml (no merge)
        """
        self._loaded_sources = []
        merged: dict[str, Any] = {}

        project_file = self.get_project_config_file()
        global_file = self.get_global_config_file()

        for config_file in (project_file, global_file):
            if config_file.exists():
                with open(config_file, "rb") as f:
                    merged = tomllib.load(f)
                self._loaded_sources.append(str(config_file))
                break

        env_overrides = self._load_env_overrides()
        if env_overrides:
            merged = _deep_merge(merged, env_overrides)
            self._loaded_sources.append("environment")

        self._config = KaleidoscopeConfig.model_validate(merged)
        return self._config

    def reload(self) -> KaleidoscopeConfig:
        """Force reload configuration."""
        self._config = None
        return self.load()

    def _load_env_overrides(self) -> dict[str, Any]:
        env = EnvSettings()
        overrides: dict[str, Any] = {}

        agent: dict[str, Any] = {}
        if env.agent_command is not None:
            agent["command"] = env.agent_command
        if env.shell is not None:
            agent["shell"] = env.shell
        if agent:
            overrides["agent"] = agent

        git: dict[str, Any] = {}
        if env.remote is not None:
            git["remote"] = env.remote
        if env.worktree_root is not None:
            git["worktree_root"] = env.worktree_root
        if env.command_timeout is not None:
            git["command_timeout"] = env.command_timeout
        if git:
            overrides["git"] = git

        history: dict[str, Any] = {}
        if env.history_max is not None:
            history["max_entries"] = env.history_max
        if env.state_dir is not None:
            history["state_dir"] = env.state_dir
        if history:
            overrides["history"] = history

        if env.spinner_interval is not None:
            overrides["ui"] = {"spinner_interval": env.spinner_interval}

        return overrides


# =============================================================================
# Internal Utilities
# =============================================================================


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result
