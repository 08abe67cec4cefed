"""Persisted per-project state: launch defaults and prompt history.

Both are keyed off one resolved project directory:

- Defaults live in ``<project>/.kaleidoscope`` so they can be committed and
  shared. They hold the default provider, the models selected per provider
  (repeated for multiplicity) and per-model choice counters bumped by
  /next and /wrap.
- History is private to the user and lives in
  ``<state_dir>/kaleidoscope-history/<sha1 of project path>.json``. A legacy
  ``<project>/.kaleidoscope_history.json`` is migrated on first load.

Read and write failures are logged at debug level and otherwise ignored;
callers get empty state back.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Iterable
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from kaleidoscope.history import HISTORY_MAX
from kaleidoscope.logging import get_logger

logger = get_logger(__name__)

DEFAULTS_FILE_NAME = ".kaleidoscope"
LEGACY_HISTORY_FILE_NAME = ".kaleidoscope_history.json"
HISTORY_DIR_NAME = "kaleidoscope-history"


class Defaults(BaseModel):
    """Contents of the ``.kaleidoscope`` defaults file."""

    provider: str = ""
    models: dict[str, list[str]] = Field(default_factory=dict)
    choices: dict[str, dict[str, int]] = Field(default_factory=dict)


def history_key(project_dir: Path) -> str:
    """SHA-1 hex digest of the absolute project path."""
    return hashlib.sha1(str(project_dir.resolve()).encode()).hexdigest()


class ProjectState:
    """Load and save the persisted state of one project."""

    def __init__(self, project_dir: Path, state_dir: Path, max_history: int = HISTORY_MAX) -> None:
        self.project_dir = project_dir.resolve()
        self.state_dir = state_dir
        self.max_history = max_history

    @property
    def defaults_file(self) -> Path:
        return self.project_dir / DEFAULTS_FILE_NAME

    @property
    def history_file(self) -> Path:
        return self.state_dir / HISTORY_DIR_NAME / f"{history_key(self.project_dir)}.json"

    @property
    def legacy_history_file(self) -> Path:
        return self.project_dir / LEGACY_HISTORY_FILE_NAME

    # =========================================================================
    # Defaults
    # =========================================================================

    def load_defaults(self) -> Defaults | None:
        """Read the defaults file, or None when missing or unreadable."""
        try:
            return Defaults.model_validate_json(self.defaults_file.read_bytes())
        except FileNotFoundError:
            return None
        except (OSError, ValidationError) as e:
            logger.debug("Ignoring unreadable defaults file %s: %s", self.defaults_file, e)
            return None

    def _write_defaults(self, defaults: Defaults) -> bool:
        try:
            self.defaults_file.write_text(defaults.model_dump_json(indent=2))
        except OSError as e:
            logger.debug("Failed to write defaults file %s: %s", self.defaults_file, e)
            return False
        return True

    def save_defaults(self, provider: str, models: dict[str, list[str]]) -> bool:
        """Save the provider and selections, keeping existing choice counters.

        Args:
            provider: Default provider.
            models: ``provider -> models``, a model repeated once per instance.

        Returns:
            Whether the file was written.
        """
        existing = self.load_defaults()
        defaults = Defaults(
            provider=provider,
            models={p: list(m) for p, m in models.items() if m},
            choices=existing.choices if existing else {},
        )
        return self._write_defaults(defaults)

    def increment_choice(self, provider: str, model: str) -> bool:
        """Count one more win for ``provider/model``."""
        defaults = self.load_defaults() or Defaults(provider=provider)
        counters = defaults.choices.setdefault(provider, {})
        counters[model] = counters.get(model, 0) + 1
        return self._write_defaults(defaults)

    # =========================================================================
    # History
    # =========================================================================

    def load_history(self) -> list[str]:
        """Read history, migrating the legacy per-project file if needed."""
        entries = self._read_history(self.history_file)
        if entries is not None:
            return entries

        legacy = self._read_history(self.legacy_history_file)
        if legacy is None:
            return []
        if self.save_history(legacy):
            try:
                self.legacy_history_file.unlink()
            except OSError as e:
                logger.debug("Failed to remove legacy history %s: %s", self.legacy_history_file, e)
        return legacy

    def save_history(self, entries: Iterable[str]) -> bool:
        """Write history, most recent first, truncated to ``max_history``."""
        data = list(entries)[: self.max_history]
        try:
            self.history_file.parent.mkdir(parents=True, exist_ok=True)
            self.history_file.write_text(json.dumps(data, indent=2))
        except OSError as e:
            logger.debug("Failed to write history %s: %s", self.history_file, e)
            return False
        return True

    def _read_history(self, path: Path) -> list[str] | None:
        try:
            data = json.loads(path.read_text())
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            logger.debug("Ignoring unreadable history %s: %s", path, e)
            return None
        if not isinstance(data, list):
            return None
        return [entry for entry in data if isinstance(entry, str)][: self.max_history]
