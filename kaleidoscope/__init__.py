"""Kaleidoscope - run coding agents side by side in tmux and git worktrees.

The CLI (``kaleidoscope.cli``) is the usual entry point. The pieces below
are enough to drive a run without the TUI:

    config = ConfigManager().load()
    orchestrator = Orchestrator(git, tmux, state, repo_name=..., worktree_root=...)
    completion = await orchestrator.dispatch(request)
"""

from __future__ import annotations

import importlib.metadata

from kaleidoscope.actions import Orchestrator
from kaleidoscope.config import ConfigManager, KaleidoscopeConfig
from kaleidoscope.exceptions import KaleidoscopeError

try:
    __version__ = importlib.metadata.version(__name__)
except importlib.metadata.PackageNotFoundError:
    __version__ = "0.0.0"

__all__ = [
    "ConfigManager",
    "KaleidoscopeConfig",
    "KaleidoscopeError",
    "Orchestrator",
    "__version__",
]
