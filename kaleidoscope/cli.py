"""CLI entry point for kaleidoscope.

Checks that we run inside tmux, loads configuration and persisted project
state, then hands the terminal to the TUI.
"""

from __future__ import annotations

import asyncio
import sys
import tomllib
from pathlib import Path

import click
from pydantic import ValidationError

from kaleidoscope import __version__
from kaleidoscope.actions import Orchestrator
from kaleidoscope.app.session import Session
from kaleidoscope.config import ConfigManager, KaleidoscopeConfig
from kaleidoscope.exceptions import GitError, KaleidoscopeError, NotInsideTmuxError
from kaleidoscope.git import Git
from kaleidoscope.history import HistoryStore
from kaleidoscope.logging import configure_logging, get_logger
from kaleidoscope.persistence import ProjectState
from kaleidoscope.selection import SelectionTable
from kaleidoscope.shell import LocalRunner
from kaleidoscope.tmux import Tmux, inside_tmux

logger = get_logger(__name__)


# =============================================================================
# Startup
# =============================================================================


async def initial_branch(git: Git, protected: list[str]) -> str:
    """The checked-out branch, unless it is protected or HEAD is detached."""
    try:
        branch = await git.current_branch()
    except GitError as e:
        logger.debug("Could not read current branch: %s", e)
        return ""
    if branch == "HEAD" or branch in protected:
        return ""
    return branch


def build_session(
    config: KaleidoscopeConfig,
    state: ProjectState,
    *,
    branch: str = "",
    save_defaults: bool = False,
) -> Session:
    """Session seeded with saved defaults and the project's prompt history."""
    catalog = config.catalog()
    selection = SelectionTable(catalog)
    provider: str | None = None

    defaults = state.load_defaults()
    if defaults is not None:
        provider = defaults.provider or None
        for name, models in defaults.models.items():
            selection.apply_defaults(name, models)

    history = HistoryStore(state.load_history(), max_entries=config.history.max_entries)
    return Session(
        catalog,
        selection=selection,
        history=history,
        provider=provider,
        branch=branch,
        save_defaults=save_defaults,
        on_history_change=state.save_history,
    )


async def _run_tui(config: KaleidoscopeConfig, run_command: str, set_default: bool) -> None:
    """Run the TUI application."""
    from kaleidoscope.app import KaleidoscopeApp

    timeout = config.git.command_timeout
    runner = LocalRunner(default_timeout=timeout)
    project_dir = Path.cwd()

    git = Git(runner, project_dir, timeout=timeout)
    repo_root = await git.repo_root()
    state = ProjectState(project_dir, config.history.resolved_state_dir, config.history.max_entries)

    session = build_session(
        config,
        state,
        branch=await initial_branch(git, config.ui.protected_branches),
        save_defaults=set_default,
    )
    orchestrator = Orchestrator(
        git,
        Tmux(runner, shell=config.agent.shell, timeout=timeout),
        state,
        repo_name=repo_root.name,
        worktree_root=config.worktree_root(repo_root),
        run_command=run_command,
        agent_command=config.agent.command,
        remote=config.git.remote,
    )

    logger.info("Starting in %s (worktrees under %s)", repo_root, orchestrator.worktree_root)
    await KaleidoscopeApp(session=session, orchestrator=orchestrator, ui=config.ui).run()


# =============================================================================
# CLI Entry Point
# =============================================================================


@click.command()
@click.option(
    "--run",
    "run_command",
    required=True,
    help="Command run in each pane after the agent exits (e.g. 'npm run dev').",
)
@click.option("--set-default", is_flag=True, help="Save the provider and selected models as project defaults")
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose logging")
@click.version_option(version=__version__, prog_name="kaleidoscope")
def cli(run_command: str, set_default: bool, verbose: bool) -> None:
    """Kaleidoscope - run several coding agents side by side.

    Each selected model gets its own git worktree and tmux pane. Inside the
    TUI, use:

    \b
      @<label> <text>  - Send a follow-up prompt to one instance
      /next <label>    - Merge <label>, clean up, and exit
      /wrap <label>    - Merge <label>, clean up, and start a new task
      /bail            - Discard everything and exit
    """
    configure_logging(verbose=verbose)

    if not inside_tmux():
        raise click.ClickException(str(NotInsideTmuxError()))

    config_manager = ConfigManager()
    try:
        config = config_manager.load()
    except (OSError, tomllib.TOMLDecodeError, ValidationError) as e:
        raise click.ClickException(f"Invalid configuration: {e}") from e
    if config_manager.loaded_sources:
        logger.debug("Configuration loaded from %s", ", ".join(config_manager.loaded_sources))

    try:
        asyncio.run(_run_tui(config, run_command, set_default))
    except KeyboardInterrupt:
        click.echo("\nGoodbye!")
        sys.exit(130)
    except KaleidoscopeError as e:
        logger.debug("Fatal error", exc_info=True)
        raise click.ClickException(str(e)) from e


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
