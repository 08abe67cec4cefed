"""Orchestration actions.

Each action takes a request from kaleidoscope.events, drives git and tmux,
and returns the matching completion. Actions never touch session state;
everything they need travels in the request.

Failure policy:
- Launch keeps going past a failed unit and reports the last error.
- Merge aborts without cleanup if anything fails before the feature
  branch is checked out. After that point cleanup always runs.
- Teardown is best effort: every pane, worktree and branch is attempted
  and failures are collected in the CleanupReport.
"""

from __future__ import annotations

import re
from collections.abc import Awaitable, Iterable
from pathlib import Path

from kaleidoscope.agent import DEFAULT_AGENT_COMMAND, build_agent_command, build_pane_script
from kaleidoscope.events import (
    ActionComplete,
    ActionRequest,
    BailComplete,
    BailRequest,
    CleanupComplete,
    CleanupReport,
    CleanupRequest,
    FollowUpComplete,
    FollowUpRequest,
    LaunchComplete,
    LaunchRequest,
    MergeComplete,
    MergeKind,
    MergeRequest,
)
from kaleidoscope.exceptions import GitError, KaleidoscopeError, TmuxError
from kaleidoscope.git import Git
from kaleidoscope.logging import get_logger
from kaleidoscope.persistence import ProjectState
from kaleidoscope.registry import Instance, InstanceState, Workspace
from kaleidoscope.selection import LaunchUnit
from kaleidoscope.tmux import Tmux

logger = get_logger(__name__)

_UNSAFE_ID_CHARS = re.compile(r"[^A-Za-z0-9._-]+")
_REPEATED_SEPARATORS = re.compile(r"([.-])[.-]+")


def workspace_identifier(repo: str, branch: str, task: str, label: str) -> str:
    """Worktree directory and branch name for one instance.

    Empty parts are skipped. Anything outside ``[A-Za-z0-9._-]`` becomes
    ``-`` and runs of ``.`` or ``-`` collapse, so the result is always a
    valid git branch name.

    Example:
        workspace_identifier("app", "feature/login", "", "gpt-5-2")
        # "app_feature-login_gpt-5-2"
    """
    parts = [_sanitize(part) for part in (repo, branch, task, label)]
    return "_".join(part for part in parts if part)


def _sanitize(part: str) -> str:
    part = _UNSAFE_ID_CHARS.sub("-", part.strip())
    return _REPEATED_SEPARATORS.sub(r"\1", part).strip("-.")


def commit_message(label: str, prompts: Iterable[str]) -> str:
    """``Changes from <label>`` followed by the numbered prompt log."""
    message = f"Changes from {label}"
    lines = [f"{i}. {prompt}" for i, prompt in enumerate(prompts, start=1)]
    if lines:
        message += "\n\n" + "\n".join(lines) + "\n"
    return message


class Orchestrator:
    """Runs the side effects behind launch, follow-up, merge, bail and cleanup."""

    def __init__(
        self,
        git: Git,
        tmux: Tmux,
        state: ProjectState,
        *,
        repo_name: str,
        worktree_root: Path,
        run_command: str = "",
        agent_command: str = DEFAULT_AGENT_COMMAND,
        remote: str = "origin",
    ) -> None:
        self.git = git
        self.tmux = tmux
        self.state = state
        self.repo_name = repo_name
        self.worktree_root = worktree_root
        self.run_command = run_command
        self.agent_command = agent_command
        self.remote = remote

    async def dispatch(self, request: ActionRequest) -> ActionComplete:
        """Run the action for ``request`` and return its completion."""
        match request:
            case LaunchRequest():
                return await self.launch(request)
            case FollowUpRequest():
                return await self.follow_up(request)
            case MergeRequest():
                return await self.merge(request)
            case BailRequest():
                return await self.bail(request)
            case CleanupRequest():
                return await self.cleanup(request)
        raise TypeError(f"Unsupported request: {type(request).__name__}")

    # =========================================================================
    # Launch
    # =========================================================================

    async def launch(self, request: LaunchRequest) -> LaunchComplete:
        """Provision a worktree and pane for every unit in the request."""
        requested = len(request.units)

        if request.save_defaults:
            if self.state.save_defaults(request.provider, request.defaults):
                await self._notify(f"Saved provider and model defaults to {self.state.defaults_file.name}")
            else:
                await self._notify("Warning: failed to save defaults")

        branch = request.branch.strip()
        if not branch:
            return LaunchComplete(event_id=request.event_id, requested=requested, error="branch name is required")

        try:
            created = await self.git.ensure_branch(branch)
            origin_pane = await self.tmux.current_pane()
        except KaleidoscopeError as e:
            logger.warning("Launch aborted: %s", e)
            return LaunchComplete(event_id=request.event_id, requested=requested, error=str(e))
        logger.info("%s feature branch %s", "Created" if created else "Checked out", branch)

        launched: list[Instance] = []
        last_error: str | None = None
        for unit in request.units:
            try:
                instance = await self._provision(unit, branch, request.task, request.prompt)
            except KaleidoscopeError as e:
                last_error = f"{unit.label}: {e}"
                logger.warning("Failed to launch %s: %s", unit.label, e)
                continue
            launched.append(instance)

        await self._quietly(self.tmux.select_layout("tiled"))
        await self._quietly(self.tmux.select_pane(origin_pane))
        await self._notify(f"Opened {len(launched)} pane(s)")

        return LaunchComplete(
            event_id=request.event_id,
            launched=tuple(launched),
            requested=requested,
            error=last_error,
        )

    async def _provision(self, unit: LaunchUnit, branch: str, task: str, prompt: str) -> Instance:
        name = workspace_identifier(self.repo_name, branch, task, unit.label)
        workspace = Workspace(name=name, path=self.worktree_root / name, branch=name)

        await self.git.add_worktree(workspace.path, workspace.branch, branch)
        instance = Instance(
            label=unit.label,
            base_model=unit.base_model,
            provider=unit.provider,
            pane_id="",
            workspace=workspace,
        )

        script = build_pane_script(
            build_agent_command(self.agent_command, unit.model_id, prompt),
            self.run_command,
        )
        try:
            instance.pane_id = await self.tmux.split_window(script, cwd=workspace.path)
        except TmuxError:
            await self._quietly(self.git.remove_worktree(workspace.path, force=True))
            await self._quietly(self.git.delete_branch(workspace.branch, force=True))
            raise

        instance.state = InstanceState.RUNNING
        logger.debug("Launched %s in pane %s at %s", unit.label, instance.pane_id, workspace.path)
        return instance

    # =========================================================================
    # Follow-up
    # =========================================================================

    async def follow_up(self, request: FollowUpRequest) -> FollowUpComplete:
        """Interrupt the instance's agent and start it again with new text."""
        instance = request.instance
        if instance is None:
            return FollowUpComplete(event_id=request.event_id, error="no instance given")

        command = build_agent_command(self.agent_command, instance.model_id, request.text)
        try:
            await self.tmux.send_interrupt(instance.pane_id)
            await self.tmux.send_text(instance.pane_id, command)
        except TmuxError as e:
            logger.warning("Failed to send to @%s: %s", instance.label, e)
            return FollowUpComplete(event_id=request.event_id, label=instance.label, error=str(e))

        await self._notify(f"Sent to @{instance.label}: {request.text}")
        return FollowUpComplete(event_id=request.event_id, label=instance.label)

    # =========================================================================
    # Next / Wrap
    # =========================================================================

    async def merge(self, request: MergeRequest) -> MergeComplete:
        """Merge the winner into the feature branch and discard every instance.

        Steps: bump the choice counter, stage and commit in the winner's
        worktree, check out the feature branch, merge with ``--no-ff``, push,
        then tear down all instances.
        """
        winner = request.winner
        if winner is None:
            return MergeComplete(event_id=request.event_id, kind=request.kind, aborted=True, error="no instance given")

        result = MergeComplete(event_id=request.event_id, kind=request.kind, label=winner.label)
        errors: list[str] = []

        if not self.state.increment_choice(winner.provider, winner.base_model):
            errors.append("failed to update choice count")

        path = winner.workspace.path
        try:
            await self.git.stage_all(path)
        except GitError as e:
            return self._aborted(result, f"Error adding files: {e}")

        try:
            await self.git.commit(path, commit_message(winner.label, winner.prompt_log))
        except GitError as e:
            # "nothing to commit" exits non-zero
            logger.info("Commit in %s skipped: %s", winner.workspace.name, e)

        try:
            await self.git.checkout(request.branch)
        except GitError as e:
            return self._aborted(result, f"Error checking out feature branch: {e}")

        keep: set[str] = set()
        try:
            await self.git.merge_no_ff(winner.workspace.branch, f"Merge changes from {winner.label}")
            result.merged = True
        except GitError as e:
            errors.append(f"Error merging: {e}")
            await self._quietly(self.git.merge_abort())
            keep.add(winner.workspace.branch)

        if result.merged:
            try:
                await self.git.push(self.remote, request.branch)
                result.pushed = True
            except GitError as e:
                errors.append(f"Error pushing: {e}")

        result.cleanup = await self._teardown(request.instances, keep_branches=keep)
        result.error = "; ".join(errors) or None

        verb = "Next" if request.kind is MergeKind.NEXT else "Wrap"
        if result.merged:
            await self._notify(f"{verb} complete: merged {winner.label} and cleaned up")
        else:
            await self._notify(f"{verb} failed: kept branch {winner.workspace.branch}")
        return result

    def _aborted(self, result: MergeComplete, error: str) -> MergeComplete:
        logger.error("Merge of %s aborted: %s", result.label, error)
        result.aborted = True
        result.error = error
        return result

    # =========================================================================
    # Bail / Cleanup
    # =========================================================================

    async def bail(self, request: BailRequest) -> BailComplete:
        report = await self._teardown(request.instances)
        await self._notify("Bail complete: cleaned up panes, worktrees, and branches")
        return BailComplete(event_id=request.event_id, cleanup=report)

    async def cleanup(self, request: CleanupRequest) -> CleanupComplete:
        report = await self._teardown(request.instances)
        if request.instances:
            await self._notify("Cleanup complete: closed panes, removed worktrees and branches")
        return CleanupComplete(event_id=request.event_id, cleanup=report)

    async def _teardown(self, instances: Iterable[Instance], keep_branches: Iterable[str] = ()) -> CleanupReport:
        """Kill every pane, then remove every worktree and its branch."""
        instances = list(instances)
        keep = set(keep_branches)
        report = CleanupReport()

        for instance in instances:
            if not instance.pane_id:
                continue
            error = await self._quietly(self.tmux.kill_pane(instance.pane_id))
            if error:
                report.errors.append(error)
            else:
                report.panes_killed += 1

        for instance in instances:
            workspace = instance.workspace
            error = await self._quietly(self.git.remove_worktree(workspace.path, force=True))
            if error:
                report.errors.append(error)
            else:
                report.worktrees_removed += 1

            if workspace.branch in keep:
                continue
            error = await self._quietly(self.git.delete_branch(workspace.branch, force=True))
            if error:
                report.errors.append(error)
            else:
                report.branches_deleted += 1

        return report

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _quietly(self, step: Awaitable[object]) -> str | None:
        """Await ``step``; log and return its error message instead of raising."""
        try:
            await step
        except KaleidoscopeError as e:
            logger.debug("Ignored: %s", e)
            return str(e)
        return None

    async def _notify(self, message: str) -> None:
        """Log a milestone and echo it on the tmux status line."""
        logger.info(message)
        await self._quietly(self.tmux.display_message(message))
