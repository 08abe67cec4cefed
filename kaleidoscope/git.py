"""git operations used by the orchestrator.

Every method maps to a single git invocation run against ``repo`` (or an
explicit worktree via ``git -C``). Non-zero exits raise GitError carrying
git's stderr.
"""

from __future__ import annotations

from pathlib import Path

from kaleidoscope.exceptions import GitError
from kaleidoscope.shell import CommandResult, CommandRunner


class Git:
    """Thin async wrapper over the git CLI for one repository."""

    def __init__(self, runner: CommandRunner, repo: Path, timeout: float | None = None) -> None:
        self._runner = runner
        self.repo = repo
        self._timeout = timeout

    async def _run(self, *args: str, cwd: Path | None = None) -> CommandResult:
        result = await self._runner(["git", *args], cwd=cwd or self.repo, timeout=self._timeout)
        return result.check(GitError)

    # =========================================================================
    # Queries
    # =========================================================================

    async def repo_root(self) -> Path:
        result = await self._run("rev-parse", "--show-toplevel")
        return Path(result.stdout.strip())

    async def current_branch(self) -> str:
        result = await self._run("rev-parse", "--abbrev-ref", "HEAD")
        return result.stdout.strip()

    # =========================================================================
    # Branches
    # =========================================================================

    async def ensure_branch(self, branch: str) -> bool:
        """Create ``branch`` from HEAD and check it out, or check out the existing one.

        Returns:
            True if the branch was created.
        """
        try:
            await self._run("checkout", "-b", branch)
            return True
        except GitError:
            await self.checkout(branch)
            return False

    async def checkout(self, branch: str) -> None:
        await self._run("checkout", branch)

    async def delete_branch(self, branch: str, force: bool = True) -> None:
        await self._run("branch", "-D" if force else "-d", branch)

    # =========================================================================
    # Worktrees
    # =========================================================================

    async def add_worktree(self, path: Path, new_branch: str, base: str) -> None:
        """Check out a new branch ``new_branch`` off ``base`` at ``path``."""
        await self._run("worktree", "add", "-b", new_branch, str(path), base)

    async def remove_worktree(self, path: Path, force: bool = True) -> None:
        args = ["worktree", "remove", str(path)]
        if force:
            args.append("--force")
        await self._run(*args)

    # =========================================================================
    # Commit, merge, push
    # =========================================================================

    async def stage_all(self, worktree: Path) -> None:
        await self._run("-C", str(worktree), "add", ".")

    async def commit(self, worktree: Path, message: str) -> None:
        await self._run("-C", str(worktree), "commit", "-m", message)

    async def merge_no_ff(self, branch: str, message: str) -> None:
        """Merge ``branch`` into the checked-out branch with a merge commit."""
        await self._run("merge", "--no-ff", branch, "-m", message)

    async def merge_abort(self) -> None:
        await self._run("merge", "--abort")

    async def push(self, remote: str, branch: str) -> None:
        await self._run("push", remote, branch)
