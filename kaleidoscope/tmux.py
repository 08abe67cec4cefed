"""tmux pane control.

Panes are addressed by tmux pane id (``%N``). New panes are split off the
current window and run a single ``bash -lc`` script.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path

from kaleidoscope.exceptions import TmuxError
from kaleidoscope.shell import CommandResult, CommandRunner


def inside_tmux(environ: Mapping[str, str] | None = None) -> bool:
    """True when running inside a tmux client (``$TMUX`` is set)."""
    env = os.environ if environ is None else environ
    return bool(env.get("TMUX"))


class Tmux:
    """Async wrapper over the tmux CLI."""

    def __init__(self, runner: CommandRunner, shell: str = "bash", timeout: float | None = None) -> None:
        self._runner = runner
        self._shell = shell
        self._timeout = timeout

    async def _run(self, *args: str) -> CommandResult:
        result = await self._runner(["tmux", *args], timeout=self._timeout)
        return result.check(TmuxError)

    async def current_pane(self) -> str:
        """Id of the pane this process runs in."""
        result = await self._run("display-message", "-p", "#{pane_id}")
        return result.stdout.strip()

    async def split_window(self, script: str, cwd: Path | None = None) -> str:
        """Open a pane below the current one running ``script``.

        Args:
            script: Shell script passed to ``bash -lc``.
            cwd: Start directory of the new pane.

        Returns:
            The new pane id.
        """
        args = ["split-window", "-v", "-P", "-F", "#{pane_id}"]
        if cwd is not None:
            args += ["-c", str(cwd)]
        result = await self._run(*args, self._shell, "-lc", script)
        pane_id = result.stdout.strip()
        if not pane_id:
            raise TmuxError("tmux split-window", result.returncode, "no pane id returned")
        return pane_id

    async def send_interrupt(self, pane_id: str) -> None:
        await self._run("send-keys", "-t", pane_id, "C-c")

    async def send_text(self, pane_id: str, text: str) -> None:
        """Type ``text`` into the pane and press Enter."""
        await self._run("send-keys", "-t", pane_id, "-l", text)
        await self._run("send-keys", "-t", pane_id, "Enter")

    async def select_layout(self, layout: str = "tiled") -> None:
        await self._run("select-layout", layout)

    async def select_pane(self, pane_id: str) -> None:
        await self._run("select-pane", "-t", pane_id)

    async def kill_pane(self, pane_id: str) -> None:
        await self._run("kill-pane", "-t", pane_id)

    async def display_message(self, message: str) -> None:
        await self._run("display-message", message)
