"""Async subprocess execution for git and tmux.

Commands are run as argv lists (no shell) and their output is captured.
A command that exceeds its timeout is terminated, then killed if it does
not exit within the grace period.

Example:
    runner = LocalRunner(default_timeout=30.0)
    result = await runner(["git", "status", "--short"], cwd=repo)
    if result.ok:
        print(result.stdout)
"""

from __future__ import annotations

import asyncio
import shlex
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from kaleidoscope.exceptions import ShellExecutionError, ShellTimeoutError
from kaleidoscope.logging import get_logger

logger = get_logger(__name__)

DEFAULT_TIMEOUT = 60.0
TERMINATE_GRACE = 5.0


@dataclass(frozen=True)
class CommandResult:
    """Captured outcome of one command."""

    argv: tuple[str, ...]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def command(self) -> str:
        return shlex.join(self.argv)

    def check(self, error_cls: type[ShellExecutionError] = ShellExecutionError) -> CommandResult:
        """Return self, or raise ``error_cls`` on a non-zero exit."""
        if not self.ok:
            raise error_cls(self.command, self.returncode, self.stderr or self.stdout)
        return self


class CommandRunner(Protocol):
    """Anything that can run an argv list and capture its output."""

    async def __call__(
        self,
        argv: Sequence[str],
        *,
        cwd: Path | None = None,
        timeout: float | None = None,
    ) -> CommandResult: ...


class LocalRunner:
    """Run commands on the local machine with asyncio subprocesses."""

    def __init__(self, default_timeout: float = DEFAULT_TIMEOUT, env: dict[str, str] | None = None) -> None:
        self._default_timeout = default_timeout
        self._env = env

    async def __call__(
        self,
        argv: Sequence[str],
        *,
        cwd: Path | None = None,
        timeout: float | None = None,
    ) -> CommandResult:
        """Execute ``argv`` and capture its output.

        Args:
            argv: Program and arguments.
            cwd: Working directory; the current one if None.
            timeout: Seconds before the process is terminated.

        Returns:
            The captured result; a non-zero exit is not an error here.

        Raises:
            ShellExecutionError: If the program cannot be started.
            ShellTimeoutError: If the command exceeds its timeout.
        """
        argv = tuple(argv)
        if not argv:
            raise ShellExecutionError("", stderr="Empty command")

        command = shlex.join(argv)
        effective_timeout = timeout if timeout is not None else self._default_timeout
        logger.debug("$ %s", command)

        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=cwd,
                env=self._env,
            )

            try:
                stdout_bytes, stderr_bytes = await asyncio.wait_for(
                    process.communicate(),
                    timeout=effective_timeout,
                )
            except TimeoutError as e:
                process.terminate()
                try:
                    await asyncio.wait_for(process.wait(), timeout=TERMINATE_GRACE)
                except TimeoutError:
                    process.kill()
                    await process.wait()
                raise ShellTimeoutError(command, effective_timeout) from e

        except FileNotFoundError as e:
            raise ShellExecutionError(command, stderr="Command not found") from e
        except PermissionError as e:
            raise ShellExecutionError(command, stderr="Permission denied") from e
        except OSError as e:
            raise ShellExecutionError(command, stderr=str(e)) from e

        return CommandResult(
            argv=argv,
            returncode=process.returncode or 0,
            stdout=stdout_bytes.decode("utf-8", errors="replace"),
            stderr=stderr_bytes.decode("utf-8", errors="replace"),
        )
