"""
Async command runner — the one place backends spawn processes to read output.

Backends call ``run_command`` for read-only queries (search, info,
is-installed checks). Anything that needs root goes through the
``PrivilegedExecutor`` instead.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
from dataclasses import dataclass
from pathlib import Path

from zap.core.errors import UnavailableToolError

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """Captured outcome of a finished process."""

    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def command_exists(name: str) -> bool:
    """Whether ``name`` resolves to an executable on PATH."""
    return shutil.which(name) is not None


async def run_command(
    argv: list[str],
    *,
    cwd: str | Path | None = None,
    timeout: float | None = None,
) -> CommandResult:
    """Run ``argv`` and capture stdout/stderr as text.

    Args:
        argv: Command and arguments, passed through unmodified.
        cwd: Working directory.
        timeout: Seconds before the process is killed. ``None`` waits
            indefinitely.

    Returns:
        The captured result; a non-zero exit code is not an error here.

    Raises:
        UnavailableToolError: If ``argv[0]`` cannot be executed.
    """
    logger.debug("Executing: %s (cwd=%s)", " ".join(argv), cwd)
    try:
        proc = await asyncio.create_subprocess_exec(
            *argv,
            cwd=str(cwd) if cwd else None,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as e:
        raise UnavailableToolError(f"{argv[0]} is not installed") from e

    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except TimeoutError:
        proc.kill()
        await proc.wait()
        return CommandResult(returncode=-1, stderr=f"Command timed out after {timeout}s")

    return CommandResult(
        returncode=proc.returncode if proc.returncode is not None else -1,
        stdout=stdout.decode("utf-8", errors="replace") if stdout else "",
        stderr=stderr.decode("utf-8", errors="replace") if stderr else "",
    )


async def run_interactive(argv: list[str], *, cwd: str | Path | None = None) -> int:
    """Run ``argv`` with this process's stdin/stdout/stderr and return its exit code.

    Used for builds and installs whose output the user should watch.
    """
    logger.debug("Executing (attached): %s (cwd=%s)", " ".join(argv), cwd)
    try:
        proc = await asyncio.create_subprocess_exec(*argv, cwd=str(cwd) if cwd else None)
    except FileNotFoundError as e:
        raise UnavailableToolError(f"{argv[0]} is not installed") from e
    return await proc.wait()
