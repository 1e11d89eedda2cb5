"""
Privileged execution — one elevation credential per process, used serially.

The executor owns the session credential. It is created once by the
CLI and passed to every backend and pipeline that needs root, so the
user is asked for a password at most once per run.

Credential states::

    UNSET ──sudo -n ok────────────▶ PASSWORDLESS
      │
      └──prompt + verify ok──────▶ AUTHENTICATED
               └──verify failed──▶ REJECTED (AuthError, now and on every later call)

PASSWORDLESS, AUTHENTICATED and REJECTED are terminal for the session.

Security invariants:
- The secret is written to sudo's stdin once and the pipe is closed
- ``-k`` on wrapped commands makes sudo ignore its timestamp cache, so
  the secret is always consumed by sudo and never reaches the command
- Verification (``sudo -v``) refreshes the timestamp, so tools that call
  sudo themselves (``makepkg -si``) do not prompt again
- The secret never appears in argv and is never logged
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable
from enum import StrEnum
from pathlib import Path

from zap.core.errors import AuthError, UnavailableToolError

logger = logging.getLogger(__name__)

PromptFn = Callable[[], str]


class CredentialState(StrEnum):
    UNSET = "unset"
    PASSWORDLESS = "passwordless"
    AUTHENTICATED = "authenticated"
    REJECTED = "rejected"


def _no_prompt() -> str:
    raise AuthError("A sudo password is required but no prompt is available")


class PrivilegedExecutor:
    """Runs argv-style commands as root, caching the credential once.

    Args:
        prompt: Blocking callable returning the user's password. Called
            at most once per successful session.
        sudo: Elevation wrapper binary.
    """

    def __init__(self, prompt: PromptFn | None = None, sudo: str = "sudo"):
        self._prompt = prompt or _no_prompt
        self._sudo = sudo
        self._secret: str | None = None
        self._rejected = False
        self._init_lock = asyncio.Lock()
        self._run_lock = asyncio.Lock()

    @property
    def state(self) -> CredentialState:
        if self._rejected:
            return CredentialState.REJECTED
        if self._secret is None:
            return CredentialState.UNSET
        if self._secret == "":
            return CredentialState.PASSWORDLESS
        return CredentialState.AUTHENTICATED

    @staticmethod
    def needs_elevation() -> bool:
        """True unless the process already runs as root."""
        geteuid = getattr(os, "geteuid", None)
        if geteuid is None:
            return False
        return geteuid() != 0

    async def ensure_credential(self) -> None:
        """Make sure a credential is cached, prompting at most once.

        Concurrent callers wait on the same initialisation; only one of
        them ever checks or prompts.

        Raises:
            AuthError: If the entered password is rejected, here or by an
                earlier call in this session.
        """
        if self._rejected:
            raise AuthError("Invalid sudo password")
        if not self.needs_elevation() or self._secret is not None:
            return

        async with self._init_lock:
            if self._rejected:
                raise AuthError("Invalid sudo password")
            if self._secret is not None:
                return

            if await self._try_passwordless():
                logger.debug("Passwordless sudo available")
                self._secret = ""
                return

            secret = await asyncio.to_thread(self._prompt)
            if not await self._verify(secret):
                self._rejected = True
                raise AuthError("Invalid sudo password")

            self._secret = secret
            logger.info("sudo credential verified")

    async def run(self, argv: list[str], *, cwd: str | Path | None = None) -> int:
        """Run ``argv`` with elevation and return its exit code.

        Standard streams are inherited from this process, except stdin
        while the secret is being transmitted.
        """
        await self.ensure_credential()

        async with self._run_lock:
            logger.debug("Privileged: %s", " ".join(argv))
            workdir = str(cwd) if cwd else None

            if not self.needs_elevation():
                proc = await self._spawn(argv, cwd=workdir)
                return await proc.wait()

            if self._secret == "":
                proc = await self._spawn([self._sudo, *argv], cwd=workdir)
                return await proc.wait()

            proc = await self._spawn(
                [self._sudo, "-S", "-k", "-p", "", *argv],
                cwd=workdir,
                stdin=asyncio.subprocess.PIPE,
            )
            await self._feed_secret(proc)
            return await proc.wait()

    # ── Internals ───────────────────────────────────────────────

    async def _try_passwordless(self) -> bool:
        proc = await self._spawn(
            [self._sudo, "-n", "true"],
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.DEVNULL,
        )
        return await proc.wait() == 0

    async def _verify(self, secret: str) -> bool:
        proc = await self._spawn(
            [self._sudo, "-S", "-p", "", "-v"],
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.DEVNULL,
        )
        await self._feed_secret(proc, secret)
        return await proc.wait() == 0

    async def _feed_secret(
        self,
        proc: asyncio.subprocess.Process,
        secret: str | None = None,
    ) -> None:
        if proc.stdin is None:
            return
        value = self._secret if secret is None else secret
        try:
            proc.stdin.write(f"{value}\n".encode())
            await proc.stdin.drain()
        except (BrokenPipeError, ConnectionResetError):
            logger.debug("sudo closed stdin before reading the password")
        finally:
            proc.stdin.close()

    async def _spawn(self, argv: list[str], **kwargs) -> asyncio.subprocess.Process:
        try:
            return await asyncio.create_subprocess_exec(*argv, **kwargs)
        except FileNotFoundError as e:
            raise UnavailableToolError(f"{argv[0]} is not installed") from e
