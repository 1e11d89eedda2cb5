"""
Go backend — binaries installed with ``go install module@version``.

Module metadata comes from the module proxy. Go keeps no record of what
was installed, so listing reads the binaries in GOBIN / GOPATH/bin.
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path

import httpx

from zap.adapters.base import PackageBackend
from zap.adapters.http import get_json, make_client
from zap.adapters.shell import command_exists, run_command, run_interactive
from zap.core.config import ZapSettings
from zap.core.errors import UnavailableToolError
from zap.core.models import InstallResult, Package

logger = logging.getLogger(__name__)

_UPPER = re.compile(r"[A-Z]")


def escape_module_path(module: str) -> str:
    """Module proxy case-encoding: ``github.com/BurntSushi/toml`` → ``github.com/!burnt!sushi/toml``."""
    return _UPPER.sub(lambda m: "!" + m.group(0).lower(), module)


def binary_name(module: str) -> str:
    """Binary ``go install`` produces: the last path element, ignoring a ``/vN`` suffix."""
    parts = module.split("@", 1)[0].rstrip("/").split("/")
    if len(parts) > 1 and re.fullmatch(r"v\d+", parts[-1]):
        return parts[-2]
    return parts[-1]


class GoBackend(PackageBackend):
    """Go module binaries.

    Raises:
        UnavailableToolError: If ``go`` is not on PATH.
    """

    def __init__(self, settings: ZapSettings, client: httpx.AsyncClient | None = None):
        if not command_exists("go"):
            raise UnavailableToolError("go is not available on this system")
        self._proxy = settings.go_proxy_url.rstrip("/")
        self._client = client or make_client(settings)

    @property
    def id(self) -> str:
        return "go"

    @property
    def name(self) -> str:
        return "go (Go modules)"

    async def search(self, query: str) -> list[Package]:
        # The proxy can only resolve full module paths
        if "/" not in query:
            return []
        return await self.info([query])

    async def info(self, names: list[str]) -> list[Package]:
        packages = []
        for name in names:
            module = name.split("@", 1)[0]
            data = await get_json(
                self._client,
                f"{self._proxy}/{escape_module_path(module)}/@latest",
                missing_ok=True,
            )
            if not data:
                continue
            packages.append(Package(
                name=module,
                version=data.get("Version", ""),
                url=f"https://pkg.go.dev/{module}",
            ))
        return packages

    async def install(self, packages: list[Package]) -> list[InstallResult]:
        results = []
        for pkg in packages:
            if "@" in pkg.name:
                spec = pkg.name
            else:
                spec = f"{pkg.name}@{pkg.version or 'latest'}"
            results.append(await self._go_install(pkg.name, spec))
        return results

    async def update(self, packages: list[Package]) -> list[InstallResult]:
        return [
            await self._go_install(p.name, f"{p.name.split('@', 1)[0]}@latest")
            for p in packages
        ]

    async def _go_install(self, name: str, spec: str) -> InstallResult:
        logger.info("go install %s", spec)
        code = await run_interactive(["go", "install", spec])
        if code == 0:
            return InstallResult.ok(name, backend=self.id)
        return InstallResult.failure(name, f"go install failed (exit {code})", backend=self.id)

    async def is_installed(self, name: str) -> bool:
        target = binary_name(name)
        return any(n == target for n, _ in await self.list_installed())

    async def list_installed(self) -> list[tuple[str, str]]:
        bin_dir = await self._bin_dir()
        if bin_dir is None or not bin_dir.is_dir():
            return []
        return sorted((p.name, "") for p in bin_dir.iterdir() if p.is_file())

    async def check_updates(self) -> list[Package]:
        # Installed versions are not recorded anywhere
        return []

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _bin_dir(self) -> Path | None:
        gobin = os.environ.get("GOBIN")
        if gobin:
            return Path(gobin)
        result = await run_command(["go", "env", "GOPATH"])
        gopath = result.stdout.strip() if result.ok else ""
        if not gopath:
            return None
        # GOPATH may list several entries; binaries go to the first
        return Path(gopath.split(os.pathsep)[0]) / "bin"
