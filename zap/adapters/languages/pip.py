"""
pip backend — user-level Python packages.

PyPI has no search API any more, so ``search`` is an exact-name lookup
against the JSON API.
"""

from __future__ import annotations

import json
import logging
import shutil
from typing import Any

import httpx

from zap.adapters.base import PackageBackend
from zap.adapters.http import get_json, make_client
from zap.adapters.shell import run_command, run_interactive
from zap.core.config import ZapSettings
from zap.core.errors import ParseError, UnavailableToolError
from zap.core.models import InstallResult, Package, PackageExtra

logger = logging.getLogger(__name__)

PIP_BINARIES: tuple[str, ...] = ("pip3", "pip")


def find_pip() -> str | None:
    """First pip executable on PATH, if any."""
    for binary in PIP_BINARIES:
        if shutil.which(binary):
            return binary
    return None


def package_from_pypi(data: dict[str, Any]) -> Package:
    """Build a ``Package`` from a PyPI ``/<name>/json`` document."""
    info = data.get("info", {})
    project_urls = info.get("project_urls") or {}
    license_value = info.get("license")
    return Package(
        name=info["name"],
        version=info.get("version", ""),
        description=info.get("summary") or None,
        maintainer=info.get("maintainer") or info.get("author") or None,
        url=info.get("home_page") or project_urls.get("Homepage") or info.get("project_url"),
        extra=PackageExtra(
            depends=list(info.get("requires_dist") or []),
            # Some projects paste the whole license text here
            license=[license_value] if license_value and len(license_value) < 64 else [],
        ),
    )


class PipBackend(PackageBackend):
    """Python packages installed with ``pip install --user``.

    Raises:
        UnavailableToolError: If neither ``pip3`` nor ``pip`` is on PATH.
    """

    def __init__(self, settings: ZapSettings, client: httpx.AsyncClient | None = None):
        binary = find_pip()
        if binary is None:
            raise UnavailableToolError("pip is not available on this system")
        self._pip = binary
        self._pypi = settings.pypi_url.rstrip("/")
        self._client = client or make_client(settings)

    @property
    def id(self) -> str:
        return "pip"

    @property
    def name(self) -> str:
        return "pip (Python)"

    async def search(self, query: str) -> list[Package]:
        if len(query) < 2:
            return []
        return await self.info([query])

    async def info(self, names: list[str]) -> list[Package]:
        packages = []
        for name in names:
            data = await get_json(self._client, f"{self._pypi}/{name}/json", missing_ok=True)
            if data is None:
                continue
            packages.append(package_from_pypi(data))
        return packages

    async def install(self, packages: list[Package]) -> list[InstallResult]:
        return await self._pip_install(packages)

    async def update(self, packages: list[Package]) -> list[InstallResult]:
        return await self._pip_install(packages, "--upgrade")

    async def _pip_install(self, packages: list[Package], *flags: str) -> list[InstallResult]:
        if not packages:
            return []
        names = [p.name for p in packages]
        code = await run_interactive([self._pip, "install", "--user", *flags, *names])
        if code == 0:
            return [InstallResult.ok(n, backend=self.id) for n in names]
        return [
            InstallResult.failure(n, f"pip install failed (exit {code})", backend=self.id)
            for n in names
        ]

    async def is_installed(self, name: str) -> bool:
        result = await run_command([self._pip, "show", name])
        return result.ok

    async def list_installed(self) -> list[tuple[str, str]]:
        result = await run_command([self._pip, "list", "--user", "--format=json"])
        if not result.ok:
            return []
        return [(p["name"], p.get("version", "")) for p in self._loads(result.stdout)]

    async def check_updates(self) -> list[Package]:
        result = await run_command([self._pip, "list", "--user", "--outdated", "--format=json"])
        if not result.ok:
            return []
        return [
            Package(name=p["name"], version=p.get("latest_version", ""), installed=True)
            for p in self._loads(result.stdout)
        ]

    async def aclose(self) -> None:
        await self._client.aclose()

    @staticmethod
    def _loads(text: str) -> list[dict[str, Any]]:
        try:
            data = json.loads(text or "[]")
        except json.JSONDecodeError as e:
            raise ParseError(f"pip printed invalid JSON: {e}") from e
        return data if isinstance(data, list) else []
