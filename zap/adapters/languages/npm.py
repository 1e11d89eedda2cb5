"""
npm backend — global Node.js packages.

Search and info use the public registry; install, listing and update
checks shell out to the ``npm`` CLI.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from zap.adapters.base import PackageBackend
from zap.adapters.http import get_json, make_client
from zap.adapters.shell import command_exists, run_command, run_interactive
from zap.core.config import ZapSettings
from zap.core.errors import ParseError, UnavailableToolError
from zap.core.models import InstallResult, Package, PackageExtra

logger = logging.getLogger(__name__)


def registry_path(name: str) -> str:
    """Registry document path; scoped names keep '@' but escape the '/'."""
    return name.replace("/", "%2f")


def package_from_document(doc: dict[str, Any]) -> Package:
    """Build a ``Package`` from a registry package document."""
    name = doc["name"]
    latest = doc.get("dist-tags", {}).get("latest", "")
    manifest = doc.get("versions", {}).get(latest, {})

    repository = doc.get("repository")
    repo_url = repository.get("url") if isinstance(repository, dict) else None
    license_value = doc.get("license") or manifest.get("license")
    maintainers = doc.get("maintainers") or []

    return Package(
        name=name,
        version=latest,
        description=doc.get("description"),
        maintainer=maintainers[0].get("name") if maintainers else None,
        url=doc.get("homepage") or repo_url or f"https://www.npmjs.com/package/{name}",
        extra=PackageExtra(
            depends=list(manifest.get("dependencies", {}) or {}),
            license=[license_value] if isinstance(license_value, str) else [],
        ),
    )


def package_from_search_object(obj: dict[str, Any]) -> Package:
    pkg = obj.get("package", {})
    links = pkg.get("links", {})
    popularity = obj.get("score", {}).get("detail", {}).get("popularity", 0.0)
    return Package(
        name=pkg["name"],
        version=pkg.get("version", ""),
        description=pkg.get("description"),
        popularity=round(float(popularity) * 100, 2),
        maintainer=pkg.get("publisher", {}).get("username"),
        url=links.get("homepage") or links.get("npm"),
    )


class NpmBackend(PackageBackend):
    """Global npm packages.

    Raises:
        UnavailableToolError: If ``npm`` is not on PATH.
    """

    def __init__(self, settings: ZapSettings, client: httpx.AsyncClient | None = None):
        if not command_exists("npm"):
            raise UnavailableToolError("npm is not available on this system")
        self._settings = settings
        self._registry = settings.npm_registry_url.rstrip("/")
        self._client = client or make_client(settings)

    @property
    def id(self) -> str:
        return "npm"

    @property
    def name(self) -> str:
        return "npm (Node.js)"

    async def search(self, query: str) -> list[Package]:
        if len(query) < 2:
            return []
        data = await get_json(
            self._client,
            f"{self._registry}/-/v1/search",
            {"text": query, "size": self._settings.max_search_results},
        )
        return [package_from_search_object(o) for o in data.get("objects", [])]

    async def info(self, names: list[str]) -> list[Package]:
        packages = []
        for name in names:
            doc = await get_json(
                self._client, f"{self._registry}/{registry_path(name)}", missing_ok=True,
            )
            if doc is None or "name" not in doc:
                continue
            packages.append(package_from_document(doc))
        return packages

    async def install(self, packages: list[Package]) -> list[InstallResult]:
        if not packages:
            return []
        names = [p.name for p in packages]
        code = await run_interactive(["npm", "install", "-g", *names])
        if code == 0:
            return [InstallResult.ok(n, backend=self.id) for n in names]
        return [
            InstallResult.failure(n, f"npm install failed (exit {code})", backend=self.id)
            for n in names
        ]

    async def is_installed(self, name: str) -> bool:
        return any(n == name for n, _ in await self.list_installed())

    async def list_installed(self) -> list[tuple[str, str]]:
        result = await run_command(["npm", "ls", "-g", "--depth=0", "--json"])
        data = _loads(result.stdout)
        deps = data.get("dependencies", {}) if isinstance(data, dict) else {}
        return [(name, meta.get("version", "")) for name, meta in deps.items()]

    async def check_updates(self) -> list[Package]:
        # npm outdated exits 1 when something is outdated
        result = await run_command(["npm", "outdated", "-g", "--json"])
        data = _loads(result.stdout)
        if not isinstance(data, dict):
            return []
        return [
            Package(name=name, version=meta.get("latest", ""), installed=True)
            for name, meta in data.items()
        ]

    async def aclose(self) -> None:
        await self._client.aclose()


def _loads(text: str) -> Any:
    text = text.strip()
    if not text:
        return {}
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise ParseError(f"npm printed invalid JSON: {e}") from e
