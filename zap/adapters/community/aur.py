"""
AUR backend — the community registry, built from source.

Search and info use the AUR RPC v5 JSON API. Installing a package
resolves its transitive AUR dependencies, builds those first, then
builds the package itself through the ``BuildPipeline``.
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import httpx

from zap.adapters.base import PackageBackend
from zap.adapters.http import get_json, make_client
from zap.adapters.shell import command_exists, run_command
from zap.adapters.system.pacman import PacmanBackend, parse_name_version
from zap.core.config import ZapSettings
from zap.core.errors import AuthError, NetworkError, UnavailableToolError, ZapError
from zap.core.models import InstallResult, Package, PackageExtra
from zap.core.services.aur.pipeline import BuildPipeline
from zap.core.services.aur.resolver import AurResolver, LocalRepository
from zap.core.services.aur.snapshot import SnapshotFetcher
from zap.core.services.privilege import PrivilegedExecutor

logger = logging.getLogger(__name__)

MIN_QUERY_LENGTH = 2
RATE_LIMIT_MARKER = "Too many"


def package_from_record(record: dict[str, Any]) -> Package:
    """Convert one AUR RPC result record into a ``Package``."""
    popularity = float(record.get("Popularity") or 0.0)
    return Package(
        name=record["Name"],
        version=record.get("Version", ""),
        description=record.get("Description"),
        popularity=min(popularity, 100.0),
        maintainer=record.get("Maintainer"),
        url=record.get("URL"),
        extra=PackageExtra(
            aur_id=record.get("ID"),
            aur_votes=record.get("NumVotes"),
            aur_url_path=record.get("URLPath"),
            out_of_date=record.get("OutOfDate"),
            depends=record.get("Depends") or [],
            license=record.get("License") or [],
        ),
    )


class AurBackend(PackageBackend):
    """Arch User Repository backend.

    Args:
        settings: Registry URLs, scratch root and HTTP options.
        executor: Shared privileged session.
        local: Installed/primary-repo lookups for the resolver; a
            ``PacmanBackend`` is created when omitted.
        client: HTTP client; one is created from ``settings`` when omitted.

    Raises:
        UnavailableToolError: If ``makepkg`` is not on PATH.
    """

    def __init__(
        self,
        settings: ZapSettings,
        executor: PrivilegedExecutor,
        local: LocalRepository | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        if not command_exists("makepkg"):
            raise UnavailableToolError("makepkg is not available on this system")

        self._settings = settings
        self._client = client or make_client(settings)
        self._rpc_url = settings.aur_rpc_url.rstrip("/")
        self._local = local or PacmanBackend(executor, max_results=settings.max_search_results)

        self.fetcher = SnapshotFetcher(self._client, settings.aur_url, settings.build_dir)
        self.resolver = AurResolver(self.fetcher, self._local, self)
        self.pipeline = BuildPipeline(self.fetcher, executor)

    @property
    def id(self) -> str:
        return "aur"

    @property
    def name(self) -> str:
        return "AUR (Arch User Repository)"

    # ── Queries ─────────────────────────────────────────────────

    async def search(self, query: str) -> list[Package]:
        if len(query) < MIN_QUERY_LENGTH:
            return []

        try:
            data = await self._rpc(f"/search/{quote(query, safe='')}", {"by": "name"})
        except NetworkError as e:
            logger.debug("AUR name search failed, trying name-desc: %s", e)
            data = {}

        if data.get("error") or not data.get("results"):
            data = await self._rpc(f"/search/{quote(query, safe='')}", {"by": "name-desc"})
            error = data.get("error")
            if error:
                if RATE_LIMIT_MARKER in error:
                    logger.warning("AUR rate limit hit: %s", error)
                    return []
                raise NetworkError(f"AUR API error: {error}")

        results = [package_from_record(r) for r in data.get("results", [])]
        results.sort(key=lambda p: p.popularity, reverse=True)
        return results[: self._settings.max_search_results]

    async def info(self, names: list[str]) -> list[Package]:
        if not names:
            return []
        data = await self._rpc("/info", [("arg[]", n) for n in names])
        if data.get("error"):
            raise NetworkError(f"AUR API error: {data['error']}")
        return [package_from_record(r) for r in data.get("results", [])]

    def is_installable(self, package: Package) -> bool:
        return bool(package.extra.aur_url_path)

    async def is_installed(self, name: str) -> bool:
        result = await run_command(["pacman", "-Q", name])
        return result.ok

    async def list_installed(self) -> list[tuple[str, str]]:
        # Foreign packages: anything not from a sync database
        result = await run_command(["pacman", "-Qm"])
        if not result.ok:
            return []
        return parse_name_version(result.stdout)

    async def check_updates(self) -> list[Package]:
        installed = dict(await self.list_installed())
        if not installed:
            return []
        remote = await self.info(list(installed))
        return [
            pkg for pkg in remote
            if pkg.name in installed and installed[pkg.name] != pkg.version
        ]

    # ── Install ─────────────────────────────────────────────────

    async def install(self, packages: list[Package]) -> list[InstallResult]:
        results = []
        for package in packages:
            try:
                await self._install_with_deps(package)
            except AuthError:
                raise
            except ZapError as e:
                logger.error("Failed to install %s: %s", package.name, e)
                results.append(InstallResult.failure(package.name, str(e), backend=self.id))
                continue
            results.append(InstallResult.ok(package.name, backend=self.id))
        return results

    async def _install_with_deps(self, package: Package) -> None:
        if await self.is_installed(package.name):
            logger.info("%s is already installed", package.name)
            return

        logger.info("Resolving dependencies for %s", package.name)
        deps = await self.resolver.resolve(package)

        failed: list[str] = []
        # Build order: every dependency before the packages needing it
        for dep in deps:
            if await self.is_installed(dep.name):
                continue
            try:
                await self.pipeline.install(dep)
            except AuthError:
                raise
            except ZapError as e:
                logger.warning("Failed to install dependency %s: %s", dep.name, e)
                failed.append(dep.name)

        if failed:
            logger.warning(
                "%d dependencies of %s failed, building it anyway", len(failed), package.name,
            )

        await self.pipeline.install(package)

    async def aclose(self) -> None:
        await self._client.aclose()

    # ── Internals ───────────────────────────────────────────────

    async def _rpc(self, path: str, params: Any) -> dict[str, Any]:
        data = await get_json(self._client, f"{self._rpc_url}{path}", params)
        if not isinstance(data, dict):
            raise NetworkError(f"Unexpected AUR response for {path}")
        return data
