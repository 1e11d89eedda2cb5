"""
Multi-backend router — decides which backend handles each package name.

Install flow::

    names ──classify──▶ candidate order ──info() in order──▶ first valid match
                                                 │ none
                                                 ▼
                                     every remaining backend
    matches ──group by backend──▶ one install() per backend
    community failures ──primary has it?──▶ reinstall through primary

Candidate walks and installs are sequential: they may share the
privileged session, and the fallback depends on the previous outcome.
Only the read-only fan-outs (search, info, update checks) run
concurrently, and a failing backend there is logged and dropped.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from zap.adapters.base import PackageBackend
from zap.adapters.registry import BackendRegistry
from zap.core.errors import AuthError, NotFoundError, ZapError
from zap.core.models import InstallResult, Package
from zap.core.services.classifier import classify
from zap.core.services.routing import candidate_order, fallback_order

logger = logging.getLogger(__name__)

T = TypeVar("T")


class MultiBackendRouter:
    """Routes queries and installs across every registered backend.

    Args:
        registry: Available backends.
        primary_id: Backend of the vendor repository (pre-built packages).
        community_id: Backend of the source-built community registry.
    """

    def __init__(
        self,
        registry: BackendRegistry,
        primary_id: str = "pacman",
        community_id: str = "aur",
    ):
        self.registry = registry
        self.primary_id = primary_id
        self.community_id = community_id

    # ── Concurrent fan-out ──────────────────────────────────────

    async def search_all(self, query: str) -> list[tuple[str, list[Package]]]:
        """Search every backend concurrently.

        Returns:
            ``(backend_id, results)`` for each backend that answered
            with at least one package, in registration order.
        """
        return await self._fan_out("search", lambda b: b.search(query))

    async def info_all(self, name: str) -> list[tuple[str, list[Package]]]:
        """Look ``name`` up in every backend concurrently."""
        return await self._fan_out("info", lambda b: b.info([name]))

    async def check_updates_all(self) -> list[tuple[str, list[Package]]]:
        """Pending updates per backend; backends with nothing pending are omitted."""
        return await self._fan_out("check_updates", lambda b: b.check_updates())

    async def _fan_out(
        self,
        operation: str,
        call: Callable[[PackageBackend], Awaitable[list[T]]],
    ) -> list[tuple[str, list[T]]]:
        backends = self.registry.list_backends()
        outcomes = await asyncio.gather(
            *(call(b) for b in backends), return_exceptions=True,
        )

        merged: list[tuple[str, list[T]]] = []
        for backend, outcome in zip(backends, outcomes):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                logger.warning("%s %s failed: %s", backend.id, operation, outcome)
                continue
            if outcome:
                merged.append((backend.id, outcome))
        return merged

    # ── Locate ──────────────────────────────────────────────────

    async def locate(self, name: str) -> tuple[str, Package] | None:
        """Find the backend that should install ``name``.

        Tries the classified candidate order first, then every other
        registered backend. The first installable exact match wins.
        """
        registered = self.registry.ids()
        ordered = candidate_order(
            classify(name), registered, self.primary_id, self.community_id,
        )

        match = await self._first_match(name, ordered)
        if match is None:
            match = await self._first_match(name, fallback_order(ordered, registered))
        return match

    async def _first_match(self, name: str, backend_ids: list[str]) -> tuple[str, Package] | None:
        for backend_id in backend_ids:
            backend = self.registry.get(backend_id)
            if backend is None:
                continue
            try:
                found = await backend.info([name])
            except NotFoundError:
                continue
            except ZapError as e:
                logger.warning("%s lookup for %s failed: %s", backend_id, name, e)
                continue

            for pkg in found:
                if pkg.name == name and backend.is_installable(pkg):
                    logger.debug("%s found in %s", name, backend_id)
                    return backend_id, pkg
            if found:
                logger.debug("%s: %s has no installable match", backend_id, name)
        return None

    # ── Install ─────────────────────────────────────────────────

    async def install_auto(self, names: list[str]) -> list[InstallResult]:
        """Install each name through the backend that carries it.

        Returns:
            One result per requested name, in request order.

        Raises:
            AuthError: The elevation credential was rejected.
        """
        groups: dict[str, list[Package]] = {}
        results: dict[str, InstallResult] = {}

        for name in dict.fromkeys(names):
            located = await self.locate(name)
            if located is None:
                results[name] = InstallResult.failure(
                    name, f"Package '{name}' not found in any backend",
                )
                continue
            backend_id, pkg = located
            groups.setdefault(backend_id, []).append(pkg)

        for backend_id, packages in groups.items():
            for result in await self._install_group(backend_id, packages):
                results[result.package] = result

        return [
            results.get(name) or InstallResult.failure(name, "No install result reported")
            for name in dict.fromkeys(names)
        ]

    async def install_with(self, backend_id: str, names: list[str]) -> list[InstallResult]:
        """Install through one named backend, skipping routing."""
        backend = self.registry.get(backend_id)
        if backend is None:
            return [InstallResult.failure(n, f"Backend '{backend_id}' is not available") for n in names]

        try:
            found = {p.name: p for p in await backend.info(names)}
        except ZapError as e:
            return [InstallResult.failure(n, str(e), backend=backend_id) for n in names]
        missing = [n for n in names if n not in found]
        results = [
            InstallResult.failure(n, f"Package '{n}' not found in {backend_id}", backend=backend_id)
            for n in missing
        ]
        wanted = [found[n] for n in names if n in found]
        if wanted:
            results.extend(await self._install_group(backend_id, wanted))
        return results

    async def _install_group(self, backend_id: str, packages: list[Package]) -> list[InstallResult]:
        backend = self.registry.get(backend_id)
        if backend is None:
            return [
                InstallResult.failure(p.name, f"Backend '{backend_id}' is not available")
                for p in packages
            ]

        logger.info("Installing %d package(s) with %s", len(packages), backend_id)
        try:
            group_results = await backend.install(packages)
        except AuthError:
            raise
        except ZapError as e:
            logger.error("%s install failed: %s", backend_id, e)
            group_results = [
                InstallResult.failure(p.name, str(e), backend=backend_id) for p in packages
            ]

        for result in group_results:
            if not result.backend:
                result.backend = backend_id

        # Backends report per package; fill in anything left out
        reported = {r.package for r in group_results}
        group_results.extend(
            InstallResult.failure(p.name, "No install result reported", backend=backend_id)
            for p in packages if p.name not in reported
        )

        if backend_id == self.community_id:
            group_results = await self._fallback_to_primary(group_results)
        return group_results

    async def _fallback_to_primary(self, results: list[InstallResult]) -> list[InstallResult]:
        """Retry failed community installs through the primary repository.

        The primary version is not compared with the community one; the
        result message says the package came from the primary repository.
        """
        primary = self.registry.get(self.primary_id)
        failed = [r for r in results if not r.success]
        if primary is None or not failed:
            return results

        replaced: dict[str, InstallResult] = {}
        for result in failed:
            try:
                found = [p for p in await primary.info([result.package]) if p.name == result.package]
            except ZapError as e:
                logger.debug("%s lookup for %s failed: %s", self.primary_id, result.package, e)
                continue
            if not found:
                continue

            logger.warning(
                "%s failed in %s, installing from %s instead",
                result.package, self.community_id, self.primary_id,
            )
            try:
                retry = await primary.install(found[:1])
            except AuthError:
                raise
            except ZapError as e:
                logger.error("%s install of %s failed: %s", self.primary_id, result.package, e)
                continue

            for outcome in retry:
                if outcome.package != result.package:
                    continue
                outcome.backend = self.primary_id
                if outcome.success:
                    outcome.message = (
                        f"Installed from {self.primary_id} after {self.community_id} failed"
                    )
                replaced[outcome.package] = outcome

        return [replaced.get(r.package, r) for r in results]

    # ── Update ──────────────────────────────────────────────────

    async def update_all(self) -> list[InstallResult]:
        """Apply pending updates, one backend at a time."""
        results: list[InstallResult] = []
        for backend_id, packages in await self.check_updates_all():
            backend = self.registry.get(backend_id)
            if backend is None:
                continue
            logger.info("Updating %d package(s) with %s", len(packages), backend_id)
            try:
                outcome = await backend.update(packages)
            except AuthError:
                raise
            except ZapError as e:
                logger.error("%s update failed: %s", backend_id, e)
                outcome = [InstallResult.failure(p.name, str(e), backend=backend_id) for p in packages]
            for result in outcome:
                if not result.backend:
                    result.backend = backend_id
            results.extend(outcome)
        return results
