"""
AUR dependency resolver — transitive community dependencies of a package.

Walks dependencies with an explicit worklist instead of recursion, so a
cyclic or very deep graph cannot exhaust the call stack. A dependency is
kept only if it is not installed, not in the primary repository (the
primary manager pulls those in during the build), and exists in the
community registry.

The walk records which community package needs which, and the result is
returned in build order: every package after the community packages it
depends on. Edges closing a cycle are dropped.

One bad node (descriptor fetch or parse failure) is logged and skipped;
the rest of the worklist is still processed.
"""

from __future__ import annotations

import logging
from typing import Protocol

from zap.core.errors import NetworkError, NotFoundError, ParseError
from zap.core.models import Package
from zap.core.services.aur.descriptor import parse_dependencies
from zap.core.services.aur.snapshot import SnapshotFetcher

logger = logging.getLogger(__name__)


class LocalRepository(Protocol):
    """What the resolver needs to know about the local system."""

    async def is_installed(self, name: str) -> bool: ...

    async def has_package(self, name: str) -> bool: ...


class CommunityRegistry(Protocol):
    async def info(self, names: list[str]) -> list[Package]: ...

    def is_installable(self, package: Package) -> bool: ...


class AurResolver:
    def __init__(
        self,
        fetcher: SnapshotFetcher,
        local: LocalRepository,
        community: CommunityRegistry,
    ):
        self._fetcher = fetcher
        self._local = local
        self._community = community

    async def resolve(self, root: Package) -> list[Package]:
        """Community packages needed before ``root`` can be built.

        Returns:
            Unique packages (by name) in build order: each one comes
            after every community package it depends on. ``root``
            itself is never included.
        """
        resolved: dict[str, Package] = {}
        edges: dict[str, list[str]] = {}
        rejected: set[str] = set()
        visited: set[str] = set()
        worklist: list[Package] = [root]

        while worklist:
            current = worklist.pop()
            if current.name in visited:
                continue
            visited.add(current.name)

            try:
                descriptor = await self._fetcher.fetch_descriptor(current)
                deps = parse_dependencies(descriptor)
            except (NetworkError, ParseError) as e:
                logger.warning("Could not read dependencies for %s: %s", current.name, e)
                continue

            needs = edges.setdefault(current.name, [])
            for dep in deps:
                if dep in rejected or dep in needs:
                    continue
                if dep == root.name or dep in resolved:
                    needs.append(dep)
                    continue
                match = await self._community_match(dep)
                if match is None:
                    rejected.add(dep)
                    continue
                logger.info("  %s needs %s from the AUR", current.name, dep)
                resolved[dep] = match
                needs.append(dep)
                worklist.append(match)

        return [resolved[name] for name in build_order(root.name, edges) if name != root.name]

    async def _community_match(self, dep: str) -> Package | None:
        if await self._local.is_installed(dep):
            return None
        if await self._local.has_package(dep):
            return None

        try:
            matches = await self._community.info([dep])
        except (NetworkError, NotFoundError) as e:
            logger.warning("AUR lookup for %s failed: %s", dep, e)
            return None

        for pkg in matches:
            if pkg.name == dep and self._community.is_installable(pkg):
                return pkg
        logger.debug("Dependency %s not found in any repository", dep)
        return None


def build_order(root: str, edges: dict[str, list[str]]) -> list[str]:
    """Post-order walk of ``edges`` from ``root``: dependencies before dependants.

    Iterative, so deep graphs are fine. A dependency already on the
    current path closes a cycle and is skipped.
    """
    ordered: list[str] = []
    done: set[str] = set()
    on_path: set[str] = {root}
    stack = [(root, iter(edges.get(root, ())))]

    while stack:
        name, pending = stack[-1]
        child = next((c for c in pending if c not in done and c not in on_path), None)
        if child is None:
            stack.pop()
            on_path.discard(name)
            done.add(name)
            ordered.append(name)
            continue
        on_path.add(child)
        stack.append((child, iter(edges.get(child, ()))))

    return ordered
