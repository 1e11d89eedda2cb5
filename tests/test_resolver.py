"""
Tests for transitive AUR dependency resolution.
"""

from __future__ import annotations

import httpx
import pytest
import respx

from zap.adapters.mock import MockBackend
from zap.core.errors import NetworkError, ParseError
from zap.core.models import Package
from zap.core.services.aur import snapshot as snapshot_mod
from zap.core.services.aur.resolver import AurResolver, build_order
from zap.core.services.aur.snapshot import SnapshotFetcher

SNAPSHOT_BASE = "https://aur.archlinux.org/cgit/aur.git/snapshot"


class FakeFetcher:
    """Serves PKGBUILD text per package name."""

    def __init__(self, descriptors: dict[str, str], errors: dict[str, Exception] | None = None):
        self.descriptors = descriptors
        self.errors = errors or {}
        self.fetched: list[str] = []

    async def fetch_descriptor(self, package: Package) -> str:
        self.fetched.append(package.name)
        if package.name in self.errors:
            raise self.errors[package.name]
        return self.descriptors.get(package.name, "")


def _deps(*names: str) -> str:
    return f"depends=({' '.join(names)})\n"


@pytest.fixture
def community(aur_package):
    return MockBackend("aur", packages=[aur_package(n) for n in ("a", "b", "c", "d", "root")])


# ── Resolve Tests ───────────────────────────────────────────────────


class TestAurResolver:
    """Which community packages must be built first."""

    @pytest.mark.asyncio
    async def test_transitive_dependencies(self, aur_package, community):
        """A chain comes back deepest first."""
        fetcher = FakeFetcher({"root": _deps("a"), "a": _deps("b"), "b": _deps("c")})
        resolver = AurResolver(fetcher, MockBackend("pacman"), community)

        deps = await resolver.resolve(aur_package("root"))

        assert [p.name for p in deps] == ["c", "b", "a"]

    @pytest.mark.asyncio
    async def test_cycle_terminates_without_duplicates(self, aur_package, community):
        """A cycle is walked once and the root is never returned."""
        fetcher = FakeFetcher({"root": _deps("a"), "a": _deps("b"), "b": _deps("a", "root")})
        resolver = AurResolver(fetcher, MockBackend("pacman"), community)

        deps = await resolver.resolve(aur_package("root"))

        names = [p.name for p in deps]
        assert names == ["b", "a"]
        assert len(names) == len(set(names))
        assert "root" not in names
        assert fetcher.fetched.count("a") == 1

    @pytest.mark.asyncio
    async def test_installed_dependencies_excluded(self, aur_package, community):
        """Installed packages are not rebuilt."""
        local = MockBackend("pacman", installed={"a": "1.0"})
        fetcher = FakeFetcher({"root": _deps("a", "b")})
        resolver = AurResolver(fetcher, local, community)

        deps = await resolver.resolve(aur_package("root"))

        assert [p.name for p in deps] == ["b"]

    @pytest.mark.asyncio
    async def test_primary_repo_dependencies_excluded(self, aur_package, community):
        """Packages pacman can install are left to pacman."""
        local = MockBackend("pacman", packages=[Package(name="b", version="2.0")])
        fetcher = FakeFetcher({"root": _deps("a", "b")})
        resolver = AurResolver(fetcher, local, community)

        deps = await resolver.resolve(aur_package("root"))

        assert [p.name for p in deps] == ["a"]

    @pytest.mark.asyncio
    async def test_unknown_dependencies_skipped(self, aur_package, community):
        """Names found nowhere are dropped."""
        fetcher = FakeFetcher({"root": _deps("a", "nowhere")})
        resolver = AurResolver(fetcher, MockBackend("pacman"), community)

        deps = await resolver.resolve(aur_package("root"))

        assert [p.name for p in deps] == ["a"]

    @pytest.mark.asyncio
    async def test_version_constraints_cleaned(self, aur_package, community):
        """Constraints are stripped before lookup."""
        fetcher = FakeFetcher({"root": "depends=('a>=2.0' 'b<3')\n"})
        resolver = AurResolver(fetcher, MockBackend("pacman"), community)

        deps = await resolver.resolve(aur_package("root"))

        assert [p.name for p in deps] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_fetch_failure_skips_only_that_branch(self, aur_package, community):
        """A failed download loses that node's children only."""
        fetcher = FakeFetcher(
            {"root": _deps("a", "b"), "b": _deps("d")},
            errors={"a": NetworkError("download failed")},
        )
        resolver = AurResolver(fetcher, MockBackend("pacman"), community)

        deps = await resolver.resolve(aur_package("root"))

        assert [p.name for p in deps] == ["a", "d", "b"]

    @pytest.mark.asyncio
    async def test_parse_failure_treated_as_no_dependencies(self, aur_package, community):
        """A broken PKGBUILD keeps the package but not its children."""
        fetcher = FakeFetcher({"root": _deps("a"), "a": "depends=(unterminated\n"})
        resolver = AurResolver(fetcher, MockBackend("pacman"), community)

        deps = await resolver.resolve(aur_package("root"))

        assert [p.name for p in deps] == ["a"]

    @pytest.mark.asyncio
    async def test_root_failure_returns_empty(self, aur_package, community):
        """An unreadable root yields nothing."""
        fetcher = FakeFetcher({}, errors={"root": ParseError("corrupt archive")})
        resolver = AurResolver(fetcher, MockBackend("pacman"), community)

        assert await resolver.resolve(aur_package("root")) == []

    @pytest.mark.asyncio
    async def test_community_lookup_error_skips_dependency(self, aur_package, community):
        """An RPC failure drops that dependency."""
        community.set_error("info", NetworkError("rpc down"))
        fetcher = FakeFetcher({"root": _deps("a")})
        resolver = AurResolver(fetcher, MockBackend("pacman"), community)

        assert await resolver.resolve(aur_package("root")) == []

    @pytest.mark.asyncio
    async def test_uninstallable_match_skipped(self, aur_package):
        """A match without a snapshot path is dropped."""
        community = MockBackend("aur", packages=[aur_package("a")], installable=False)
        fetcher = FakeFetcher({"root": _deps("a")})
        resolver = AurResolver(fetcher, MockBackend("pacman"), community)

        assert await resolver.resolve(aur_package("root")) == []


# ── Build Order Tests ───────────────────────────────────────────────


class TestBuildOrder:
    """Resolved packages come back dependencies-first."""

    @pytest.mark.asyncio
    async def test_shared_dependency_built_first(self, aur_package, community):
        """root needs a and b, b needs a: a must precede b."""
        fetcher = FakeFetcher({"root": _deps("a", "b"), "b": _deps("a")})
        resolver = AurResolver(fetcher, MockBackend("pacman"), community)

        deps = await resolver.resolve(aur_package("root"))

        assert [p.name for p in deps] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_shared_dependency_listed_last_by_root(self, aur_package, community):
        """Declaration order in the root descriptor does not matter."""
        fetcher = FakeFetcher({"root": _deps("b", "a"), "b": _deps("a")})
        resolver = AurResolver(fetcher, MockBackend("pacman"), community)

        deps = await resolver.resolve(aur_package("root"))

        assert [p.name for p in deps] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_rejected_dependency_looked_up_once(self, aur_package, community):
        """A dependency found nowhere is not queried again for each dependant."""
        lookups: list[list[str]] = []
        original = community.info

        async def counting_info(names):
            lookups.append(list(names))
            return await original(names)

        community.info = counting_info
        fetcher = FakeFetcher({"root": _deps("a", "nowhere"), "a": _deps("nowhere")})
        resolver = AurResolver(fetcher, MockBackend("pacman"), community)

        await resolver.resolve(aur_package("root"))

        assert lookups.count(["nowhere"]) == 1

    def test_post_order(self):
        """Every name follows its dependencies; the root comes last."""
        edges = {"root": ["x", "y"], "x": ["z"], "y": ["z"]}
        assert build_order("root", edges) == ["z", "x", "y", "root"]

    def test_cycle_broken(self):
        """An edge back onto the current path is dropped."""
        edges = {"root": ["a"], "a": ["b"], "b": ["a", "root"]}
        assert build_order("root", edges) == ["b", "a", "root"]

    def test_deep_chain(self):
        """Long chains do not recurse."""
        edges = {f"n{i}": [f"n{i + 1}"] for i in range(5000)}
        order = build_order("n0", edges)
        assert order[0] == "n5000"
        assert order[-1] == "n0"


# ── Scratch Directory Tests ─────────────────────────────────────────


class TestScratchDirectoryFailures:
    """Filesystem trouble in the scratch root stays inside one node."""

    @pytest.mark.asyncio
    @respx.mock
    async def test_stale_file_is_replaced(self, settings, aur_package, community, make_snapshot):
        """A leftover file where the build dir belongs is removed."""
        settings.build_dir.mkdir(parents=True)
        (settings.build_dir / "root").write_text("stale")
        respx.get(f"{SNAPSHOT_BASE}/root.tar.gz").mock(
            return_value=httpx.Response(200, content=make_snapshot("root", {"PKGBUILD": _deps("a")})),
        )
        respx.get(f"{SNAPSHOT_BASE}/a.tar.gz").mock(
            return_value=httpx.Response(200, content=make_snapshot("a", {"PKGBUILD": ""})),
        )
        async with httpx.AsyncClient() as client:
            fetcher = SnapshotFetcher(client, settings.aur_url, settings.build_dir)
            resolver = AurResolver(fetcher, MockBackend("pacman"), community)
            deps = await resolver.resolve(aur_package("root"))

        assert [p.name for p in deps] == ["a"]
        assert (settings.build_dir / "root").is_dir()

    @pytest.mark.asyncio
    @respx.mock
    async def test_unremovable_scratch_skips_node(self, settings, aur_package, community,
                                                  make_snapshot, monkeypatch):
        """A scratch dir that cannot be cleared is logged, not raised."""
        (settings.build_dir / "root").mkdir(parents=True)

        def denied(path):
            raise PermissionError(13, "Permission denied", str(path))

        monkeypatch.setattr(snapshot_mod.shutil, "rmtree", denied)
        respx.get(f"{SNAPSHOT_BASE}/root.tar.gz").mock(
            return_value=httpx.Response(200, content=make_snapshot("root", {"PKGBUILD": _deps("a")})),
        )
        async with httpx.AsyncClient() as client:
            fetcher = SnapshotFetcher(client, settings.aur_url, settings.build_dir)
            resolver = AurResolver(fetcher, MockBackend("pacman"), community)
            assert await resolver.resolve(aur_package("root")) == []

    @pytest.mark.asyncio
    async def test_scratch_root_is_a_file(self, settings, aur_package, community):
        """A file sitting at the scratch root fails the node quietly."""
        settings.build_dir.parent.mkdir(parents=True, exist_ok=True)
        settings.build_dir.write_text("not a directory")
        async with httpx.AsyncClient() as client:
            fetcher = SnapshotFetcher(client, settings.aur_url, settings.build_dir)

            async def empty_archive(package):
                return b""

            fetcher.download = empty_archive
            resolver = AurResolver(fetcher, MockBackend("pacman"), community)
            assert await resolver.resolve(aur_package("root")) == []
