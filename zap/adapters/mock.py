"""
Mock backend — universal test double for the capability interface.

Serves canned packages from memory and records every batched
``install()`` call, so routing and fallback behaviour can be checked
without touching a real package manager.
"""

from __future__ import annotations

from zap.adapters.base import PackageBackend
from zap.core.errors import ZapError
from zap.core.models import InstallResult, Package


class MockBackend(PackageBackend):
    """In-memory backend for testing.

    By default every install succeeds. Individual packages can be
    configured to fail, and any query can be made to raise.
    """

    def __init__(
        self,
        backend_id: str = "mock",
        packages: list[Package] | None = None,
        installed: dict[str, str] | None = None,
        updates: list[Package] | None = None,
        installable: bool = True,
    ):
        self._id = backend_id
        self._packages: dict[str, Package] = {p.name: p for p in packages or []}
        self._installed: dict[str, str] = dict(installed or {})
        self._updates = list(updates or [])
        self._installable = installable
        self._failures: dict[str, str] = {}
        self._errors: dict[str, ZapError] = {}
        self.install_calls: list[list[str]] = []
        self.update_calls: list[list[str]] = []
        self.closed = False

    @property
    def id(self) -> str:
        return self._id

    @property
    def name(self) -> str:
        return f"Mock ({self._id})"

    # ── Configuration ───────────────────────────────────────────

    def add_package(self, package: Package) -> None:
        self._packages[package.name] = package

    def set_failure(self, name: str, message: str = "Mock failure") -> None:
        """Make ``install`` report failure for ``name``."""
        self._failures[name] = message

    def set_error(self, operation: str, error: ZapError) -> None:
        """Make ``operation`` ('search', 'info', 'install', …) raise ``error``."""
        self._errors[operation] = error

    def _maybe_raise(self, operation: str) -> None:
        if operation in self._errors:
            raise self._errors[operation]

    # ── Capability ──────────────────────────────────────────────

    async def search(self, query: str) -> list[Package]:
        self._maybe_raise("search")
        return [p for name, p in self._packages.items() if query in name]

    async def info(self, names: list[str]) -> list[Package]:
        self._maybe_raise("info")
        return [self._packages[n] for n in names if n in self._packages]

    async def install(self, packages: list[Package]) -> list[InstallResult]:
        self._maybe_raise("install")
        self.install_calls.append([p.name for p in packages])
        results = []
        for pkg in packages:
            if pkg.name in self._failures:
                results.append(
                    InstallResult.failure(pkg.name, self._failures[pkg.name], backend=self._id)
                )
            else:
                self._installed[pkg.name] = pkg.version
                results.append(InstallResult.ok(pkg.name, backend=self._id))
        return results

    async def update(self, packages: list[Package]) -> list[InstallResult]:
        self.update_calls.append([p.name for p in packages])
        return await super().update(packages)

    async def is_installed(self, name: str) -> bool:
        return name in self._installed

    async def has_package(self, name: str) -> bool:
        return name in self._packages

    async def list_installed(self) -> list[tuple[str, str]]:
        self._maybe_raise("list_installed")
        return sorted(self._installed.items())

    async def check_updates(self) -> list[Package]:
        self._maybe_raise("check_updates")
        return list(self._updates)

    def is_installable(self, package: Package) -> bool:
        return self._installable

    async def aclose(self) -> None:
        self.closed = True
