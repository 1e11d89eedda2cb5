"""
Backend base — the capability contract every package manager implements.

The router, resolver and CLI only ever talk to backends through this
interface, never to the native tools directly.

To add a backend:
    1. Subclass PackageBackend
    2. Implement id, name and the abstract async operations
    3. Add its constructor to ``BACKEND_FACTORIES`` in registry.py
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from zap.core.models import InstallResult, Package


class PackageBackend(ABC):
    """Abstract base class for all package manager backends.

    ``install`` and ``update`` return one ``InstallResult`` per package;
    a failure for one package must not prevent the others from being
    attempted. Query operations may raise ``NotFoundError`` or
    ``NetworkError``.
    """

    @property
    @abstractmethod
    def id(self) -> str:
        """Short lowercase identifier (e.g. 'pacman', 'aur', 'npm')."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable name (e.g. 'AUR (Arch User Repository)')."""

    @abstractmethod
    async def search(self, query: str) -> list[Package]:
        """Search for packages matching ``query``."""

    @abstractmethod
    async def info(self, names: list[str]) -> list[Package]:
        """Fetch details for the named packages; absent names are omitted."""

    @abstractmethod
    async def install(self, packages: list[Package]) -> list[InstallResult]:
        """Install ``packages`` as one batch."""

    @abstractmethod
    async def is_installed(self, name: str) -> bool:
        """Whether ``name`` is installed through this backend."""

    @abstractmethod
    async def list_installed(self) -> list[tuple[str, str]]:
        """Installed packages this backend manages, as (name, version)."""

    @abstractmethod
    async def check_updates(self) -> list[Package]:
        """Installed packages with a newer version available."""

    async def update(self, packages: list[Package]) -> list[InstallResult]:
        """Upgrade ``packages``. Reinstalling is the default upgrade path."""
        return await self.install(packages)

    def is_installable(self, package: Package) -> bool:
        """Whether an ``info`` match can actually be installed from here."""
        return True

    async def aclose(self) -> None:
        """Release network clients or other resources."""

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} id={self.id!r}>"
