"""
Backend registry — id → backend handle, plus detection of what is installed.

The registry is the single point of backend management. The router and
CLI never construct backends themselves; they ask the registry.

    registry = BackendRegistry.from_detection(settings, executor)
    aur = registry.get("aur")
"""

from __future__ import annotations

import logging
import platform
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from zap.adapters.base import PackageBackend
from zap.adapters.community.aur import AurBackend
from zap.adapters.languages.go import GoBackend
from zap.adapters.languages.npm import NpmBackend
from zap.adapters.languages.pip import PIP_BINARIES, PipBackend
from zap.adapters.shell import command_exists
from zap.adapters.system.pacman import PacmanBackend
from zap.core.config import ZapSettings
from zap.core.errors import UnavailableToolError
from zap.core.services.privilege import PrivilegedExecutor

logger = logging.getLogger(__name__)

OS_RELEASE = Path("/etc/os-release")

BackendFactory = Callable[[ZapSettings, PrivilegedExecutor, "BackendRegistry"], PackageBackend]


class BackendRegistry:
    """Registered backends keyed by id, in registration order."""

    def __init__(self) -> None:
        self._backends: dict[str, PackageBackend] = {}

    def register(self, backend: PackageBackend) -> None:
        """Register a backend, replacing any with the same id."""
        if backend.id in self._backends:
            logger.warning("Overwriting existing backend: %s", backend.id)
        self._backends[backend.id] = backend
        logger.debug("Registered backend: %s", backend.id)

    def unregister(self, backend_id: str) -> None:
        self._backends.pop(backend_id, None)

    def get(self, backend_id: str) -> PackageBackend | None:
        return self._backends.get(backend_id)

    def ids(self) -> list[str]:
        return list(self._backends)

    def list_backends(self) -> list[PackageBackend]:
        return list(self._backends.values())

    def __contains__(self, backend_id: object) -> bool:
        return backend_id in self._backends

    def __len__(self) -> int:
        return len(self._backends)

    async def aclose_all(self) -> None:
        """Close every backend's network resources."""
        for backend in self._backends.values():
            await backend.aclose()

    @classmethod
    def from_detection(
        cls,
        settings: ZapSettings,
        executor: PrivilegedExecutor,
    ) -> BackendRegistry:
        """Build a registry of every backend whose native tool is present.

        Backends listed in ``settings.disabled_backends`` are skipped, as
        are backends whose constructor reports a missing tool.

        Raises:
            UnavailableToolError: If no backend at all could be created.
        """
        registry = cls()
        for backend_id in detect_available_backends():
            if backend_id in settings.disabled_backends:
                logger.debug("Backend %s disabled by settings", backend_id)
                continue
            factory = BACKEND_FACTORIES.get(backend_id)
            if factory is None:
                continue
            try:
                registry.register(factory(settings, executor, registry))
            except UnavailableToolError as e:
                logger.warning("Skipping %s: %s", backend_id, e)

        if not len(registry):
            raise UnavailableToolError("No supported package manager found on this system")
        return registry


# ── Detection ───────────────────────────────────────────────────


def detect_available_backends() -> list[str]:
    """Ids of backends whose native tools are on PATH, in priority order."""
    found = []
    if command_exists("pacman"):
        found.append("pacman")
        if command_exists("makepkg"):
            found.append("aur")
    if command_exists("npm"):
        found.append("npm")
    if any(command_exists(b) for b in PIP_BINARIES):
        found.append("pip")
    if command_exists("go"):
        found.append("go")
    logger.debug("Detected backends: %s", found)
    return found


def _make_aur(
    settings: ZapSettings, executor: PrivilegedExecutor, registry: BackendRegistry,
) -> PackageBackend:
    # Share the already registered pacman backend for resolver lookups
    local = registry.get("pacman")
    return AurBackend(settings, executor, local=local if isinstance(local, PacmanBackend) else None)


BACKEND_FACTORIES: dict[str, BackendFactory] = {
    "pacman": lambda settings, executor, registry: PacmanBackend(
        executor, max_results=settings.max_search_results,
    ),
    "aur": _make_aur,
    "npm": lambda settings, executor, registry: NpmBackend(settings),
    "pip": lambda settings, executor, registry: PipBackend(settings),
    "go": lambda settings, executor, registry: GoBackend(settings),
}


@dataclass(frozen=True)
class SystemInfo:
    """Operating system as reported by os-release (or ``platform``)."""

    id: str
    name: str
    family: str


_FAMILIES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("arch", ("arch", "manjaro", "endeavouros", "garuda")),
    ("debian", ("debian", "ubuntu", "linuxmint", "pop", "elementary")),
    ("fedora", ("fedora", "rhel", "centos", "rocky", "almalinux")),
    ("suse", ("suse", "opensuse", "opensuse-leap", "opensuse-tumbleweed")),
)


def parse_os_release(text: str) -> dict[str, str]:
    """Parse ``KEY=value`` lines, unquoting values."""
    fields = {}
    for line in text.splitlines():
        key, sep, value = line.strip().partition("=")
        if sep and key and not key.startswith("#"):
            fields[key] = value.strip().strip('"').strip("'")
    return fields


def detect_system(os_release: Path = OS_RELEASE) -> SystemInfo:
    """Identify the running operating system and its distro family."""
    system = platform.system()
    if system == "Darwin":
        return SystemInfo(id="macos", name=f"macOS {platform.mac_ver()[0]}".strip(), family="macos")

    try:
        fields = parse_os_release(os_release.read_text(encoding="utf-8"))
    except OSError:
        fields = {}

    if not fields:
        return SystemInfo(id=system.lower() or "unknown", name=system or "Unknown", family="unknown")

    os_id = fields.get("ID", "unknown").lower()
    candidates = [os_id, *fields.get("ID_LIKE", "").lower().split()]
    family = next(
        (fam for fam, members in _FAMILIES for c in candidates if c in members),
        "unknown",
    )
    return SystemInfo(
        id=os_id,
        name=fields.get("PRETTY_NAME") or fields.get("NAME") or os_id,
        family=family,
    )
