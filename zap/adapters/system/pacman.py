"""
pacman backend — Arch Linux official repositories (the primary repository).

Queries run unprivileged through ``run_command``; installs and upgrades
go through the shared ``PrivilegedExecutor`` as one batched call.
"""

from __future__ import annotations

import logging
import re

from zap.adapters.base import PackageBackend
from zap.adapters.shell import command_exists, run_command
from zap.core.errors import UnavailableToolError
from zap.core.models import InstallResult, Package, PackageExtra
from zap.core.services.privilege import PrivilegedExecutor

logger = logging.getLogger(__name__)

DEFAULT_MAX_RESULTS = 30

_VERSION_OPERATOR = re.compile(r"[<>=]")


def parse_search_output(output: str) -> list[Package]:
    """Parse ``pacman -Ss`` output.

    Entries look like::

        extra/vim 9.1.0-1 [installed]
            Vi Improved, a highly configurable, improved version of the vi text editor
    """
    packages: list[Package] = []
    current: Package | None = None

    for line in output.splitlines():
        if not line.strip():
            continue
        if line.startswith((" ", "\t")):
            if current is not None:
                desc = line.strip()
                current.description = f"{current.description} {desc}" if current.description else desc
            continue

        parts = line.split()
        repo, sep, name = parts[0].partition("/")
        if not sep:
            continue
        current = Package(
            name=name,
            version=parts[1] if len(parts) > 1 else "",
            installed="[installed" in line,
            extra=PackageExtra(repo=repo),
        )
        packages.append(current)

    return packages


def parse_info_output(output: str) -> list[Package]:
    """Parse ``pacman -Si`` output (one ``Key : Value`` block per package)."""
    packages: list[Package] = []
    fields: dict[str, str] = {}

    def flush() -> None:
        if fields.get("Name"):
            packages.append(_package_from_fields(fields))
        fields.clear()

    last_key = ""
    for line in output.splitlines():
        if not line.strip():
            flush()
            last_key = ""
            continue
        key, sep, value = line.partition(" : ")
        if sep and not line.startswith(" "):
            last_key = key.strip()
            fields[last_key] = value.strip()
        elif last_key:
            # Wrapped continuation of a long value
            fields[last_key] = f"{fields[last_key]} {line.strip()}"
    flush()
    return packages


def _package_from_fields(fields: dict[str, str]) -> Package:
    def words(key: str) -> list[str]:
        value = fields.get(key, "")
        return [] if value in ("", "None") else value.split()

    url = fields.get("URL")
    return Package(
        name=fields["Name"],
        version=fields.get("Version", ""),
        description=fields.get("Description") or None,
        maintainer=fields.get("Packager") or None,
        url=url if url and url != "None" else None,
        extra=PackageExtra(
            repo=fields.get("Repository"),
            depends=[_VERSION_OPERATOR.split(d, maxsplit=1)[0] for d in words("Depends On")],
            license=words("Licenses"),
        ),
    )


def parse_name_version(output: str) -> list[tuple[str, str]]:
    """Parse ``name version`` lines as printed by ``pacman -Q``."""
    pairs = []
    for line in output.splitlines():
        parts = line.split()
        if len(parts) >= 2:
            pairs.append((parts[0], parts[1]))
    return pairs


class PacmanBackend(PackageBackend):
    """Official Arch repositories through ``pacman``.

    Raises:
        UnavailableToolError: If ``pacman`` is not on PATH.
    """

    def __init__(
        self,
        executor: PrivilegedExecutor,
        binary: str = "pacman",
        max_results: int = DEFAULT_MAX_RESULTS,
    ):
        if not command_exists(binary):
            raise UnavailableToolError(f"{binary} is not available on this system")
        self._executor = executor
        self._binary = binary
        self._max_results = max_results

    @property
    def id(self) -> str:
        return "pacman"

    @property
    def name(self) -> str:
        return "pacman (Arch Linux)"

    async def search(self, query: str) -> list[Package]:
        if len(query) < 2:
            return []
        result = await run_command([self._binary, "-Ss", query])
        # pacman exits 1 when nothing matched
        return parse_search_output(result.stdout)[: self._max_results]

    async def info(self, names: list[str]) -> list[Package]:
        packages = []
        for name in names:
            result = await run_command([self._binary, "-Si", name])
            if not result.ok:
                logger.debug("pacman has no %s", name)
                continue
            for pkg in parse_info_output(result.stdout):
                pkg.installed = await self.is_installed(pkg.name)
                packages.append(pkg)
        return packages

    async def install(self, packages: list[Package]) -> list[InstallResult]:
        if not packages:
            return []
        names = [p.name for p in packages]
        logger.info("Installing with pacman: %s", ", ".join(names))

        code = await self._executor.run([self._binary, "-S", "--noconfirm", "--needed", *names])
        if code == 0:
            return [InstallResult.ok(n, backend=self.id) for n in names]
        return [
            InstallResult.failure(n, f"pacman -S failed (exit {code})", backend=self.id)
            for n in names
        ]

    async def update(self, packages: list[Package]) -> list[InstallResult]:
        """Upgrade with a full ``-Syu`` so the system is never partially upgraded."""
        if not packages:
            return []
        code = await self._executor.run([self._binary, "-Syu", "--noconfirm"])
        if code == 0:
            return [InstallResult.ok(p.name, backend=self.id) for p in packages]
        return [
            InstallResult.failure(p.name, f"pacman -Syu failed (exit {code})", backend=self.id)
            for p in packages
        ]

    async def is_installed(self, name: str) -> bool:
        result = await run_command([self._binary, "-Q", name])
        return result.ok

    async def has_package(self, name: str) -> bool:
        """Whether the sync databases carry ``name`` (used by the AUR resolver)."""
        result = await run_command([self._binary, "-Si", name])
        return result.ok

    async def list_installed(self) -> list[tuple[str, str]]:
        result = await run_command([self._binary, "-Qn"])
        if not result.ok:
            return []
        return parse_name_version(result.stdout)

    async def check_updates(self) -> list[Package]:
        # Reads the local sync databases; refreshing them needs root
        result = await run_command([self._binary, "-Qu"])
        updates = []
        for line in result.stdout.splitlines():
            # "name 1.0-1 -> 1.1-1"
            parts = line.split()
            if not parts:
                continue
            new_version = parts[-1] if "->" in parts else ""
            updates.append(Package(name=parts[0], version=new_version, installed=True))
        return updates
