"""
Build pipeline — download, extract, build and install one source package.

Steps (each fails only this package):
    1. download the snapshot archive
    2. wipe any stale scratch dir and extract
    3. makepkg -si --needed --noconfirm --skipinteg
    4. on failure: makepkg -s (build only), find the artifact, pacman -U it
    5. nothing built / install failed → BuildError

``--skipinteg`` skips checksum verification of upstream sources. That
trades safety for speed and is a known, accepted choice here.
"""

from __future__ import annotations

import logging
from pathlib import Path

from zap.adapters.shell import run_interactive
from zap.core.errors import BuildError
from zap.core.models import Package
from zap.core.services.aur.snapshot import SnapshotFetcher
from zap.core.services.privilege import PrivilegedExecutor

logger = logging.getLogger(__name__)

BUILD_AND_INSTALL_FLAGS: tuple[str, ...] = ("-si", "--needed", "--noconfirm", "--skipinteg")
# Dependencies are already handled by the resolver, so the retry only builds
BUILD_ONLY_FLAGS: tuple[str, ...] = ("-s", "--needed", "--noconfirm", "--skipinteg")

ARTIFACT_EXTENSIONS: tuple[str, ...] = (
    ".pkg.tar.zst",
    ".pkg.tar.xz",
    ".pkg.tar.gz",
    ".pkg.tar",
)


def find_artifact(build_dir: Path, name: str) -> Path | None:
    """Locate the binary package produced in ``build_dir``.

    Prefers an artifact named after the package; debug split packages
    are ignored. Returns ``None`` if nothing was built.
    """
    candidates = sorted(
        p for p in build_dir.iterdir()
        if p.is_file() and p.name.endswith(ARTIFACT_EXTENSIONS) and "-debug-" not in p.name
    )
    if not candidates:
        return None
    for path in candidates:
        if path.name.startswith(f"{name}-"):
            return path
    return candidates[0]


class BuildPipeline:
    """Turn a community ``Package`` into an installed system package.

    Args:
        fetcher: Downloads and extracts snapshots.
        executor: Shared privileged session, used for the manual install.
        makepkg: Build tool binary.
        pacman: Primary manager binary, used for ``-U``.
    """

    def __init__(
        self,
        fetcher: SnapshotFetcher,
        executor: PrivilegedExecutor,
        makepkg: str = "makepkg",
        pacman: str = "pacman",
    ):
        self._fetcher = fetcher
        self._executor = executor
        self._makepkg = makepkg
        self._pacman = pacman

    async def install(self, package: Package) -> None:
        """Build and install ``package``.

        Raises:
            NetworkError: The archive could not be downloaded.
            ParseError: The archive could not be extracted.
            AuthError: The elevation credential was rejected.
            BuildError: Build and manual install both failed.
        """
        logger.info("Building %s from source", package.name)
        pkg_dir = await self._fetcher.fetch(package)

        # makepkg -si calls sudo itself; warm the credential first
        await self._executor.ensure_credential()

        code = await run_interactive([self._makepkg, *BUILD_AND_INSTALL_FLAGS], cwd=pkg_dir)
        if code == 0:
            logger.info("Installed %s", package.name)
            return

        logger.warning(
            "makepkg -si failed for %s (exit %d), retrying build only", package.name, code,
        )
        await self._build_and_install_artifact(package, pkg_dir)

    async def _build_and_install_artifact(self, package: Package, pkg_dir: Path) -> None:
        code = await run_interactive([self._makepkg, *BUILD_ONLY_FLAGS], cwd=pkg_dir)
        if code != 0:
            raise BuildError(f"makepkg failed for {package.name} (exit {code})")

        artifact = find_artifact(pkg_dir, package.name)
        if artifact is None:
            raise BuildError(f"No built package found for {package.name} in {pkg_dir}")

        logger.info("Installing %s", artifact.name)
        code = await self._executor.run(
            [self._pacman, "-U", "--noconfirm", "--needed", str(artifact)],
        )
        if code != 0:
            raise BuildError(f"pacman -U failed for {artifact.name} (exit {code})")
