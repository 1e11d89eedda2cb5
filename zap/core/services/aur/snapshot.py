"""
Snapshot fetcher — download and unpack a community package's sources.

Each package gets a scratch directory ``<build_dir>/<name>``. Any stale
directory of the same name is removed before extraction, so a build
always starts from the archive just downloaded.
"""

from __future__ import annotations

import asyncio
import io
import logging
import shutil
import tarfile
from pathlib import Path, PurePosixPath

import httpx

from zap.core.errors import NetworkError, ParseError
from zap.core.models import Package

logger = logging.getLogger(__name__)

DESCRIPTOR_FILE = "PKGBUILD"


class SnapshotFetcher:
    """Fetch ``.tar.gz`` snapshots from the community host into the scratch root.

    Args:
        client: Shared HTTP client (owned by the caller).
        base_url: Community host; archive paths are relative to it.
        build_dir: Scratch root.
    """

    def __init__(self, client: httpx.AsyncClient, base_url: str, build_dir: Path):
        self._client = client
        self.base_url = base_url.rstrip("/")
        self.build_dir = build_dir

    def snapshot_url(self, package: Package) -> str:
        url_path = package.extra.aur_url_path
        if not url_path:
            raise NetworkError(f"Package {package.name} has no AUR URL path")
        return f"{self.base_url}/{url_path.lstrip('/')}"

    async def download(self, package: Package) -> bytes:
        """Download the snapshot archive.

        Raises:
            NetworkError: On any transport or HTTP status failure.
        """
        url = self.snapshot_url(package)
        logger.debug("Downloading %s", url)
        try:
            response = await self._client.get(url)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise NetworkError(f"Failed to download {package.name}: {e}") from e
        return response.content

    def extract(self, package: Package, data: bytes) -> Path:
        """Unpack ``data`` under the scratch root and return the package dir.

        Raises:
            ParseError: If the scratch directory cannot be reset or the
                archive is corrupt.
        """
        pkg_dir = self.build_dir / package.name
        try:
            _remove_stale(pkg_dir)
            self.build_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ParseError(f"Cannot prepare scratch directory {pkg_dir}: {e}") from e

        try:
            with tarfile.open(fileobj=io.BytesIO(data), mode="r:*") as tar:
                tar.extractall(self.build_dir, filter="data")
        except (tarfile.TarError, EOFError, OSError) as e:
            raise ParseError(f"Could not extract {package.name}: {e}") from e

        if pkg_dir.is_dir():
            return pkg_dir

        # Split packages unpack under their package base name
        base = PurePosixPath(package.extra.aur_url_path or "").name
        for suffix in (".tar.gz", ".tar.xz", ".tar.zst", ".tar"):
            base = base.removesuffix(suffix)
        base_dir = self.build_dir / base
        if base and base_dir.is_dir():
            return base_dir

        raise ParseError(f"Archive for {package.name} did not contain {package.name}/")

    async def fetch(self, package: Package) -> Path:
        """Download and extract; returns the directory holding the descriptor."""
        data = await self.download(package)
        return await asyncio.to_thread(self.extract, package, data)

    async def fetch_descriptor(self, package: Package) -> str:
        """Fetch the snapshot and return its PKGBUILD text ('' if absent)."""
        pkg_dir = await self.fetch(package)
        descriptor = pkg_dir / DESCRIPTOR_FILE
        if not descriptor.is_file():
            logger.debug("%s has no %s", package.name, DESCRIPTOR_FILE)
            return ""
        try:
            return descriptor.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            raise ParseError(f"Cannot read {descriptor}: {e}") from e


def _remove_stale(path: Path) -> None:
    """Delete whatever sits at ``path``; a leftover file or link is not a build dir."""
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    elif path.exists() or path.is_symlink():
        path.unlink()
