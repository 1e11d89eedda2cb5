"""
Shared test fixtures and configuration.
"""

from __future__ import annotations

import io
import tarfile
from collections.abc import Callable
from pathlib import Path

import pytest

from zap.core.config import ZapSettings
from zap.core.models import Package, PackageExtra


class FakeExecutor:
    """Stands in for ``PrivilegedExecutor``; records argv instead of running it."""

    def __init__(self, returncode: int = 0):
        self.returncode = returncode
        self.calls: list[list[str]] = []
        self.ensure_calls = 0

    async def ensure_credential(self) -> None:
        self.ensure_calls += 1

    async def run(self, argv: list[str], *, cwd=None) -> int:
        self.calls.append(list(argv))
        return self.returncode


@pytest.fixture
def settings(tmp_path: Path) -> ZapSettings:
    """Settings with the scratch root inside the test's tmp dir."""
    return ZapSettings(build_dir=tmp_path / "builds")


@pytest.fixture
def executor() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture
def isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    """Point config and password env vars away from the real user."""
    for var in ("ZAP_CONFIG", "ZAP_BUILD_DIR", "ZAP_HTTP_TIMEOUT", "ZAP_LOG_LEVEL", "SUDO_PASSWORD"):
        monkeypatch.delenv(var, raising=False)
    missing = tmp_path / "no-such-config.yml"
    monkeypatch.setenv("ZAP_CONFIG", str(missing))
    return missing


@pytest.fixture
def aur_package() -> Callable[..., Package]:
    """Factory for community packages with a usable snapshot path."""

    def _make(name: str, version: str = "1.0-1", **kwargs) -> Package:
        return Package(
            name=name,
            version=version,
            extra=PackageExtra(aur_url_path=f"/cgit/aur.git/snapshot/{name}.tar.gz"),
            **kwargs,
        )

    return _make


@pytest.fixture
def make_snapshot() -> Callable[..., bytes]:
    """Factory building an in-memory ``.tar.gz`` with ``<top>/<file>`` members."""

    def _make(top: str, files: dict[str, str]) -> bytes:
        buf = io.BytesIO()
        with tarfile.open(fileobj=buf, mode="w:gz") as tar:
            for rel, content in files.items():
                data = content.encode()
                info = tarfile.TarInfo(f"{top}/{rel}")
                info.size = len(data)
                info.mode = 0o644
                tar.addfile(info, io.BytesIO(data))
        return buf.getvalue()

    return _make
