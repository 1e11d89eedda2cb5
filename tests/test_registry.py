"""
Tests for the backend registry and system detection.
"""

from __future__ import annotations

import textwrap

import pytest

from zap.adapters import registry as registry_mod
from zap.adapters.mock import MockBackend
from zap.adapters.system import pacman as pacman_mod
from zap.adapters.registry import (
    BACKEND_FACTORIES,
    BackendRegistry,
    detect_available_backends,
    detect_system,
    parse_os_release,
)
from zap.core.errors import UnavailableToolError


def _tools(monkeypatch, *present: str) -> None:
    monkeypatch.setattr(registry_mod, "command_exists", lambda name: name in present)


def _mock_factories(monkeypatch, *ids: str) -> None:
    for backend_id in ids:
        monkeypatch.setitem(
            BACKEND_FACTORIES, backend_id,
            lambda settings, executor, registry, bid=backend_id: MockBackend(bid),
        )


# ── Registry Tests ──────────────────────────────────────────────────


class TestBackendRegistry:
    """Registering and looking up backends."""

    def test_register_and_get(self):
        """Lookup by id; unknown ids give None."""
        registry = BackendRegistry()
        backend = MockBackend("pacman")
        registry.register(backend)
        assert registry.get("pacman") is backend
        assert "pacman" in registry
        assert registry.get("npm") is None

    def test_registration_order_kept(self):
        """ids() follows registration order."""
        registry = BackendRegistry()
        for bid in ("npm", "pacman", "go"):
            registry.register(MockBackend(bid))
        assert registry.ids() == ["npm", "pacman", "go"]
        assert [b.id for b in registry.list_backends()] == ["npm", "pacman", "go"]

    def test_overwrite_replaces(self):
        """Same id twice keeps the newer backend."""
        registry = BackendRegistry()
        registry.register(MockBackend("pacman"))
        replacement = MockBackend("pacman")
        registry.register(replacement)
        assert len(registry) == 1
        assert registry.get("pacman") is replacement

    def test_unregister(self):
        """Unregistering twice is harmless."""
        registry = BackendRegistry()
        registry.register(MockBackend("go"))
        registry.unregister("go")
        registry.unregister("go")
        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_aclose_all(self):
        """Every backend is closed."""
        registry = BackendRegistry()
        backends = [MockBackend("pacman"), MockBackend("npm")]
        for backend in backends:
            registry.register(backend)
        await registry.aclose_all()
        assert all(b.closed for b in backends)


# ── Detection Tests ─────────────────────────────────────────────────


class TestDetection:
    """Which backends the machine supports."""

    def test_arch_with_makepkg(self, monkeypatch):
        """A full Arch toolchain enables everything."""
        _tools(monkeypatch, "pacman", "makepkg", "npm", "pip3", "go")
        assert detect_available_backends() == ["pacman", "aur", "npm", "pip", "go"]

    def test_community_needs_primary(self, monkeypatch):
        """makepkg alone does not enable the AUR."""
        _tools(monkeypatch, "makepkg", "pip")
        assert detect_available_backends() == ["pip"]

    def test_nothing(self, monkeypatch):
        """No tools, no backends."""
        _tools(monkeypatch)
        assert detect_available_backends() == []

    def test_from_detection(self, monkeypatch, settings, executor):
        """Detected ids are built in order."""
        _tools(monkeypatch, "pacman", "makepkg", "npm")
        _mock_factories(monkeypatch, "pacman", "aur", "npm")

        registry = BackendRegistry.from_detection(settings, executor)

        assert registry.ids() == ["pacman", "aur", "npm"]

    def test_disabled_backends_skipped(self, monkeypatch, settings, executor):
        """disabled_backends are never built."""
        _tools(monkeypatch, "pacman", "npm")
        _mock_factories(monkeypatch, "pacman", "npm")
        settings.disabled_backends = ["npm"]

        assert BackendRegistry.from_detection(settings, executor).ids() == ["pacman"]

    def test_factory_reporting_missing_tool_skipped(self, monkeypatch, settings, executor):
        """A factory raising UnavailableToolError is skipped."""
        _tools(monkeypatch, "pacman", "go")
        _mock_factories(monkeypatch, "pacman")

        def broken(settings, executor, registry):
            raise UnavailableToolError("go is not available on this system")

        monkeypatch.setitem(BACKEND_FACTORIES, "go", broken)

        assert BackendRegistry.from_detection(settings, executor).ids() == ["pacman"]

    def test_empty_registry_raises(self, monkeypatch, settings, executor):
        """Nothing usable is an error."""
        _tools(monkeypatch)
        with pytest.raises(UnavailableToolError, match="No supported package manager"):
            BackendRegistry.from_detection(settings, executor)

    def test_pacman_factory_uses_max_search_results(self, monkeypatch, settings, executor):
        """The pacman backend honours max_search_results from settings."""
        monkeypatch.setattr(pacman_mod, "command_exists", lambda name: True)
        settings.max_search_results = 5

        backend = BACKEND_FACTORIES["pacman"](settings, executor, BackendRegistry())

        assert backend._max_results == 5


# ── System Tests ────────────────────────────────────────────────────


OS_RELEASE = textwrap.dedent("""\
    NAME="EndeavourOS"
    PRETTY_NAME="EndeavourOS"
    ID="endeavouros"
    ID_LIKE="arch"
    # comment
    BUILD_ID=rolling
""")


class TestSystemDetection:
    """os-release parsing."""

    def test_parse_os_release(self):
        """Quotes stripped, comments ignored."""
        fields = parse_os_release(OS_RELEASE)
        assert fields["ID"] == "endeavouros"
        assert fields["BUILD_ID"] == "rolling"
        assert "# comment" not in fields

    def test_family_from_id_like(self, tmp_path, monkeypatch):
        """ID_LIKE decides the family."""
        monkeypatch.setattr(registry_mod.platform, "system", lambda: "Linux")
        path = tmp_path / "os-release"
        path.write_text('ID=pop\nID_LIKE="ubuntu debian"\nNAME="Pop!_OS"\n')

        info = detect_system(path)

        assert (info.id, info.name, info.family) == ("pop", "Pop!_OS", "debian")

    def test_arch_derivative(self, tmp_path, monkeypatch):
        """An Arch derivative is in the arch family."""
        monkeypatch.setattr(registry_mod.platform, "system", lambda: "Linux")
        path = tmp_path / "os-release"
        path.write_text(OS_RELEASE)
        assert detect_system(path).family == "arch"

    def test_missing_file(self, tmp_path, monkeypatch):
        """No os-release falls back to the platform name."""
        monkeypatch.setattr(registry_mod.platform, "system", lambda: "Linux")
        info = detect_system(tmp_path / "absent")
        assert (info.id, info.family) == ("linux", "unknown")
