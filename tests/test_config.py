"""
Tests for settings loading and logging setup.
"""

import logging
import textwrap
from pathlib import Path

import pytest

from zap.core.config import ZapSettings, load_settings
from zap.core.config.loader import config_path
from zap.core.errors import ConfigError
from zap.core.observability.logging_config import (
    _parse_level,
    level_from_flags,
    setup_logging,
)


def _write(path: Path, text: str) -> Path:
    path.write_text(textwrap.dedent(text), encoding="utf-8")
    return path


# ── Loader Tests ────────────────────────────────────────────────────


class TestLoadSettings:
    """Settings file discovery, parsing and validation."""

    def test_defaults_without_file(self, isolated_env):
        """No config file gives the built-in defaults."""
        settings = load_settings()
        assert settings.aur_rpc_url == "https://aur.archlinux.org/rpc/v5"
        assert settings.primary_backend == "pacman"
        assert settings.community_backend == "aur"
        assert settings.max_search_results == 30
        assert settings.user_agent.startswith("zap/")

    def test_flat_file(self, isolated_env, tmp_path):
        """Top-level keys are read directly."""
        cfg = _write(tmp_path / "config.yml", """\
            http_timeout: 5
            disabled_backends: [go]
        """)
        settings = load_settings(cfg)
        assert settings.http_timeout == 5.0
        assert settings.disabled_backends == ["go"]

    def test_wrapped_under_zap_key(self, isolated_env, tmp_path):
        """Keys under a zap: section are accepted too."""
        cfg = _write(tmp_path / "config.yml", """\
            zap:
              max_search_results: 10
        """)
        assert load_settings(cfg).max_search_results == 10

    def test_env_var_selects_file(self, isolated_env, tmp_path, monkeypatch):
        """$ZAP_CONFIG points at another file."""
        cfg = _write(tmp_path / "other.yml", "primary_backend: apt\n")
        monkeypatch.setenv("ZAP_CONFIG", str(cfg))
        assert config_path() == cfg
        assert load_settings().primary_backend == "apt"

    def test_env_overrides_file(self, isolated_env, tmp_path, monkeypatch):
        """Environment overrides beat the file."""
        cfg = _write(tmp_path / "config.yml", "http_timeout: 5\n")
        monkeypatch.setenv("ZAP_HTTP_TIMEOUT", "12.5")
        monkeypatch.setenv("ZAP_BUILD_DIR", str(tmp_path / "scratch"))
        settings = load_settings(cfg)
        assert settings.http_timeout == 12.5
        assert settings.build_dir == tmp_path / "scratch"

    def test_build_dir_expanded(self, isolated_env, tmp_path, monkeypatch):
        """~ in build_dir is expanded."""
        monkeypatch.setenv("HOME", str(tmp_path))
        cfg = _write(tmp_path / "config.yml", "build_dir: ~/builds\n")
        assert load_settings(cfg).build_dir == tmp_path / "builds"

    def test_empty_file_gives_defaults(self, isolated_env, tmp_path):
        """An empty file is the same as no file."""
        cfg = _write(tmp_path / "config.yml", "")
        assert load_settings(cfg).model_dump() == ZapSettings().model_dump()

    def test_explicit_missing_file(self, isolated_env, tmp_path):
        """A missing file given explicitly is a ConfigError."""
        with pytest.raises(ConfigError, match="not found"):
            load_settings(tmp_path / "missing.yml")

    def test_invalid_yaml(self, isolated_env, tmp_path):
        """Broken YAML is a ConfigError."""
        cfg = _write(tmp_path / "config.yml", "primary_backend: [unclosed\n")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_settings(cfg)

    def test_non_mapping(self, isolated_env, tmp_path):
        """A YAML list is rejected."""
        cfg = _write(tmp_path / "config.yml", "- a\n- b\n")
        with pytest.raises(ConfigError, match="mapping"):
            load_settings(cfg)

    def test_validation_error(self, isolated_env, tmp_path):
        """Out-of-range values are rejected."""
        cfg = _write(tmp_path / "config.yml", "max_search_results: 0\n")
        with pytest.raises(ConfigError, match="Invalid settings"):
            load_settings(cfg)


# ── Logging Tests ───────────────────────────────────────────────────


class TestLogging:
    """Console and file logging setup."""

    def test_parse_level(self):
        """Level names parse; junk falls back to WARNING."""
        assert _parse_level("debug") == logging.DEBUG
        assert _parse_level("bogus") == logging.WARNING
        assert _parse_level(None) == logging.WARNING

    def test_flag_precedence(self, monkeypatch):
        """--debug beats --verbose beats --quiet beats the env var."""
        monkeypatch.setenv("ZAP_LOG_LEVEL", "INFO")
        assert level_from_flags(debug=True, quiet=True) == "DEBUG"
        assert level_from_flags(verbose=True, quiet=True) == "INFO"
        assert level_from_flags(quiet=True) == "ERROR"
        assert level_from_flags() == "INFO"
        monkeypatch.delenv("ZAP_LOG_LEVEL")
        assert level_from_flags() == "WARNING"

    def test_third_party_quieted(self):
        """httpx stays at WARNING unless debugging."""
        setup_logging(level="INFO")
        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger().level == logging.INFO

    def test_file_handler(self, tmp_path):
        """The log file can record more than the console."""
        log_file = tmp_path / "zap.log"
        setup_logging(level="WARNING", log_file=str(log_file), log_file_level="DEBUG")
        logging.getLogger("zap.test").debug("to the file")
        for handler in logging.getLogger().handlers:
            handler.flush()
        assert "to the file" in log_file.read_text()
        setup_logging(level="WARNING")
