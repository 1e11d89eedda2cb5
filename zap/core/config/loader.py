"""
Settings loader — reads config.yml into a validated ``ZapSettings``.

The file is optional: with no file on disk every field keeps its
default. Lookup order for the file path:

    explicit path  >  $ZAP_CONFIG  >  ~/.config/zap/config.yml

A handful of environment variables override the file afterwards.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError

from zap import __version__
from zap.core.errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "ZAP_CONFIG"
DEFAULT_CONFIG_PATH = Path("~/.config/zap/config.yml")

# env var → settings field
_ENV_OVERRIDES: dict[str, str] = {
    "ZAP_BUILD_DIR": "build_dir",
    "ZAP_HTTP_TIMEOUT": "http_timeout",
}


class ZapSettings(BaseModel):
    """Runtime settings shared by the router, backends and build pipeline."""

    build_dir: Path = Field(default_factory=lambda: Path("~/.cache/zap/builds").expanduser())
    aur_url: str = "https://aur.archlinux.org"
    aur_rpc_url: str = "https://aur.archlinux.org/rpc/v5"
    npm_registry_url: str = "https://registry.npmjs.org"
    pypi_url: str = "https://pypi.org/pypi"
    go_proxy_url: str = "https://proxy.golang.org"
    http_timeout: float = 30.0
    user_agent: str = f"zap/{__version__}"
    max_search_results: int = Field(default=30, ge=1)
    primary_backend: str = "pacman"
    community_backend: str = "aur"
    disabled_backends: list[str] = Field(default_factory=list)


def config_path(explicit: Path | None = None) -> Path:
    """Resolve which settings file to read (it may not exist)."""
    if explicit is not None:
        return explicit
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path).expanduser()
    return DEFAULT_CONFIG_PATH.expanduser()


def load_settings(path: Path | None = None) -> ZapSettings:
    """Load and validate settings.

    Args:
        path: Explicit settings file. An explicit path must exist;
            the default locations are allowed to be missing.

    Returns:
        Validated settings.

    Raises:
        ConfigError: If the file is unreadable, not a mapping, or invalid.
    """
    resolved = config_path(path)
    data: dict = {}

    if resolved.is_file():
        logger.debug("Loading settings from %s", resolved)
        try:
            raw = resolved.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigError(f"Cannot read {resolved}: {e}") from e

        try:
            loaded = yaml.safe_load(raw)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {resolved}: {e}") from e

        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise ConfigError(
                f"Expected a YAML mapping in {resolved}, got {type(loaded).__name__}"
            )
        # The YAML may wrap everything under a "zap" key or be flat
        data = loaded.get("zap", loaded) if "zap" in loaded else loaded
        if not isinstance(data, dict):
            raise ConfigError(f"Expected a mapping under 'zap' in {resolved}")
    elif path is not None:
        raise ConfigError(f"Config file not found: {resolved}")

    for env_var, field_name in _ENV_OVERRIDES.items():
        value = os.environ.get(env_var)
        if value:
            data[field_name] = value

    try:
        settings = ZapSettings.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid settings: {e}") from e

    settings.build_dir = settings.build_dir.expanduser()
    return settings
