"""Settings loading — see ``loader.py``."""

from zap.core.config.loader import ZapSettings, load_settings

__all__ = ["ZapSettings", "load_settings"]
