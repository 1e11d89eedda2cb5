"""Adapters — package manager backends behind one capability interface.

Public re-exports for convenient access. The registry is imported from
``zap.adapters.registry`` directly since it pulls in every backend.
"""

from zap.adapters.base import PackageBackend
from zap.adapters.mock import MockBackend

__all__ = [
    "MockBackend",
    "PackageBackend",
]
