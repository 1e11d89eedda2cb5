"""
Domain models — Pydantic types shared by backends and services.

    from zap.core.models import Package, PackageExtra, InstallResult, PackageType
"""

from zap.core.models.package import InstallResult, Package, PackageExtra, PackageType

__all__ = [
    "InstallResult",
    "Package",
    "PackageExtra",
    "PackageType",
]
