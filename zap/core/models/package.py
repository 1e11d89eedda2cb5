"""
Package and InstallResult models — the data every backend speaks.

A ``Package`` is produced by a backend's parse step (CLI output or a
registry payload) and consumed by the router, resolver and build
pipeline. It is never persisted.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field


class PackageType(StrEnum):
    """Coarse ecosystem hint derived from a package name."""

    SYSTEM = "system"
    NPM = "npm"
    PIP = "pip"
    CARGO = "cargo"
    GO = "go"
    UNKNOWN = "unknown"


class PackageExtra(BaseModel):
    """Backend-specific metadata.

    ``depends`` holds raw dependency tokens as the source reported them;
    they may still carry version constraints.
    """

    # Community registry
    aur_id: int | None = None
    aur_votes: int | None = None
    aur_url_path: str | None = None
    out_of_date: int | None = None

    # Primary repository (core, extra, multilib, …)
    repo: str | None = None

    depends: list[str] = Field(default_factory=list)
    license: list[str] = Field(default_factory=list)


class Package(BaseModel):
    """A package as reported by one backend.

    ``popularity`` is normalised to 0–100 for sorting within a backend;
    values from different backends are not comparable.
    """

    name: str
    version: str = ""
    description: str | None = None
    popularity: float = 0.0
    installed: bool = False
    maintainer: str | None = None
    url: str | None = None
    extra: PackageExtra = Field(default_factory=PackageExtra)

    def __str__(self) -> str:
        return f"{self.name} {self.version}".strip()


class InstallResult(BaseModel):
    """Outcome of installing one requested package."""

    package: str
    success: bool
    message: str | None = None
    backend: str = ""

    @classmethod
    def ok(cls, package: str, backend: str = "", message: str | None = None) -> InstallResult:
        """Create a success result."""
        return cls(package=package, success=True, message=message, backend=backend)

    @classmethod
    def failure(cls, package: str, message: str, backend: str = "") -> InstallResult:
        """Create a failure result."""
        return cls(package=package, success=False, message=message, backend=backend)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump()
