"""
Package type classifier — guess an ecosystem from a bare name (pure).

Rules, first match wins:
    @scope/pkg                 → npm
    github.com/org/repo, …     → go
    anything else with a '/'   → npm
    everything else            → unknown
"""

from __future__ import annotations

from zap.core.models import PackageType

SCOPED_SIGIL = "@"

GO_MODULE_PREFIXES: tuple[str, ...] = (
    "github.com/",
    "golang.org/",
    "gopkg.in/",
    "gitlab.com/",
    "go.googlesource.com/",
)


def classify(name: str) -> PackageType:
    """Map a package name to a coarse ecosystem hint."""
    name = name.strip()
    if name.startswith(SCOPED_SIGIL):
        return PackageType.NPM
    if name.startswith(GO_MODULE_PREFIXES):
        return PackageType.GO
    if "/" in name:
        return PackageType.NPM
    return PackageType.UNKNOWN
