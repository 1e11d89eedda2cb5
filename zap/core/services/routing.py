"""
Candidate ordering — which backends to ask, and in what order (pure).

``candidate_order`` is a rule-based list builder: it never looks at a
backend, only at the package type and the ids that are registered.

Base order:
    primary system managers → universal managers → community → ecosystems

The primary repository always precedes the community registry so a
package available pre-built is never compiled from source. The router
passes the configured primary and community ids, which head their groups.
"""

from __future__ import annotations

from zap.core.models import PackageType

PRIMARY_BACKENDS: tuple[str, ...] = (
    "pacman", "apt", "dnf", "zypper", "pkg", "brew", "winget", "scoop", "choco",
)
UNIVERSAL_BACKENDS: tuple[str, ...] = ("flatpak", "snap")
COMMUNITY_BACKENDS: tuple[str, ...] = ("aur",)
ECOSYSTEM_BACKENDS: tuple[str, ...] = ("npm", "deno", "pip", "cargo", "go", "pub")

# Backends owning a classified ecosystem, tried before everything else
TYPE_BACKENDS: dict[PackageType, tuple[str, ...]] = {
    PackageType.NPM: ("npm", "deno"),
    PackageType.PIP: ("pip",),
    PackageType.CARGO: ("cargo",),
    PackageType.GO: ("go",),
}


def _groups(primary_id: str | None, community_id: str | None) -> tuple[tuple[str, ...], ...]:
    """Priority groups with the configured primary/community ids promoted.

    A configured id heads its group and is removed from every other
    group, so ``community_backend: npm`` moves npm ahead of the ecosystems.
    """
    promoted = {bid for bid in (primary_id, community_id) if bid}

    def group(head: str | None, members: tuple[str, ...]) -> tuple[str, ...]:
        rest = tuple(bid for bid in members if bid not in promoted)
        return (head, *rest) if head else rest

    return (
        group(primary_id, PRIMARY_BACKENDS),
        group(None, UNIVERSAL_BACKENDS),
        group(community_id, COMMUNITY_BACKENDS),
        group(None, ECOSYSTEM_BACKENDS),
    )


def base_order(
    registered: list[str],
    primary_id: str | None = None,
    community_id: str | None = None,
) -> list[str]:
    """Registered ids in the default priority order.

    Ids outside the known groups (and not configured as primary or
    community) are left out; they are only reached through the fallback
    sweep.
    """
    ordered = [bid for grp in _groups(primary_id, community_id) for bid in grp]
    return [bid for bid in ordered if bid in registered]


def candidate_order(
    pkg_type: PackageType,
    registered: list[str],
    primary_id: str | None = None,
    community_id: str | None = None,
) -> list[str]:
    """Ordered backend ids to query for a package of ``pkg_type``.

    Args:
        pkg_type: Result of ``classify()``.
        registered: Ids currently in the registry.
        primary_id: Configured primary backend; heads the primary group.
        community_id: Configured community backend; heads the community group.

    Returns:
        Ids in query order, without duplicates.
    """
    order = base_order(registered, primary_id, community_id)

    if pkg_type == PackageType.SYSTEM:
        primary, universal, community, _ = _groups(primary_id, community_id)
        system_groups = primary + universal + community
        return [bid for bid in order if bid in system_groups]

    preferred = [bid for bid in TYPE_BACKENDS.get(pkg_type, ()) if bid in registered]
    return preferred + [bid for bid in order if bid not in preferred]


def fallback_order(tried: list[str], registered: list[str]) -> list[str]:
    """Registered ids not yet tried, in registration order."""
    return [bid for bid in registered if bid not in tried]
