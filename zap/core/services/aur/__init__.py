"""
Community (AUR) build flow — descriptor parsing, dependency resolution
and the source build pipeline.
"""

from zap.core.services.aur.descriptor import DescriptorParser, parse_dependencies
from zap.core.services.aur.pipeline import BuildPipeline
from zap.core.services.aur.resolver import AurResolver
from zap.core.services.aur.snapshot import SnapshotFetcher

__all__ = [
    "AurResolver",
    "BuildPipeline",
    "DescriptorParser",
    "SnapshotFetcher",
    "parse_dependencies",
]
