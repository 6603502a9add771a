"""Semantic versioning, conventional commits, changelogs and bump planning."""

from pylerna.versioning.ranges import RangeStyle, VersionRange
from pylerna.versioning.semver import BumpType, Version

__all__ = [
    "BumpType",
    "RangeStyle",
    "Version",
    "VersionRange",
]
