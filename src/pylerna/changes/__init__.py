"""Change detection."""

from pylerna.changes.detector import (
    ChangedPackage,
    ChangeDetector,
    ChangeReason,
    ChangeSet,
    DetectOptions,
    default_tag_pattern,
    is_ignored,
    propagate_changes,
    propagation_kinds,
)

__all__ = [
    "ChangeDetector",
    "ChangeReason",
    "ChangeSet",
    "ChangedPackage",
    "DetectOptions",
    "default_tag_pattern",
    "is_ignored",
    "propagate_changes",
    "propagation_kinds",
]
