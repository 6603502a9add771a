"""Release coordination: manifest transaction, git phase and publishing."""

from pylerna.release.coordinator import (
    PackageRelease,
    ReleaseCoordinator,
    ReleaseOptions,
    ReleasePhase,
    ReleaseResult,
    branch_allowed,
    format_commit_message,
)
from pylerna.release.registry import PublishOutcome, PublishRequest, PublishUnit, RegistryClient
from pylerna.release.transaction import ManifestTransaction

__all__ = [
    "ManifestTransaction",
    "PackageRelease",
    "PublishOutcome",
    "PublishRequest",
    "PublishUnit",
    "RegistryClient",
    "ReleaseCoordinator",
    "ReleaseOptions",
    "ReleasePhase",
    "ReleaseResult",
    "branch_allowed",
    "format_commit_message",
]
