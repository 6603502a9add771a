"""Git-based package filtering (--since)."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pylerna.workspace.package import Package

if TYPE_CHECKING:
    from pylerna.workspace.workspace import Workspace


def get_changed_packages(
    workspace: Workspace,
    since: str | None,
    *,
    include_dependents: bool = False,
) -> list[Package]:
    """Packages changed since a git reference.

    Args:
        workspace: Workspace instance.
        since: Git reference, or None for the last release tag.
        include_dependents: Also include packages that depend on changed packages.

    Returns:
        Changed packages in name order.
    """
    from pylerna.changes import ChangeDetector, DetectOptions

    options = DetectOptions(
        since=since,
        propagate=include_dependents,
        ignore_changes=workspace.config.versioning.ignore_changes,
        include_merged_tags=workspace.config.versioning.include_merged_tags,
    )
    change_set = ChangeDetector(workspace).detect(options)
    return [workspace.packages[name] for name in change_set.names]


def filter_by_since(
    packages: list[Package],
    workspace: Workspace,
    since: str | None,
    *,
    include_dependents: bool = False,
) -> list[Package]:
    """Keep only packages changed since a git reference.

    Args:
        packages: List of packages to filter.
        workspace: Workspace instance.
        since: Git reference. Empty means no filtering.
        include_dependents: Also include packages that depend on changed packages.

    Returns:
        Packages from `packages` that changed.
    """
    if not since:
        return packages

    changed = get_changed_packages(workspace, since, include_dependents=include_dependents)
    changed_names = {p.name for p in changed}
    return [p for p in packages if p.name in changed_names]
