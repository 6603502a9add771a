"""Filter chain composition."""

from __future__ import annotations

from typing import TYPE_CHECKING

from packaging.utils import canonicalize_name

from pylerna.filters.ignore import filter_by_ignore, filter_private
from pylerna.filters.scope import filter_by_scope
from pylerna.workspace.package import Package

if TYPE_CHECKING:
    from pylerna.workspace.workspace import Workspace


def apply_filters(
    packages: list[Package],
    *,
    scope: str | None = None,
    ignore: list[str] | None = None,
    names: list[str] | None = None,
) -> list[Package]:
    """Apply multiple filters to a package list.

    Filters are applied in order:
    1. Explicit names (if provided, only these packages)
    2. Scope pattern matching
    3. Ignore pattern exclusion

    Args:
        packages: List of packages to filter.
        scope: Comma-separated names or glob patterns.
        ignore: Patterns to exclude.
        names: Explicit list of package names (overrides scope).

    Returns:
        Filtered list of packages.
    """
    result = packages
    if names:
        wanted = {canonicalize_name(n) for n in names}
        result = [p for p in result if p.name in wanted]
    else:
        result = filter_by_scope(result, scope)
    return filter_by_ignore(result, ignore)


def apply_filters_with_since(
    packages: list[Package],
    workspace: Workspace,
    *,
    scope: str | None = None,
    since: str | None = None,
    ignore: list[str] | None = None,
    include_dependents: bool = False,
    include_private: bool = True,
) -> list[Package]:
    """Apply filters including the git-based since filter.

    Args:
        packages: List of packages to filter.
        workspace: Workspace instance (needed for since filter).
        scope: Comma-separated names or glob patterns.
        since: Git reference for change detection.
        ignore: Patterns to exclude.
        include_dependents: Include packages that depend on changed packages.
        include_private: Keep private packages.

    Returns:
        Filtered list of packages.
    """
    from pylerna.filters.since import filter_by_since

    result = filter_private(packages, include_private)
    result = filter_by_scope(result, scope)
    result = filter_by_since(result, workspace, since, include_dependents=include_dependents)
    return filter_by_ignore(result, ignore)
