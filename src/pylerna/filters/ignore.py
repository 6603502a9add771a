"""Ignore-based package filtering."""

from __future__ import annotations

import fnmatch

from pylerna.filters.scope import matches_any
from pylerna.workspace.package import Package


def should_ignore(package: Package, patterns: list[str]) -> bool:
    """Check if a package matches any ignore pattern.

    Patterns are tried against the PEP 503 name and against the package path.

    Args:
        package: Package to check.
        patterns: Names, name globs or path globs.

    Returns:
        True if the package should be ignored.
    """
    if not patterns:
        return False
    if matches_any(package.name, patterns):
        return True
    path_str = package.path.as_posix()
    return any(fnmatch.fnmatch(path_str, pattern) for pattern in patterns)


def filter_by_ignore(
    packages: list[Package],
    ignore: list[str] | None,
) -> list[Package]:
    """Filter out packages matching ignore patterns.

    Args:
        packages: List of packages to filter.
        ignore: List of ignore patterns.

    Returns:
        Packages not matching any pattern, in their original order.
    """
    if not ignore:
        return packages
    return [p for p in packages if not should_ignore(p, ignore)]


def filter_private(packages: list[Package], include_private: bool) -> list[Package]:
    """Drop private packages unless `include_private` is set.

    Args:
        packages: List of packages to filter.
        include_private: Keep packages marked private.

    Returns:
        Filtered list of packages.
    """
    if include_private:
        return packages
    return [p for p in packages if not p.private]
