"""Scope-based package filtering."""

from __future__ import annotations

import fnmatch

from packaging.utils import canonicalize_name

from pylerna.workspace.package import Package


def parse_scope(scope: str) -> list[str]:
    """Parse a scope string into individual patterns.

    Scope can be comma-separated names or glob patterns:
    - "core,api" -> ["core", "api"]
    - "*-lib" -> ["*-lib"]

    Args:
        scope: Comma-separated scope string.

    Returns:
        List of individual patterns.
    """
    if not scope:
        return []
    return [p.strip() for p in scope.split(",") if p.strip()]


def matches_any(name: str, patterns: list[str]) -> bool:
    """Check a package name against names or globs, PEP 503 normalised.

    A pattern of "*" matches everything.

    Args:
        name: Package name as written anywhere.
        patterns: Names or glob patterns.

    Returns:
        True if any pattern matches.
    """
    canonical = canonicalize_name(name)
    for pattern in patterns:
        if pattern == "*":
            return True
        if fnmatch.fnmatchcase(canonical, pattern.lower().replace("_", "-").replace(".", "-")):
            return True
    return False


def match_scope(package: Package, patterns: list[str]) -> bool:
    """Check if a package is within scope.

    Args:
        package: Package to check.
        patterns: Parsed scope patterns. An empty list matches everything.

    Returns:
        True if the package matches.
    """
    if not patterns:
        return True
    return matches_any(package.name, patterns)


def filter_by_scope(
    packages: list[Package],
    scope: str | None,
) -> list[Package]:
    """Filter packages by scope pattern.

    Args:
        packages: List of packages to filter.
        scope: Comma-separated names or glob patterns.

    Returns:
        Filtered list of packages.
    """
    patterns = parse_scope(scope or "")
    if not patterns:
        return packages
    return [p for p in packages if match_scope(p, patterns)]
