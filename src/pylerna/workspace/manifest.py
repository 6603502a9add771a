"""pyproject.toml reading and writing.

Uses tomlkit so comments, key order and unknown tables survive a write-back.
PEP 621 (`[project]`) and Poetry (`[tool.poetry]`) manifests are supported.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import Any

import structlog
import tomlkit
from packaging.requirements import InvalidRequirement, Requirement
from packaging.utils import canonicalize_name
from tomlkit.exceptions import ParseError

from pylerna.errors import ConfigurationError
from pylerna.workspace.package import Dependency, DependencyKind, Package

logger = structlog.get_logger(__name__)

PRIVATE_CLASSIFIER = "Private :: Do Not Upload"


def load_pyproject(path: Path) -> tomlkit.TOMLDocument:
    """Parse a pyproject.toml, keeping formatting for later writes."""
    try:
        return tomlkit.parse(path.read_text(encoding="utf-8"))
    except ParseError as e:
        raise ConfigurationError(f"Invalid TOML: {e}", str(path)) from e


def save_pyproject(path: Path, doc: tomlkit.TOMLDocument) -> None:
    path.write_text(tomlkit.dumps(doc), encoding="utf-8")


def _table(node: Any, *keys: str) -> dict[str, Any]:
    for key in keys:
        if not isinstance(node, dict):
            return {}
        node = node.get(key, {})
    return node if isinstance(node, dict) else {}


def _pep508(text: str, kind: DependencyKind, location: tuple[str, ...]) -> Dependency | None:
    try:
        req = Requirement(text)
    except InvalidRequirement:
        logger.warning("skipping invalid requirement", requirement=text)
        return None
    return Dependency(
        name=canonicalize_name(req.name),
        spec=str(req.specifier),
        kind=kind,
        location=location,
        raw=text,
    )


def _poetry_spec(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        return str(value.get("version", ""))
    return ""


def _iter_dependencies(doc: Any) -> Iterator[Dependency]:
    project = _table(doc, "project")

    for text in project.get("dependencies", []) or []:
        if (dep := _pep508(str(text), DependencyKind.RUNTIME, ("project", "dependencies"))):
            yield dep

    for group, items in _table(project, "optional-dependencies").items():
        location = ("project", "optional-dependencies", str(group))
        for text in items or []:
            if (dep := _pep508(str(text), DependencyKind.OPTIONAL, location)):
                yield dep

    for group, items in _table(doc, "dependency-groups").items():
        location = ("dependency-groups", str(group))
        for item in items or []:
            # {include-group = "..."} entries are not requirements
            if isinstance(item, str) and (dep := _pep508(item, DependencyKind.DEV, location)):
                yield dep

    for text in _table(doc, "tool", "uv").get("dev-dependencies", []) or []:
        location = ("tool", "uv", "dev-dependencies")
        if (dep := _pep508(str(text), DependencyKind.DEV, location)):
            yield dep

    poetry = _table(doc, "tool", "poetry")
    poetry_tables: list[tuple[tuple[str, ...], DependencyKind]] = [
        (("tool", "poetry", "dependencies"), DependencyKind.RUNTIME),
        (("tool", "poetry", "dev-dependencies"), DependencyKind.DEV),
    ]
    for group in _table(poetry, "group"):
        poetry_tables.append(
            (("tool", "poetry", "group", str(group), "dependencies"), DependencyKind.DEV)
        )
    for location, kind in poetry_tables:
        for name, value in _table(doc, *location).items():
            if name == "python":
                continue
            if isinstance(value, dict) and value.get("optional"):
                kind_here = DependencyKind.OPTIONAL
            else:
                kind_here = kind
            yield Dependency(
                name=canonicalize_name(str(name)),
                spec=_poetry_spec(value),
                kind=kind_here,
                location=location,
                raw=str(value),
            )


def read_manifest(path: Path) -> Package:
    """Read a package from a directory or its pyproject.toml.

    Raises:
        ConfigurationError: If the manifest has no name or version.
    """
    manifest = path / "pyproject.toml" if path.is_dir() else path
    doc = load_pyproject(manifest)

    project = _table(doc, "project")
    poetry = _table(doc, "tool", "poetry")
    meta = project if "name" in project else poetry

    name = meta.get("name")
    if not name:
        raise ConfigurationError("No [project].name or [tool.poetry].name", str(manifest))
    version = meta.get("version")
    if not version:
        raise ConfigurationError(f"Package '{name}' declares no static version", str(manifest))

    classifiers = [str(c) for c in meta.get("classifiers", []) or []]
    private = bool(_table(doc, "tool", "pylerna").get("private", False))
    private = private or PRIVATE_CLASSIFIER in classifiers

    return Package(
        name=canonicalize_name(str(name)),
        version=str(version),
        path=manifest.parent.resolve(),
        description=str(meta.get("description", "")),
        private=private,
        dependencies=tuple(_iter_dependencies(doc)),
    )


def rewrite_requirement(text: str, spec: str) -> str:
    """Replace the specifier of a PEP 508 string, keeping extras and markers.

    Examples:
        rewrite_requirement("pkg-a[fast]>=1.0; python_version>'3.9'", ">=1.1")
        -> "pkg-a[fast]>=1.1; python_version > \"3.9\""
    """
    req = Requirement(text)
    extras = f"[{','.join(sorted(req.extras))}]" if req.extras else ""
    out = f"{req.name}{extras}{spec}"
    if req.url:
        out = f"{req.name}{extras} @ {req.url}"
    if req.marker:
        out += f"; {req.marker}"
    return out


def _update_array(items: Any, name: str, spec: str) -> bool:
    changed = False
    for i, item in enumerate(items):
        if not isinstance(item, str):
            continue
        try:
            req = Requirement(item)
        except InvalidRequirement:
            continue
        if canonicalize_name(req.name) == name:
            items[i] = rewrite_requirement(item, spec)
            changed = True
    return changed


def _update_poetry_table(table: Any, name: str, spec: str) -> bool:
    for key in list(table.keys()):
        if canonicalize_name(str(key)) != name:
            continue
        value = table[key]
        if isinstance(value, dict):
            value["version"] = spec
        else:
            table[key] = spec
        return True
    return False


def _node(doc: Any, location: Iterable[str]) -> Any:
    node = doc
    for key in location:
        if not isinstance(node, dict) or key not in node:
            return None
        node = node[key]
    return node


def write_manifest(
    package: Package,
    version: str | None = None,
    ranges: Iterable[tuple[Dependency, str]] = (),
) -> bool:
    """Write a new version and dependency ranges into a package manifest.

    Args:
        package: Package to update.
        version: New version, or None to leave the version untouched.
        ranges: (dependency, new range) pairs. The dependency's location picks
            the array or table that gets rewritten.

    Returns:
        True if the file changed.
    """
    doc = load_pyproject(package.pyproject_path)
    changed = False

    if version is not None:
        project = _table(doc, "project")
        meta = project if "name" in project else _table(doc, "tool", "poetry")
        if meta.get("version") != version:
            meta["version"] = version
            changed = True

    for dep, spec in ranges:
        node = _node(doc, dep.location)
        if node is None:
            continue
        if dep.is_poetry:
            changed = _update_poetry_table(node, dep.name, spec) or changed
        else:
            changed = _update_array(node, dep.name, spec) or changed

    if changed:
        save_pyproject(package.pyproject_path, doc)
        logger.debug("manifest written", package=package.name, version=version)
    return changed
