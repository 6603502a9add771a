"""Root uv.lock handling.

Only the versions of in-workspace packages are touched; external
dependencies are never re-resolved here.
"""

from __future__ import annotations

import os
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from pathlib import Path

import structlog
import tomlkit
from packaging.utils import canonicalize_name

from pylerna.errors import ReleaseError

logger = structlog.get_logger(__name__)

LOCKFILE_NAME = "uv.lock"
SENTINEL_SUFFIX = ".pylerna.lock"
WORKSPACE_SOURCES = ("editable", "virtual", "directory")


def lockfile_path(root: Path) -> Path:
    return root / LOCKFILE_NAME


def update_lockfile_versions(root: Path, versions: Mapping[str, str]) -> bool:
    """Rewrite the version of workspace members in uv.lock.

    Args:
        root: Workspace root.
        versions: Canonical package name to new version.

    Returns:
        True if the lockfile exists and was changed.
    """
    path = lockfile_path(root)
    if not path.is_file() or not versions:
        return False

    doc = tomlkit.parse(path.read_text(encoding="utf-8"))
    changed = False
    for entry in doc.get("package", []):
        name = canonicalize_name(str(entry.get("name", "")))
        source = entry.get("source", {})
        if name not in versions or not any(key in source for key in WORKSPACE_SOURCES):
            continue
        if entry.get("version") != versions[name]:
            entry["version"] = versions[name]
            changed = True

    if changed:
        path.write_text(tomlkit.dumps(doc), encoding="utf-8")
        logger.debug("lockfile updated", path=str(path), packages=sorted(versions))
    return changed


@contextmanager
def exclusive_lockfile(root: Path) -> Iterator[Path]:
    """Hold the root lockfile exclusively for the duration of the block.

    A sentinel file next to uv.lock is created with O_EXCL and removed on exit.

    Raises:
        ReleaseError: If another pylerna run holds the sentinel.
    """
    sentinel = root / f"{LOCKFILE_NAME}{SENTINEL_SUFFIX}"
    try:
        fd = os.open(sentinel, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
    except FileExistsError as e:
        raise ReleaseError(
            f"Root lockfile is held by another run (remove {sentinel} if stale)",
            phase="write",
        ) from e
    try:
        os.write(fd, str(os.getpid()).encode())
        os.close(fd)
        yield lockfile_path(root)
    finally:
        sentinel.unlink(missing_ok=True)
