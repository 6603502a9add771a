"""All-or-nothing writes of manifests, lockfile and changelogs."""

from __future__ import annotations

from contextlib import ExitStack
from pathlib import Path
from types import TracebackType

import structlog

from pylerna.workspace.lockfile import exclusive_lockfile

logger = structlog.get_logger(__name__)


class ManifestTransaction:
    """Snapshots every file before it is written and restores them on failure.

    Used as a context manager. Entering acquires the root lockfile
    exclusively; leaving releases it. Leaving with an exception restores
    every recorded file to its original bytes and removes files that did
    not exist before.

    Example:
        with ManifestTransaction(root) as tx:
            tx.record(pkg.pyproject_path)
            write_manifest(pkg, version="1.1.0")
    """

    def __init__(self, root: Path, *, lock_root: bool = True) -> None:
        self.root = root
        self.lock_root = lock_root
        self._originals: dict[Path, bytes | None] = {}
        self._stack: ExitStack | None = None
        self.committed = False
        self.rolled_back = False

    @property
    def touched(self) -> list[Path]:
        return list(self._originals)

    def record(self, path: Path) -> Path:
        """Snapshot `path` before its first write."""
        path = path.resolve()
        if path not in self._originals:
            self._originals[path] = path.read_bytes() if path.exists() else None
        return path

    def write_text(self, path: Path, content: str) -> None:
        self.record(path)
        path.write_text(content, encoding="utf-8")

    def rollback(self) -> None:
        """Restore every recorded file."""
        for path, original in reversed(list(self._originals.items())):
            if original is None:
                path.unlink(missing_ok=True)
            else:
                path.write_bytes(original)
        logger.warning("release writes rolled back", files=len(self._originals))
        self.rolled_back = True

    def changed_files(self) -> list[Path]:
        """Recorded files whose content differs from the snapshot."""
        changed = []
        for path, original in self._originals.items():
            current = path.read_bytes() if path.exists() else None
            if current != original:
                changed.append(path)
        return changed

    def __enter__(self) -> ManifestTransaction:
        self._stack = ExitStack()
        if self.lock_root:
            self._stack.enter_context(exclusive_lockfile(self.root))
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        try:
            if exc_type is not None:
                self.rollback()
            else:
                self.committed = True
        finally:
            if self._stack is not None:
                self._stack.close()
                self._stack = None
