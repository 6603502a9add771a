"""Coalescing of raw filesystem events into package change events.

Every accepted raw event resets one shared timer. When the timer fires,
the packages touched since the last emission are emitted together and
the buffer is cleared.
"""

from __future__ import annotations

import asyncio
import fnmatch
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

import structlog

from pylerna.config.schema import WatchConfig
from pylerna.workspace.package import Package

logger = structlog.get_logger(__name__)


class EventKind(str, Enum):
    ADD = "add"
    ADD_DIR = "addDir"
    CHANGE = "change"
    UNLINK = "unlink"
    UNLINK_DIR = "unlinkDir"


ALL_KINDS = frozenset(EventKind)


@dataclass(frozen=True)
class RawEvent:
    kind: EventKind
    path: Path


@dataclass
class PackageChangeEvent:
    """One coalesced emission.

    Attributes:
        packages: Changed package names, sorted.
        files: Changed files by package, relative to the package directory.
    """

    packages: list[str]
    files: dict[str, list[Path]] = field(default_factory=dict)

    def file_list(self, package: str, delimiter: str = " ") -> str:
        return delimiter.join(p.as_posix() for p in self.files.get(package, []))


@dataclass
class WatchOptions:
    """Debounce settings.

    Attributes:
        quiet_period: Seconds without new events before emitting.
        kinds: Event kinds that count.
        glob: Only files matching this package-relative glob count.
    """

    quiet_period: float = 0.1
    kinds: frozenset[EventKind] = frozenset({EventKind.CHANGE})
    glob: str | None = None

    @classmethod
    def from_config(cls, config: WatchConfig) -> WatchOptions:
        if config.all_events:
            kinds = ALL_KINDS
        else:
            enabled = {
                EventKind.CHANGE: True,
                EventKind.ADD: config.added_file,
                EventKind.ADD_DIR: config.added_dir,
                EventKind.UNLINK: config.removed_file,
                EventKind.UNLINK_DIR: config.removed_dir,
            }
            kinds = frozenset(kind for kind, on in enabled.items() if on)
        return cls(quiet_period=config.quiet_period_ms / 1000, kinds=kinds, glob=config.glob)


def matches_glob(relative: Path, pattern: str) -> bool:
    posix = relative.as_posix()
    if fnmatch.fnmatch(posix, pattern):
        return True
    return "/" not in pattern and fnmatch.fnmatch(relative.name, pattern)


class WatchDebouncer:
    """Buffers raw events by package and emits after a quiet period."""

    def __init__(
        self,
        resolve: Callable[[Path], Package | None],
        options: WatchOptions | None = None,
    ) -> None:
        """Initialize debouncer.

        Args:
            resolve: Maps an absolute path to the package containing it.
            options: Debounce settings.
        """
        self.resolve = resolve
        self.options = options or WatchOptions()
        self._pending: dict[str, list[Path]] = {}
        self._timer: asyncio.TimerHandle | None = None
        self._queue: asyncio.Queue[PackageChangeEvent] = asyncio.Queue()

    @property
    def pending(self) -> list[str]:
        return sorted(self._pending)

    def push(self, event: RawEvent) -> bool:
        """Offer one raw event.

        Returns:
            True if the event was buffered and the timer restarted.
        """
        if event.kind not in self.options.kinds:
            return False
        package = self.resolve(event.path)
        if package is None:
            return False
        relative = event.path.relative_to(package.path)
        if self.options.glob and not matches_glob(relative, self.options.glob):
            return False

        files = self._pending.setdefault(package.name, [])
        if relative not in files:
            files.append(relative)
        self._restart_timer()
        return True

    def _restart_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self.options.quiet_period, self.flush)

    def flush(self) -> PackageChangeEvent | None:
        """Emit whatever is buffered now."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if not self._pending:
            return None
        event = PackageChangeEvent(
            packages=sorted(self._pending),
            files={name: sorted(files) for name, files in sorted(self._pending.items())},
        )
        self._pending = {}
        logger.debug("packages changed", packages=event.packages)
        self._queue.put_nowait(event)
        return event

    async def next_event(self) -> PackageChangeEvent:
        return await self._queue.get()

    async def consume(self, source: AsyncIterator[RawEvent]) -> None:
        """Feed every event from `source` into the debouncer until it ends."""
        async for event in source:
            self.push(event)

    def close(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._pending = {}
