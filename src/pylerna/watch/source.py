"""watchdog observer adapter producing RawEvents on an asyncio queue."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from pathlib import Path
from types import TracebackType

import structlog
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from pylerna.watch.debouncer import EventKind, RawEvent

logger = structlog.get_logger(__name__)

IGNORED_PARTS = frozenset({".git", "__pycache__", ".venv", "dist", "build", ".pytest_cache"})


def translate(event: FileSystemEvent) -> list[RawEvent]:
    """RawEvents for one watchdog event; moves become an unlink plus an add."""
    src = Path(str(event.src_path))
    directory = event.is_directory
    if event.event_type == "created":
        return [RawEvent(EventKind.ADD_DIR if directory else EventKind.ADD, src)]
    if event.event_type == "modified":
        return [] if directory else [RawEvent(EventKind.CHANGE, src)]
    if event.event_type == "deleted":
        return [RawEvent(EventKind.UNLINK_DIR if directory else EventKind.UNLINK, src)]
    if event.event_type == "moved":
        dest = Path(str(event.dest_path))
        if directory:
            return [RawEvent(EventKind.UNLINK_DIR, src), RawEvent(EventKind.ADD_DIR, dest)]
        return [RawEvent(EventKind.UNLINK, src), RawEvent(EventKind.ADD, dest)]
    return []


def is_ignored_path(path: Path) -> bool:
    return any(part in IGNORED_PARTS for part in path.parts)


class _QueueHandler(FileSystemEventHandler):
    def __init__(self, loop: asyncio.AbstractEventLoop, queue: asyncio.Queue[RawEvent]) -> None:
        self.loop = loop
        self.queue = queue

    def on_any_event(self, event: FileSystemEvent) -> None:
        for raw in translate(event):
            if not is_ignored_path(raw.path):
                self.loop.call_soon_threadsafe(self.queue.put_nowait, raw)


class WatchdogSource:
    """Watches directories recursively and yields RawEvents.

    Example:
        async with WatchdogSource([pkg.path for pkg in packages]) as source:
            async for event in source:
                ...
    """

    def __init__(self, paths: list[Path]) -> None:
        self.paths = paths
        self._observer: Observer | None = None
        self._queue: asyncio.Queue[RawEvent] = asyncio.Queue()

    def start(self) -> None:
        handler = _QueueHandler(asyncio.get_running_loop(), self._queue)
        observer = Observer()
        for path in self.paths:
            observer.schedule(handler, str(path), recursive=True)
        observer.start()
        self._observer = observer
        logger.debug("watching", paths=[str(p) for p in self.paths])

    def stop(self) -> None:
        if self._observer is not None:
            self._observer.stop()
            self._observer.join()
            self._observer = None

    async def __aenter__(self) -> WatchdogSource:
        self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.stop()

    def __aiter__(self) -> AsyncIterator[RawEvent]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[RawEvent]:
        while True:
            yield await self._queue.get()
