"""File watching: debouncer and watchdog source."""

from pylerna.watch.debouncer import (
    ALL_KINDS,
    EventKind,
    PackageChangeEvent,
    RawEvent,
    WatchDebouncer,
    WatchOptions,
    matches_glob,
)
from pylerna.watch.source import WatchdogSource, translate

__all__ = [
    "ALL_KINDS",
    "EventKind",
    "PackageChangeEvent",
    "RawEvent",
    "WatchDebouncer",
    "WatchOptions",
    "WatchdogSource",
    "matches_glob",
    "translate",
]
