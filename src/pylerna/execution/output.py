"""Presentation of unit output: prefixed streaming, buffered, or raw."""

from __future__ import annotations

import zlib
from enum import Enum

from rich.console import Console
from rich.markup import escape

from pylerna.execution.results import ExecutionResult

PREFIX_COLORS = ("cyan", "magenta", "green", "yellow", "blue", "bright_cyan", "bright_magenta")


class OutputMode(str, Enum):
    STREAM = "stream"
    BUFFERED = "buffered"
    RAW = "raw"


def prefix_color(package_name: str) -> str:
    """Stable color for a package name."""
    return PREFIX_COLORS[zlib.crc32(package_name.encode()) % len(PREFIX_COLORS)]


class OutputPrinter:
    """Writes unit output lines to a console.

    The prefix is always the package name the line came from, never taken
    from the line itself.
    """

    def __init__(
        self,
        console: Console,
        mode: OutputMode = OutputMode.STREAM,
        *,
        error_console: Console | None = None,
    ) -> None:
        self.console = console
        self.error_console = error_console or console
        self.mode = mode
        self._buffers: dict[str, list[tuple[str, bool]]] = {}

    def _prefix(self, package_name: str) -> str:
        color = prefix_color(package_name)
        return f"[{color}]{escape(package_name)}:[/{color}] "

    def _write(self, package_name: str, line: str, is_stderr: bool) -> None:
        target = self.error_console if is_stderr else self.console
        if self.mode == OutputMode.RAW:
            target.print(line, markup=False, highlight=False)
            return
        target.print(f"{self._prefix(package_name)}{escape(line)}", highlight=False)

    def __call__(self, package_name: str, line: str, is_stderr: bool) -> None:
        if self.mode == OutputMode.BUFFERED:
            self._buffers.setdefault(package_name, []).append((line, is_stderr))
            return
        self._write(package_name, line, is_stderr)

    def complete(self, result: ExecutionResult) -> None:
        """Flush a package's buffered lines once its result is final."""
        for line, is_stderr in self._buffers.pop(result.package_name, []):
            self._write(result.package_name, line, is_stderr)
