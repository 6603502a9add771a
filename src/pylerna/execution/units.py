"""Units of work run by the scheduler."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol, runtime_checkable

from pylerna.execution.results import ExecutionResult
from pylerna.execution.runner import run_in_package
from pylerna.workspace.package import Package


@dataclass
class UnitContext:
    """Everything a unit of work may know about its run.

    Attributes:
        package: Package the unit runs for.
        cwd: Working directory, the package directory unless overridden.
        cancel_event: Run-scoped cancellation signal shared by every unit.
        on_stdout: Line callback for standard output.
        on_stderr: Line callback for standard error.
        root: Workspace root.
        env: Extra environment for the unit.
    """

    package: Package
    cwd: Path
    cancel_event: asyncio.Event
    on_stdout: Callable[[str], None] | None = None
    on_stderr: Callable[[str], None] | None = None
    root: Path | None = None
    env: dict[str, str] = field(default_factory=dict)

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()


@runtime_checkable
class UnitOfWork(Protocol):
    """An opaque per-package action.

    The scheduler only looks at the returned status.
    """

    async def __call__(self, context: UnitContext) -> ExecutionResult: ...


@dataclass
class ShellCommand:
    """Runs a shell command in the package directory."""

    command: str
    env: dict[str, str] = field(default_factory=dict)
    timeout: float | None = None

    async def __call__(self, context: UnitContext) -> ExecutionResult:
        return await run_in_package(
            context.package,
            self.command,
            env={**context.env, **self.env},
            root=context.root,
            cwd=context.cwd,
            timeout=self.timeout,
            on_stdout=context.on_stdout,
            on_stderr=context.on_stderr,
            cancel_event=context.cancel_event,
        )

    def __str__(self) -> str:
        return self.command


@dataclass
class DryRun:
    """Reports what `unit` would do without running it."""

    unit: UnitOfWork

    async def __call__(self, context: UnitContext) -> ExecutionResult:
        description = str(self.unit)
        if context.on_stdout:
            context.on_stdout(f"[dry-run] {description}")
        return ExecutionResult.success_result(
            context.package.name, stdout=f"[dry-run] {description}\n", command=description
        )
