"""Watch command implementation.

Watches package directories and re-runs a command in the packages whose
files changed, once the debouncer's quiet period has passed.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Callable
from dataclasses import dataclass, replace
from pathlib import Path
from typing import TYPE_CHECKING

import structlog
import typer
from rich.console import Console
from rich.markup import escape

from pylerna.commands.base import Command, CommandContext, build_env, output_mode, scheduler_policy
from pylerna.commands.exec import concurrency_mode, print_summary
from pylerna.errors import PyLernaError
from pylerna.execution import (
    BatchResult,
    ExecutionResult,
    OutputPrinter,
    Scheduler,
    ShellCommand,
    UnitContext,
    UnitOfWork,
)
from pylerna.filters import apply_filters
from pylerna.watch import PackageChangeEvent, WatchDebouncer, WatchdogSource, WatchOptions

if TYPE_CHECKING:
    from pylerna.workspace import Package
    from pylerna.workspace.workspace import Workspace

logger = structlog.get_logger(__name__)

FILE_CHANGES_ENV = "PYLERNA_FILE_CHANGES"


@dataclass
class WithFileChanges:
    """Runs `unit` with the package's changed files in PYLERNA_FILE_CHANGES."""

    unit: UnitOfWork
    files: dict[str, str]

    async def __call__(self, context: UnitContext) -> ExecutionResult:
        env = {**context.env, FILE_CHANGES_ENV: self.files.get(context.package.name, "")}
        return await self.unit(replace(context, env=env))

    def __str__(self) -> str:
        return str(self.unit)


@dataclass
class WatchCommandOptions:
    """Options for watch command.

    Attributes:
        command: Shell command re-run in changed packages.
        scope: Packages to watch.
        ignore: Packages not to watch.
        concurrency: Parallel jobs per run.
        bail: Stop watching after a failed run; defaults to `command_defaults.bail`.
        topological: Respect dependency order within a run.
        include_dependents: Also run in dependents of changed packages.
        quiet_period: Seconds of quiet before a run; defaults to the config.
        glob: Package-relative file filter; defaults to the config.
        max_runs: Stop after this many runs.
    """

    command: str
    scope: str | None = None
    ignore: list[str] | None = None
    concurrency: int | None = None
    bail: bool | None = None
    topological: bool = False
    include_dependents: bool | None = None
    quiet_period: float | None = None
    glob: str | None = None
    max_runs: int | None = None


class WatchCommand(Command[BatchResult | None]):
    """Re-run a command in packages as their files change."""

    def __init__(
        self,
        context: CommandContext,
        options: WatchCommandOptions,
        output_handler: Callable[[str, str, bool], None] | None = None,
        on_complete: Callable[[ExecutionResult], None] | None = None,
        on_change: Callable[[PackageChangeEvent, list[Package]], None] | None = None,
    ) -> None:
        super().__init__(context)
        self.options = options
        self.output_handler = output_handler
        self.on_complete = on_complete
        self.on_change = on_change
        self.config = self.workspace.config.watch
        self.runs = 0

    def get_packages(self) -> list[Package]:
        """Get packages to watch."""
        return apply_filters(
            list(self.workspace.packages.values()),
            scope=self.options.scope,
            ignore=self.options.ignore,
        )

    def watch_options(self) -> WatchOptions:
        options = WatchOptions.from_config(self.config)
        if self.options.quiet_period is not None:
            options.quiet_period = self.options.quiet_period
        if self.options.glob is not None:
            options.glob = self.options.glob
        return options

    @property
    def bail(self) -> bool:
        if self.options.bail is not None:
            return self.options.bail
        return self.workspace.config.command_defaults.bail

    def targets(self, event: PackageChangeEvent) -> list[Package]:
        """Changed packages, plus their dependents when configured."""
        names = set(event.packages)
        include_dependents = self.options.include_dependents
        if include_dependents is None:
            include_dependents = self.config.include_dependents
        if include_dependents:
            for name in event.packages:
                names |= self.workspace.graph.get_transitive_dependents(name)
        return [self.workspace.packages[n] for n in sorted(names)]

    async def run_once(self, event: PackageChangeEvent) -> BatchResult:
        """Run the command for one coalesced change event."""
        packages = self.targets(event)
        if self.on_change is not None:
            self.on_change(event, packages)
        delimiter = self.config.file_delimiter
        files = {name: event.file_list(name, delimiter) for name in event.packages}
        unit = WithFileChanges(ShellCommand(self.options.command), files)

        defaults = self.workspace.config.command_defaults
        scheduler = Scheduler(
            self.workspace.graph,
            scheduler_policy(
                defaults,
                mode=concurrency_mode(topological=self.options.topological),
                concurrency=self.options.concurrency,
                bail=self.bail,
            ),
            root=self.workspace.root,
            env=build_env(self.context, env_files=defaults.load_env_files),
            output_handler=self.output_handler,
            on_complete=self.on_complete,
        )
        result = await scheduler.run(packages, unit)
        self.runs += 1
        logger.info(
            "watch run finished",
            packages=[p.name for p in packages],
            failed=[r.package_name for r in result.failures],
        )
        return result

    def _resolver(self, watched: set[str]) -> Callable[[Path], Package | None]:
        def resolve(path: Path) -> Package | None:
            package = self.workspace.package_for_path(path)
            if package is None or package.name not in watched:
                return None
            return package

        return resolve

    async def execute(self) -> BatchResult | None:
        """Watch until a run fails under bail or `max_runs` is reached.

        Returns:
            The last run's result, None if nothing ran.
        """
        packages = self.get_packages()
        if not packages:
            return None
        debouncer = WatchDebouncer(
            self._resolver({p.name for p in packages}), self.watch_options()
        )
        last: BatchResult | None = None
        async with WatchdogSource([p.path for p in packages]) as source:
            feeder = asyncio.create_task(debouncer.consume(source))
            try:
                while self.options.max_runs is None or self.runs < self.options.max_runs:
                    event = await debouncer.next_event()
                    last = await self.run_once(event)
                    if not last.all_success:
                        if self.bail:
                            logger.error("stopping watch after failure")
                            break
                        logger.warning("run failed, still watching")
            finally:
                feeder.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await feeder
                debouncer.close()
        return last


async def handle_watch_command(
    workspace: Workspace,
    command: str,
    *,
    console: Console,
    error_console: Console,
    scope: str | None = None,
    ignore: list[str] | None = None,
    concurrency: int | None = None,
    bail: bool | None = None,
    topological: bool = False,
    include_dependents: bool | None = None,
    glob: str | None = None,
    stream: bool | None = None,
    prefix: bool | None = None,
) -> None:
    defaults = workspace.config.command_defaults
    printer = OutputPrinter(
        console,
        output_mode(defaults, stream=stream, prefix=prefix),
        error_console=error_console,
    )

    def on_change(event: PackageChangeEvent, packages: list[Package]) -> None:
        names = ", ".join(escape(p.name) for p in packages)
        console.print(f"\n[bold]Change detected[/bold] in {escape(', '.join(event.packages))}")
        console.print(f"Running [cyan]{escape(command)}[/cyan] in {names}")

    try:
        cmd = WatchCommand(
            CommandContext(workspace=workspace),
            WatchCommandOptions(
                command=command,
                scope=scope,
                ignore=ignore,
                concurrency=concurrency,
                bail=bail,
                topological=topological,
                include_dependents=include_dependents,
                glob=glob,
            ),
            output_handler=printer,
            on_complete=printer.complete,
            on_change=on_change,
        )
        console.print("[dim]Watching for changes...[/dim]")
        result = await cmd.execute()
        if result is None:
            console.print("[yellow]No packages matched[/yellow]")
            return
        print_summary(result, console, error_console)
        if result.exit_code(defaults.allow_partial_success):
            raise typer.Exit(1)
    except typer.Exit:
        raise
    except PyLernaError as e:
        error_console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1) from e
    except Exception as e:
        error_console.print_exception()
        raise typer.Exit(1) from e
