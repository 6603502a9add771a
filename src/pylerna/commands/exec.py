"""Exec command implementation."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

import typer
from rich.console import Console
from rich.markup import escape

from pylerna.commands.base import (
    Command,
    CommandContext,
    build_env,
    output_mode,
    scheduler_policy,
)
from pylerna.errors import PyLernaError
from pylerna.execution import (
    BatchResult,
    ConcurrencyMode,
    DryRun,
    ExecutionResult,
    OutputPrinter,
    Scheduler,
    ShellCommand,
    UnitOfWork,
)
from pylerna.filters import apply_filters_with_since

if TYPE_CHECKING:
    from pylerna.workspace import Package
    from pylerna.workspace.workspace import Workspace


def concurrency_mode(*, topological: bool, serial: bool = False) -> ConcurrencyMode:
    if serial:
        return ConcurrencyMode.SERIAL
    return ConcurrencyMode.TOPOLOGICAL if topological else ConcurrencyMode.PARALLEL


@dataclass
class ExecOptions:
    """Options for exec command."""

    command: str
    scope: str | None = None
    since: str | None = None
    ignore: list[str] | None = None
    concurrency: int | None = None
    bail: bool | None = None
    terminate_on_bail: bool | None = None
    topological: bool = False  # exec doesn't default to topological
    serial: bool = False
    include_dependents: bool = False
    include_private: bool = True
    timeout: float | None = None
    dry_run: bool = False


class ExecCommand(Command[BatchResult]):
    """Execute an arbitrary command across packages.

    Unlike 'run', exec takes a direct command string rather
    than a script name from configuration.
    """

    def __init__(
        self,
        context: CommandContext,
        options: ExecOptions,
        output_handler: Callable[[str, str, bool], None] | None = None,
        on_complete: Callable[[ExecutionResult], None] | None = None,
    ) -> None:
        super().__init__(context)
        self.options = options
        self.output_handler = output_handler
        self.on_complete = on_complete
        self.scheduler: Scheduler | None = None

    def get_packages(self) -> list[Package]:
        """Get packages to execute command in."""
        return apply_filters_with_since(
            list(self.workspace.packages.values()),
            self.workspace,
            scope=self.options.scope,
            since=self.options.since,
            ignore=self.options.ignore,
            include_dependents=self.options.include_dependents,
            include_private=self.options.include_private,
        )

    def unit(self) -> UnitOfWork:
        defaults = self.workspace.config.command_defaults
        timeout = self.options.timeout if self.options.timeout is not None else defaults.timeout
        unit: UnitOfWork = ShellCommand(self.options.command, timeout=timeout)
        if self.options.dry_run or self.context.dry_run or defaults.dry_run:
            unit = DryRun(unit)
        return unit

    async def execute(self) -> BatchResult:
        """Execute the command."""
        packages = self.get_packages()
        if not packages:
            return BatchResult(results=[])

        defaults = self.workspace.config.command_defaults
        policy = scheduler_policy(
            defaults,
            mode=concurrency_mode(topological=self.options.topological, serial=self.options.serial),
            concurrency=self.options.concurrency,
            bail=self.options.bail,
            terminate_on_bail=self.options.terminate_on_bail,
        )
        self.scheduler = Scheduler(
            self.workspace.graph,
            policy,
            root=self.workspace.root,
            env=build_env(self.context, env_files=defaults.load_env_files),
            output_handler=self.output_handler,
            on_complete=self.on_complete,
        )
        return await self.scheduler.run(packages, self.unit())

    def cancel(self) -> None:
        if self.scheduler is not None:
            self.scheduler.cancel()


async def exec_command(
    workspace: Workspace,
    command: str,
    *,
    scope: str | None = None,
    since: str | None = None,
    ignore: list[str] | None = None,
    concurrency: int | None = None,
    bail: bool | None = None,
    topological: bool = False,
    serial: bool = False,
    dry_run: bool = False,
    output_handler: Callable[[str, str, bool], None] | None = None,
) -> BatchResult:
    """Convenience function to execute a command.

    Args:
        workspace: Workspace to run in.
        command: Command to execute.
        scope: Package scope filter.
        since: Git reference.
        ignore: Patterns to exclude.
        concurrency: Parallel jobs.
        bail: Stop on first failure.
        topological: Respect dependency order.
        serial: One package at a time, in dependency order.
        dry_run: Report the command per package without running it.
        output_handler: Callback for output streaming.

    Returns:
        Batch result.
    """

    context = CommandContext(workspace=workspace, dry_run=dry_run)
    options = ExecOptions(
        command=command,
        scope=scope,
        since=since,
        ignore=ignore,
        concurrency=concurrency,
        bail=bail,
        topological=topological,
        serial=serial,
    )
    cmd = ExecCommand(context, options, output_handler=output_handler)
    return await cmd.execute()


def print_summary(result: BatchResult, console: Console, error_console: Console) -> None:
    """Status line per package that did not succeed, then totals."""
    for r in result:
        package_name = escape(r.package_name)
        if r.failed:
            error_console.print(f"[red]✗[/red] {package_name} ({r.error or r.exit_code})")
        elif not r.success:
            reason = escape(r.error or "")
            console.print(f"[yellow]-[/yellow] {package_name} {r.status.value}: {reason}")
    if result.all_success:
        console.print(f"\n[green]All {len(result)} packages passed[/green]")
    else:
        console.print(
            f"\n[red]{result.failure_count} failed[/red], "
            f"{result.success_count} passed, {len(result.skipped)} skipped, "
            f"{len(result.cancelled)} cancelled"
        )


async def handle_exec_command(
    workspace: Workspace,
    command: str,
    *,
    console: Console,
    error_console: Console,
    scope: str | None = None,
    since: str | None = None,
    ignore: list[str] | None = None,
    concurrency: int | None = None,
    bail: bool | None = None,
    terminate_on_bail: bool | None = None,
    topological: bool = False,
    serial: bool = False,
    stream: bool | None = None,
    prefix: bool | None = None,
    dry_run: bool = False,
) -> None:
    defaults = workspace.config.command_defaults
    printer = OutputPrinter(
        console,
        output_mode(defaults, stream=stream, prefix=prefix),
        error_console=error_console,
    )
    try:
        cmd = ExecCommand(
            CommandContext(workspace=workspace, dry_run=dry_run),
            ExecOptions(
                command=command,
                scope=scope,
                since=since,
                ignore=ignore,
                concurrency=concurrency,
                bail=bail,
                terminate_on_bail=terminate_on_bail,
                topological=topological,
                serial=serial,
            ),
            output_handler=printer,
            on_complete=printer.complete,
        )
        result = await cmd.execute()
        if not result.results:
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
