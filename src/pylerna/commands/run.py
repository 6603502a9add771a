"""Run command implementation."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

import typer
from rich.console import Console

from pylerna.commands.base import (
    Command,
    CommandContext,
    build_env,
    output_mode,
    scheduler_policy,
)
from pylerna.commands.exec import concurrency_mode, print_summary
from pylerna.config.schema import PyLernaConfig
from pylerna.errors import ConfigurationError, PyLernaError, ScriptNotFoundError
from pylerna.execution import (
    BatchResult,
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


def script_command(config: PyLernaConfig, name: str, _stack: tuple[str, ...] = ()) -> str:
    """Shell command for a script with its pre and post scripts chained around it.

    Raises:
        ScriptNotFoundError: If `name` or a referenced hook is not defined.
        ConfigurationError: If hooks reference each other in a loop.
    """
    if name in _stack:
        chain = " -> ".join((*_stack, name))
        raise ConfigurationError(f"Script hooks form a loop: {chain}")
    script = config.get_script(name)
    if script is None:
        raise ScriptNotFoundError(name, config.script_names)
    stack = (*_stack, name)
    parts = [script_command(config, pre, stack) for pre in script.pre]
    parts.append(script.run)
    parts.extend(script_command(config, post, stack) for post in script.post)
    return " && ".join(parts)


@dataclass
class RunOptions:
    """Options for run command."""

    script_name: str
    scope: str | None = None
    since: str | None = None
    ignore: list[str] | None = None
    concurrency: int | None = None
    bail: bool | None = None
    terminate_on_bail: bool | None = None
    topological: bool = True
    serial: bool = False
    include_dependents: bool = False
    load_env_files: bool | None = None
    dry_run: bool = False


class RunCommand(Command[BatchResult]):
    """Run a defined script across packages.

    Scripts are defined in pylerna.yaml and can be filtered
    by scope, git changes, or ignored patterns.
    """

    def __init__(
        self,
        context: CommandContext,
        options: RunOptions,
        output_handler: Callable[[str, str, bool], None] | None = None,
        on_complete: Callable[[ExecutionResult], None] | None = None,
    ) -> None:
        super().__init__(context)
        self.options = options
        self.output_handler = output_handler
        self.on_complete = on_complete
        self.scheduler: Scheduler | None = None

    def validate(self) -> list[str]:
        """Validate the command."""
        errors = super().validate()

        script = self.workspace.config.get_script(self.options.script_name)
        if not script:
            errors.append(
                f"Script '{self.options.script_name}' not found. "
                f"Available: {', '.join(self.workspace.config.script_names)}"
            )

        return errors

    def get_packages(self) -> list[Package]:
        """Get packages to run script in."""
        packages = list(self.workspace.packages.values())

        # Get script-specific scope if defined
        script = self.workspace.config.get_script(self.options.script_name)
        scope = self.options.scope
        if not scope and script and script.scope:
            scope = script.scope

        return apply_filters_with_since(
            packages,
            self.workspace,
            scope=scope,
            since=self.options.since,
            ignore=self.options.ignore,
            include_dependents=self.options.include_dependents,
        )

    async def execute(self) -> BatchResult:
        """Execute the script."""
        if self.validate():
            raise ScriptNotFoundError(
                self.options.script_name,
                self.workspace.config.script_names,
            )

        config = self.workspace.config
        script = config.get_script(self.options.script_name)
        assert script is not None  # validate() already checked
        command = script_command(config, self.options.script_name)

        packages = self.get_packages()
        if not packages:
            return BatchResult(results=[])

        defaults = config.command_defaults
        env_files = self.options.load_env_files
        if env_files is None:
            env_files = defaults.load_env_files
        env = build_env(self.context, script.env, env_files=env_files)

        bail = self.options.bail if self.options.bail is not None else script.bail
        topological = self.options.topological and script.topological
        policy = scheduler_policy(
            defaults,
            mode=concurrency_mode(topological=topological, serial=self.options.serial),
            concurrency=self.options.concurrency,
            bail=bail,
            terminate_on_bail=self.options.terminate_on_bail,
        )

        unit: UnitOfWork = ShellCommand(command, timeout=defaults.timeout)
        if self.options.dry_run or self.context.dry_run or defaults.dry_run:
            unit = DryRun(unit)

        self.scheduler = Scheduler(
            self.workspace.graph,
            policy,
            root=self.workspace.root,
            env=env,
            output_handler=self.output_handler,
            on_complete=self.on_complete,
        )
        return await self.scheduler.run(packages, unit)


async def run_script(
    workspace: Workspace,
    script_name: str,
    *,
    scope: str | None = None,
    since: str | None = None,
    ignore: list[str] | None = None,
    concurrency: int | None = None,
    bail: bool | None = None,
    topological: bool = True,
    dry_run: bool = False,
    output_handler: Callable[[str, str, bool], None] | None = None,
) -> BatchResult:
    """Convenience function to run a script.

    Args:
        workspace: Workspace to run in.
        script_name: Name of script to run.
        scope: Package scope filter.
        since: Git reference for change detection.
        ignore: Patterns to exclude.
        concurrency: Parallel jobs.
        bail: Stop on first failure; defaults to the script's setting.
        topological: Respect dependency order.
        dry_run: Report the command per package without running it.
        output_handler: Callback for output streaming.

    Returns:
        Batch result with all execution results.
    """

    context = CommandContext(workspace=workspace, dry_run=dry_run)
    options = RunOptions(
        script_name=script_name,
        scope=scope,
        since=since,
        ignore=ignore,
        concurrency=concurrency,
        bail=bail,
        topological=topological,
    )
    cmd = RunCommand(context, options, output_handler=output_handler)
    return await cmd.execute()


async def handle_run_script(
    workspace: Workspace,
    script_name: str,
    *,
    console: Console,
    error_console: Console,
    scope: str | None = None,
    since: str | None = None,
    ignore: list[str] | None = None,
    concurrency: int | None = None,
    bail: bool | None = None,
    terminate_on_bail: bool | None = None,
    topological: bool = True,
    serial: bool = False,
    stream: bool | None = None,
    prefix: bool | None = None,
    load_env_files: bool | None = None,
    dry_run: bool = False,
) -> None:
    defaults = workspace.config.command_defaults
    printer = OutputPrinter(
        console,
        output_mode(defaults, stream=stream, prefix=prefix),
        error_console=error_console,
    )
    try:
        cmd = RunCommand(
            CommandContext(workspace=workspace, dry_run=dry_run),
            RunOptions(
                script_name=script_name,
                scope=scope,
                since=since,
                ignore=ignore,
                concurrency=concurrency,
                bail=bail,
                terminate_on_bail=terminate_on_bail,
                topological=topological,
                serial=serial,
                load_env_files=load_env_files,
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
    except PyLernaError as err:
        error_console.print(f"[red]Error:[/red] {err.message}")
        raise typer.Exit(1) from err
    except Exception as err:
        error_console.print_exception()
        raise typer.Exit(1) from err
