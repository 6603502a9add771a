"""Publish command implementation."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import typer
from rich.console import Console

from pylerna.cli.output.table import plan_table
from pylerna.commands.base import Command, CommandContext
from pylerna.commands.version import VersionOptions, ask_bumps, parse_bump, print_release
from pylerna.errors import PyLernaError
from pylerna.interactive import confirm
from pylerna.release import RegistryClient, ReleaseCoordinator, ReleaseOptions, ReleaseResult
from pylerna.uv import UvRegistryClient

if TYPE_CHECKING:
    from pylerna.workspace.workspace import Workspace

TOKEN_ENV = "UV_PUBLISH_TOKEN"


@dataclass
class PublishOptions:
    """Options for publish command.

    Attributes:
        from_package: Publish the versions already in the manifests instead
            of versioning first.
        version: Versioning options used when `from_package` is False.
        otp: One-time password passed to the registry.
        dist_tag: Overrides the configured dist-tag.
        bail: Stop after the first failed publish.
        concurrency: Parallel publishes.
    """

    from_package: bool = False
    version: VersionOptions = field(default_factory=VersionOptions)
    otp: str | None = None
    dist_tag: str | None = None
    bail: bool = True
    concurrency: int | None = None


class PublishCommand(Command[ReleaseResult]):
    """Version (unless publishing from package) and publish to the registry."""

    def __init__(
        self,
        context: CommandContext,
        options: PublishOptions,
        registry: RegistryClient | None = None,
    ) -> None:
        super().__init__(context)
        self.options = options
        if registry is None:
            registry = UvRegistryClient(token=os.environ.get(TOKEN_ENV))
        self.coordinator = ReleaseCoordinator(self.workspace, registry=registry)

    def release_options(self) -> ReleaseOptions:
        options = self.options.version.release_options()
        options.dry_run = options.dry_run or self.context.dry_run
        options.publish = True
        options.otp = self.options.otp
        options.dist_tag = self.options.dist_tag
        options.bail = self.options.bail
        if self.options.concurrency is not None:
            options.concurrency = self.options.concurrency
        else:
            options.concurrency = self.workspace.config.command_defaults.concurrency
        return options

    async def execute(self) -> ReleaseResult:
        if self.options.from_package:
            return await self.coordinator.publish_from_package(self.release_options())
        return await self.coordinator.run(self.release_options())


async def publish_packages(
    workspace: Workspace,
    *,
    from_package: bool = False,
    scope: str | None = None,
    otp: str | None = None,
    dist_tag: str | None = None,
    registry: RegistryClient | None = None,
    dry_run: bool = False,
) -> ReleaseResult:
    """Convenience function to publish packages.

    Args:
        workspace: Workspace to publish.
        from_package: Publish current manifest versions without versioning.
        scope: Restrict to matching packages.
        otp: One-time password.
        dist_tag: Dist-tag override.
        registry: Registry client; defaults to uv.
        dry_run: Report without publishing.
    """
    options = PublishOptions(
        from_package=from_package,
        version=VersionOptions(scope=scope, dry_run=dry_run),
        otp=otp,
        dist_tag=dist_tag,
    )
    cmd = PublishCommand(CommandContext(workspace=workspace, dry_run=dry_run), options, registry)
    return await cmd.execute()


async def handle_publish_command(
    workspace: Workspace,
    *,
    console: Console,
    error_console: Console,
    from_package: bool = False,
    bump: str | None = None,
    preid: str | None = None,
    since: str | None = None,
    scope: str | None = None,
    ignore: list[str] | None = None,
    otp: str | None = None,
    dist_tag: str | None = None,
    concurrency: int | None = None,
    bail: bool = True,
    dry_run: bool = False,
    yes: bool = False,
) -> None:
    try:
        options = PublishOptions(
            from_package=from_package,
            version=VersionOptions(
                bump=parse_bump(bump),
                preid=preid,
                since=since,
                scope=scope,
                ignore=ignore or [],
                dry_run=dry_run,
            ),
            otp=otp,
            dist_tag=dist_tag,
            bail=bail,
            concurrency=concurrency,
        )
        cmd = PublishCommand(CommandContext(workspace=workspace, dry_run=dry_run), options)
        coordinator = cmd.coordinator
        defaults = workspace.config.command_defaults

        if from_package:
            result = await cmd.execute()
            if not result.releases:
                console.print("[yellow]No packages to publish[/yellow]")
                return
        else:
            release_options = cmd.release_options()
            coordinator.preflight()
            change_set = coordinator.detect(release_options)
            if not change_set:
                console.print("[yellow]No changed packages to publish[/yellow]")
                return
            if not yes and not ask_bumps(workspace, options.version, change_set):
                console.print("Aborted.")
                raise typer.Exit(1)
            release_options = cmd.release_options()
            plan = coordinator.plan(change_set, release_options)
            console.print("\n[bold]Changes:[/bold]")
            console.print(plan_table(plan))
            if release_options.dry_run or workspace.config.versioning.dry_run:
                console.print("\n[yellow]Dry run - nothing published[/yellow]")
                return
            if not yes and not confirm("Are you sure you want to publish these packages?"):
                console.print("Aborted.")
                raise typer.Exit(1)
            result = await coordinator.run(release_options, prepared=(change_set, plan))

        if result.dry_run:
            console.print("[yellow]Dry run - nothing published[/yellow]")
        print_release(result, console, error_console)
        if any(r.otp_required for r in result.releases):
            error_console.print("Re-run with --otp to publish the remaining packages.")
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
