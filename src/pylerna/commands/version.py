"""Version command implementation.

Bumps package versions, rewrites internal dependency ranges, writes
changelogs and the lockfile, then commits, tags and pushes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import typer
from rich.console import Console

from pylerna.changes.detector import ChangeSet
from pylerna.cli.output.table import plan_table, release_table
from pylerna.commands.base import Command, CommandContext
from pylerna.errors import InvalidBumpError, PyLernaError
from pylerna.interactive import confirm, prompt_bumps, select_bump
from pylerna.release import ReleaseCoordinator, ReleaseOptions, ReleaseResult
from pylerna.versioning.planner import VersionBumpPlan
from pylerna.versioning.semver import BumpType, Version

if TYPE_CHECKING:
    from pylerna.release import RegistryClient
    from pylerna.workspace.workspace import Workspace


def parse_bump(value: str | None) -> BumpType | None:
    """Parse a bump keyword such as "minor" or "prerelease".

    Raises:
        InvalidBumpError: For unknown keywords.
    """
    if value is None:
        return None
    try:
        return BumpType(value.lower())
    except ValueError:
        valid = ", ".join(b.value for b in BumpType if b != BumpType.NONE)
        raise InvalidBumpError(f"Invalid bump type '{value}' (expected one of: {valid})") from None


@dataclass
class VersionOptions:
    """Options for version command."""

    bump: BumpType | None = None
    per_package: dict[str, BumpType] | None = None
    preid: str | None = None
    since: str | None = None
    scope: str | None = None
    ignore: list[str] = field(default_factory=list)
    force_publish: list[str] = field(default_factory=list)
    changelog: bool | None = None
    git_tag_version: bool | None = None
    push: bool | None = None
    dry_run: bool = False

    def release_options(self) -> ReleaseOptions:
        return ReleaseOptions(
            since=self.since,
            scope=self.scope,
            ignore=list(self.ignore),
            bump=self.bump,
            per_package=self.per_package,
            preid=self.preid,
            force_publish=list(self.force_publish),
            dry_run=self.dry_run,
            changelog=self.changelog,
            git_tag_version=self.git_tag_version,
            push=self.push,
        )


class VersionCommand(Command[ReleaseResult]):
    """Plan and apply version bumps for changed packages."""

    def __init__(
        self,
        context: CommandContext,
        options: VersionOptions,
        registry: RegistryClient | None = None,
    ) -> None:
        super().__init__(context)
        self.options = options
        self.coordinator = ReleaseCoordinator(self.workspace, registry=registry)

    def release_options(self) -> ReleaseOptions:
        options = self.options.release_options()
        options.dry_run = options.dry_run or self.context.dry_run
        return options

    def detect(self) -> ChangeSet:
        self.coordinator.preflight()
        return self.coordinator.detect(self.release_options())

    def plan(self, change_set: ChangeSet | None = None) -> VersionBumpPlan:
        """Compute the plan without writing anything."""
        if change_set is None:
            change_set = self.detect()
        return self.coordinator.plan(change_set, self.release_options())

    async def execute(self) -> ReleaseResult:
        return await self.coordinator.run(self.release_options())


async def version_packages(
    workspace: Workspace,
    *,
    bump: BumpType | None = None,
    preid: str | None = None,
    since: str | None = None,
    scope: str | None = None,
    changelog: bool | None = None,
    git_tag_version: bool | None = None,
    push: bool | None = None,
    dry_run: bool = False,
) -> ReleaseResult:
    """Convenience function to version packages.

    Args:
        workspace: Workspace to version.
        bump: Manual bump for every changed package; None uses commits.
        preid: Prerelease identifier.
        since: Git reference to detect changes against.
        scope: Restrict the release to matching packages.
        changelog: Override changelog generation.
        git_tag_version: Override commit and tag creation.
        push: Override pushing.
        dry_run: Plan only.

    Returns:
        Release result.
    """
    options = VersionOptions(
        bump=bump,
        preid=preid,
        since=since,
        scope=scope,
        changelog=changelog,
        git_tag_version=git_tag_version,
        push=push,
        dry_run=dry_run,
    )
    cmd = VersionCommand(CommandContext(workspace=workspace, dry_run=dry_run), options)
    return await cmd.execute()


def ask_bumps(workspace: Workspace, options: VersionOptions, change_set: ChangeSet) -> bool:
    """Prompt for the bumps when none were given and commits do not decide them.

    Returns:
        False if the user cancelled a prompt.
    """
    config = workspace.config.versioning
    if options.bump is not None or options.per_package or config.conventional:
        return True
    if not change_set:
        return True
    preid = options.preid or config.preid
    start = config.prerelease_start
    style = config.version_style
    if config.independent:
        entries = [(e.name, Version.parse(e.package.version)) for e in change_set]
        bumps = prompt_bumps(entries, preid=preid, prerelease_start=start, style=style)
        if bumps is None:
            return False
        options.per_package = bumps
        return True
    baseline = max(Version.parse(p.version) for p in workspace.packages.values())
    bump = select_bump(
        workspace.name, baseline, preid=preid, prerelease_start=start, style=style
    )
    if bump is None:
        return False
    options.bump = bump
    return True


def print_release(result: ReleaseResult, console: Console, error_console: Console) -> None:
    console.print(release_table(result))
    if result.commit_sha:
        console.print(f"Commit: {result.commit_sha[:8]}")
    if result.failed_phase is not None:
        error_console.print(
            f"\n[red]Release failed during {result.failed_phase.value}:[/red] {result.error}"
        )
        if result.command:
            error_console.print(f"Failed command: {result.command}")
        if result.tags:
            error_console.print(f"Tags already created: {', '.join(result.tags)}")


async def handle_version_command(
    workspace: Workspace,
    *,
    console: Console,
    error_console: Console,
    bump: str | None = None,
    preid: str | None = None,
    since: str | None = None,
    scope: str | None = None,
    ignore: list[str] | None = None,
    force_publish: list[str] | None = None,
    changelog: bool | None = None,
    git_tag_version: bool | None = None,
    push: bool | None = None,
    dry_run: bool = False,
    yes: bool = False,
) -> None:
    try:
        options = VersionOptions(
            bump=parse_bump(bump),
            preid=preid,
            since=since,
            scope=scope,
            ignore=ignore or [],
            force_publish=force_publish or [],
            changelog=changelog,
            git_tag_version=git_tag_version,
            push=push,
            dry_run=dry_run,
        )
        cmd = VersionCommand(CommandContext(workspace=workspace, dry_run=dry_run), options)

        change_set = cmd.detect()
        if not change_set:
            console.print("[yellow]No changed packages to version[/yellow]")
            return
        if not yes and not ask_bumps(workspace, options, change_set):
            console.print("Aborted.")
            raise typer.Exit(1)
        plan = cmd.plan(change_set)

        console.print("\n[bold]Changes:[/bold]")
        console.print(plan_table(plan))

        if dry_run or workspace.config.versioning.dry_run:
            console.print("\n[yellow]Dry run - no changes made[/yellow]")
            return

        if not yes and not confirm("Are you sure you want to create these versions?"):
            console.print("Aborted.")
            raise typer.Exit(1)

        result = await cmd.coordinator.run(cmd.release_options(), prepared=(change_set, plan))
        print_release(result, console, error_console)
        if result.exit_code():
            raise typer.Exit(1)
        console.print(f"\n[green]Versioned {len(result.releases)} packages[/green]")

    except typer.Exit:
        raise
    except PyLernaError as e:
        error_console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1) from e
    except Exception as e:
        error_console.print_exception()
        raise typer.Exit(1) from e
