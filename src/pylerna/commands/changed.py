"""Changed command implementation."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass

import typer
from rich.console import Console
from rich.markup import escape

from pylerna.changes.detector import ChangeDetector, ChangeReason, DetectOptions
from pylerna.commands.base import CommandContext, SyncCommand
from pylerna.errors import PyLernaError
from pylerna.filters import apply_filters
from pylerna.workspace.workspace import Workspace


@dataclass
class ChangedPackageInfo:
    """Information about a changed package."""

    name: str
    version: str
    path: str
    reason: str
    files_changed: int
    via: str | None = None

    @property
    def is_dependent(self) -> bool:
        return self.reason == ChangeReason.PROPAGATED.value


@dataclass
class ChangedResult:
    """Result of changed command.

    Attributes:
        since: Reference the comparison was made against; None when the
            workspace has no release tag yet.
        changed: Changed packages in name order.
    """

    since: str | None
    changed: list[ChangedPackageInfo]

    @property
    def total_files_changed(self) -> int:
        return sum(p.files_changed for p in self.changed)


@dataclass
class ChangedOptions:
    """Options for changed command."""

    since: str | None = None
    include_dependents: bool = True
    include_private: bool | None = None
    scope: str | None = None
    ignore: list[str] | None = None


class ChangedCommand(SyncCommand[ChangedResult]):
    """List packages that changed since the last release or a git reference."""

    def __init__(self, context: CommandContext, options: ChangedOptions) -> None:
        super().__init__(context)
        self.options = options

    def detect_options(self) -> DetectOptions:
        config = self.workspace.config.versioning
        include_private = self.options.include_private
        if include_private is None:
            include_private = config.private
        return DetectOptions(
            since=self.options.since,
            include_merged_tags=config.include_merged_tags,
            ignore_changes=list(config.ignore_changes),
            force=list(config.force_publish),
            propagate=self.options.include_dependents,
            propagate_dev_dependencies=config.propagate_dev_dependencies,
            include_private=include_private,
        )

    def execute(self) -> ChangedResult:
        """Execute the changed command."""
        change_set = ChangeDetector(self.workspace).detect(self.detect_options())

        keep = set(change_set.names)
        if self.options.scope or self.options.ignore:
            filtered = apply_filters(
                change_set.packages, scope=self.options.scope, ignore=self.options.ignore
            )
            keep = {p.name for p in filtered}

        changed = [
            ChangedPackageInfo(
                name=entry.name,
                version=entry.package.version,
                path=entry.package.path.relative_to(self.workspace.root).as_posix(),
                reason=entry.reason.value,
                files_changed=len(entry.files),
                via=entry.via,
            )
            for entry in change_set
            if entry.name in keep
        ]
        return ChangedResult(since=change_set.reference, changed=changed)


def get_changed_packages(
    workspace: Workspace,
    since: str | None = None,
    *,
    include_dependents: bool = True,
    scope: str | None = None,
    ignore: list[str] | None = None,
) -> ChangedResult:
    """Convenience function to get changed packages.

    Args:
        workspace: Workspace to check.
        since: Git reference; defaults to the last release tag.
        include_dependents: Include transitive dependents.
        scope: Package scope filter.
        ignore: Patterns to exclude.

    Returns:
        Changed result.
    """

    context = CommandContext(workspace=workspace)
    options = ChangedOptions(
        since=since,
        include_dependents=include_dependents,
        scope=scope,
        ignore=ignore,
    )
    cmd = ChangedCommand(context, options)
    return cmd.execute()


def handle_changed_command(
    workspace: Workspace,
    *,
    console: Console,
    error_console: Console,
    since: str | None = None,
    include_dependents: bool = True,
    scope: str | None = None,
    ignore: list[str] | None = None,
    json_output: bool = False,
) -> None:
    """Handle changed command."""
    try:
        result = get_changed_packages(
            workspace,
            since,
            include_dependents=include_dependents,
            scope=scope,
            ignore=ignore,
        )
        if json_output:
            console.print_json(json.dumps([asdict(p) for p in result.changed]))
            return

        reference = result.since or "the first commit"
        console.print(f"Packages changed since [bold]{escape(reference)}[/bold]:")
        for pkg in result.changed:
            if pkg.is_dependent:
                suffix = f" [dim](dependent of {pkg.via})[/dim]" if pkg.via else ""
            elif pkg.reason == ChangeReason.DIRECT.value:
                suffix = f" ({pkg.files_changed} files)"
            else:
                suffix = f" [dim]({pkg.reason})[/dim]"
            console.print(f"  - {escape(pkg.name)}{suffix}")

        if not result.changed:
            console.print("  [dim]No packages changed[/dim]")
    except PyLernaError as e:
        error_console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1) from e
    except Exception as e:
        error_console.print_exception()
        raise typer.Exit(1) from e
