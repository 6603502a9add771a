"""List command implementation."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from enum import Enum
from typing import TYPE_CHECKING

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from pylerna.commands.base import CommandContext, SyncCommand
from pylerna.errors import PyLernaError
from pylerna.filters import apply_filters_with_since

if TYPE_CHECKING:
    from pylerna.workspace import Package
    from pylerna.workspace.workspace import Workspace


class ListFormat(Enum):
    """Output format for list command."""

    TABLE = "table"
    JSON = "json"
    NDJSON = "ndjson"
    PARSEABLE = "parseable"
    GRAPH = "graph"
    NAMES = "names"


@dataclass
class PackageInfo:
    """Information about a package for display."""

    name: str
    version: str
    path: str
    description: str | None
    private: bool
    dependencies: list[str]
    dependents: list[str]


@dataclass
class ListResult:
    """Result of list command."""

    packages: list[PackageInfo]

    def adjacency(self) -> dict[str, list[str]]:
        return {p.name: p.dependencies for p in self.packages}


@dataclass
class ListOptions:
    """Options for list command."""

    scope: str | None = None
    since: str | None = None
    ignore: list[str] | None = None
    format: ListFormat = ListFormat.TABLE
    include_dependents: bool = False
    include_private: bool = False
    toposort: bool = False


class ListCommand(SyncCommand[ListResult]):
    """List packages in the workspace."""

    def __init__(self, context: CommandContext, options: ListOptions | None = None) -> None:
        super().__init__(context)
        self.options = options or ListOptions()

    def get_packages(self) -> list[Package]:
        """Get packages to list."""
        return apply_filters_with_since(
            list(self.workspace.packages.values()),
            self.workspace,
            scope=self.options.scope,
            since=self.options.since,
            ignore=self.options.ignore,
            include_dependents=self.options.include_dependents,
            include_private=self.options.include_private,
        )

    def execute(self) -> ListResult:
        """Execute the list command."""
        packages = self.get_packages()
        if self.options.toposort:
            packages = self.workspace.topological_order(packages)
        else:
            packages = sorted(packages, key=lambda p: p.name)
        graph = self.workspace.graph

        infos = [
            PackageInfo(
                name=pkg.name,
                version=pkg.version,
                path=pkg.path.relative_to(self.workspace.root).as_posix(),
                description=pkg.description or None,
                private=pkg.private,
                dependencies=sorted(graph.get_dependencies(pkg.name)),
                dependents=sorted(graph.get_dependents(pkg.name)),
            )
            for pkg in packages
        ]
        return ListResult(packages=infos)


def list_packages(
    workspace: Workspace,
    *,
    scope: str | None = None,
    since: str | None = None,
    ignore: list[str] | None = None,
    format: ListFormat = ListFormat.TABLE,
    include_private: bool = False,
    toposort: bool = False,
) -> ListResult:
    """Convenience function to list packages.

    Args:
        workspace: Workspace to list.
        scope: Package scope filter.
        since: Git reference.
        ignore: Patterns to exclude.
        format: Output format.
        include_private: Also list private packages.
        toposort: Order dependencies before dependents instead of by name.

    Returns:
        List result with package info.
    """

    context = CommandContext(workspace=workspace)
    options = ListOptions(
        scope=scope,
        since=since,
        ignore=ignore,
        format=format,
        include_private=include_private,
        toposort=toposort,
    )
    cmd = ListCommand(context, options)
    return cmd.execute()


def render_list(
    result: ListResult, fmt: ListFormat, workspace: Workspace, console: Console
) -> None:
    if fmt == ListFormat.JSON:
        console.print_json(json.dumps([asdict(p) for p in result.packages]))
    elif fmt == ListFormat.NDJSON:
        for pkg in result.packages:
            console.out(json.dumps(asdict(pkg)), highlight=False)
    elif fmt == ListFormat.PARSEABLE:
        for pkg in result.packages:
            suffix = ":PRIVATE" if pkg.private else ""
            line = f"{workspace.root / pkg.path}:{pkg.name}:{pkg.version}{suffix}"
            console.out(line, highlight=False)
    elif fmt == ListFormat.GRAPH:
        console.print_json(json.dumps(result.adjacency()))
    elif fmt == ListFormat.NAMES:
        for pkg in result.packages:
            console.out(pkg.name, highlight=False)
    else:
        table = Table(title="Packages")
        table.add_column("Name", style="bold")
        table.add_column("Version")
        table.add_column("Path")
        table.add_column("Dependencies")

        for pkg in result.packages:
            deps = ", ".join(pkg.dependencies) if pkg.dependencies else "-"
            name = escape(pkg.name) + (" [dim](private)[/dim]" if pkg.private else "")
            table.add_row(name, pkg.version, pkg.path, deps)

        console.print(table)


def handle_list_command(
    workspace: Workspace,
    *,
    console: Console,
    error_console: Console,
    scope: str | None = None,
    since: str | None = None,
    ignore: list[str] | None = None,
    fmt: ListFormat = ListFormat.TABLE,
    include_private: bool = False,
    toposort: bool = False,
) -> None:
    try:
        result = list_packages(
            workspace,
            scope=scope,
            since=since,
            ignore=ignore,
            format=fmt,
            include_private=include_private,
            toposort=toposort,
        )
        render_list(result, fmt, workspace, console)
    except PyLernaError as e:
        error_console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1) from e
    except Exception as e:
        error_console.print_exception()
        raise typer.Exit(1) from e
