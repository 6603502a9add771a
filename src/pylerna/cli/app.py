"""pylerna CLI application."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from pylerna.config.logging import configure_logging
from pylerna.errors import PyLernaError
from pylerna.workspace import Workspace


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        from pylerna import __version__

        print(f"pylerna {__version__}")
        raise typer.Exit()


app = typer.Typer(
    name="pylerna",
    help="Release and build orchestration for Python monorepos",
    no_args_is_help=True,
    add_completion=False,
)


@app.callback()
def _app_callback(
    version: Annotated[  # noqa: ARG001
        bool,
        typer.Option("--version", "-V", help="Show version and exit", callback=version_callback),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Debug logging"),
    ] = False,
    log_json: Annotated[
        bool,
        typer.Option("--log-json", help="Log JSON lines to stderr"),
    ] = False,
) -> None:
    """Release and build orchestration for Python monorepos."""
    configure_logging(verbose=verbose, log_json=log_json)


console = Console()
error_console = Console(stderr=True)

ScopeOption = Annotated[
    str | None,
    typer.Option("--scope", "-s", help="Package names or globs (comma-separated)"),
]
SinceOption = Annotated[
    str | None,
    typer.Option("--since", help="Only packages changed since git ref"),
]
IgnoreOption = Annotated[
    str | None,
    typer.Option("--ignore", "-i", help="Patterns to ignore (comma-separated)"),
]
ConcurrencyOption = Annotated[
    int | None,
    typer.Option("--concurrency", "-c", help="Parallel jobs", min=1),
]
BailOption = Annotated[
    bool | None,
    typer.Option("--bail/--no-bail", help="Stop on first failure"),
]
TerminateOnBailOption = Annotated[
    bool | None,
    typer.Option(
        "--terminate-on-bail/--no-terminate-on-bail",
        help="Cancel packages still running when bailing",
    ),
]
StreamOption = Annotated[
    bool | None,
    typer.Option("--stream/--no-stream", help="Print output as it arrives"),
]
PrefixOption = Annotated[
    bool | None,
    typer.Option("--prefix/--no-prefix", help="Prefix output lines with the package name"),
]
DryRunOption = Annotated[
    bool,
    typer.Option("--dry-run", help="Show what would happen"),
]
YesOption = Annotated[
    bool,
    typer.Option("--yes", "-y", help="Skip prompts"),
]


def parse_comma_list(value: str | None) -> list[str] | None:
    """Parse comma-separated string into list."""
    return [v.strip() for v in value.split(",") if v.strip()] if value else None


def get_workspace(path: Path | None = None) -> Workspace:
    """Load workspace from current directory or specified path."""
    try:
        return Workspace.discover(path)
    except PyLernaError as e:
        error_console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1) from e


@app.command()
def changed(
    since: Annotated[
        str | None,
        typer.Argument(help="Git reference; defaults to the last release tag"),
    ] = None,
    no_dependents: Annotated[
        bool,
        typer.Option("--no-dependents", help="Exclude dependent packages"),
    ] = False,
    scope: ScopeOption = None,
    ignore: IgnoreOption = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """List packages changed since the last release."""
    from pylerna.commands import handle_changed_command

    workspace = get_workspace()
    handle_changed_command(
        workspace,
        console=console,
        error_console=error_console,
        since=since,
        include_dependents=not no_dependents,
        scope=scope,
        ignore=parse_comma_list(ignore),
        json_output=json_output,
    )


@app.command("list")
def list_cmd(
    scope: ScopeOption = None,
    since: SinceOption = None,
    ignore: IgnoreOption = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
    ndjson: Annotated[
        bool,
        typer.Option("--ndjson", help="One JSON object per line"),
    ] = False,
    parseable: Annotated[
        bool,
        typer.Option("--parseable", "-p", help="path:name:version lines"),
    ] = False,
    graph: Annotated[
        bool,
        typer.Option("--graph", help="Dependency adjacency as JSON"),
    ] = False,
    all_packages: Annotated[
        bool,
        typer.Option("--all", "-a", help="Include private packages"),
    ] = False,
    toposort: Annotated[
        bool,
        typer.Option("--toposort", help="Sort in dependency order"),
    ] = False,
) -> None:
    """List workspace packages."""
    from pylerna.commands import ListFormat, handle_list_command

    workspace = get_workspace()

    fmt = ListFormat.TABLE
    if json_output:
        fmt = ListFormat.JSON
    elif ndjson:
        fmt = ListFormat.NDJSON
    elif parseable:
        fmt = ListFormat.PARSEABLE
    elif graph:
        fmt = ListFormat.GRAPH

    handle_list_command(
        workspace,
        console=console,
        error_console=error_console,
        scope=scope,
        since=since,
        ignore=parse_comma_list(ignore),
        fmt=fmt,
        include_private=all_packages,
        toposort=toposort,
    )


@app.command("exec")
def exec_cmd(
    command: Annotated[str, typer.Argument(help="Command to execute")],
    scope: ScopeOption = None,
    since: SinceOption = None,
    ignore: IgnoreOption = None,
    concurrency: ConcurrencyOption = None,
    bail: BailOption = None,
    terminate_on_bail: TerminateOnBailOption = None,
    topological: Annotated[
        bool,
        typer.Option("--topological", help="Respect dependency order"),
    ] = False,
    serial: Annotated[
        bool,
        typer.Option("--serial", help="One package at a time, in dependency order"),
    ] = False,
    stream: StreamOption = None,
    prefix: PrefixOption = None,
    dry_run: DryRunOption = False,
) -> None:
    """Execute an arbitrary command across packages."""
    from pylerna.commands import handle_exec_command

    workspace = get_workspace()
    asyncio.run(
        handle_exec_command(
            workspace,
            command,
            console=console,
            error_console=error_console,
            scope=scope,
            since=since,
            ignore=parse_comma_list(ignore),
            concurrency=concurrency,
            bail=bail,
            terminate_on_bail=terminate_on_bail,
            topological=topological,
            serial=serial,
            stream=stream,
            prefix=prefix,
            dry_run=dry_run,
        )
    )


@app.command("run")
def run_cmd(
    script: Annotated[str, typer.Argument(help="Script name to run")],
    scope: ScopeOption = None,
    since: SinceOption = None,
    ignore: IgnoreOption = None,
    concurrency: ConcurrencyOption = None,
    bail: BailOption = None,
    terminate_on_bail: TerminateOnBailOption = None,
    no_topological: Annotated[
        bool,
        typer.Option("--no-topological", help="Ignore dependency order"),
    ] = False,
    serial: Annotated[
        bool,
        typer.Option("--serial", help="One package at a time, in dependency order"),
    ] = False,
    stream: StreamOption = None,
    prefix: PrefixOption = None,
    load_env_files: Annotated[
        bool | None,
        typer.Option("--load-env-files/--no-load-env-files", help="Load .env files"),
    ] = None,
    dry_run: DryRunOption = False,
) -> None:
    """Run a script from pylerna.yaml across packages."""
    from pylerna.commands import handle_run_script

    workspace = get_workspace()
    asyncio.run(
        handle_run_script(
            workspace,
            script,
            console=console,
            error_console=error_console,
            scope=scope,
            since=since,
            ignore=parse_comma_list(ignore),
            concurrency=concurrency,
            bail=bail,
            terminate_on_bail=terminate_on_bail,
            topological=not no_topological,
            serial=serial,
            stream=stream,
            prefix=prefix,
            load_env_files=load_env_files,
            dry_run=dry_run,
        )
    )


@app.command()
def version(
    bump: Annotated[
        str | None,
        typer.Argument(help="major, minor, patch, premajor, preminor, prepatch, prerelease"),
    ] = None,
    preid: Annotated[
        str | None,
        typer.Option("--preid", help="Prerelease identifier (a, b, rc, alpha, beta...)"),
    ] = None,
    since: SinceOption = None,
    scope: ScopeOption = None,
    ignore: IgnoreOption = None,
    force_publish: Annotated[
        str | None,
        typer.Option("--force-publish", help="Always version these packages ('*' for all)"),
    ] = None,
    changelog: Annotated[
        bool | None,
        typer.Option("--changelog/--no-changelog", help="Write changelogs"),
    ] = None,
    git_tag_version: Annotated[
        bool | None,
        typer.Option("--git-tag-version/--no-git-tag-version", help="Commit and tag"),
    ] = None,
    push: Annotated[
        bool | None,
        typer.Option("--push/--no-push", help="Push the release commit and tags"),
    ] = None,
    dry_run: DryRunOption = False,
    yes: YesOption = False,
) -> None:
    """Bump versions of changed packages, then commit, tag and push."""
    from pylerna.commands import handle_version_command

    workspace = get_workspace()
    asyncio.run(
        handle_version_command(
            workspace,
            console=console,
            error_console=error_console,
            bump=bump,
            preid=preid,
            since=since,
            scope=scope,
            ignore=parse_comma_list(ignore),
            force_publish=parse_comma_list(force_publish),
            changelog=changelog,
            git_tag_version=git_tag_version,
            push=push,
            dry_run=dry_run,
            yes=yes,
        )
    )


@app.command()
def publish(
    bump: Annotated[
        str | None,
        typer.Argument(help="Bump keyword, or omit to use commits or prompts"),
    ] = None,
    from_package: Annotated[
        bool,
        typer.Option("--from-package", help="Publish current manifest versions"),
    ] = False,
    preid: Annotated[
        str | None,
        typer.Option("--preid", help="Prerelease identifier"),
    ] = None,
    since: SinceOption = None,
    scope: ScopeOption = None,
    ignore: IgnoreOption = None,
    otp: Annotated[
        str | None,
        typer.Option("--otp", help="One-time password for the registry"),
    ] = None,
    dist_tag: Annotated[
        str | None,
        typer.Option("--dist-tag", help="Distribution tag"),
    ] = None,
    concurrency: ConcurrencyOption = None,
    bail: Annotated[
        bool,
        typer.Option("--bail/--no-bail", help="Stop publishing after a failure"),
    ] = True,
    dry_run: DryRunOption = False,
    yes: YesOption = False,
) -> None:
    """Version and publish changed packages, or republish with --from-package."""
    from pylerna.commands import handle_publish_command

    workspace = get_workspace()
    asyncio.run(
        handle_publish_command(
            workspace,
            console=console,
            error_console=error_console,
            from_package=from_package,
            bump=bump,
            preid=preid,
            since=since,
            scope=scope,
            ignore=parse_comma_list(ignore),
            otp=otp,
            dist_tag=dist_tag,
            concurrency=concurrency,
            bail=bail,
            dry_run=dry_run,
            yes=yes,
        )
    )


@app.command()
def watch(
    command: Annotated[str, typer.Argument(help="Command to run on changes")],
    scope: ScopeOption = None,
    ignore: IgnoreOption = None,
    concurrency: ConcurrencyOption = None,
    bail: BailOption = None,
    include_dependents: Annotated[
        bool | None,
        typer.Option("--include-dependents/--no-include-dependents", help="Also run dependents"),
    ] = None,
    glob: Annotated[
        str | None,
        typer.Option("--glob", help="Only react to files matching this glob"),
    ] = None,
    stream: StreamOption = None,
    prefix: PrefixOption = None,
) -> None:
    """Re-run a command in packages whose files change."""
    from pylerna.commands import handle_watch_command

    workspace = get_workspace()
    try:
        asyncio.run(
            handle_watch_command(
                workspace,
                command,
                console=console,
                error_console=error_console,
                scope=scope,
                ignore=parse_comma_list(ignore),
                concurrency=concurrency,
                bail=bail,
                include_dependents=include_dependents,
                glob=glob,
                stream=stream,
                prefix=prefix,
            )
        )
    except KeyboardInterrupt:
        console.print("\nStopped watching.")


def main() -> None:
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
