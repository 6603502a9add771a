"""Tests for watch command."""

from __future__ import annotations

import asyncio
from pathlib import Path
from unittest.mock import patch

import pytest

from pylerna.commands.base import CommandContext
from pylerna.commands.watch import (
    FILE_CHANGES_ENV,
    WatchCommand,
    WatchCommandOptions,
    WithFileChanges,
)
from pylerna.execution import ExecutionResult, UnitContext
from pylerna.watch import EventKind, PackageChangeEvent, RawEvent
from pylerna.workspace.workspace import Workspace


class ScriptedSource:
    """Stands in for WatchdogSource: yields `events`, then stays open."""

    def __init__(self, events: list[RawEvent]) -> None:
        self.events = events
        self.paths: list[Path] = []

    def __call__(self, paths: list[Path]) -> ScriptedSource:
        self.paths = paths
        return self

    async def __aenter__(self) -> ScriptedSource:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        return None

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for event in self.events:
            yield event
        await asyncio.Event().wait()


def change(workspace_dir: Path, package: str, relative: str) -> RawEvent:
    return RawEvent(EventKind.CHANGE, workspace_dir / "packages" / package / relative)


@pytest.fixture
def workspace(workspace_dir: Path) -> Workspace:
    return Workspace.discover(workspace_dir)


def watch_command(workspace: Workspace, **kwargs) -> WatchCommand:
    return WatchCommand(CommandContext(workspace=workspace), WatchCommandOptions(**kwargs))


class TestTargets:
    """Which packages a change event runs in."""

    def test_changed_packages_only(self, workspace: Workspace) -> None:
        cmd = watch_command(workspace, command="true")

        targets = cmd.targets(PackageChangeEvent(packages=["pkg-b"]))

        assert [p.name for p in targets] == ["pkg-b"]

    def test_with_dependents(self, workspace: Workspace) -> None:
        cmd = watch_command(workspace, command="true", include_dependents=True)

        targets = cmd.targets(PackageChangeEvent(packages=["pkg-a"]))

        assert [p.name for p in targets] == ["pkg-a", "pkg-b", "pkg-c"]

    def test_dependents_from_config(self, workspace: Workspace) -> None:
        workspace.config.watch.include_dependents = True
        cmd = watch_command(workspace, command="true")

        targets = cmd.targets(PackageChangeEvent(packages=["pkg-b"]))

        assert [p.name for p in targets] == ["pkg-b", "pkg-c"]


def test_watch_options_override_config(workspace: Workspace) -> None:
    workspace.config.watch.quiet_period_ms = 500
    cmd = watch_command(workspace, command="true", glob="src/**")

    options = cmd.watch_options()

    assert options.quiet_period == 0.5
    assert options.glob == "src/**"


async def test_with_file_changes_sets_env(workspace: Workspace) -> None:
    seen: dict[str, str] = {}

    async def unit(context: UnitContext) -> ExecutionResult:
        seen.update(context.env)
        return ExecutionResult.success_result(context.package.name)

    package = workspace.packages["pkg-a"]
    wrapped = WithFileChanges(unit, {"pkg-a": "src/a.py src/b.py"})
    context = UnitContext(
        package=package, cwd=package.path, cancel_event=asyncio.Event(), env={"KEEP": "1"}
    )

    await wrapped(context)

    assert seen == {"KEEP": "1", FILE_CHANGES_ENV: "src/a.py src/b.py"}


async def test_run_once_exports_changed_files(workspace: Workspace) -> None:
    cmd = watch_command(workspace, command=f'echo "${FILE_CHANGES_ENV}"')
    event = PackageChangeEvent(
        packages=["pkg-a"], files={"pkg-a": [Path("src/pkg_a/__init__.py"), Path("README.md")]}
    )

    result = await cmd.run_once(event)

    assert result.get("pkg-a").stdout.strip() == "src/pkg_a/__init__.py README.md"
    assert cmd.runs == 1


class TestExecute:
    """The watch loop, driven by scripted file events."""

    async def test_runs_once_per_burst(self, workspace: Workspace, workspace_dir: Path) -> None:
        source = ScriptedSource(
            [
                change(workspace_dir, "pkg-a", "src/pkg_a/__init__.py"),
                change(workspace_dir, "pkg-a", "src/pkg_a/__init__.py"),
                change(workspace_dir, "pkg-c", "README.md"),
            ]
        )
        changes: list[list[str]] = []
        cmd = WatchCommand(
            CommandContext(workspace=workspace),
            WatchCommandOptions(command="echo run", max_runs=1),
            on_change=lambda event, packages: changes.append(event.packages),
        )

        with patch("pylerna.commands.watch.WatchdogSource", source):
            result = await asyncio.wait_for(cmd.execute(), timeout=10)

        assert changes == [["pkg-a", "pkg-c"]]
        assert [r.package_name for r in result] == ["pkg-a", "pkg-c"]
        assert len(source.paths) == 3

    async def test_stops_after_failure_under_bail(
        self, workspace: Workspace, workspace_dir: Path
    ) -> None:
        source = ScriptedSource([change(workspace_dir, "pkg-b", "x.py")])
        cmd = watch_command(workspace, command="exit 1", bail=True)

        with patch("pylerna.commands.watch.WatchdogSource", source):
            result = await asyncio.wait_for(cmd.execute(), timeout=10)

        assert cmd.runs == 1
        assert result.get("pkg-b").failed

    async def test_events_outside_scope_ignored(
        self, workspace: Workspace, workspace_dir: Path
    ) -> None:
        source = ScriptedSource(
            [
                change(workspace_dir, "pkg-a", "ignored.py"),
                change(workspace_dir, "pkg-b", "watched.py"),
            ]
        )
        cmd = watch_command(workspace, command="true", scope="pkg-b", max_runs=1)

        with patch("pylerna.commands.watch.WatchdogSource", source):
            result = await asyncio.wait_for(cmd.execute(), timeout=10)

        assert [r.package_name for r in result] == ["pkg-b"]
        assert source.paths == [workspace.packages["pkg-b"].path]

    async def test_no_packages(self, workspace: Workspace) -> None:
        cmd = watch_command(workspace, command="true", scope="missing")

        assert await cmd.execute() is None
