"""Tests for exec command."""

from __future__ import annotations

from io import StringIO
from pathlib import Path

import pytest
import typer
from rich.console import Console

from pylerna.commands.base import CommandContext, scheduler_policy
from pylerna.commands.exec import ExecCommand, ExecOptions, exec_command, handle_exec_command
from pylerna.config.schema import CommandDefaults
from pylerna.execution import ConcurrencyMode
from pylerna.workspace.workspace import Workspace


class TestExecCommand:
    """Tests for ExecCommand."""

    async def test_executes_command_in_packages(self, workspace_dir: Path) -> None:
        """Should execute command in all packages."""
        workspace = Workspace.discover(workspace_dir)
        result = await exec_command(workspace, "echo hello")

        assert len(result.results) == 3
        for r in result.results:
            assert r.success
            assert "hello" in r.stdout

    async def test_scope_filter(self, workspace_dir: Path) -> None:
        """Should filter packages by scope."""
        workspace = Workspace.discover(workspace_dir)
        result = await exec_command(workspace, "echo test", scope="pkg-a")

        assert len(result.results) == 1
        assert result.results[0].package_name == "pkg-a"

    async def test_ignore_filter(self, workspace_dir: Path) -> None:
        """Should exclude packages matching ignore."""
        workspace = Workspace.discover(workspace_dir)
        result = await exec_command(workspace, "echo test", ignore=["pkg-c"])

        names = [r.package_name for r in result.results]
        assert "pkg-c" not in names
        assert len(result.results) == 2

    async def test_returns_empty_for_no_packages(self, workspace_dir: Path) -> None:
        """Should return empty result if no packages match."""
        workspace = Workspace.discover(workspace_dir)
        result = await exec_command(workspace, "echo test", scope="nonexistent")

        assert len(result.results) == 0

    async def test_captures_stdout(self, workspace_dir: Path) -> None:
        """Should capture command stdout."""
        workspace = Workspace.discover(workspace_dir)
        result = await exec_command(workspace, "echo captured_output")

        assert all("captured_output" in r.stdout for r in result.results)

    async def test_captures_stderr(self, workspace_dir: Path) -> None:
        """Should capture command stderr."""
        workspace = Workspace.discover(workspace_dir)
        result = await exec_command(workspace, "echo error >&2")

        assert all("error" in r.stderr for r in result.results)

    async def test_reports_exit_code(self, workspace_dir: Path) -> None:
        """Should report command exit code."""
        workspace = Workspace.discover(workspace_dir)
        result = await exec_command(workspace, "exit 0")

        assert all(r.exit_code == 0 for r in result.results)

    async def test_bail_stops_on_error(self, workspace_dir: Path) -> None:
        """Should stop scheduling after the first failure."""
        workspace = Workspace.discover(workspace_dir)
        result = await exec_command(
            workspace,
            "exit 1",
            bail=True,
            concurrency=1,  # one at a time so the rest never start
        )

        assert result.failure_count == 1
        assert [r.error for r in result.skipped] == ["bailed after failure"] * 2


class TestExecCommandClass:
    """Tests for ExecCommand class directly."""

    def test_get_packages_applies_scope(self, workspace_dir: Path) -> None:
        """Should apply scope filter."""
        workspace = Workspace.discover(workspace_dir)
        context = CommandContext(workspace=workspace)
        options = ExecOptions(command="echo", scope="pkg-a")
        cmd = ExecCommand(context, options)

        packages = cmd.get_packages()
        assert len(packages) == 1
        assert packages[0].name == "pkg-a"

    def test_get_packages_applies_ignore(self, workspace_dir: Path) -> None:
        """Should apply ignore filter."""
        workspace = Workspace.discover(workspace_dir)
        context = CommandContext(workspace=workspace)
        options = ExecOptions(command="echo", ignore=["pkg-c"])
        cmd = ExecCommand(context, options)

        packages = cmd.get_packages()
        names = [p.name for p in packages]
        assert "pkg-c" not in names

    def test_options_defaults(self) -> None:
        """Should have correct default options."""
        options = ExecOptions(command="test")
        assert options.concurrency is None
        assert options.bail is None
        assert options.include_private is True
        assert options.topological is False
        assert options.scope is None


class TestExecEdgeCases:
    """Edge case tests for exec command."""

    async def test_command_with_spaces(self, workspace_dir: Path) -> None:
        """Should handle commands with spaces."""
        workspace = Workspace.discover(workspace_dir)
        result = await exec_command(workspace, "echo hello world")

        assert all("hello world" in r.stdout for r in result.results)

    async def test_command_with_quotes(self, workspace_dir: Path) -> None:
        """Should handle commands with quoted strings."""
        workspace = Workspace.discover(workspace_dir)
        result = await exec_command(workspace, 'echo "quoted string"')

        assert all("quoted string" in r.stdout for r in result.results)

    async def test_command_with_pipe(self, workspace_dir: Path) -> None:
        """Should handle commands with pipes."""
        workspace = Workspace.discover(workspace_dir)
        result = await exec_command(workspace, "echo test | cat")

        assert all("test" in r.stdout for r in result.results)

    async def test_nonexistent_command(self, workspace_dir: Path) -> None:
        """Should report failure for nonexistent command."""
        workspace = Workspace.discover(workspace_dir)
        result = await exec_command(workspace, "nonexistent_cmd_12345")

        assert all(not r.success for r in result.results)

    async def test_empty_workspace(self, temp_dir: Path) -> None:
        """Should return empty result for workspace with no packages."""
        pylerna_yaml = temp_dir / "pylerna.yaml"
        pylerna_yaml.write_text("name: empty\npackages:\n  - packages/*\n")
        (temp_dir / "packages").mkdir()

        workspace = Workspace.discover(temp_dir)
        result = await exec_command(workspace, "echo test")

        assert len(result.results) == 0

    async def test_working_directory(self, workspace_dir: Path) -> None:
        """Should execute command in package directory."""
        workspace = Workspace.discover(workspace_dir)
        result = await exec_command(workspace, "pwd", scope="pkg-a")

        assert "pkg-a" in result.results[0].stdout

    async def test_concurrent_execution(self, workspace_dir: Path) -> None:
        """Should execute concurrently with multiple packages."""
        workspace = Workspace.discover(workspace_dir)
        result = await exec_command(workspace, "echo test", concurrency=3)

        assert len(result.results) == 3
        assert all(r.success for r in result.results)


class TestExecScheduling:
    """Ordering, bail and dry-run behaviour."""

    async def test_no_bail_runs_everything(self, workspace_dir: Path) -> None:
        workspace = Workspace.discover(workspace_dir)
        result = await exec_command(workspace, "exit 1", bail=False)

        assert result.failure_count == 3
        assert result.exit_code() == 1

    async def test_topological_skips_dependents_of_failures(self, workspace_dir: Path) -> None:
        workspace = Workspace.discover(workspace_dir)
        command = 'test "$PYLERNA_PACKAGE_NAME" != pkg-b'

        result = await exec_command(workspace, command, bail=False, topological=True)

        assert result.get("pkg-a").success
        assert result.get("pkg-b").failed
        assert result.get("pkg-c").error == "dependency pkg-b did not succeed"

    async def test_serial_streams_in_dependency_order(self, workspace_dir: Path) -> None:
        workspace = Workspace.discover(workspace_dir)
        seen: list[str] = []

        await exec_command(
            workspace,
            "echo hi",
            serial=True,
            output_handler=lambda pkg, line, is_err: seen.append(pkg),
        )

        assert seen == ["pkg-a", "pkg-b", "pkg-c"]

    async def test_dry_run_does_not_execute(self, workspace_dir: Path) -> None:
        workspace = Workspace.discover(workspace_dir)
        result = await exec_command(workspace, "touch marker", dry_run=True)

        assert result.all_success
        assert all(r.stdout == "[dry-run] touch marker\n" for r in result)
        assert not (workspace_dir / "packages" / "pkg-a" / "marker").exists()

    async def test_timeout(self, workspace_dir: Path) -> None:
        workspace = Workspace.discover(workspace_dir)
        cmd = ExecCommand(
            CommandContext(workspace=workspace),
            ExecOptions(command="sleep 5", scope="pkg-a", timeout=0.2),
        )

        result = await cmd.execute()

        assert result.get("pkg-a").failed
        assert "timed out" in result.get("pkg-a").stderr

    async def test_terminate_on_bail_from_command_defaults(self, workspace_dir: Path) -> None:
        config = workspace_dir / "pylerna.yaml"
        text = config.read_text()
        config.write_text(text.replace("bail: true\n", "bail: true\n  terminate_on_bail: true\n"))
        workspace = Workspace.discover(workspace_dir)
        command = 'if [ "$PYLERNA_PACKAGE_NAME" = pkg-a ]; then exit 1; fi; sleep 5'

        result = await exec_command(workspace, command, concurrency=3)

        assert result.get("pkg-a").failed
        assert [r.package_name for r in result.cancelled] == ["pkg-b", "pkg-c"]
        assert all(r.error == "terminated" for r in result.cancelled)

    def test_scheduler_policy_prefers_option_over_defaults(self) -> None:
        defaults = CommandDefaults(terminate_on_bail=True)

        assert scheduler_policy(defaults, mode=ConcurrencyMode.PARALLEL).terminate_on_bail
        assert not scheduler_policy(
            defaults, mode=ConcurrencyMode.PARALLEL, terminate_on_bail=False
        ).terminate_on_bail


class TestHandleExecCommand:
    """Tests for the CLI-facing handler."""

    @staticmethod
    def consoles() -> tuple[Console, Console]:
        return Console(file=StringIO(), width=120), Console(file=StringIO(), width=120)

    async def test_success(self, workspace_dir: Path) -> None:
        console, error_console = self.consoles()

        await handle_exec_command(
            Workspace.discover(workspace_dir),
            "echo ok",
            console=console,
            error_console=error_console,
        )

        assert "All 3 packages passed" in console.file.getvalue()

    async def test_failure_exits_1(self, workspace_dir: Path) -> None:
        console, error_console = self.consoles()

        with pytest.raises(typer.Exit) as exc_info:
            await handle_exec_command(
                Workspace.discover(workspace_dir),
                "exit 2",
                console=console,
                error_console=error_console,
                scope="pkg-a",
            )

        assert exc_info.value.exit_code == 1
        assert "pkg-a" in error_console.file.getvalue()

    async def test_no_packages_matched(self, workspace_dir: Path) -> None:
        console, error_console = self.consoles()

        await handle_exec_command(
            Workspace.discover(workspace_dir),
            "echo ok",
            console=console,
            error_console=error_console,
            scope="missing",
        )

        assert "No packages matched" in console.file.getvalue()
