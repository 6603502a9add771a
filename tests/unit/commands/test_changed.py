"""Tests for changed command."""

from __future__ import annotations

import json
from io import StringIO
from pathlib import Path

import pytest
from rich.console import Console

from pylerna.commands.base import CommandContext
from pylerna.commands.changed import (
    ChangedCommand,
    ChangedOptions,
    get_changed_packages,
    handle_changed_command,
)
from pylerna.workspace.workspace import Workspace


@pytest.fixture
def git_workspace_with_changes(git_workspace: Path, run_git) -> Path:
    """Git workspace with pkg-a changed after a release tag."""
    run_git(git_workspace, "tag", "-a", "pkg-a@1.0.0", "-m", "pkg-a@1.0.0")
    init = git_workspace / "packages" / "pkg-a" / "src" / "pkg_a" / "__init__.py"
    init.write_text('__version__ = "1.0.0"\n# New change\n')
    run_git(git_workspace, "add", "-A")
    run_git(git_workspace, "commit", "-q", "-m", "fix: update pkg-a")
    return git_workspace


class TestChangedCommand:
    """Tests for ChangedCommand."""

    def test_defaults_to_last_release_tag(self, git_workspace_with_changes: Path) -> None:
        workspace = Workspace.discover(git_workspace_with_changes)
        result = get_changed_packages(workspace)

        assert result.since == "pkg-a@1.0.0"
        assert [p.name for p in result.changed] == ["pkg-a", "pkg-b", "pkg-c"]

    def test_explicit_ref(self, git_workspace_with_changes: Path) -> None:
        workspace = Workspace.discover(git_workspace_with_changes)
        result = get_changed_packages(workspace, "HEAD~1")

        assert result.since == "HEAD~1"
        pkg_a = result.changed[0]
        assert pkg_a.name == "pkg-a"
        assert pkg_a.files_changed == 1
        assert not pkg_a.is_dependent

    def test_marks_dependents(self, git_workspace_with_changes: Path) -> None:
        workspace = Workspace.discover(git_workspace_with_changes)
        result = get_changed_packages(workspace, include_dependents=True)

        pkg_b = next(p for p in result.changed if p.name == "pkg-b")
        pkg_c = next(p for p in result.changed if p.name == "pkg-c")
        assert pkg_b.is_dependent
        assert pkg_b.via == "pkg-a"
        assert pkg_c.via == "pkg-b"
        assert pkg_b.files_changed == 0

    def test_excludes_dependents_when_disabled(self, git_workspace_with_changes: Path) -> None:
        workspace = Workspace.discover(git_workspace_with_changes)
        result = get_changed_packages(workspace, include_dependents=False)

        assert [p.name for p in result.changed] == ["pkg-a"]

    def test_scope_filter(self, git_workspace_with_changes: Path) -> None:
        workspace = Workspace.discover(git_workspace_with_changes)
        result = get_changed_packages(workspace, scope="pkg-b,pkg-c")

        assert [p.name for p in result.changed] == ["pkg-b", "pkg-c"]

    def test_ignore_filter(self, git_workspace_with_changes: Path) -> None:
        workspace = Workspace.discover(git_workspace_with_changes)
        result = get_changed_packages(workspace, ignore=["pkg-c"])

        assert [p.name for p in result.changed] == ["pkg-a", "pkg-b"]

    def test_no_changes(self, git_workspace: Path, run_git) -> None:
        run_git(git_workspace, "tag", "-a", "pkg-a@1.0.0", "-m", "pkg-a@1.0.0")
        workspace = Workspace.discover(git_workspace)

        result = get_changed_packages(workspace)

        assert result.changed == []
        assert result.total_files_changed == 0

    def test_ignore_changes_config(self, git_workspace_with_changes: Path) -> None:
        workspace = Workspace.discover(git_workspace_with_changes)
        workspace.config.versioning.ignore_changes = ["**/__init__.py"]

        assert get_changed_packages(workspace).changed == []

    def test_detect_options_follow_config(self, git_workspace: Path) -> None:
        workspace = Workspace.discover(git_workspace)
        workspace.config.versioning.force_publish = ["pkg-b"]
        cmd = ChangedCommand(CommandContext(workspace=workspace), ChangedOptions(since="HEAD"))

        options = cmd.detect_options()

        assert options.since == "HEAD"
        assert options.force == ["pkg-b"]
        assert options.propagate is True


class TestHandleChangedCommand:
    """Tests for the CLI-facing handler."""

    def test_human_output(self, git_workspace_with_changes: Path) -> None:
        console = Console(file=StringIO(), width=200)

        handle_changed_command(
            Workspace.discover(git_workspace_with_changes),
            console=console,
            error_console=Console(file=StringIO()),
        )

        output = console.file.getvalue()
        assert "Packages changed since pkg-a@1.0.0" in output
        assert "pkg-a (1 files)" in output
        assert "pkg-b (dependent of pkg-a)" in output

    def test_json_output(self, git_workspace_with_changes: Path) -> None:
        console = Console(file=StringIO(), width=200)

        handle_changed_command(
            Workspace.discover(git_workspace_with_changes),
            console=console,
            error_console=Console(file=StringIO()),
            json_output=True,
        )

        data = json.loads(console.file.getvalue())
        assert [(p["name"], p["reason"]) for p in data] == [
            ("pkg-a", "direct"),
            ("pkg-b", "propagated"),
            ("pkg-c", "propagated"),
        ]
