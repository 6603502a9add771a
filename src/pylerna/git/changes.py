"""File-level change queries."""

from __future__ import annotations

from pathlib import Path

from pylerna.git.repo import run_git_command


def _paths(output: str) -> set[Path]:
    return {Path(line.strip()) for line in output.splitlines() if line.strip()}


def get_changed_files_since(
    root: Path,
    since: str,
    *,
    include_untracked: bool = True,
) -> set[Path]:
    """Files changed since a reference, relative to the repository root.

    Combines committed changes since `since`, staged changes, unstaged
    changes and (optionally) untracked files.
    """
    changed = _paths(run_git_command(["diff", "--name-only", since, "HEAD"], cwd=root).stdout)
    changed |= _paths(run_git_command(["diff", "--name-only", "--cached"], cwd=root).stdout)
    changed |= _paths(run_git_command(["diff", "--name-only"], cwd=root).stdout)
    if include_untracked:
        changed |= _paths(
            run_git_command(["ls-files", "--others", "--exclude-standard"], cwd=root).stdout
        )
    return changed
