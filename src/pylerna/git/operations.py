"""Mutating git operations issued during a release."""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

from pylerna.git.repo import get_current_commit, run_git_command


def stage_files(root: Path, paths: Iterable[Path]) -> None:
    """Stage specific files (paths may be absolute or root-relative)."""
    rel = [str(p.relative_to(root)) if p.is_absolute() else str(p) for p in paths]
    if rel:
        run_git_command(["add", "--", *sorted(rel)], cwd=root)


def stage_all(root: Path) -> None:
    run_git_command(["add", "-A"], cwd=root)


def commit(
    root: Path,
    message: str,
    *,
    sign: bool = False,
    signoff: bool = False,
    hooks: bool = True,
    amend: bool = False,
) -> str:
    """Commit the index and return the new HEAD SHA.

    Raises:
        GitError: With the exact failing command line.
    """
    args = ["commit", "-m", message]
    if sign:
        args.append("-S")
    if signoff:
        args.append("--signoff")
    if not hooks:
        args.append("--no-verify")
    if amend:
        args.append("--amend")
    run_git_command(args, cwd=root)
    return get_current_commit(root)


def push(root: Path, remote: str, branch: str, tags: Iterable[str] = ()) -> None:
    """Push `branch` and the given tags to `remote` in one command."""
    refs = [f"refs/tags/{t}" for t in tags]
    run_git_command(["push", remote, branch, *refs], cwd=root)
