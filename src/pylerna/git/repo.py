"""Git repository abstraction."""

from __future__ import annotations

import subprocess
from pathlib import Path

import structlog

from pylerna.errors import GitError

logger = structlog.get_logger(__name__)


def is_git_repo(path: Path) -> bool:
    """Check if path is inside a git repository.

    Args:
        path: Path to check.

    Returns:
        True if path is inside a git repository.
    """
    try:
        result = run_git_command(["rev-parse", "--git-dir"], cwd=path, check=False)
        return result.returncode == 0
    except (FileNotFoundError, GitError):
        return False


def get_repo_root(path: Path) -> Path:
    """Get the root directory of the git repository.

    Raises:
        GitError: If not inside a git repository.
    """
    try:
        result = run_git_command(["rev-parse", "--show-toplevel"], cwd=path)
        return Path(result.stdout.strip())
    except GitError as e:
        if "not a git repository" in str(e).lower():
            raise GitError(
                "Not inside a git repository",
                command="git rev-parse --show-toplevel",
            ) from e
        raise


def run_git_command(
    args: list[str],
    cwd: Path | None = None,
    *,
    check: bool = True,
) -> subprocess.CompletedProcess[str]:
    """Run a git command synchronously.

    Args:
        args: Git command arguments (without 'git').
        cwd: Working directory.
        check: Raise on non-zero exit code.

    Returns:
        Completed process result.

    Raises:
        GitError: If command fails and check is True. The error carries the
            full command line.
    """
    cmd = ["git", *args]
    logger.debug("git", args=args, cwd=str(cwd) if cwd else None)

    try:
        result = subprocess.run(
            cmd,
            cwd=cwd,
            capture_output=True,
            text=True,
            check=False,
        )
    except FileNotFoundError as e:
        raise GitError("Git is not installed") from e

    if check and result.returncode != 0:
        raise GitError(
            result.stderr.strip() or f"Command failed with exit code {result.returncode}",
            command=" ".join(cmd),
        )
    return result


def get_current_branch(cwd: Path | None = None) -> str:
    """Current branch name ("HEAD" when detached)."""
    result = run_git_command(["rev-parse", "--abbrev-ref", "HEAD"], cwd=cwd)
    return result.stdout.strip()


def get_current_commit(cwd: Path | None = None) -> str:
    """Full SHA of HEAD."""
    result = run_git_command(["rev-parse", "HEAD"], cwd=cwd)
    return result.stdout.strip()


def resolve_ref(ref: str, cwd: Path | None = None) -> str | None:
    """Resolve `ref` to a commit SHA, or None if it does not exist."""
    result = run_git_command(
        ["rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}"], cwd=cwd, check=False
    )
    if result.returncode != 0:
        return None
    return result.stdout.strip()


def has_commits(cwd: Path | None = None) -> bool:
    return resolve_ref("HEAD", cwd) is not None
