"""Git integration."""

from pylerna.git.changes import get_changed_files_since
from pylerna.git.commits import Commit, get_commits
from pylerna.git.operations import commit, push, stage_all, stage_files
from pylerna.git.repo import (
    get_current_branch,
    get_current_commit,
    get_repo_root,
    has_commits,
    is_git_repo,
    resolve_ref,
    run_git_command,
)
from pylerna.git.tags import Tag, create_tag, get_latest_tag

__all__ = [
    "Commit",
    "Tag",
    "commit",
    "create_tag",
    "get_changed_files_since",
    "get_commits",
    "get_current_branch",
    "get_current_commit",
    "get_latest_tag",
    "get_repo_root",
    "has_commits",
    "is_git_repo",
    "push",
    "resolve_ref",
    "run_git_command",
    "stage_all",
    "stage_files",
]
