"""Tag lookup and creation."""

from __future__ import annotations

import shlex
import subprocess
from dataclasses import dataclass
from pathlib import Path

from pylerna.errors import GitError
from pylerna.git.repo import run_git_command


@dataclass(frozen=True, slots=True)
class Tag:
    """A git tag.

    Attributes:
        name: Tag name.
        sha: SHA of the tagged commit.
        is_annotated: True for annotated (or signed) tags.
    """

    name: str
    sha: str
    is_annotated: bool = False


def _resolve(root: Path, name: str) -> Tag:
    sha = run_git_command(["rev-list", "-n", "1", name], cwd=root).stdout.strip()
    objtype = run_git_command(["cat-file", "-t", name], cwd=root).stdout.strip()
    return Tag(name=name, sha=sha, is_annotated=objtype == "tag")


def get_latest_tag(
    root: Path,
    pattern: str | None = None,
    *,
    first_parent: bool = False,
) -> Tag | None:
    """Most recent tag reachable from HEAD.

    Args:
        root: Repository root.
        pattern: Glob the tag name must match.
        first_parent: Only follow first parents, ignoring tags on merged branches.
    """
    args = ["describe", "--tags", "--abbrev=0"]
    if pattern:
        args.extend(["--match", pattern])
    if first_parent:
        args.append("--first-parent")
    result = run_git_command(args, cwd=root, check=False)
    if result.returncode != 0:
        return None
    return _resolve(root, result.stdout.strip())


def create_tag(
    root: Path,
    name: str,
    message: str | None = None,
    *,
    sign: bool = False,
    force: bool = False,
    tag_command: str | None = None,
) -> Tag:
    """Tag HEAD.

    Args:
        root: Repository root.
        name: Tag name.
        message: Annotation message. Without one a lightweight tag is created
            (unless signing).
        sign: Create a GPG-signed tag.
        force: Replace an existing tag of the same name.
        tag_command: Custom command template with `{tag}` and `{message}`
            placeholders, run instead of `git tag`.

    Raises:
        GitError: With the failing command line.
    """
    if tag_command:
        cmd = shlex.split(tag_command.format(tag=name, message=message or name))
        result = subprocess.run(cmd, cwd=root, capture_output=True, text=True, check=False)
        if result.returncode != 0:
            raise GitError(result.stderr.strip() or "Tag command failed", command=shlex.join(cmd))
    else:
        args = ["tag"]
        if sign:
            args.append("-s")
        elif message:
            args.append("-a")
        if force:
            args.append("-f")
        args.append(name)
        if message or sign:
            args.extend(["-m", message or name])
        run_git_command(args, cwd=root)

    return _resolve(root, name)
