"""Conventional commit parsing."""

from __future__ import annotations

import re
from dataclasses import dataclass

from pylerna.git.commits import Commit
from pylerna.versioning.semver import BumpType

# Matches: type(scope)!: description
#   feat: add new feature
#   fix(core): fix bug
#   refactor(api)!: breaking refactor
CONVENTIONAL_PATTERN = re.compile(
    r"^(?P<type>feat|fix|docs|style|refactor|perf|test|chore|ci|build|revert)"
    r"(?:\((?P<scope>[^)]+)\))?"
    r"(?P<breaking>!)?"
    r": (?P<description>.+)$",
    re.IGNORECASE,
)

BREAKING_FOOTERS = ("BREAKING CHANGE:", "BREAKING-CHANGE:")

TYPE_TO_BUMP: dict[str, BumpType] = {
    "feat": BumpType.MINOR,
    "fix": BumpType.PATCH,
    "perf": BumpType.PATCH,
    "revert": BumpType.PATCH,
    "refactor": BumpType.NONE,
    "docs": BumpType.NONE,
    "style": BumpType.NONE,
    "test": BumpType.NONE,
    "chore": BumpType.NONE,
    "ci": BumpType.NONE,
    "build": BumpType.NONE,
}


@dataclass(frozen=True, slots=True)
class ParsedCommit:
    """A parsed conventional commit.

    Attributes:
        sha: Commit SHA.
        type: Commit type (feat, fix, etc.).
        scope: Optional scope.
        description: Commit description.
        body: Commit body.
        breaking: Whether this is a breaking change.
        raw_message: Original commit message.
        author: Author name, when known.
    """

    sha: str
    type: str
    scope: str | None
    description: str
    body: str | None
    breaking: bool
    raw_message: str
    author: str | None = None

    @property
    def bump_type(self) -> BumpType:
        """Bump this commit calls for; breaking changes are always MAJOR."""
        if self.breaking:
            return BumpType.MAJOR
        return TYPE_TO_BUMP.get(self.type, BumpType.NONE)

    @property
    def formatted_scope(self) -> str:
        """Scope as a bold changelog prefix, or empty."""
        return f"**{self.scope}:** " if self.scope else ""


def parse_commit_message(
    message: str, sha: str = "", author: str | None = None
) -> ParsedCommit | None:
    """Parse a commit message in conventional commit format.

    Args:
        message: Commit message to parse.
        sha: Commit SHA.
        author: Author name.

    Returns:
        ParsedCommit if the message follows conventional commit format, None otherwise.
    """
    lines = message.strip().split("\n")
    match = CONVENTIONAL_PATTERN.match(lines[0])
    if not match:
        return None

    body = "\n".join(lines[1:]).strip() or None
    breaking = bool(match.group("breaking"))
    if body and any(footer in body for footer in BREAKING_FOOTERS):
        breaking = True

    return ParsedCommit(
        sha=sha,
        type=match.group("type").lower(),
        scope=match.group("scope"),
        description=match.group("description"),
        body=body,
        breaking=breaking,
        raw_message=message,
        author=author,
    )


def parse_commit(commit: Commit) -> ParsedCommit | None:
    """Parse a Commit object into a ParsedCommit.

    Args:
        commit: Commit read from `git log`.

    Returns:
        ParsedCommit if the message is conventional, None otherwise.
    """
    return parse_commit_message(commit.message, commit.sha, commit.author_name)


def parse_commits(commits: list[Commit]) -> list[ParsedCommit]:
    """Parse commits, dropping those that are not conventional.

    Args:
        commits: Commits touching one package, newest first.

    Returns:
        Parsed commits in the same order.
    """
    return [parsed for c in commits if (parsed := parse_commit(c)) is not None]


def determine_bump(commits: list[ParsedCommit]) -> BumpType:
    """Determine the highest bump type from a list of commits.

    Args:
        commits: List of parsed commits.

    Returns:
        The highest bump needed, or NONE for an empty list.
    """
    bump = BumpType.NONE
    for commit in commits:
        if commit.bump_type > bump:
            bump = commit.bump_type
        if bump == BumpType.MAJOR:
            break
    return bump


def group_commits_by_type(
    commits: list[ParsedCommit],
) -> dict[str, list[ParsedCommit]]:
    """Group commits by their type.

    Args:
        commits: List of commits.

    Returns:
        Type to commits, in first-seen order within each type.
    """
    groups: dict[str, list[ParsedCommit]] = {}
    for commit in commits:
        groups.setdefault(commit.type, []).append(commit)
    return groups
