"""Tests for conventional commit parsing."""

from pylerna.git.commits import Commit
from pylerna.versioning.conventional import (
    determine_bump,
    parse_commit_message,
    parse_commits,
)
from pylerna.versioning.semver import BumpType


def test_parse_with_scope():
    parsed = parse_commit_message("fix(core): handle empty input", sha="abc")

    assert parsed is not None
    assert parsed.type == "fix"
    assert parsed.scope == "core"
    assert parsed.description == "handle empty input"
    assert parsed.bump_type == BumpType.PATCH
    assert parsed.formatted_scope == "**core:** "


def test_breaking_marker():
    parsed = parse_commit_message("refactor(api)!: rename endpoints")

    assert parsed is not None
    assert parsed.breaking
    assert parsed.bump_type == BumpType.MAJOR


def test_breaking_footer():
    parsed = parse_commit_message("feat: new\n\nBREAKING-CHANGE: old flag removed")

    assert parsed is not None
    assert parsed.breaking
    assert parsed.body == "BREAKING-CHANGE: old flag removed"


def test_non_conventional():
    assert parse_commit_message("Update README") is None


def test_parse_commits_drops_non_conventional():
    commits = [
        Commit(sha="1", subject="feat(api): add", body=None, author_name="A", author_email=""),
        Commit(sha="2", subject="wip", body=None, author_name="B", author_email=""),
        Commit(sha="3", subject="docs: typo", body=None, author_name="C", author_email=""),
    ]

    parsed = parse_commits(commits)

    assert [(p.sha, p.type, p.author) for p in parsed] == [("1", "feat", "A"), ("3", "docs", "C")]


def test_determine_bump():
    commits = [
        parse_commit_message("docs: a"),
        parse_commit_message("fix: b"),
        parse_commit_message("feat: c"),
    ]

    assert determine_bump(commits) == BumpType.MINOR
    assert determine_bump([]) == BumpType.NONE
    assert determine_bump(commits[:1]) == BumpType.NONE
