"""Tests for version bump planning."""

import pytest
from structlog.testing import capture_logs

from pylerna.changes.detector import ChangedPackage, ChangeReason, ChangeSet
from pylerna.config.schema import CommitFormat, VersioningConfig, VersioningMode
from pylerna.errors import AmbiguousGraduateError, InvalidBumpError
from pylerna.git.commits import Commit
from pylerna.versioning.planner import PlanOptions, PlanReason, VersionBumpEngine
from pylerna.versioning.semver import BumpType
from pylerna.workspace.graph import DependencyGraph

MANUAL = VersioningConfig(commit_format=CommitFormat.NONE)


def change_set(graph: DependencyGraph, *names: str, commits=None) -> ChangeSet:
    cs = ChangeSet(reference=None)
    for name in names:
        cs.add(
            ChangedPackage(
                graph.packages[name],
                ChangeReason.DIRECT,
                commits=list((commits or {}).get(name, [])),
            )
        )
    return cs


def commit(subject: str, body: str | None = None) -> Commit:
    return Commit(sha="abc1234def", subject=subject, body=body, author_name="A", author_email="")


def test_minor_bump_within_caret_range_leaves_dependent_alone(make_package):
    graph = DependencyGraph.build(
        [make_package("pkg-a"), make_package("pkg-b", deps={"pkg-a": "^1.0.0"})]
    )

    plan = VersionBumpEngine(graph, MANUAL).plan(
        change_set(graph, "pkg-a"), PlanOptions(bump=BumpType.MINOR)
    )

    assert plan.versions() == {"pkg-a": "1.1.0"}
    assert plan.range_updates == []


def test_major_bump_pulls_in_dependent_with_broken_range(make_package):
    graph = DependencyGraph.build(
        [make_package("p", "1.2.0"), make_package("q", "0.4.0", deps={"p": "^1.2.0"})]
    )

    plan = VersionBumpEngine(graph, MANUAL).plan(
        change_set(graph, "p"), PlanOptions(bump=BumpType.MAJOR)
    )

    assert plan.versions() == {"p": "2.0.0", "q": "0.4.1"}
    assert plan.get("q").reason == PlanReason.DEPENDENCY
    assert [(u.package, u.old, u.new) for u in plan.range_updates] == [("q", "^1.2.0", "^2.0.0")]
    assert plan.ranges_for("q")[0][1] == "^2.0.0"


@pytest.mark.parametrize(("include_private", "expected"), [(True, "1.0.1"), (False, None)])
def test_private_dependent_follows_private_setting(make_package, include_private, expected):
    graph = DependencyGraph.build(
        [make_package("p"), make_package("q", deps={"p": "^1.0.0"}, private=True)]
    )
    config = VersioningConfig(commit_format=CommitFormat.NONE, private=include_private)

    plan = VersionBumpEngine(graph, config).plan(
        change_set(graph, "p"), PlanOptions(bump=BumpType.MAJOR)
    )

    assert plan.versions().get("p") == "2.0.0"
    assert plan.versions().get("q") == expected
    if expected is None:
        assert plan.range_updates == []


def test_dependent_in_plan_gets_range_retargeted(make_package):
    graph = DependencyGraph.build(
        [make_package("a"), make_package("b", deps={"a": ">=1.0.0"})]
    )

    plan = VersionBumpEngine(graph, MANUAL).plan(
        change_set(graph, "a", "b"), PlanOptions(bump=BumpType.PATCH)
    )

    assert plan.ranges_for("b")[0][1] == ">=1.0.1"


def test_exact_pins_ranges(make_package):
    graph = DependencyGraph.build(
        [make_package("a"), make_package("b", deps={"a": ">=1.0.0"})]
    )
    config = VersioningConfig(commit_format=CommitFormat.NONE, exact=True)

    plan = VersionBumpEngine(graph, config).plan(
        change_set(graph, "a", "b"), PlanOptions(bump=BumpType.MINOR)
    )

    assert plan.ranges_for("b")[0][1] == "==1.1.0"


def test_per_package_bumps(make_package):
    graph = DependencyGraph.build([make_package("a"), make_package("b", "2.0.0")])

    plan = VersionBumpEngine(graph, MANUAL).plan(
        change_set(graph, "a", "b"),
        PlanOptions(per_package={"a": BumpType.MAJOR, "b": BumpType.PATCH}),
    )

    assert plan.versions() == {"a": "2.0.0", "b": "2.0.1"}


def test_fixed_mode_moves_to_shared_version(make_package):
    graph = DependencyGraph.build(
        [make_package("a", "1.0.0"), make_package("b", "1.2.0"), make_package("c", "1.1.0")]
    )
    config = VersioningConfig(mode=VersioningMode.FIXED, commit_format=CommitFormat.NONE)

    plan = VersionBumpEngine(graph, config).plan(
        change_set(graph, "a", "c"), PlanOptions(bump=BumpType.PATCH)
    )

    assert plan.versions() == {"a": "1.2.1", "c": "1.2.1"}
    assert str(plan.fixed_version) == "1.2.1"


def test_fixed_mode_baseline_skips_dev_releases(make_package):
    graph = DependencyGraph.build(
        [make_package("a", "1.0.0"), make_package("b", "0.1.0.dev0"), make_package("c", "1.1.0")]
    )
    config = VersioningConfig(mode=VersioningMode.FIXED, commit_format=CommitFormat.NONE)

    with capture_logs() as logs:
        plan = VersionBumpEngine(graph, config).plan(
            change_set(graph, "a"), PlanOptions(bump=BumpType.MINOR)
        )

    assert plan.versions() == {"a": "1.2.0"}
    assert [e["package"] for e in logs if e["log_level"] == "warning"] == ["b"]


def test_per_package_rejected_in_fixed_mode(make_package):
    graph = DependencyGraph.build([make_package("a")])
    config = VersioningConfig(mode=VersioningMode.FIXED, commit_format=CommitFormat.NONE)

    with pytest.raises(InvalidBumpError):
        VersionBumpEngine(graph, config).plan(
            change_set(graph, "a"), PlanOptions(per_package={"a": BumpType.PATCH})
        )


def test_missing_bump_rejected_without_conventional_commits(make_package):
    graph = DependencyGraph.build([make_package("a")])

    with pytest.raises(InvalidBumpError):
        VersionBumpEngine(graph, MANUAL).plan(change_set(graph, "a"))


class TestConventional:
    def test_bump_from_commits(self, make_package):
        graph = DependencyGraph.build([make_package("a"), make_package("b", "0.3.0")])
        cs = change_set(
            graph,
            "a",
            "b",
            commits={"a": [commit("fix: one"), commit("feat: two")], "b": [commit("feat!: drop")]},
        )

        plan = VersionBumpEngine(graph, VersioningConfig()).plan(cs)

        assert plan.versions() == {"a": "1.1.0", "b": "0.4.0"}
        assert plan.get("a").reason == PlanReason.COMMITS
        assert len(plan.get("a").commits) == 2

    def test_breaking_footer_is_major(self, make_package):
        graph = DependencyGraph.build([make_package("a")])
        cs = change_set(graph, "a", commits={"a": [commit("fix: x", "BREAKING CHANGE: gone")]})

        plan = VersionBumpEngine(graph, VersioningConfig()).plan(cs)

        assert plan.versions() == {"a": "2.0.0"}

    def test_prerelease_patterns(self, make_package):
        graph = DependencyGraph.build([make_package("a")])
        config = VersioningConfig(conventional_prerelease=["a"])
        cs = change_set(graph, "a", commits={"a": [commit("fix: x")]})

        plan = VersionBumpEngine(graph, config).plan(cs)

        assert plan.versions() == {"a": "1.0.1a0"}

    def test_graduate_without_changes(self, make_package):
        graph = DependencyGraph.build([make_package("a", "1.0.0a2"), make_package("b")])
        config = VersioningConfig(conventional_graduate=["*"])

        plan = VersionBumpEngine(graph, config).plan(ChangeSet(reference=None))

        assert plan.versions() == {"a": "1.0.0"}
        assert plan.get("a").reason == PlanReason.GRADUATE

    def test_graduate_of_release_is_ambiguous(self, make_package):
        graph = DependencyGraph.build([make_package("a", "1.0.0")])
        config = VersioningConfig(conventional_graduate=["a"])

        with pytest.raises(AmbiguousGraduateError):
            VersionBumpEngine(graph, config).plan(ChangeSet(reference=None))

    def test_graduate_and_prerelease_conflict(self, make_package):
        graph = DependencyGraph.build([make_package("a", "1.0.0a0")])
        config = VersioningConfig(conventional_graduate=["a"], conventional_prerelease=["a"])

        with pytest.raises(AmbiguousGraduateError):
            VersionBumpEngine(graph, config).plan(ChangeSet(reference=None))
