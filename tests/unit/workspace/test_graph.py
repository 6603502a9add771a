"""Tests for the dependency graph."""

import pytest

from pylerna.errors import CyclicDependencyError, DuplicatePackageError, GraphError
from pylerna.workspace.graph import DependencyGraph, GraphType
from pylerna.workspace.package import DependencyKind


@pytest.fixture
def chain(make_package):
    """c depends on b depends on a."""
    return [
        make_package("c", deps={"b": ""}),
        make_package("b", deps={"a": ">=1.0"}),
        make_package("a"),
    ]


def test_topological_order_puts_dependencies_first(chain):
    graph = DependencyGraph.build(chain)

    assert graph.topological_order() == ["a", "b", "c"]
    assert graph.parallel_batches() == [["a"], ["b"], ["c"]]


def test_independent_packages_share_a_batch(make_package):
    graph = DependencyGraph.build(
        [make_package("z"), make_package("y", deps={"x": ""}), make_package("x")]
    )

    assert graph.parallel_batches() == [["x", "z"], ["y"]]


def test_order_restricted_to_names_looks_through_excluded(chain):
    graph = DependencyGraph.build(chain)

    assert graph.topological_order(["c", "a"]) == ["a", "c"]
    assert graph.parallel_batches(["c", "a"]) == [["a"], ["c"]]


def test_dependencies_and_dependents(chain):
    graph = DependencyGraph.build(chain)

    assert graph.get_dependencies("b") == {"a"}
    assert graph.get_dependents("a") == {"b"}
    assert graph.get_transitive_dependents("a") == {"b", "c"}
    assert graph.get_transitive_dependencies("c") == {"a", "b"}
    assert graph.adjacency() == {"a": [], "b": ["a"], "c": ["b"]}


def test_external_dependencies_are_not_edges(make_package):
    graph = DependencyGraph.build([make_package("a", deps={"requests": ">=2"})])

    assert graph.get_dependencies("a") == set()
    assert graph.edges_of("a") == []


def test_duplicate_names_rejected(make_package):
    with pytest.raises(DuplicatePackageError):
        DependencyGraph.build([make_package("a"), make_package("a", "2.0.0")])


def test_cycle_rejected(make_package):
    packages = [make_package("a", deps={"b": ""}), make_package("b", deps={"a": ""})]

    with pytest.raises(CyclicDependencyError) as exc_info:
        DependencyGraph.build(packages)

    assert isinstance(exc_info.value, GraphError)


def test_cycle_collapsed_when_allowed(make_package):
    packages = [
        make_package("a", deps={"b": ""}),
        make_package("b", deps={"a": ""}),
        make_package("c", deps={"a": ""}),
    ]

    graph = DependencyGraph.build(packages, allow_cycles=True)

    assert graph.cycles == [["a", "b"]]
    assert graph.unit_of("a") == {"a", "b"}
    assert graph.unit_of("c") == {"c"}
    assert graph.topological_order() == ["a", "b", "c"]


def test_dependencies_graph_type_ignores_dev_edges(make_package):
    packages = [
        make_package("a", deps={"b": ""}),
        make_package("b", deps={"a": ""}, kind=DependencyKind.DEV),
    ]

    with pytest.raises(CyclicDependencyError):
        DependencyGraph.build(packages)

    graph = DependencyGraph.build(packages, graph_type=GraphType.DEPENDENCIES)
    assert graph.topological_order() == ["b", "a"]
