"""Dependency graph over workspace packages.

Edges point from a package to the in-workspace packages it depends on.
Orderings are deterministic: ties are broken by package name.
"""

from __future__ import annotations

import heapq
from collections.abc import Collection, Iterable
from enum import Enum

import structlog

from pylerna.errors import CyclicDependencyError, DuplicatePackageError
from pylerna.workspace.package import Dependency, DependencyKind, Package

logger = structlog.get_logger(__name__)


class GraphType(str, Enum):
    """Which dependency kinds become graph edges."""

    ALL = "all"
    DEPENDENCIES = "dependencies"

    @property
    def kinds(self) -> frozenset[DependencyKind]:
        if self == GraphType.DEPENDENCIES:
            return frozenset({DependencyKind.RUNTIME})
        return frozenset(DependencyKind)


class DependencyGraph:
    """Read-only dependency graph built once per run.

    Attributes:
        packages: Packages by canonical name.
        graph_type: Edge kinds included in the graph.
        cycles: Strongly connected components with more than one member.
    """

    def __init__(
        self,
        packages: dict[str, Package],
        graph_type: GraphType = GraphType.ALL,
        allow_cycles: bool = False,
    ) -> None:
        self.packages = packages
        self.graph_type = graph_type

        self._edges: dict[str, list[Dependency]] = {}
        self._forward: dict[str, set[str]] = {name: set() for name in packages}
        self._reverse: dict[str, set[str]] = {name: set() for name in packages}

        for name, pkg in packages.items():
            edges = [
                dep
                for dep in pkg.dependencies
                if dep.name in packages and dep.name != name and dep.kind in graph_type.kinds
            ]
            self._edges[name] = edges
            for dep in edges:
                self._forward[name].add(dep.name)
                self._reverse[dep.name].add(name)

        self.cycles = self._find_cycles()
        if self.cycles and not allow_cycles:
            raise CyclicDependencyError(self.cycles)
        if self.cycles:
            logger.warning(
                "dependency cycles collapsed",
                cycles=[" -> ".join(c) for c in self.cycles],
            )

        self._unit: dict[str, str] = {name: name for name in packages}
        for cycle in self.cycles:
            head = min(cycle)
            for member in cycle:
                self._unit[member] = head

    @classmethod
    def build(
        cls,
        packages: Iterable[Package],
        graph_type: GraphType = GraphType.ALL,
        allow_cycles: bool = False,
    ) -> DependencyGraph:
        """Build a graph from discovered packages.

        Raises:
            DuplicatePackageError: If two packages share a canonical name.
            CyclicDependencyError: If a cycle exists and `allow_cycles` is False.
        """
        by_name: dict[str, Package] = {}
        for pkg in packages:
            if pkg.name in by_name:
                raise DuplicatePackageError(
                    pkg.name, sorted([str(by_name[pkg.name].path), str(pkg.path)])
                )
            by_name[pkg.name] = pkg
        return cls(dict(sorted(by_name.items())), graph_type, allow_cycles)

    def _find_cycles(self) -> list[list[str]]:
        """Tarjan's strongly connected components, multi-member ones only."""
        index: dict[str, int] = {}
        low: dict[str, int] = {}
        stack: list[str] = []
        on_stack: set[str] = set()
        found: list[list[str]] = []
        counter = 0

        def visit(node: str) -> None:
            nonlocal counter
            index[node] = low[node] = counter
            counter += 1
            stack.append(node)
            on_stack.add(node)
            for nxt in sorted(self._forward[node]):
                if nxt not in index:
                    visit(nxt)
                    low[node] = min(low[node], low[nxt])
                elif nxt in on_stack:
                    low[node] = min(low[node], index[nxt])
            if low[node] == index[node]:
                component: list[str] = []
                while True:
                    member = stack.pop()
                    on_stack.discard(member)
                    component.append(member)
                    if member == node:
                        break
                if len(component) > 1:
                    found.append(sorted(component))

        for name in sorted(self.packages):
            if name not in index:
                visit(name)
        return sorted(found)

    def get_dependencies(self, name: str) -> set[str]:
        """Direct in-workspace dependencies of `name`."""
        return set(self._forward.get(name, ()))

    def get_dependents(
        self, name: str, kinds: Collection[DependencyKind] | None = None
    ) -> set[str]:
        """Packages that depend directly on `name`.

        Args:
            name: Package name.
            kinds: Only count edges declared with one of these kinds.
        """
        dependents = self._reverse.get(name, set())
        if kinds is None:
            return set(dependents)
        return {
            d for d in dependents if any(dep.kind in kinds for dep in self.edges_between(d, name))
        }

    def get_transitive_dependencies(self, name: str) -> set[str]:
        return self._closure(name, self._forward)

    def get_transitive_dependents(self, name: str) -> set[str]:
        return self._closure(name, self._reverse)

    @staticmethod
    def _closure(start: str, edges: dict[str, set[str]]) -> set[str]:
        seen: set[str] = set()
        frontier = set(edges.get(start, ()))
        while frontier:
            seen |= frontier
            frontier = {n for f in frontier for n in edges.get(f, ())} - seen
        seen.discard(start)
        return seen

    def edges_of(self, name: str) -> list[Dependency]:
        """Resolved in-workspace dependency declarations of `name`."""
        return list(self._edges.get(name, ()))

    def edges_between(self, dependent: str, dependency: str) -> list[Dependency]:
        return [dep for dep in self._edges.get(dependent, ()) if dep.name == dependency]

    def unit_of(self, name: str) -> set[str]:
        """Members scheduled together with `name` (itself unless it is in a cycle)."""
        head = self._unit[name]
        return {n for n, h in self._unit.items() if h == head}

    def _unit_deps(self, names: set[str]) -> dict[str, set[str]]:
        """Dependencies between cycle-collapsed units, restricted to `names`.

        Dependencies outside `names` are looked through, so a dependency
        reached only via an excluded package still orders the two.
        """
        units: dict[str, set[str]] = {}
        for name in names:
            unit = self._unit[name]
            deps = units.setdefault(unit, set())
            for dep in self.get_transitive_dependencies(name):
                if dep in names and self._unit[dep] != unit:
                    deps.add(self._unit[dep])
        return units

    def topological_order(self, names: Iterable[str] | None = None) -> list[str]:
        """Dependencies first, ties broken by name.

        Args:
            names: Restrict the ordering to these packages.
        """
        return [name for batch in self._batches(names) for name in batch]

    def _batches(self, names: Iterable[str] | None) -> list[list[str]]:
        selected = set(self.packages if names is None else names)
        units = self._unit_deps(selected)
        members: dict[str, list[str]] = {}
        for name in selected:
            members.setdefault(self._unit[name], []).append(name)

        remaining = {u: set(d) for u, d in units.items()}
        dependents: dict[str, set[str]] = {u: set() for u in units}
        for unit, deps in units.items():
            for dep in deps:
                dependents[dep].add(unit)

        ready = sorted(u for u, d in remaining.items() if not d)
        batches: list[list[str]] = []
        while ready:
            batch: list[str] = []
            next_ready: list[str] = []
            heapq.heapify(ready)
            while ready:
                unit = heapq.heappop(ready)
                batch.extend(sorted(members[unit]))
                for dependent in dependents[unit]:
                    remaining[dependent].discard(unit)
                    if not remaining[dependent]:
                        next_ready.append(dependent)
            batches.append(batch)
            ready = sorted(next_ready)
        return batches

    def parallel_batches(self, names: Iterable[str] | None = None) -> list[list[str]]:
        """Group packages into batches whose members only depend on earlier batches."""
        return self._batches(names)

    def adjacency(self) -> dict[str, list[str]]:
        """Package name to sorted direct dependencies."""
        return {name: sorted(self._forward[name]) for name in self.packages}

    def __len__(self) -> int:
        return len(self.packages)

    def __contains__(self, name: object) -> bool:
        return name in self.packages
