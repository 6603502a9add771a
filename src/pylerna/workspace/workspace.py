"""Workspace discovery."""

from __future__ import annotations

import fnmatch
from functools import cached_property
from pathlib import Path

import structlog
from packaging.utils import canonicalize_name

from pylerna.config import PyLernaConfig, load_config
from pylerna.errors import PackageNotFoundError
from pylerna.workspace.graph import DependencyGraph, GraphType
from pylerna.workspace.manifest import read_manifest
from pylerna.workspace.package import Package

logger = structlog.get_logger(__name__)


def discover_packages(root: Path, patterns: list[str], ignore: list[str]) -> list[Package]:
    """Find every directory matching `patterns` that holds a pyproject.toml.

    Args:
        root: Workspace root.
        patterns: Globs relative to the root, e.g. "packages/*".
        ignore: Globs of root-relative paths to skip.

    Returns:
        Packages sorted by path.
    """
    found: dict[Path, Package] = {}
    for pattern in patterns:
        for candidate in sorted(root.glob(pattern)):
            if not (candidate / "pyproject.toml").is_file():
                continue
            rel = candidate.relative_to(root).as_posix()
            if any(fnmatch.fnmatch(rel, pat) for pat in ignore):
                logger.debug("package ignored", path=rel)
                continue
            resolved = candidate.resolve()
            if resolved not in found:
                found[resolved] = read_manifest(candidate)
    return [found[p] for p in sorted(found)]


class Workspace:
    """A pylerna workspace: config plus discovered packages.

    Attributes:
        root: Directory holding pylerna.yaml.
        config: Validated configuration.
        packages: Packages by canonical name.
    """

    def __init__(
        self,
        root: Path,
        config: PyLernaConfig,
        packages: list[Package],
        *,
        graph_type: GraphType = GraphType.ALL,
        allow_cycles: bool = False,
    ) -> None:
        self.root = root.resolve()
        self.config = config
        self._graph_type = graph_type
        self._allow_cycles = allow_cycles
        self._package_list = packages
        self.packages: dict[str, Package] = {p.name: p for p in packages}

    @classmethod
    def discover(
        cls,
        path: Path | None = None,
        *,
        graph_type: GraphType = GraphType.ALL,
        allow_cycles: bool = False,
    ) -> Workspace:
        """Load pylerna.yaml from `path` or a parent, then discover packages."""
        config, config_path = load_config(path)
        root = config_path.parent.resolve()
        packages = discover_packages(root, config.packages, config.ignore)
        logger.debug("workspace discovered", root=str(root), packages=len(packages))
        workspace = cls(
            root, config, packages, graph_type=graph_type, allow_cycles=allow_cycles
        )
        # Duplicate names and cycles fail at discovery.
        _ = workspace.graph
        return workspace

    @property
    def name(self) -> str:
        return self.config.name

    @cached_property
    def graph(self) -> DependencyGraph:
        return DependencyGraph.build(
            self._package_list, graph_type=self._graph_type, allow_cycles=self._allow_cycles
        )

    def with_graph(self, graph_type: GraphType, allow_cycles: bool = False) -> Workspace:
        """Same workspace with a differently built graph."""
        return Workspace(
            self.root,
            self.config,
            self._package_list,
            graph_type=graph_type,
            allow_cycles=allow_cycles,
        )

    def get_package(self, name: str) -> Package:
        """Look a package up by name (any spelling that canonicalises the same).

        Raises:
            PackageNotFoundError: If no such package exists.
        """
        key = canonicalize_name(name)
        if key not in self.packages:
            raise PackageNotFoundError(name, sorted(self.packages))
        return self.packages[key]

    def package_for_path(self, path: Path) -> Package | None:
        """Deepest package whose directory contains `path`."""
        target = path if path.is_absolute() else self.root / path
        best: Package | None = None
        for pkg in self.packages.values():
            if target == pkg.path or pkg.path in target.parents:
                if best is None or len(pkg.path.parts) > len(best.path.parts):
                    best = pkg
        return best

    def topological_order(self, packages: list[Package] | None = None) -> list[Package]:
        names = None if packages is None else [p.name for p in packages]
        return [self.packages[n] for n in self.graph.topological_order(names)]

    def parallel_batches(self, packages: list[Package] | None = None) -> list[list[Package]]:
        names = None if packages is None else [p.name for p in packages]
        return [[self.packages[n] for n in batch] for batch in self.graph.parallel_batches(names)]

    def __len__(self) -> int:
        return len(self.packages)
