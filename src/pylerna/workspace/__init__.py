"""Workspace, packages and the dependency graph."""

from pylerna.workspace.graph import DependencyGraph, GraphType
from pylerna.workspace.package import Dependency, DependencyKind, Package
from pylerna.workspace.workspace import Workspace, discover_packages

__all__ = [
    "Dependency",
    "DependencyGraph",
    "DependencyKind",
    "GraphType",
    "Package",
    "Workspace",
    "discover_packages",
]
