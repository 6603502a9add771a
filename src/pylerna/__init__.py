"""pylerna - release and build orchestration for Python monorepos.

Lerna-style workflows for uv workspaces:
- Workspace discovery and the package dependency graph
- Git-based change detection with dependent propagation
- Manual and conventional-commit semantic versioning
- Concurrent, dependency-ordered command execution
- Commit, tag, push and publish with partial-failure reporting
- Watch mode re-running commands on file changes
"""

from pylerna.config import PyLernaConfig, load_config
from pylerna.errors import (
    ChangeDetectionError,
    ConfigurationError,
    CyclicDependencyError,
    ExecutionError,
    GitError,
    GraphError,
    PackageNotFoundError,
    PublishError,
    PyLernaError,
    ReleaseError,
    ScriptNotFoundError,
    ValidationError,
    VersionError,
    WorkspaceNotFoundError,
)
from pylerna.execution import (
    BatchResult,
    ExecutionResult,
    ExecutionStatus,
    Scheduler,
)
from pylerna.workspace import DependencyGraph, Package, Workspace

__version__ = "0.1.0"

__all__ = [
    # Version
    "__version__",
    # Core
    "Workspace",
    "Package",
    "DependencyGraph",
    "PyLernaConfig",
    "load_config",
    # Execution
    "ExecutionResult",
    "ExecutionStatus",
    "BatchResult",
    "Scheduler",
    # Errors
    "PyLernaError",
    "ConfigurationError",
    "WorkspaceNotFoundError",
    "PackageNotFoundError",
    "GraphError",
    "CyclicDependencyError",
    "ChangeDetectionError",
    "VersionError",
    "ScriptNotFoundError",
    "ExecutionError",
    "GitError",
    "ReleaseError",
    "PublishError",
    "ValidationError",
]
