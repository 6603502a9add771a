"""Package model."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class DependencyKind(str, Enum):
    """Where a dependency was declared."""

    RUNTIME = "runtime"
    OPTIONAL = "optional"
    DEV = "dev"


@dataclass(frozen=True, slots=True)
class Dependency:
    """A declared dependency of a package.

    Attributes:
        name: Canonical (PEP 503) name of the dependency.
        spec: Declared range text, e.g. ">=1.0", "^1.2.0" or "" for any.
        kind: Runtime, optional or dev.
        location: Key path of the TOML array or table holding the declaration.
        raw: The declaration as written in the manifest.
    """

    name: str
    spec: str
    kind: DependencyKind
    location: tuple[str, ...]
    raw: str = ""

    @property
    def is_poetry(self) -> bool:
        return self.location[:2] == ("tool", "poetry")


@dataclass(frozen=True)
class Package:
    """A workspace package read from its pyproject.toml.

    Attributes:
        name: Canonical package name, unique within the workspace.
        version: Version string as declared.
        path: Package directory.
        description: Short description.
        private: Private packages are versioned but never published.
        dependencies: Every declared dependency, internal or not.
    """

    name: str
    version: str
    path: Path
    description: str = ""
    private: bool = False
    dependencies: tuple[Dependency, ...] = field(default_factory=tuple)

    @property
    def pyproject_path(self) -> Path:
        return self.path / "pyproject.toml"

    def __str__(self) -> str:
        return f"{self.name}@{self.version}"
