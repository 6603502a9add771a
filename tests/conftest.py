"""Shared test fixtures for pylerna tests."""

from __future__ import annotations

import os
import subprocess
import tempfile
from collections.abc import Generator
from pathlib import Path

import pytest
from dotenv import load_dotenv

# Load .env from project root (doesn't override existing env vars)
load_dotenv(Path(__file__).parent.parent / ".env")

GIT_ENV = {
    "GIT_AUTHOR_NAME": "Test",
    "GIT_AUTHOR_EMAIL": "test@test.com",
    "GIT_COMMITTER_NAME": "Test",
    "GIT_COMMITTER_EMAIL": "test@test.com",
}


def git(cwd: Path, *args: str) -> str:
    """Run git in `cwd` and return stripped stdout."""
    result = subprocess.run(
        ["git", *args],
        cwd=cwd,
        capture_output=True,
        text=True,
        check=True,
        env={**os.environ, **GIT_ENV},
    )
    return result.stdout.strip()


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir).resolve()


@pytest.fixture
def sample_pyproject() -> str:
    """Sample pyproject.toml content."""
    return """\
[project]
name = "sample-pkg"
version = "1.0.0"
description = "A sample package"
dependencies = ["requests>=2.0.0"]

[project.optional-dependencies]
dev = ["pytest>=7.0.0"]
"""


@pytest.fixture
def sample_pylerna_yaml() -> str:
    """Sample pylerna.yaml content."""
    return """\
name: test-workspace
packages:
  - packages/*

scripts:
  test: pytest tests/ -v
  lint: ruff check .
  build:
    run: echo building
    pre: [lint]

command_defaults:
  concurrency: 4
  bail: true

versioning:
  tag_format: "{name}@{version}"
  commit_message: "chore(release): {packages}"
  manually_update_root_lockfile: false
  git:
    push: false

publish:
  registry: https://upload.pypi.org/legacy/
"""


@pytest.fixture
def workspace_dir(temp_dir: Path, sample_pylerna_yaml: str) -> Path:
    """Create a sample workspace directory structure.

    pkg-c depends on pkg-b, which depends on pkg-a.
    """
    (temp_dir / "pylerna.yaml").write_text(sample_pylerna_yaml)

    # Create root pyproject.toml (workspace)
    (temp_dir / "pyproject.toml").write_text("""\
[project]
name = "test-workspace"
version = "0.0.0"

[tool.uv.workspace]
members = ["packages/*"]
""")

    packages_dir = temp_dir / "packages"
    packages_dir.mkdir()

    pkg_a = packages_dir / "pkg-a"
    pkg_a.mkdir()
    (pkg_a / "pyproject.toml").write_text("""\
[project]
name = "pkg-a"
version = "1.0.0"
description = "Package A"
dependencies = []
""")
    (pkg_a / "src" / "pkg_a").mkdir(parents=True)
    (pkg_a / "src" / "pkg_a" / "__init__.py").write_text('__version__ = "1.0.0"\n')

    pkg_b = packages_dir / "pkg-b"
    pkg_b.mkdir()
    (pkg_b / "pyproject.toml").write_text("""\
[project]
name = "pkg-b"
version = "2.0.0"
description = "Package B"
dependencies = ["pkg-a>=1.0.0"]

[tool.uv.sources]
pkg-a = { workspace = true }
""")
    (pkg_b / "src" / "pkg_b").mkdir(parents=True)
    (pkg_b / "src" / "pkg_b" / "__init__.py").write_text('__version__ = "2.0.0"\n')

    pkg_c = packages_dir / "pkg-c"
    pkg_c.mkdir()
    (pkg_c / "pyproject.toml").write_text("""\
[project]
name = "pkg-c"
version = "0.1.0"
description = "Package C"
dependencies = ["pkg-b"]

[tool.uv.sources]
pkg-b = { workspace = true }
""")
    (pkg_c / "src" / "pkg_c").mkdir(parents=True)
    (pkg_c / "src" / "pkg_c" / "__init__.py").write_text('__version__ = "0.1.0"\n')

    return temp_dir


@pytest.fixture
def git_workspace(workspace_dir: Path) -> Path:
    """Create a workspace with git initialized and one commit on main."""
    git(workspace_dir, "init", "-q", "-b", "main")
    git(workspace_dir, "config", "user.email", "test@test.com")
    git(workspace_dir, "config", "user.name", "Test")
    git(workspace_dir, "config", "commit.gpgsign", "false")
    git(workspace_dir, "config", "tag.gpgsign", "false")
    git(workspace_dir, "add", "-A")
    git(workspace_dir, "commit", "-q", "-m", "chore: initial commit")
    return workspace_dir


@pytest.fixture
def make_package(temp_dir: Path):
    """Factory for in-memory packages; `deps` maps dependency name to range."""
    from pylerna.workspace.package import Dependency, DependencyKind, Package

    def _make(
        name: str,
        version: str = "1.0.0",
        deps: dict[str, str] | None = None,
        *,
        private: bool = False,
        kind: DependencyKind = DependencyKind.RUNTIME,
    ) -> Package:
        location = ("project", "dependencies")
        if kind == DependencyKind.DEV:
            location = ("dependency-groups", "dev")
        return Package(
            name=name,
            version=version,
            path=temp_dir / "packages" / name,
            private=private,
            dependencies=tuple(
                Dependency(dep, spec, kind, location, raw=f"{dep}{spec}")
                for dep, spec in (deps or {}).items()
            ),
        )

    return _make


@pytest.fixture
def run_git():
    """The `git` helper, for tests that drive a repository directly."""
    return git
