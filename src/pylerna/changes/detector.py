"""Change detection relative to the last release reference.

A package is changed when files under its directory differ from the
reference (ignoring `ignore_changes` globs), when it is forced, or when it
depends on a changed package. Results never depend on filesystem order.
"""

from __future__ import annotations

import fnmatch
from collections.abc import Collection, Iterator
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

import structlog

from pylerna.errors import ChangeDetectionError
from pylerna.filters.scope import matches_any
from pylerna.git import (
    Commit,
    get_changed_files_since,
    get_commits,
    get_latest_tag,
    get_repo_root,
    has_commits,
    is_git_repo,
    resolve_ref,
)
from pylerna.workspace.graph import DependencyGraph
from pylerna.workspace.package import DependencyKind, Package
from pylerna.workspace.workspace import Workspace

logger = structlog.get_logger(__name__)


class ChangeReason(str, Enum):
    DIRECT = "direct"
    PROPAGATED = "propagated"
    FORCED = "forced"
    INITIAL = "initial"


@dataclass
class ChangedPackage:
    """One ChangeSet entry.

    Attributes:
        package: The changed package.
        reason: Why it is in the set.
        files: Changed files under the package, relative to the package.
        commits: Commits touching the package since the reference (newest first).
        via: For propagated entries, the dependency that pulled it in.
    """

    package: Package
    reason: ChangeReason
    files: list[Path] = field(default_factory=list)
    commits: list[Commit] = field(default_factory=list)
    via: str | None = None

    @property
    def name(self) -> str:
        return self.package.name


@dataclass
class ChangeSet:
    """Packages judged changed since `reference`.

    Attributes:
        reference: Tag or ref the comparison was made against; None when no
            release exists yet.
        entries: Changed packages by name.
    """

    reference: str | None
    entries: dict[str, ChangedPackage] = field(default_factory=dict)

    @property
    def names(self) -> list[str]:
        return sorted(self.entries)

    @property
    def packages(self) -> list[Package]:
        return [self.entries[n].package for n in self.names]

    def get(self, name: str) -> ChangedPackage | None:
        return self.entries.get(name)

    def add(self, entry: ChangedPackage) -> None:
        self.entries.setdefault(entry.name, entry)

    def __contains__(self, name: object) -> bool:
        return name in self.entries

    def __iter__(self) -> Iterator[ChangedPackage]:
        return (self.entries[n] for n in self.names)

    def __len__(self) -> int:
        return len(self.entries)


@dataclass
class DetectOptions:
    """Options for a detection run.

    Attributes:
        since: Explicit git ref. None means the last tag matching `tag_pattern`.
        tag_pattern: Glob for release tags. Derived from the versioning config when None.
        include_merged_tags: Also consider tags reachable through merge commits.
        ignore_changes: Globs of package-relative paths that do not count as changes.
        force: Names or globs always treated as changed; "*" forces every package.
        propagate: Add dependents of changed packages.
        propagate_dev_dependencies: Let dev-only edges propagate.
        include_private: Keep private packages in the result.
        collect_commits: Attach commits to each entry.
    """

    since: str | None = None
    tag_pattern: str | None = None
    include_merged_tags: bool = False
    ignore_changes: list[str] = field(default_factory=list)
    force: list[str] = field(default_factory=list)
    propagate: bool = True
    propagate_dev_dependencies: bool = True
    include_private: bool = True
    collect_commits: bool = False


def propagation_kinds(include_dev: bool) -> frozenset[DependencyKind]:
    kinds = {DependencyKind.RUNTIME, DependencyKind.OPTIONAL}
    if include_dev:
        kinds.add(DependencyKind.DEV)
    return frozenset(kinds)


def propagate_changes(
    graph: DependencyGraph,
    changed: Collection[str],
    kinds: Collection[DependencyKind] | None = None,
) -> dict[str, str]:
    """Dependents pulled in by `changed`, until nothing new is added.

    Args:
        graph: Dependency graph.
        changed: Names already in the change set.
        kinds: Edge kinds that propagate. None means every edge.

    Returns:
        Newly added package name to the name that pulled it in.
    """
    current = set(changed)
    added: dict[str, str] = {}
    while True:
        round_added: dict[str, str] = {}
        for name in sorted(current):
            for dependent in sorted(graph.get_dependents(name, kinds)):
                if dependent not in current and dependent not in round_added:
                    round_added[dependent] = name
        if not round_added:
            return added
        added.update(round_added)
        current |= round_added.keys()


def is_ignored(relative: Path, patterns: list[str]) -> bool:
    """Match a package-relative path against ignore globs.

    Globs without a "/" also match the file's basename.
    """
    posix = relative.as_posix()
    for pattern in patterns:
        if fnmatch.fnmatch(posix, pattern):
            return True
        if "/" not in pattern and fnmatch.fnmatch(relative.name, pattern):
            return True
    return False


def default_tag_pattern(workspace: Workspace) -> str:
    versioning = workspace.config.versioning
    fmt = versioning.tag_format if versioning.independent else versioning.fixed_tag_format
    return fmt.replace("{name}", "*").replace("{version}", "*")


class ChangeDetector:
    """Computes ChangeSets for a workspace."""

    def __init__(self, workspace: Workspace) -> None:
        self.workspace = workspace
        self.graph = workspace.graph

    def _repo_root(self) -> Path:
        if not is_git_repo(self.workspace.root):
            raise ChangeDetectionError(f"{self.workspace.root} is not inside a git repository")
        return get_repo_root(self.workspace.root).resolve()

    def resolve_reference(self, options: DetectOptions) -> str | None:
        """The ref to diff against, or None when nothing has been released.

        Raises:
            ChangeDetectionError: If an explicit ref does not resolve.
        """
        root = self._repo_root()
        if options.since:
            if resolve_ref(options.since, root) is None:
                raise ChangeDetectionError(
                    f"Cannot resolve git reference '{options.since}'", ref=options.since
                )
            return options.since
        if not has_commits(root):
            return None
        pattern = options.tag_pattern or default_tag_pattern(self.workspace)
        tag = get_latest_tag(root, pattern, first_parent=not options.include_merged_tags)
        return tag.name if tag else None

    def _files_by_package(self, root: Path, reference: str) -> dict[str, list[Path]]:
        files: dict[str, list[Path]] = {}
        for changed in sorted(get_changed_files_since(root, reference)):
            pkg = self.workspace.package_for_path(root / changed)
            if pkg is None:
                continue
            files.setdefault(pkg.name, []).append((root / changed).relative_to(pkg.path))
        return files

    def detect(self, options: DetectOptions | None = None) -> ChangeSet:
        """Compute the ChangeSet.

        Raises:
            ChangeDetectionError: If the reference cannot be resolved.
        """
        options = options or DetectOptions()
        root = self._repo_root()
        reference = self.resolve_reference(options)
        packages = self.workspace.packages
        change_set = ChangeSet(reference=reference)

        if reference is None:
            logger.info("no release reference found, treating all packages as changed")
            for name in sorted(packages):
                change_set.add(ChangedPackage(packages[name], ChangeReason.INITIAL))
        else:
            for name, files in sorted(self._files_by_package(root, reference).items()):
                counted = [f for f in files if not is_ignored(f, options.ignore_changes)]
                if not counted:
                    logger.debug("only ignored changes", package=name, files=len(files))
                    continue
                change_set.add(ChangedPackage(packages[name], ChangeReason.DIRECT, counted))

        if options.force:
            for name in sorted(packages):
                if matches_any(name, options.force):
                    change_set.add(ChangedPackage(packages[name], ChangeReason.FORCED))

        if options.propagate:
            kinds = propagation_kinds(options.propagate_dev_dependencies)
            for name, via in propagate_changes(self.graph, change_set.names, kinds).items():
                change_set.add(ChangedPackage(packages[name], ChangeReason.PROPAGATED, via=via))

        if not options.include_private:
            for name in [n for n in change_set.names if packages[n].private]:
                del change_set.entries[name]

        if options.collect_commits:
            for entry in change_set:
                if entry.reason in (ChangeReason.DIRECT, ChangeReason.INITIAL):
                    entry.commits = get_commits(root, since=reference, path=entry.package.path)

        logger.debug(
            "changes detected",
            reference=reference,
            packages=change_set.names,
        )
        return change_set
