"""Version bump planning.

Turns a ChangeSet into a VersionBumpPlan: the next version of every package
that will be released and the dependency ranges that must be rewritten.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum

import structlog
from packaging.utils import canonicalize_name

from pylerna.changes.detector import ChangeReason, ChangeSet
from pylerna.config.schema import GraduatePrecedence, VersioningConfig
from pylerna.errors import AmbiguousGraduateError, InvalidBumpError, VersionError
from pylerna.filters.scope import matches_any
from pylerna.versioning.conventional import ParsedCommit, determine_bump, parse_commits
from pylerna.versioning.ranges import VersionRange
from pylerna.versioning.semver import BumpType, Version
from pylerna.workspace.graph import DependencyGraph
from pylerna.workspace.package import Dependency, DependencyKind, Package

logger = structlog.get_logger(__name__)


class PlanReason(str, Enum):
    MANUAL = "manual"
    COMMITS = "commits"
    DEPENDENCY = "dependency"
    GRADUATE = "graduate"


@dataclass
class PlannedBump:
    """Next version of one package."""

    package: Package
    current: Version
    next: Version
    bump: BumpType
    reason: PlanReason
    commits: list[ParsedCommit] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.package.name


@dataclass(frozen=True)
class RangeUpdate:
    """A dependency range in `package` that must be rewritten."""

    package: str
    dependency: Dependency
    old: str
    new: str


@dataclass
class VersionBumpPlan:
    """Planned releases and range rewrites.

    Attributes:
        entries: Planned bumps by package name.
        range_updates: Range rewrites, in dependent/dependency name order.
        fixed_version: The shared version in fixed mode.
    """

    entries: dict[str, PlannedBump] = field(default_factory=dict)
    range_updates: list[RangeUpdate] = field(default_factory=list)
    fixed_version: Version | None = None

    @property
    def names(self) -> list[str]:
        return sorted(self.entries)

    def get(self, name: str) -> PlannedBump | None:
        return self.entries.get(name)

    def ranges_for(self, name: str) -> list[tuple[Dependency, str]]:
        return [(u.dependency, u.new) for u in self.range_updates if u.package == name]

    def versions(self) -> dict[str, str]:
        return {name: str(entry.next) for name, entry in sorted(self.entries.items())}

    def as_rows(self) -> list[dict[str, str]]:
        return [
            {
                "name": e.name,
                "current": str(e.current),
                "next": str(e.next),
                "bump": e.bump.value,
                "reason": e.reason.value,
            }
            for e in self
        ]

    def __contains__(self, name: object) -> bool:
        return name in self.entries

    def __iter__(self) -> Iterator[PlannedBump]:
        return (self.entries[n] for n in self.names)

    def __len__(self) -> int:
        return len(self.entries)


@dataclass
class PlanOptions:
    """Inputs of a planning run that do not come from the workspace config.

    Attributes:
        bump: Manual bump for every package. None selects conventional mode
            when the config enables it.
        per_package: Manual bumps by package (independent mode only).
        preid: Prerelease identifier; defaults to the configured one.
    """

    bump: BumpType | None = None
    per_package: dict[str, BumpType] | None = None
    preid: str | None = None

    @property
    def manual(self) -> bool:
        return self.bump is not None or bool(self.per_package)


class VersionBumpEngine:
    """Computes VersionBumpPlans for one workspace graph."""

    def __init__(self, graph: DependencyGraph, config: VersioningConfig) -> None:
        self.graph = graph
        self.config = config

    def _parse(self, pkg: Package) -> Version:
        try:
            return Version.parse(pkg.version)
        except VersionError as e:
            raise VersionError(f"{pkg.name}: {e.message}") from e

    def _baseline_candidate(self, pkg: Package) -> Version | None:
        try:
            return Version.parse(pkg.version)
        except VersionError:
            logger.warning(
                "version left out of the fixed baseline", package=pkg.name, version=pkg.version
            )
            return None

    def _validate(self, options: PlanOptions) -> None:
        if options.per_package and not self.config.independent:
            raise InvalidBumpError("Per-package bumps require independent versioning mode")
        if not options.manual and not self.config.conventional:
            raise InvalidBumpError("No bump given and conventional commits are disabled")

    def _graduating(self) -> set[str]:
        """Packages that graduate, validated against the prerelease targets."""
        patterns = self.config.conventional_graduate
        if not patterns:
            return set()
        chosen: set[str] = set()
        for name, pkg in self.graph.packages.items():
            if not matches_any(name, patterns):
                continue
            explicit = any(
                canonicalize_name(p) == name for p in patterns if not set(p) & set("*?[")
            )
            if matches_any(name, self.config.conventional_prerelease):
                raise AmbiguousGraduateError(
                    name, "targeted by both conventional_graduate and conventional_prerelease"
                )
            if not self._parse(pkg).is_prerelease:
                if explicit:
                    raise AmbiguousGraduateError(name, f"{pkg.version} is not a prerelease")
                continue
            chosen.add(name)
        return chosen

    def _commit_bump(self, current: Version, commits: list[ParsedCommit]) -> BumpType:
        bump = determine_bump(commits)
        if bump == BumpType.NONE:
            bump = BumpType.PATCH
        if bump == BumpType.MAJOR and current.major == 0:
            if self.config.zero_major_breaking_is_minor:
                bump = BumpType.MINOR
        return bump

    def _apply_prerelease(self, name: str, current: Version, bump: BumpType) -> BumpType:
        if not matches_any(name, self.config.conventional_prerelease):
            return bump
        if current.is_prerelease and not self.config.conventional_bump_prerelease:
            return BumpType.PRERELEASE
        return bump.as_prerelease()

    def _next(self, current: Version, bump: BumpType, preid: str) -> Version:
        return current.bump(
            bump,
            preid,
            style=self.config.version_style,
            prerelease_start=self.config.prerelease_start,
        )

    def _choose(
        self,
        pkg: Package,
        reason: ChangeReason | None,
        commits: list[ParsedCommit],
        graduating: bool,
        options: PlanOptions,
    ) -> tuple[BumpType, PlanReason]:
        current = self._parse(pkg)

        if options.manual:
            bump = (options.per_package or {}).get(pkg.name, options.bump)
            if bump is None:
                raise InvalidBumpError(f"No bump given for package '{pkg.name}'")
            return bump, PlanReason.MANUAL

        if graduating:
            if self.config.graduate_precedence == GraduatePrecedence.GRADUATE or not commits:
                return BumpType.GRADUATE, PlanReason.GRADUATE
            bump = self._commit_bump(current, commits)
            graduated = self._next(current, BumpType.GRADUATE, self.config.preid)
            if self._next(current, bump, self.config.preid) > graduated:
                return bump, PlanReason.COMMITS
            return BumpType.GRADUATE, PlanReason.GRADUATE

        if reason == ChangeReason.PROPAGATED or not commits:
            bump = BumpType.PATCH
            plan_reason = PlanReason.DEPENDENCY
            if reason in (ChangeReason.DIRECT, ChangeReason.FORCED, ChangeReason.INITIAL):
                plan_reason = PlanReason.COMMITS
        else:
            bump = self._commit_bump(current, commits)
            plan_reason = PlanReason.COMMITS
        return self._apply_prerelease(pkg.name, current, bump), plan_reason

    def plan(self, change_set: ChangeSet, options: PlanOptions | None = None) -> VersionBumpPlan:
        """Compute next versions for a ChangeSet.

        Raises:
            InvalidBumpError: If the bump inputs do not fit the versioning mode.
            AmbiguousGraduateError: If a graduation target is not a prerelease
                or is also a prerelease target.
        """
        options = options or PlanOptions()
        self._validate(options)
        preid = options.preid or self.config.preid
        graduating = set() if options.manual else self._graduating()
        plan = VersionBumpPlan()

        candidates = sorted(set(change_set.names) | graduating)
        for name in candidates:
            pkg = self.graph.packages[name]
            entry = change_set.get(name)
            commits = parse_commits(entry.commits) if entry else []
            bump, reason = self._choose(
                pkg, entry.reason if entry else None, commits, name in graduating, options
            )
            current = self._parse(pkg)
            plan.entries[name] = PlannedBump(
                pkg, current, self._next(current, bump, preid), bump, reason, commits
            )

        if not self.config.independent and plan.entries:
            self._fix_versions(plan, preid)

        self._add_broken_dependents(plan, preid)
        self._retarget_ranges(plan)

        logger.debug("version plan", versions=plan.versions())
        return plan

    def _fix_versions(self, plan: VersionBumpPlan, preid: str) -> None:
        """Fixed mode: every planned package moves to one shared version.

        The baseline is the highest version in the workspace. Packages whose
        version cannot be parsed (PEP 440 dev or post releases, for instance)
        do not count towards it; planned packages always parse.
        """
        candidates = (self._baseline_candidate(p) for p in self.graph.packages.values())
        baseline = max(v for v in candidates if v is not None)
        bumps = {e.bump for e in plan}
        if BumpType.GRADUATE in bumps and not baseline.is_prerelease:
            bumps = (bumps - {BumpType.GRADUATE}) | {BumpType.PATCH}
        shared = max(self._next(baseline, bump, preid) for bump in bumps)
        plan.fixed_version = shared
        for entry in plan:
            entry.next = shared

    def _edges(self, name: str) -> Iterator[Dependency]:
        for dep in self.graph.edges_of(name):
            if dep.kind == DependencyKind.OPTIONAL and not self.config.allow_optional_update:
                continue
            yield dep

    def _range(self, dependent: str, dep: Dependency) -> VersionRange | None:
        try:
            return VersionRange.parse(dep.spec)
        except VersionError:
            logger.warning(
                "unrecognised dependency range left untouched",
                package=dependent,
                dependency=dep.name,
                range=dep.spec,
            )
            return None

    def _add_broken_dependents(self, plan: VersionBumpPlan, preid: str) -> None:
        """Add dependents whose declared range no longer admits a planned version.

        Repeats until a pass adds nothing. Private packages are left out when
        `versioning.private` is off, even if their range breaks.
        """
        skipped: set[str] = set()
        while True:
            added: list[str] = []
            for name in sorted(self.graph.packages):
                if name in plan or name in skipped:
                    continue
                for dep in self._edges(name):
                    target = plan.get(dep.name)
                    if target is None:
                        continue
                    declared = self._range(name, dep)
                    if declared is not None and not declared.satisfies(target.next):
                        if self.graph.packages[name].private and not self.config.private:
                            logger.warning(
                                "private dependent left with a broken range",
                                package=name,
                                dependency=dep.name,
                                range=dep.spec,
                            )
                            skipped.add(name)
                            break
                        added.append(name)
                        break
            if not added:
                return
            for name in added:
                pkg = self.graph.packages[name]
                current = self._parse(pkg)
                bump = BumpType.PATCH
                if not self.config.independent and plan.fixed_version is not None:
                    nxt = plan.fixed_version
                else:
                    bump = self._apply_prerelease(name, current, bump)
                    nxt = self._next(current, bump, preid)
                plan.entries[name] = PlannedBump(pkg, current, nxt, bump, PlanReason.DEPENDENCY)
                logger.debug("dependent added by range", package=name)

    def _retarget_ranges(self, plan: VersionBumpPlan) -> None:
        for entry in plan:
            for dep in self._edges(entry.name):
                target = plan.get(dep.name)
                if target is None:
                    continue
                declared = self._range(entry.name, dep)
                if declared is None:
                    continue
                new = declared.retarget(target.next, exact=self.config.exact)
                if new != dep.spec:
                    plan.range_updates.append(RangeUpdate(entry.name, dep, dep.spec, new))
