"""Release sequencing for `pylerna version` and `pylerna publish`.

Phases run in a fixed order: preflight, detect, plan, write, git, push,
publish. Everything before the git phase is free of side effects except
the manifest writes, which are rolled back on failure. Git and publish
failures are reported with enough detail for a manual or scoped re-run;
tags already created are not removed.
"""

from __future__ import annotations

import fnmatch
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

import structlog

from pylerna.changes.detector import ChangeDetector, ChangeSet, DetectOptions
from pylerna.errors import GitError, PyLernaError, ReleaseError
from pylerna.execution.results import BatchResult, ExecutionStatus
from pylerna.execution.scheduler import ConcurrencyMode, OutputHandler, Scheduler, SchedulerPolicy
from pylerna.filters.chain import apply_filters
from pylerna.git import (
    commit,
    create_tag,
    get_current_branch,
    push,
    stage_all,
    stage_files,
)
from pylerna.release.registry import PublishOutcome, PublishUnit, RegistryClient
from pylerna.release.transaction import ManifestTransaction
from pylerna.uv.lock import lock as uv_lock
from pylerna.versioning.changelog import (
    ChangelogGenerator,
    MarkdownChangelogGenerator,
    prepend_to_changelog,
)
from pylerna.versioning.planner import (
    PlannedBump,
    PlanOptions,
    PlanReason,
    VersionBumpEngine,
    VersionBumpPlan,
)
from pylerna.versioning.semver import BumpType, Version
from pylerna.workspace.graph import DependencyGraph, GraphType
from pylerna.workspace.lockfile import lockfile_path, update_lockfile_versions
from pylerna.workspace.manifest import write_manifest
from pylerna.workspace.package import Package
from pylerna.workspace.workspace import Workspace

logger = structlog.get_logger(__name__)


class ReleasePhase(str, Enum):
    PREFLIGHT = "preflight"
    DETECT = "detect"
    PLAN = "plan"
    WRITE = "write"
    GIT = "git"
    PUSH = "push"
    PUBLISH = "publish"


@dataclass
class PackageRelease:
    """One row of the release report."""

    name: str
    old_version: str
    new_version: str
    bump: BumpType | None = None
    reason: str | None = None
    tag: str | None = None
    private: bool = False
    changelog_entry: str | None = None
    publish_status: ExecutionStatus | None = None
    publish_error: str | None = None
    otp_required: bool = False

    @property
    def published(self) -> bool:
        return self.publish_status == ExecutionStatus.SUCCESS


@dataclass
class ReleaseResult:
    """Outcome of a release run.

    Attributes:
        releases: Per-package rows, in name order.
        plan: The version plan, when one was computed.
        commit_sha: Release commit, when one was created.
        tags: Tags created, in creation order.
        publish: Scheduler results of the publish phase.
        failed_phase: Phase that failed, None on success.
        error: Failure message.
        command: Exact git command that failed, for manual recovery.
        dry_run: Nothing was written.
    """

    releases: list[PackageRelease] = field(default_factory=list)
    plan: VersionBumpPlan | None = None
    commit_sha: str | None = None
    tags: list[str] = field(default_factory=list)
    publish: BatchResult | None = None
    failed_phase: ReleasePhase | None = None
    error: str | None = None
    command: str | None = None
    dry_run: bool = False

    @property
    def success(self) -> bool:
        if self.failed_phase is not None:
            return False
        return self.publish is None or self.publish.all_success

    def get(self, name: str) -> PackageRelease | None:
        return next((r for r in self.releases if r.name == name), None)

    def exit_code(self, allow_partial_success: bool = False) -> int:
        if self.failed_phase not in (None, ReleasePhase.PUBLISH):
            return 1
        if self.publish is not None:
            return self.publish.exit_code(allow_partial_success)
        return 0 if self.failed_phase is None else 1


@dataclass
class ReleaseOptions:
    """Per-run options; unset values fall back to the workspace config.

    Attributes:
        since: Explicit change reference.
        scope: Restrict released packages (names or globs, comma separated).
        ignore: Packages excluded from the release.
        bump: Manual bump for every package.
        per_package: Manual bumps by package (independent mode).
        preid: Prerelease identifier.
        force_publish: Extra names/globs always released.
        dry_run: Plan only.
        changelog: Write changelogs.
        git_tag_version: Commit and tag.
        push: Push the commit and tags.
        publish: Run the publish phase.
        otp: One-time password for the registry.
        dist_tag: Overrides the configured dist-tag.
        bail: Stop publishing after the first failure.
        concurrency: Parallel publishes.
    """

    since: str | None = None
    scope: str | None = None
    ignore: list[str] = field(default_factory=list)
    bump: BumpType | None = None
    per_package: dict[str, BumpType] | None = None
    preid: str | None = None
    force_publish: list[str] = field(default_factory=list)
    dry_run: bool = False
    changelog: bool | None = None
    git_tag_version: bool | None = None
    push: bool | None = None
    publish: bool = False
    otp: str | None = None
    dist_tag: str | None = None
    bail: bool = True
    concurrency: int = 4


def format_commit_message(template: str, plan: VersionBumpPlan) -> str:
    packages = ", ".join(f"{e.name}@{e.next}" for e in plan)
    version = str(plan.fixed_version) if plan.fixed_version else ""
    return template.replace("{packages}", packages).replace("{version}", version)


def branch_allowed(branch: str, patterns: list[str]) -> bool:
    return not patterns or any(fnmatch.fnmatchcase(branch, p) for p in patterns)


class ReleaseCoordinator:
    """Runs the release phases for one workspace."""

    def __init__(
        self,
        workspace: Workspace,
        *,
        registry: RegistryClient | None = None,
        changelog: ChangelogGenerator | None = None,
        output_handler: OutputHandler | None = None,
    ) -> None:
        self.workspace = workspace
        self.config = workspace.config.versioning
        self.registry = registry
        self.changelog = changelog or MarkdownChangelogGenerator(self.config.changelog)
        self.output_handler = output_handler

    @property
    def root(self) -> Path:
        return self.workspace.root

    def preflight(self) -> str:
        """Check the current branch against `allow_branch`.

        Returns:
            The current branch.

        Raises:
            ReleaseError: If releasing from this branch is not allowed.
        """
        try:
            branch = get_current_branch(self.root)
        except GitError as e:
            raise ReleaseError(
                e.message, phase=ReleasePhase.PREFLIGHT.value, command=e.command
            ) from e
        if not branch_allowed(branch, self.config.allow_branch):
            raise ReleaseError(
                f"Branch '{branch}' is not allowed to release "
                f"(allow_branch: {', '.join(self.config.allow_branch)})",
                phase=ReleasePhase.PREFLIGHT.value,
            )
        return branch

    def detect(self, options: ReleaseOptions) -> ChangeSet:
        detect_options = DetectOptions(
            since=options.since,
            include_merged_tags=self.config.include_merged_tags,
            ignore_changes=list(self.config.ignore_changes),
            force=[*self.config.force_publish, *options.force_publish],
            propagate_dev_dependencies=self.config.propagate_dev_dependencies,
            include_private=self.config.private,
            collect_commits=self.config.conventional or self._changelog_enabled(options),
        )
        change_set = ChangeDetector(self.workspace).detect(detect_options)
        if options.scope or options.ignore:
            kept = apply_filters(change_set.packages, scope=options.scope, ignore=options.ignore)
            kept_names = {p.name for p in kept}
            for name in [n for n in change_set.names if n not in kept_names]:
                del change_set.entries[name]
        return change_set

    def plan(self, change_set: ChangeSet, options: ReleaseOptions) -> VersionBumpPlan:
        engine = VersionBumpEngine(self.workspace.graph, self.config)
        return engine.plan(
            change_set,
            PlanOptions(bump=options.bump, per_package=options.per_package, preid=options.preid),
        )

    def prepare(self, options: ReleaseOptions) -> tuple[ChangeSet, VersionBumpPlan]:
        """Detect changes and plan versions without touching anything."""
        change_set = self.detect(options)
        plan = self.plan(change_set, options)
        logger.info("release planned", packages=plan.names, reference=change_set.reference)
        return change_set, plan

    def _changelog_enabled(self, options: ReleaseOptions) -> bool:
        if options.changelog is not None:
            return options.changelog
        return self.config.changelog.enabled

    def tag_for(self, entry: PlannedBump) -> str:
        return self.config.tag_format.format(name=entry.name, version=entry.next)

    def _rows(self, plan: VersionBumpPlan) -> list[PackageRelease]:
        rows = []
        for entry in plan:
            rows.append(
                PackageRelease(
                    name=entry.name,
                    old_version=str(entry.current),
                    new_version=str(entry.next),
                    bump=entry.bump,
                    reason=entry.reason.value,
                    tag=self.tag_for(entry) if self.config.independent else None,
                    private=entry.package.private,
                )
            )
        return rows

    def write(
        self,
        plan: VersionBumpPlan,
        releases: list[PackageRelease],
        options: ReleaseOptions,
    ) -> list[Path]:
        """Write versions, ranges, lockfile and changelogs as one step.

        Returns:
            Files whose content changed.

        Raises:
            ReleaseError: If any write fails; every file is restored first.
        """
        rows = {r.name: r for r in releases}
        changelog = self._changelog_enabled(options)
        try:
            with ManifestTransaction(self.root) as tx:
                for entry in plan:
                    tx.record(entry.package.pyproject_path)
                    write_manifest(entry.package, str(entry.next), plan.ranges_for(entry.name))
                    if changelog:
                        text = self.changelog.render(
                            entry.name,
                            str(entry.next),
                            entry.commits,
                            dependency_bump=entry.reason == PlanReason.DEPENDENCY,
                        )
                        path = entry.package.path / self.config.changelog.filename
                        tx.record(path)
                        prepend_to_changelog(path, text, self.config.changelog.header_message)
                        rows[entry.name].changelog_entry = text
                if self.config.manually_update_root_lockfile or self.config.sync_workspace_lock:
                    tx.record(lockfile_path(self.root))
                if self.config.manually_update_root_lockfile:
                    update_lockfile_versions(self.root, plan.versions())
                if self.config.sync_workspace_lock:
                    code, _, stderr = uv_lock(self.root)
                    if code != 0:
                        raise ReleaseError(
                            f"uv lock failed: {stderr.strip()}",
                            phase=ReleasePhase.WRITE.value,
                            command="uv lock",
                        )
                touched = tx.changed_files()
        except ReleaseError:
            raise
        except (PyLernaError, OSError) as e:
            raise ReleaseError(
                f"Writing release files failed: {e}", phase=ReleasePhase.WRITE.value
            ) from e
        logger.info("release files written", files=len(touched))
        return touched

    def commit_and_tag(
        self,
        plan: VersionBumpPlan,
        touched: list[Path],
        result: ReleaseResult,
    ) -> None:
        """Create the release commit and tags, recording progress in `result`.

        Raises:
            GitError: With the failing command; tags created so far stay.
        """
        git = self.config.git
        if git.granular_pathspec:
            stage_files(self.root, touched)
        else:
            stage_all(self.root)
        message = format_commit_message(self.config.commit_message, plan)
        result.commit_sha = commit(
            self.root,
            message,
            sign=git.sign_commit,
            signoff=git.signoff_commit,
            hooks=git.commit_hooks,
            amend=git.amend,
        )

        if self.config.independent:
            tags = [(self.tag_for(e), f"{e.name}@{e.next}") for e in plan]
        else:
            name = self.config.fixed_tag_format.format(version=plan.fixed_version)
            tags = [(name, name)]
        for tag, annotation in tags:
            create_tag(
                self.root,
                tag,
                annotation,
                sign=git.sign_tag,
                force=git.force_tag,
                tag_command=git.tag_command,
            )
            result.tags.append(tag)
        logger.info("release tagged", commit=result.commit_sha, tags=result.tags)

    def push(self, branch: str, tags: list[str]) -> None:
        push(self.root, self.config.git.remote, branch, tags)
        logger.info("release pushed", remote=self.config.git.remote, branch=branch)

    def _publish_graph(self) -> DependencyGraph:
        settings = self.workspace.config.publish
        graph_type = GraphType(settings.graph_type)
        if graph_type == self.workspace.graph.graph_type and settings.reject_cycles:
            return self.workspace.graph
        return self.workspace.with_graph(graph_type, allow_cycles=not settings.reject_cycles).graph

    async def publish(
        self,
        packages: list[Package],
        versions: dict[str, str],
        options: ReleaseOptions,
    ) -> tuple[BatchResult, dict[str, PublishOutcome]]:
        """Publish in dependency order through the scheduler.

        Private packages are never published.

        Raises:
            ReleaseError: If no registry client is configured.
        """
        if self.registry is None:
            raise ReleaseError("No registry client configured", phase=ReleasePhase.PUBLISH.value)
        publishable = [p for p in packages if not p.private]
        settings = self.workspace.config.publish
        prerelease = {
            name for name, version in versions.items() if Version.parse(version).is_prerelease
        }
        unit = PublishUnit(
            client=self.registry,
            versions=versions,
            dist_tag=options.dist_tag or settings.dist_tag,
            pre_dist_tag=settings.pre_dist_tag,
            otp=options.otp,
            registry=settings.registry,
            prerelease=prerelease,
        )
        scheduler = Scheduler(
            self._publish_graph(),
            SchedulerPolicy(
                mode=ConcurrencyMode.TOPOLOGICAL,
                concurrency=options.concurrency,
                bail=options.bail,
            ),
            root=self.root,
            output_handler=self.output_handler,
        )
        batch = await scheduler.run(publishable, unit)
        return batch, unit.outcomes

    def _record_publish(
        self,
        result: ReleaseResult,
        batch: BatchResult,
        outcomes: dict[str, PublishOutcome],
    ) -> None:
        result.publish = batch
        for item in batch.results:
            row = result.get(item.package_name)
            if row is None:
                continue
            row.publish_status = item.status
            row.publish_error = item.error
            outcome = outcomes.get(item.package_name)
            row.otp_required = bool(outcome and outcome.otp_required)
        if not batch.all_success:
            result.failed_phase = ReleasePhase.PUBLISH
            result.error = f"{batch.failure_count} package(s) failed to publish"

    async def run(
        self,
        options: ReleaseOptions,
        prepared: tuple[ChangeSet, VersionBumpPlan] | None = None,
    ) -> ReleaseResult:
        """Run every phase.

        Args:
            options: Run options.
            prepared: A change set and plan from `prepare`, reused as-is.

        Raises:
            PyLernaError: For failures before the git phase. Nothing has been
                committed, tagged or published and manifests are restored.
        """
        branch = self.preflight()
        change_set, plan = prepared or self.prepare(options)
        result = ReleaseResult(releases=self._rows(plan), plan=plan)
        if plan.fixed_version is not None:
            tag = self.config.fixed_tag_format.format(version=plan.fixed_version)
            for row in result.releases:
                row.tag = tag

        if not plan:
            logger.info("nothing to release", reference=change_set.reference)
            return result
        if options.dry_run or self.config.dry_run:
            result.dry_run = True
            return result

        touched = self.write(plan, result.releases, options)

        tagging = (
            options.git_tag_version
            if options.git_tag_version is not None
            else self.config.git_tag_version
        )
        if tagging:
            try:
                self.commit_and_tag(plan, touched, result)
            except GitError as e:
                result.failed_phase = ReleasePhase.GIT
                result.error = e.message
                result.command = e.command
                logger.error("git phase failed", command=e.command, tags=result.tags)
                return result

            should_push = options.push if options.push is not None else self.config.git.push
            if should_push:
                try:
                    self.push(branch, result.tags)
                except GitError as e:
                    result.failed_phase = ReleasePhase.PUSH
                    result.error = e.message
                    result.command = e.command
                    logger.error("push failed", command=e.command)
                    return result

        if options.publish:
            packages = [entry.package for entry in plan]
            batch, outcomes = await self.publish(packages, plan.versions(), options)
            self._record_publish(result, batch, outcomes)

        return result

    async def publish_from_package(self, options: ReleaseOptions) -> ReleaseResult:
        """Publish the versions currently in the manifests.

        Used to re-run a partially failed publish, scoped with `options.scope`.
        """
        packages = apply_filters(
            list(self.workspace.packages.values()), scope=options.scope, ignore=options.ignore
        )
        packages = [p for p in packages if not p.private]
        result = ReleaseResult(
            releases=[
                PackageRelease(name=p.name, old_version=p.version, new_version=p.version)
                for p in sorted(packages, key=lambda p: p.name)
            ]
        )
        if not packages or options.dry_run:
            result.dry_run = options.dry_run
            return result
        versions = {p.name: p.version for p in packages}
        batch, outcomes = await self.publish(packages, versions, options)
        self._record_publish(result, batch, outcomes)
        return result

