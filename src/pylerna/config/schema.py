"""Pydantic models for pylerna.yaml."""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class _Model(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class CommitFormat(str, Enum):
    """How commit messages are interpreted."""

    CONVENTIONAL = "conventional"
    NONE = "none"


class VersioningMode(str, Enum):
    """Fixed: one version line for the workspace. Independent: one per package."""

    FIXED = "fixed"
    INDEPENDENT = "independent"


class GraduatePrecedence(str, Enum):
    """Which rule wins when a graduating package also has bump-worthy commits."""

    GRADUATE = "graduate"
    COMMITS = "commits"


class ScriptConfig(_Model):
    """A named script runnable with `pylerna run`."""

    run: str
    description: str | None = None
    env: dict[str, str] = Field(default_factory=dict)
    scope: str | None = None
    bail: bool = True
    topological: bool = True
    pre: list[str] = Field(default_factory=list)
    post: list[str] = Field(default_factory=list)


class CommandDefaults(_Model):
    """Defaults shared by exec, run and watch."""

    concurrency: int = Field(default=4, ge=1, le=32)
    bail: bool = True
    terminate_on_bail: bool = False
    dry_run: bool = False
    stream: bool = False
    prefix: bool = True
    allow_partial_success: bool = False
    load_env_files: bool = False
    timeout: float | None = None


class ChangelogSection(_Model):
    """Maps a conventional commit type to a changelog heading."""

    type: str
    title: str
    hidden: bool = False


def _default_sections() -> list[ChangelogSection]:
    return [
        ChangelogSection(type="feat", title="Features"),
        ChangelogSection(type="fix", title="Bug Fixes"),
        ChangelogSection(type="perf", title="Performance Improvements"),
        ChangelogSection(type="revert", title="Reverts"),
        ChangelogSection(type="refactor", title="Code Refactoring", hidden=True),
        ChangelogSection(type="docs", title="Documentation", hidden=True),
    ]


class ChangelogConfig(_Model):
    """Changelog generation settings."""

    enabled: bool = True
    filename: str = "CHANGELOG.md"
    header_message: str | None = None
    include_author: bool = False
    sections: list[ChangelogSection] = Field(default_factory=_default_sections)


class GitConfig(_Model):
    """Pass-through flags for the git commands issued during a release."""

    remote: str = "origin"
    push: bool = True
    sign_commit: bool = False
    signoff_commit: bool = False
    sign_tag: bool = False
    force_tag: bool = False
    tag_command: str | None = None
    commit_hooks: bool = True
    amend: bool = False
    granular_pathspec: bool = True


class VersioningConfig(_Model):
    """Versioning behaviour for `pylerna version` and `pylerna publish`."""

    mode: VersioningMode = VersioningMode.INDEPENDENT
    commit_format: CommitFormat = CommitFormat.CONVENTIONAL
    tag_format: str = "{name}@{version}"
    fixed_tag_format: str = "v{version}"
    commit_message: str = "chore(release): {packages}"
    version_style: Literal["pep440", "semver"] = "pep440"
    preid: str = "a"
    prerelease_start: int = Field(default=0, ge=0)
    exact: bool = False
    allow_branch: list[str] = Field(default_factory=list)
    ignore_changes: list[str] = Field(default_factory=list)
    include_merged_tags: bool = False
    force_publish: list[str] = Field(default_factory=list)
    private: bool = True
    propagate_dev_dependencies: bool = True
    allow_optional_update: bool = False
    conventional_prerelease: list[str] = Field(default_factory=list)
    conventional_graduate: list[str] = Field(default_factory=list)
    conventional_bump_prerelease: bool = False
    graduate_precedence: GraduatePrecedence = GraduatePrecedence.GRADUATE
    zero_major_breaking_is_minor: bool = True
    manually_update_root_lockfile: bool = True
    sync_workspace_lock: bool = False
    git_tag_version: bool = True
    dry_run: bool = False
    changelog: ChangelogConfig = Field(default_factory=ChangelogConfig)
    git: GitConfig = Field(default_factory=GitConfig)

    @property
    def conventional(self) -> bool:
        return self.commit_format == CommitFormat.CONVENTIONAL

    @property
    def independent(self) -> bool:
        return self.mode == VersioningMode.INDEPENDENT


class PublishConfig(_Model):
    """Registry settings for `pylerna publish`."""

    registry: str = "https://upload.pypi.org/legacy/"
    dist_tag: str | None = None
    pre_dist_tag: str | None = None
    graph_type: Literal["all", "dependencies"] = "all"
    reject_cycles: bool = True


class WatchConfig(_Model):
    """Debounce and event filtering for `pylerna watch`."""

    quiet_period_ms: int = Field(default=100, ge=0)
    all_events: bool = False
    added_file: bool = False
    added_dir: bool = False
    removed_file: bool = False
    removed_dir: bool = False
    glob: str | None = None
    file_delimiter: str = " "
    include_dependents: bool = False


class PyLernaConfig(_Model):
    """Root of pylerna.yaml."""

    name: str
    packages: list[str] = Field(min_length=1)
    ignore: list[str] = Field(default_factory=list)
    scripts: dict[str, ScriptConfig] = Field(default_factory=dict)
    command_defaults: CommandDefaults = Field(default_factory=CommandDefaults)
    versioning: VersioningConfig = Field(default_factory=VersioningConfig)
    publish: PublishConfig = Field(default_factory=PublishConfig)
    watch: WatchConfig = Field(default_factory=WatchConfig)
    env: dict[str, str] = Field(default_factory=dict)

    @field_validator("scripts", mode="before")
    @classmethod
    def _normalize_scripts(cls, value: Any) -> Any:
        if not isinstance(value, dict):
            return value
        return {
            name: {"run": script} if isinstance(script, str) else script
            for name, script in value.items()
        }

    @model_validator(mode="after")
    def _check_tag_format(self) -> PyLernaConfig:
        if "{version}" not in self.versioning.tag_format:
            raise ValueError("versioning.tag_format must contain '{version}'")
        if self.versioning.independent and "{name}" not in self.versioning.tag_format:
            raise ValueError("independent versioning needs '{name}' in versioning.tag_format")
        return self

    def get_script(self, name: str) -> ScriptConfig | None:
        """Return the script called `name`, or None."""
        return self.scripts.get(name)

    @property
    def script_names(self) -> list[str]:
        return list(self.scripts)
