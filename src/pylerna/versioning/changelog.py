"""Changelog generation."""

from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import Protocol

from pylerna.config.schema import ChangelogConfig, ChangelogSection
from pylerna.versioning.conventional import ParsedCommit, group_commits_by_type

DEFAULT_HEADER = "# Changelog\n\nAll notable changes to this package are documented in this file.\n"


class ChangelogGenerator(Protocol):
    """Renders one release entry for one package."""

    def render(
        self,
        package_name: str,
        version: str,
        commits: list[ParsedCommit],
        *,
        dependency_bump: bool = False,
    ) -> str: ...


def generate_changelog_entry(
    version: str,
    commits: list[ParsedCommit],
    *,
    package_name: str | None = None,
    sections: list[ChangelogSection] | None = None,
    include_author: bool = False,
    release_date: date | None = None,
) -> str:
    """Markdown for one release.

    Args:
        version: Released version.
        commits: Conventional commits attributed to the release.
        package_name: Shown in the heading when set.
        sections: Type-to-heading mapping, in display order.
        include_author: Append the commit author to each line.
        release_date: Defaults to today.
    """
    sections = sections if sections is not None else ChangelogConfig().sections
    day = (release_date or date.today()).isoformat()
    title = f"{package_name}@{version}" if package_name else version
    lines = [f"## {title} ({day})", ""]

    breaking = [c for c in commits if c.breaking]
    if breaking:
        lines.append("### ⚠ BREAKING CHANGES")
        lines.append("")
        lines.extend(_line(c, include_author) for c in breaking)
        lines.append("")

    grouped = group_commits_by_type(commits)
    for section in sections:
        if section.hidden or section.type not in grouped:
            continue
        lines.append(f"### {section.title}")
        lines.append("")
        lines.extend(_line(c, include_author) for c in grouped[section.type])
        lines.append("")

    return "\n".join(lines).rstrip() + "\n"


def _line(commit: ParsedCommit, include_author: bool) -> str:
    text = f"- {commit.formatted_scope}{commit.description}"
    if commit.sha:
        text += f" ({commit.sha[:7]})"
    if include_author and commit.author:
        text += f" by {commit.author}"
    return text


def prepend_to_changelog(path: Path, entry: str, header: str | None = None) -> None:
    """Insert `entry` above previous releases, creating the file if needed."""
    header = (header or DEFAULT_HEADER).rstrip() + "\n"
    if path.exists():
        existing = path.read_text(encoding="utf-8")
        body = existing[len(header) :] if existing.startswith(header) else existing
        content = f"{header}\n{entry}\n{body.lstrip()}"
    else:
        content = f"{header}\n{entry}"
    path.write_text(content.rstrip() + "\n", encoding="utf-8")


class MarkdownChangelogGenerator:
    """Default generator driven by the changelog config sections."""

    def __init__(self, config: ChangelogConfig | None = None) -> None:
        self.config = config or ChangelogConfig()

    def render(
        self,
        package_name: str,
        version: str,
        commits: list[ParsedCommit],
        *,
        dependency_bump: bool = False,
    ) -> str:
        entry = generate_changelog_entry(
            version,
            commits,
            package_name=package_name,
            sections=self.config.sections,
            include_author=self.config.include_author,
        )
        if dependency_bump and not commits:
            note = f"**Note:** Version bump only for package {package_name}"
            entry = f"{entry.rstrip()}\n\n{note}\n"
        return entry
