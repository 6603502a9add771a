"""Rich tables for CLI output."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

from rich.table import Table

if TYPE_CHECKING:
    from pylerna.release import ReleaseResult
    from pylerna.versioning.planner import VersionBumpPlan

STATUS_STYLES = {
    "success": "green",
    "failure": "red",
    "skipped": "yellow",
    "cancelled": "yellow",
}


def make_table(
    data: Sequence[dict[str, Any]],
    columns: list[str],
    title: str | None = None,
) -> Table:
    """Build a table from row dicts.

    Args:
        data: Rows keyed by column.
        columns: Keys to include, in order. Headers are the keys title-cased.
        title: Optional table title.
    """
    table = Table(title=title)
    for col in columns:
        table.add_column(col.replace("_", " ").title(), style="bold" if col == columns[0] else None)
    for row in data:
        table.add_row(*(str(row.get(col, "")) for col in columns))
    return table


def plan_table(plan: VersionBumpPlan) -> Table:
    """Package, current and next version, bump and reason per planned release."""
    return make_table(plan.as_rows(), ["name", "current", "next", "bump", "reason"])


def release_table(result: ReleaseResult) -> Table:
    """Release rows, with publish status once the publish phase ran."""
    table = Table()
    table.add_column("Package", style="bold")
    table.add_column("Version")
    table.add_column("Tag")
    published = result.publish is not None
    if published:
        table.add_column("Publish")

    for row in result.releases:
        version = (
            row.new_version
            if row.old_version == row.new_version
            else f"{row.old_version} -> {row.new_version}"
        )
        cells = [row.name, version, row.tag or "-"]
        if published:
            if row.private:
                cells.append("[dim]private[/dim]")
            elif row.publish_status is None:
                cells.append("-")
            else:
                status = row.publish_status.value
                text = f"[{STATUS_STYLES[status]}]{status}[/{STATUS_STYLES[status]}]"
                if row.otp_required:
                    text += " (otp required)"
                elif row.publish_error and not row.published:
                    text += f" ({row.publish_error})"
                cells.append(text)
        table.add_row(*cells)
    return table
