"""Commit history queries."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from pylerna.git.repo import run_git_command

_FIELD = "\x1f"
_RECORD = "\x1e"
_FORMAT = _FIELD.join(["%H", "%s", "%b", "%an", "%ae", "%ct"]) + _RECORD


@dataclass(frozen=True, slots=True)
class Commit:
    """A git commit.

    Attributes:
        sha: Full commit SHA.
        subject: First line of the message.
        body: Remaining message text, or None.
        author_name: Author name.
        author_email: Author email.
        timestamp: Commit time as a unix timestamp.
    """

    sha: str
    subject: str
    body: str | None
    author_name: str
    author_email: str
    timestamp: int = 0

    @property
    def message(self) -> str:
        if self.body:
            return f"{self.subject}\n\n{self.body}"
        return self.subject


def _parse_log(output: str) -> list[Commit]:
    commits: list[Commit] = []
    for record in output.split(_RECORD):
        record = record.strip("\n")
        if not record:
            continue
        sha, subject, body, name, email, ts = record.split(_FIELD)
        commits.append(
            Commit(
                sha=sha,
                subject=subject,
                body=body.strip() or None,
                author_name=name,
                author_email=email,
                timestamp=int(ts or 0),
            )
        )
    return commits


def get_commits(
    root: Path,
    since: str | None = None,
    path: Path | None = None,
    limit: int | None = None,
) -> list[Commit]:
    """Commits reachable from HEAD, newest first.

    Args:
        root: Repository root.
        since: Exclude commits reachable from this ref.
        path: Only commits touching this path.
        limit: Maximum number of commits.
    """
    args = ["log", f"--format={_FORMAT}"]
    if limit is not None:
        args.append(f"-n{limit}")
    args.append(f"{since}..HEAD" if since else "HEAD")
    if path is not None:
        args.extend(["--", str(path)])
    result = run_git_command(args, cwd=root)
    return _parse_log(result.stdout)
