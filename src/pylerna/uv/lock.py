"""uv lock operations."""

from __future__ import annotations

from pathlib import Path

from pylerna.uv.client import run_uv


def lock(cwd: Path, *, offline: bool = False) -> tuple[int, str, str]:
    """Update the workspace lock file.

    Args:
        cwd: Workspace root.
        offline: Resolve from the cache only.

    Returns:
        Tuple of (exit_code, stdout, stderr).
    """
    args = ["lock"]
    if offline:
        args.append("--offline")
    result = run_uv(args, cwd=cwd, check=False)
    return result.returncode, result.stdout, result.stderr
