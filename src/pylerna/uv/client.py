"""uv command runner."""

from __future__ import annotations

import asyncio
import os
import shutil
import subprocess
from pathlib import Path

import structlog

from pylerna.errors import ExecutionError

logger = structlog.get_logger(__name__)


def get_uv_executable() -> str:
    """Path of the uv executable.

    Raises:
        ExecutionError: If uv is not installed.
    """
    uv = shutil.which("uv")
    if uv is None:
        raise ExecutionError("uv is not installed or not on PATH")
    return uv


def _env(env: dict[str, str] | None) -> dict[str, str] | None:
    if not env:
        return None
    merged = os.environ.copy()
    merged.update(env)
    return merged


def run_uv(
    args: list[str],
    cwd: Path | None = None,
    *,
    check: bool = True,
    env: dict[str, str] | None = None,
) -> subprocess.CompletedProcess[str]:
    """Run a uv command synchronously.

    Args:
        args: uv arguments (without 'uv').
        cwd: Working directory.
        check: Raise on non-zero exit code.
        env: Extra environment variables.

    Raises:
        ExecutionError: If uv is missing, or the command fails and check is True.
    """
    cmd = [get_uv_executable(), *args]
    logger.debug("uv", args=args, cwd=str(cwd) if cwd else None)
    result = subprocess.run(
        cmd,
        cwd=cwd,
        capture_output=True,
        text=True,
        check=False,
        env=_env(env),
    )
    if check and result.returncode != 0:
        raise ExecutionError(
            f"uv {' '.join(args)} failed: "
            f"{result.stderr.strip() or f'exit code {result.returncode}'}"
        )
    return result


async def run_uv_async(
    args: list[str],
    cwd: Path | None = None,
    *,
    check: bool = False,
    env: dict[str, str] | None = None,
) -> tuple[int, str, str]:
    """Run a uv command asynchronously.

    Returns:
        Tuple of (exit_code, stdout, stderr).
    """
    cmd = [get_uv_executable(), *args]
    logger.debug("uv", args=args, cwd=str(cwd) if cwd else None)
    process = await asyncio.create_subprocess_exec(
        *cmd,
        cwd=cwd,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        env=_env(env),
    )
    stdout_bytes, stderr_bytes = await process.communicate()
    stdout = stdout_bytes.decode("utf-8", errors="replace")
    stderr = stderr_bytes.decode("utf-8", errors="replace")

    if check and process.returncode != 0:
        raise ExecutionError(f"uv {' '.join(args)} failed: {stderr.strip()}")
    return process.returncode or 0, stdout, stderr
