"""Command execution engine with standard asynchronous capture."""

from __future__ import annotations

import asyncio
import os
import signal
import time
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from pylerna.execution.results import ExecutionResult

if TYPE_CHECKING:
    from pylerna.workspace.package import Package

logger = structlog.get_logger(__name__)

DEFAULT_GRACE_PERIOD = 5.0


async def _read_stream(
    stream: asyncio.StreamReader,
    callback: Callable[[str], None] | None,
    buffer: list[str],
) -> None:
    """Read from stream line by line."""
    while True:
        line = await stream.readline()
        if not line:
            break
        decoded = line.decode("utf-8", errors="replace")
        buffer.append(decoded)
        if callback:
            # Strip newline for display as print usually adds one
            callback(decoded.rstrip())


def _send_signal(process: asyncio.subprocess.Process, sig: int) -> None:
    try:
        if os.name == "posix":
            os.killpg(process.pid, sig)
        else:
            process.send_signal(sig)
    except ProcessLookupError:
        # already exited
        return


async def terminate_process(
    process: asyncio.subprocess.Process,
    grace_period: float = DEFAULT_GRACE_PERIOD,
) -> None:
    """SIGTERM the process group, then SIGKILL it after `grace_period` seconds."""
    if process.returncode is not None:
        return
    _send_signal(process, signal.SIGTERM)
    try:
        await asyncio.wait_for(process.wait(), timeout=grace_period)
    except (asyncio.TimeoutError, TimeoutError):
        logger.debug("process ignored SIGTERM, killing", pid=process.pid)
        _send_signal(process, signal.SIGKILL)
        await process.wait()


async def run_command(
    command: str,
    cwd: Path,
    *,
    env: dict[str, str] | None = None,
    timeout: float | None = None,
    on_stdout: Callable[[str], None] | None = None,
    on_stderr: Callable[[str], None] | None = None,
    cancel_event: asyncio.Event | None = None,
    grace_period: float = DEFAULT_GRACE_PERIOD,
) -> tuple[int, str, str, int]:
    """Run a shell command asynchronously.

    Args:
        command: Shell command to execute.
        cwd: Working directory.
        env: Environment variables (merged with current env).
        timeout: Timeout in seconds.
        on_stdout: Callback for stdout lines.
        on_stderr: Callback for stderr lines.
        cancel_event: When set while the command runs, the process is
            terminated and the exit code is -1.
        grace_period: Seconds between SIGTERM and SIGKILL on cancellation.

    Returns:
        Tuple of (exit_code, stdout, stderr, duration_ms).
    """
    # Merge environment
    run_env = os.environ.copy()
    if env:
        run_env.update(env)

    start_time = time.monotonic()

    try:
        process = await asyncio.create_subprocess_shell(
            command,
            cwd=str(cwd),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=run_env,
            start_new_session=os.name == "posix",
        )
    except OSError as e:
        duration_ms = int((time.monotonic() - start_time) * 1000)
        return -1, "", str(e), duration_ms

    if process.stdout is None or process.stderr is None:
        raise RuntimeError("Process stdout/stderr is None")

    stdout_buffer: list[str] = []
    stderr_buffer: list[str] = []

    io_task = asyncio.ensure_future(
        asyncio.gather(
            _read_stream(process.stdout, on_stdout, stdout_buffer),
            _read_stream(process.stderr, on_stderr, stderr_buffer),
            process.wait(),
        )
    )
    waiters: set[asyncio.Future] = {io_task}
    cancel_task = None
    if cancel_event is not None:
        cancel_task = asyncio.ensure_future(cancel_event.wait())
        waiters.add(cancel_task)

    try:
        done, _ = await asyncio.wait(waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
    finally:
        if cancel_task is not None:
            cancel_task.cancel()

    if io_task not in done:
        await terminate_process(process, grace_period)
        await asyncio.gather(io_task, return_exceptions=True)
        duration_ms = int((time.monotonic() - start_time) * 1000)
        stdout = "".join(stdout_buffer)
        if cancel_task is not None and cancel_task in done:
            return -1, stdout, "Command cancelled", duration_ms
        return -1, stdout, f"Command timed out after {timeout}s", duration_ms

    io_task.result()
    duration_ms = int((time.monotonic() - start_time) * 1000)

    stdout = "".join(stdout_buffer)
    stderr = "".join(stderr_buffer)

    return process.returncode or 0, stdout, stderr, duration_ms


def package_env(package: Package, root: Path | None = None) -> dict[str, str]:
    """Environment variables describing `package` to its commands."""
    env = {
        "PYLERNA_PACKAGE_NAME": package.name,
        "PYLERNA_PACKAGE_PATH": str(package.path),
        "PYLERNA_PACKAGE_VERSION": package.version,
    }
    if root is not None:
        env["PYLERNA_ROOT_PATH"] = str(root)
    return env


async def run_in_package(
    package: Package,
    command: str,
    *,
    env: dict[str, str] | None = None,
    root: Path | None = None,
    cwd: Path | None = None,
    timeout: float | None = None,
    on_stdout: Callable[[str], None] | None = None,
    on_stderr: Callable[[str], None] | None = None,
    cancel_event: asyncio.Event | None = None,
) -> ExecutionResult:
    """Run a command in a package directory.

    Args:
        package: Package to run command in.
        command: Shell command to execute.
        env: Additional environment variables.
        root: Workspace root, exported as PYLERNA_ROOT_PATH.
        cwd: Working directory; defaults to the package directory.
        timeout: Timeout in seconds.
        on_stdout: Callback for stdout lines.
        on_stderr: Callback for stderr lines.
        cancel_event: Run-scoped cancellation signal.

    Returns:
        Execution result. A command interrupted by `cancel_event` is
        reported as cancelled.
    """
    run_env = env.copy() if env else {}
    run_env.update(package_env(package, root))

    exit_code, stdout, stderr, duration_ms = await run_command(
        command,
        cwd=cwd or package.path,
        env=run_env,
        timeout=timeout,
        on_stdout=on_stdout,
        on_stderr=on_stderr,
        cancel_event=cancel_event,
    )

    if exit_code == 0:
        return ExecutionResult.success_result(
            package_name=package.name,
            stdout=stdout,
            stderr=stderr,
            duration_ms=duration_ms,
            command=command,
        )
    if cancel_event is not None and cancel_event.is_set() and exit_code == -1:
        result = ExecutionResult.cancelled(package.name, "terminated")
        result.stdout = stdout
        result.duration_ms = duration_ms
        result.command = command
        return result
    return ExecutionResult.failure_result(
        package_name=package.name,
        exit_code=exit_code,
        stdout=stdout,
        stderr=stderr,
        duration_ms=duration_ms,
        command=command,
        error=f"exited with {exit_code}",
    )
