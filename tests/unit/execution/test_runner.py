"""Test execution runner."""

import asyncio
from pathlib import Path
from unittest.mock import patch

import pytest

from pylerna.execution.results import ExecutionStatus
from pylerna.execution.runner import package_env, run_command, run_in_package
from pylerna.execution.units import ShellCommand, UnitContext


@pytest.fixture
def package(make_package):
    pkg = make_package("pkg-a", "1.2.3")
    pkg.path.mkdir(parents=True)
    return pkg


@pytest.mark.asyncio
async def test_run_command_success(temp_dir: Path):
    lines: list[str] = []

    exit_code, stdout, stderr, duration = await run_command(
        "echo one; echo two; echo oops >&2", cwd=temp_dir, on_stdout=lines.append
    )

    assert exit_code == 0
    assert stdout == "one\ntwo\n"
    assert stderr == "oops\n"
    assert lines == ["one", "two"]
    assert duration >= 0


@pytest.mark.asyncio
async def test_run_command_failure_exit_code(temp_dir: Path):
    exit_code, _, _, _ = await run_command("exit 3", cwd=temp_dir)

    assert exit_code == 3


@pytest.mark.asyncio
async def test_run_command_timeout(temp_dir: Path):
    exit_code, _, stderr, _ = await run_command(
        "sleep 5", cwd=temp_dir, timeout=0.2, grace_period=1.0
    )

    assert exit_code == -1
    assert "timed out" in stderr


@pytest.mark.asyncio
async def test_run_command_cancel_event(temp_dir: Path):
    cancel = asyncio.Event()
    asyncio.get_running_loop().call_later(0.2, cancel.set)

    exit_code, _, stderr, _ = await run_command(
        "sleep 5", cwd=temp_dir, cancel_event=cancel, grace_period=1.0
    )

    assert exit_code == -1
    assert stderr == "Command cancelled"


@pytest.mark.asyncio
async def test_run_command_os_error(temp_dir: Path):
    with patch("asyncio.create_subprocess_shell", side_effect=OSError("no shell")):
        exit_code, _, stderr, _ = await run_command("true", cwd=temp_dir)

    assert exit_code == -1
    assert stderr == "no shell"


@pytest.mark.asyncio
async def test_run_in_package_exports_package_env(package, temp_dir: Path):
    result = await run_in_package(
        package,
        'echo "$PYLERNA_PACKAGE_NAME $PYLERNA_PACKAGE_VERSION $EXTRA"; pwd',
        env={"EXTRA": "x"},
        root=temp_dir,
    )

    assert result.success
    first, cwd = result.stdout.splitlines()
    assert first == "pkg-a 1.2.3 x"
    assert Path(cwd).resolve() == package.path
    assert result.command is not None


@pytest.mark.asyncio
async def test_run_in_package_failure(package):
    result = await run_in_package(package, "exit 2")

    assert result.status == ExecutionStatus.FAILURE
    assert result.exit_code == 2
    assert result.error == "exited with 2"


@pytest.mark.asyncio
async def test_run_in_package_cancelled(package):
    cancel = asyncio.Event()
    asyncio.get_running_loop().call_later(0.2, cancel.set)

    result = await run_in_package(package, "sleep 5", cancel_event=cancel)

    assert result.status == ExecutionStatus.CANCELLED


def test_package_env(package, temp_dir: Path):
    env = package_env(package, temp_dir)

    assert env["PYLERNA_PACKAGE_NAME"] == "pkg-a"
    assert env["PYLERNA_PACKAGE_PATH"] == str(package.path)
    assert env["PYLERNA_ROOT_PATH"] == str(temp_dir)
    assert "PYLERNA_ROOT_PATH" not in package_env(package)


@pytest.mark.asyncio
async def test_shell_command_unit(package):
    lines: list[str] = []
    context = UnitContext(
        package=package,
        cwd=package.path,
        cancel_event=asyncio.Event(),
        on_stdout=lines.append,
        env={"GREETING": "hi"},
    )

    result = await ShellCommand('echo "$GREETING $LOCAL"', env={"LOCAL": "there"})(context)

    assert result.success
    assert lines == ["hi there"]
