"""Tests for the uv-backed registry client."""

from pathlib import Path
from unittest.mock import patch

import pytest

from pylerna.release.registry import PublishRequest
from pylerna.uv.publish import OTP_PATTERN, UvRegistryClient


def fake_uv(publish_result: tuple[int, str, str]):
    """Stand-in for run_uv_async: `build` writes a wheel, `publish` returns `publish_result`."""
    calls: list[tuple[list[str], dict | None]] = []

    async def _run(args, cwd=None, *, check=False, env=None):
        calls.append((args, env))
        if args[0] == "build":
            out_dir = Path(args[args.index("--out-dir") + 1])
            out_dir.mkdir(parents=True, exist_ok=True)
            (out_dir / "pkg_a-1.1.0-py3-none-any.whl").touch()
            return 0, "", ""
        return publish_result

    return _run, calls


@pytest.fixture
def request_for(temp_dir: Path):
    def _make(**kwargs) -> PublishRequest:
        return PublishRequest(package="pkg-a", version="1.1.0", path=temp_dir, **kwargs)

    return _make


@pytest.mark.asyncio
async def test_publish_builds_then_uploads(request_for, temp_dir: Path):
    run, calls = fake_uv((0, "Uploading pkg_a", ""))

    with patch("pylerna.uv.publish.run_uv_async", side_effect=run):
        outcome = await UvRegistryClient(token="tok").publish(
            request_for(registry="https://test.pypi.org/legacy/", dist_tag="next", otp="123")
        )

    assert outcome.success
    build_args, publish_call = calls
    assert build_args[0][0] == "build"
    args, env = publish_call
    assert args == [
        "publish",
        "--publish-url",
        "https://test.pypi.org/legacy/",
        str(temp_dir / "dist" / "pkg_a-1.1.0-py3-none-any.whl"),
    ]
    assert env == {
        "UV_PUBLISH_TOKEN": "tok",
        "PYLERNA_DIST_TAG": "next",
        "PYLERNA_OTP": "123",
    }


@pytest.mark.asyncio
async def test_token_never_on_command_line(request_for):
    run, calls = fake_uv((0, "", ""))

    with patch("pylerna.uv.publish.run_uv_async", side_effect=run):
        await UvRegistryClient(token="pypi-secret").publish(request_for())

    args, env = calls[-1]
    assert not any("pypi-secret" in arg for arg in args)
    assert "--token" not in args
    assert env == {"UV_PUBLISH_TOKEN": "pypi-secret"}


@pytest.mark.asyncio
async def test_publish_failure_detects_otp(request_for):
    run, _ = fake_uv((1, "", "error: 401 one-time password required"))

    with patch("pylerna.uv.publish.run_uv_async", side_effect=run):
        outcome = await UvRegistryClient().publish(request_for())

    assert not outcome.success
    assert outcome.otp_required


@pytest.mark.asyncio
async def test_build_failure(request_for):
    async def failing(args, cwd=None, *, check=False, env=None):
        return 1, "", "invalid pyproject"

    with patch("pylerna.uv.publish.run_uv_async", side_effect=failing):
        outcome = await UvRegistryClient().publish(request_for())

    assert not outcome.success
    assert not outcome.otp_required
    assert outcome.message == "build failed: invalid pyproject"


def test_otp_pattern():
    assert OTP_PATTERN.search("Two-factor authentication required")
    assert OTP_PATTERN.search("missing OTP")
    assert not OTP_PATTERN.search("403 Forbidden")
