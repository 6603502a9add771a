"""Building and uploading distributions with uv."""

from __future__ import annotations

import re
import shutil
from pathlib import Path

import structlog

from pylerna.release.registry import PublishOutcome, PublishRequest
from pylerna.uv.client import run_uv_async

logger = structlog.get_logger(__name__)

OTP_PATTERN = re.compile(r"one[- ]time password|\botp\b|two[- ]factor|2fa", re.IGNORECASE)


def dist_dir_for(path: Path) -> Path:
    return path / "dist"


def build_args(path: Path, out_dir: Path) -> list[str]:
    return ["build", str(path), "--out-dir", str(out_dir)]


def publish_args(files: list[Path], *, repository: str | None = None) -> list[str]:
    args = ["publish"]
    if repository:
        args.extend(["--publish-url", repository])
    args.extend(str(f) for f in files)
    return args


def _clean(out_dir: Path) -> None:
    if out_dir.exists():
        shutil.rmtree(out_dir)


class UvRegistryClient:
    """RegistryClient that builds with `uv build` and uploads with `uv publish`.

    The token reaches uv as UV_PUBLISH_TOKEN, never on the command line.
    Python indexes have no dist-tags or OTP prompt; both are exported to uv
    as PYLERNA_DIST_TAG and PYLERNA_OTP so index-specific auth can
    use them.
    """

    def __init__(self, token: str | None = None) -> None:
        self.token = token

    def _publish_env(self, request: PublishRequest) -> dict[str, str]:
        env: dict[str, str] = {}
        if self.token:
            env["UV_PUBLISH_TOKEN"] = self.token
        if request.dist_tag:
            env["PYLERNA_DIST_TAG"] = request.dist_tag
        if request.otp:
            env["PYLERNA_OTP"] = request.otp
        return env

    async def publish(self, request: PublishRequest) -> PublishOutcome:
        out_dir = dist_dir_for(request.path)
        _clean(out_dir)
        code, _, stderr = await run_uv_async(build_args(request.path, out_dir), cwd=request.path)
        if code != 0:
            return PublishOutcome(False, f"build failed: {stderr.strip()}")

        files = sorted(p for p in out_dir.iterdir() if p.is_file())
        args = publish_args(files, repository=request.registry)
        logger.debug("uploading", package=request.package, files=len(files))
        code, stdout, stderr = await run_uv_async(
            args, cwd=request.path, env=self._publish_env(request)
        )
        if code == 0:
            return PublishOutcome(True, stdout.strip() or f"{request.package}@{request.version}")

        message = stderr.strip() or f"uv publish exited with {code}"
        return PublishOutcome(False, message, otp_required=bool(OTP_PATTERN.search(message)))
