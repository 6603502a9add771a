"""Registry boundary used by the publish phase."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol, runtime_checkable

import structlog

from pylerna.execution.results import ExecutionResult
from pylerna.execution.units import UnitContext

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class PublishRequest:
    """Publish `package` at `version` from `path`.

    Attributes:
        package: Package name.
        version: Version being published.
        path: Package directory.
        dist_tag: Distribution tag, passed through to the client.
        otp: One-time password, passed through to the client.
        registry: Upload URL; None means the client's default.
    """

    package: str
    version: str
    path: Path
    dist_tag: str | None = None
    otp: str | None = None
    registry: str | None = None


@dataclass(frozen=True)
class PublishOutcome:
    success: bool
    message: str = ""
    otp_required: bool = False


@runtime_checkable
class RegistryClient(Protocol):
    """Publishes one package version."""

    async def publish(self, request: PublishRequest) -> PublishOutcome: ...


@dataclass
class PublishUnit:
    """Unit of work that publishes the context package.

    Outcomes are kept by package name so callers can tell an OTP rejection
    apart from other failures.
    """

    client: RegistryClient
    versions: dict[str, str]
    dist_tag: str | None = None
    pre_dist_tag: str | None = None
    otp: str | None = None
    registry: str | None = None
    prerelease: set[str] = field(default_factory=set)
    outcomes: dict[str, PublishOutcome] = field(default_factory=dict)

    def request_for(self, context: UnitContext) -> PublishRequest:
        name = context.package.name
        tag = self.dist_tag
        if name in self.prerelease and self.pre_dist_tag:
            tag = self.pre_dist_tag
        return PublishRequest(
            package=name,
            version=self.versions.get(name, context.package.version),
            path=context.package.path,
            dist_tag=tag,
            otp=self.otp,
            registry=self.registry,
        )

    async def __call__(self, context: UnitContext) -> ExecutionResult:
        request = self.request_for(context)
        if context.cancelled:
            return ExecutionResult.cancelled(request.package)
        outcome = await self.client.publish(request)
        self.outcomes[request.package] = outcome
        if outcome.success:
            logger.info("published", package=request.package, version=request.version)
            return ExecutionResult.success_result(
                request.package, stdout=outcome.message, command="publish"
            )
        error = "one-time password required" if outcome.otp_required else outcome.message
        logger.warning("publish failed", package=request.package, error=error)
        return ExecutionResult.failure_result(
            request.package, 1, stderr=outcome.message, command="publish", error=error
        )

    def __str__(self) -> str:
        return "publish"
