"""Per-package execution results."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum


class ExecutionStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    SKIPPED = "skipped"
    CANCELLED = "cancelled"


@dataclass
class ExecutionResult:
    """Outcome of one unit of work in one package.

    Attributes:
        package_name: Package the unit ran for.
        status: Final status.
        exit_code: Process exit code; -1 when the unit never produced one.
        stdout: Captured standard output.
        stderr: Captured standard error.
        duration_ms: Wall time in milliseconds.
        command: Command that was run, if any.
        error: Short reason for failures, skips and cancellations.
    """

    package_name: str
    status: ExecutionStatus
    exit_code: int
    stdout: str = ""
    stderr: str = ""
    duration_ms: int = 0
    command: str | None = None
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.status == ExecutionStatus.SUCCESS

    @property
    def failed(self) -> bool:
        return self.status == ExecutionStatus.FAILURE

    @classmethod
    def success_result(
        cls,
        package_name: str,
        *,
        stdout: str = "",
        stderr: str = "",
        duration_ms: int = 0,
        command: str | None = None,
    ) -> ExecutionResult:
        return cls(
            package_name,
            ExecutionStatus.SUCCESS,
            0,
            stdout=stdout,
            stderr=stderr,
            duration_ms=duration_ms,
            command=command,
        )

    @classmethod
    def failure_result(
        cls,
        package_name: str,
        exit_code: int,
        *,
        stdout: str = "",
        stderr: str = "",
        duration_ms: int = 0,
        command: str | None = None,
        error: str | None = None,
    ) -> ExecutionResult:
        return cls(
            package_name,
            ExecutionStatus.FAILURE,
            exit_code,
            stdout=stdout,
            stderr=stderr,
            duration_ms=duration_ms,
            command=command,
            error=error,
        )

    @classmethod
    def skipped(cls, package_name: str, reason: str) -> ExecutionResult:
        return cls(package_name, ExecutionStatus.SKIPPED, -1, error=reason)

    @classmethod
    def cancelled(cls, package_name: str, reason: str = "cancelled") -> ExecutionResult:
        return cls(package_name, ExecutionStatus.CANCELLED, -1, error=reason)


@dataclass
class BatchResult:
    """Results of one scheduler run, in plan order."""

    results: list[ExecutionResult] = field(default_factory=list)

    def _with(self, status: ExecutionStatus) -> list[ExecutionResult]:
        return [r for r in self.results if r.status == status]

    @property
    def succeeded(self) -> list[ExecutionResult]:
        return self._with(ExecutionStatus.SUCCESS)

    @property
    def failures(self) -> list[ExecutionResult]:
        return self._with(ExecutionStatus.FAILURE)

    @property
    def skipped(self) -> list[ExecutionResult]:
        return self._with(ExecutionStatus.SKIPPED)

    @property
    def cancelled(self) -> list[ExecutionResult]:
        return self._with(ExecutionStatus.CANCELLED)

    @property
    def success_count(self) -> int:
        return len(self.succeeded)

    @property
    def failure_count(self) -> int:
        return len(self.failures)

    @property
    def all_success(self) -> bool:
        return all(r.success for r in self.results)

    def get(self, package_name: str) -> ExecutionResult | None:
        for result in self.results:
            if result.package_name == package_name:
                return result
        return None

    def exit_code(self, allow_partial_success: bool = False) -> int:
        """0 when every package succeeded, or when partial success is allowed
        and at least one package succeeded."""
        if self.all_success:
            return 0
        if allow_partial_success and self.succeeded:
            return 0
        return 1

    def __iter__(self) -> Iterator[ExecutionResult]:
        return iter(self.results)

    def __len__(self) -> int:
        return len(self.results)
