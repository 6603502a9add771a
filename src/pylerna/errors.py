"""Exception hierarchy for pylerna."""

from __future__ import annotations


class PyLernaError(Exception):
    """Base class for all pylerna errors.

    Attributes:
        message: Human readable error message.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConfigurationError(PyLernaError):
    """Invalid or unreadable pylerna.yaml."""

    def __init__(self, message: str, path: str | None = None) -> None:
        if path:
            message = f"{path}: {message}"
        super().__init__(message)
        self.path = path


class WorkspaceNotFoundError(PyLernaError):
    """No pylerna.yaml found in the directory or any parent."""

    def __init__(self, start: str) -> None:
        super().__init__(f"No pylerna.yaml found in {start} or any parent directory")
        self.start = start


class PackageNotFoundError(PyLernaError):
    """A package name did not resolve to a workspace package."""

    def __init__(self, name: str, available: list[str] | None = None) -> None:
        message = f"Package '{name}' not found in workspace"
        if available:
            message += f". Available: {', '.join(available)}"
        super().__init__(message)
        self.name = name


class GraphError(PyLernaError):
    """The dependency graph could not be built."""


class DuplicatePackageError(GraphError):
    """Two manifests declare the same package identity."""

    def __init__(self, name: str, paths: list[str]) -> None:
        super().__init__(f"Package name '{name}' is declared more than once: {', '.join(paths)}")
        self.name = name
        self.paths = paths


class CyclicDependencyError(GraphError):
    """The in-workspace dependency edges contain a cycle."""

    def __init__(self, cycles: list[list[str]]) -> None:
        rendered = "; ".join(" -> ".join([*cycle, cycle[0]]) for cycle in cycles)
        super().__init__(f"Dependency cycle detected: {rendered}")
        self.cycles = cycles


class ChangeDetectionError(PyLernaError):
    """The change reference point could not be resolved."""

    def __init__(self, message: str, ref: str | None = None) -> None:
        super().__init__(message)
        self.ref = ref


class VersionError(PyLernaError):
    """A version bump plan could not be computed."""


class AmbiguousGraduateError(VersionError):
    """Graduation was requested but no prerelease baseline could be determined."""

    def __init__(self, name: str, reason: str) -> None:
        super().__init__(f"Cannot graduate '{name}': {reason}")
        self.name = name


class InvalidBumpError(VersionError):
    """The requested bump does not fit the versioning mode or version."""


class ExecutionError(PyLernaError):
    """A unit of work could not be executed."""

    def __init__(self, message: str, package: str | None = None) -> None:
        super().__init__(message)
        self.package = package


class ScriptNotFoundError(PyLernaError):
    """A script name is not defined in pylerna.yaml."""

    def __init__(self, script_name: str, available: list[str]) -> None:
        message = f"Script '{script_name}' not found"
        if available:
            message += f". Available: {', '.join(sorted(available))}"
        super().__init__(message)
        self.script_name = script_name
        self.available = available


class GitError(PyLernaError):
    """A git command failed.

    Attributes:
        command: The exact command line that failed, for manual recovery.
    """

    def __init__(self, message: str, command: str | None = None) -> None:
        super().__init__(message)
        self.command = command

    def __str__(self) -> str:
        if self.command:
            return f"{self.message} (command: {self.command})"
        return self.message


class ReleaseError(PyLernaError):
    """A version or publish run failed.

    Attributes:
        phase: Release phase in which the failure happened.
        command: Failing git command when the failure came from git.
    """

    def __init__(self, message: str, phase: str, command: str | None = None) -> None:
        super().__init__(message)
        self.phase = phase
        self.command = command


class PublishError(PyLernaError):
    """The registry rejected a package."""

    def __init__(self, message: str, package: str, otp_required: bool = False) -> None:
        super().__init__(message)
        self.package = package
        self.otp_required = otp_required


class ValidationError(PyLernaError):
    """Command options failed validation."""
