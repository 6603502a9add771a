"""Base command infrastructure."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Generic, TypeVar

from dotenv import dotenv_values

from pylerna.config.schema import CommandDefaults
from pylerna.execution import ConcurrencyMode, OutputMode, SchedulerPolicy
from pylerna.workspace import Workspace

TResult = TypeVar("TResult")


@dataclass
class CommandContext:
    """Context passed to all commands.

    Attributes:
        workspace: The workspace instance.
        dry_run: If True, show what would happen without making changes.
        verbose: If True, show detailed output.
        env: Extra environment for commands run in packages.
    """

    workspace: Workspace
    dry_run: bool = False
    verbose: bool = False
    env: dict[str, str] = field(default_factory=dict)


class Command(ABC, Generic[TResult]):
    """Base class for all pylerna commands.

    Commands encapsulate the logic for a specific operation.
    They receive a context and return a result.
    """

    def __init__(self, context: CommandContext) -> None:
        self.context = context
        self.workspace = context.workspace

    @abstractmethod
    async def execute(self) -> TResult:
        """Execute the command.

        Returns:
            Command-specific result.
        """
        ...

    def validate(self) -> list[str]:
        """Validate that the command can be executed.

        Returns:
            List of validation errors (empty if valid).
        """
        return []


class SyncCommand(ABC, Generic[TResult]):
    """Base class for synchronous commands."""

    def __init__(self, context: CommandContext) -> None:
        self.context = context
        self.workspace = context.workspace

    @abstractmethod
    def execute(self) -> TResult:
        """Execute the command synchronously."""
        ...

    def validate(self) -> list[str]:
        return []


ENV_FILES = (".env", ".env.local")


def load_env_files(root: Path) -> dict[str, str]:
    """Variables from the workspace root's .env files, later files winning."""
    env: dict[str, str] = {}
    for name in ENV_FILES:
        path = root / name
        if path.is_file():
            env.update({k: v for k, v in dotenv_values(path).items() if v is not None})
    return env


def build_env(
    context: CommandContext, *extra: dict[str, str], env_files: bool = False
) -> dict[str, str]:
    """Environment for units: .env files, config env, context env, then `extra`."""
    env = load_env_files(context.workspace.root) if env_files else {}
    env.update(context.workspace.config.env)
    env.update(context.env)
    for layer in extra:
        env.update(layer)
    return env


def scheduler_policy(
    defaults: CommandDefaults,
    *,
    mode: ConcurrencyMode,
    concurrency: int | None = None,
    bail: bool | None = None,
    terminate_on_bail: bool | None = None,
) -> SchedulerPolicy:
    """Policy from command options, falling back to `command_defaults`."""
    return SchedulerPolicy(
        mode=mode,
        concurrency=concurrency if concurrency is not None else defaults.concurrency,
        bail=bail if bail is not None else defaults.bail,
        terminate_on_bail=(
            terminate_on_bail if terminate_on_bail is not None else defaults.terminate_on_bail
        ),
    )


def output_mode(
    defaults: CommandDefaults, *, stream: bool | None = None, prefix: bool | None = None
) -> OutputMode:
    if not (prefix if prefix is not None else defaults.prefix):
        return OutputMode.RAW
    if stream if stream is not None else defaults.stream:
        return OutputMode.STREAM
    return OutputMode.BUFFERED
