"""pylerna commands."""

from pylerna.commands.base import Command, CommandContext, SyncCommand
from pylerna.commands.changed import (
    ChangedCommand,
    ChangedOptions,
    ChangedPackageInfo,
    ChangedResult,
    get_changed_packages,
    handle_changed_command,
)
from pylerna.commands.exec import ExecCommand, ExecOptions, exec_command, handle_exec_command
from pylerna.commands.list import (
    ListCommand,
    ListFormat,
    ListOptions,
    ListResult,
    PackageInfo,
    handle_list_command,
    list_packages,
)
from pylerna.commands.publish import (
    PublishCommand,
    PublishOptions,
    handle_publish_command,
    publish_packages,
)
from pylerna.commands.run import (
    RunCommand,
    RunOptions,
    handle_run_script,
    run_script,
    script_command,
)
from pylerna.commands.version import (
    VersionCommand,
    VersionOptions,
    handle_version_command,
    parse_bump,
    version_packages,
)
from pylerna.commands.watch import (
    WatchCommand,
    WatchCommandOptions,
    handle_watch_command,
)

__all__ = [
    # Base
    "Command",
    "SyncCommand",
    "CommandContext",
    # Changed
    "ChangedCommand",
    "ChangedOptions",
    "ChangedPackageInfo",
    "ChangedResult",
    "get_changed_packages",
    "handle_changed_command",
    # List
    "ListCommand",
    "ListOptions",
    "ListResult",
    "ListFormat",
    "PackageInfo",
    "list_packages",
    "handle_list_command",
    # Exec
    "ExecCommand",
    "ExecOptions",
    "exec_command",
    "handle_exec_command",
    # Run
    "RunCommand",
    "RunOptions",
    "run_script",
    "script_command",
    "handle_run_script",
    # Version
    "VersionCommand",
    "VersionOptions",
    "parse_bump",
    "version_packages",
    "handle_version_command",
    # Publish
    "PublishCommand",
    "PublishOptions",
    "publish_packages",
    "handle_publish_command",
    # Watch
    "WatchCommand",
    "WatchCommandOptions",
    "handle_watch_command",
]
