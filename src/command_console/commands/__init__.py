"""Command tracking package."""

from command_console.commands.errors import (
    CommandError,
    CommandLookupError,
    CommandNotFoundError,
    CommandOperationalError,
    DuplicateCommandError,
    ExecutableNotFoundError,
    ProcessRuntimeError,
    SpawnFailedError,
)
from command_console.commands.handle import CommandHandle, CommandStatus, ExitInfo, LaunchSpec
from command_console.commands.ids import derive_command_id
from command_console.commands.registry import CommandRegistry
from command_console.commands.runner import CommandRunner

__all__ = [
    "CommandError",
    "CommandHandle",
    "CommandLookupError",
    "CommandNotFoundError",
    "CommandOperationalError",
    "CommandRegistry",
    "CommandRunner",
    "CommandStatus",
    "DuplicateCommandError",
    "ExecutableNotFoundError",
    "ExitInfo",
    "LaunchSpec",
    "ProcessRuntimeError",
    "SpawnFailedError",
    "derive_command_id",
]
