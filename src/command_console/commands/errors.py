"""Error types for command execution and tracking."""

from __future__ import annotations


class CommandError(RuntimeError):
    """Base class for command registry and runner failures."""


class CommandLookupError(CommandError):
    """Raised for expected, recoverable registry conditions."""


class CommandNotFoundError(CommandLookupError):
    """Raised when no command is registered under the requested id."""

    def __init__(self, command_id: str) -> None:
        super().__init__(f"Command '{command_id}' is not registered")
        self.command_id = command_id


class DuplicateCommandError(CommandLookupError):
    """Raised when registering an id whose command is still running."""

    def __init__(self, command_id: str) -> None:
        super().__init__(f"Command '{command_id}' is already running")
        self.command_id = command_id


class CommandOperationalError(CommandError):
    """Raised when an external process cannot be started or fails."""


class ExecutableNotFoundError(CommandOperationalError):
    """Raised when the executable to run does not exist."""

    def __init__(self, executable: str) -> None:
        super().__init__(f"Executable '{executable}' was not found")
        self.executable = executable


class SpawnFailedError(CommandOperationalError):
    """Raised when the operating system refuses to start the process."""


class ProcessRuntimeError(CommandOperationalError):
    """Describes a process that exited with a non-zero code.

    Recorded on the command handle rather than raised into ``run`` callers.
    """

    def __init__(self, command_id: str, exit_code: int | None) -> None:
        super().__init__(f"Command '{command_id}' exited with code {exit_code}")
        self.command_id = command_id
        self.exit_code = exit_code
