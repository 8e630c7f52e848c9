"""Command runner: validates, spawns and registers external commands."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Sequence

from command_console.commands.errors import ExecutableNotFoundError
from command_console.commands.handle import CommandHandle, LaunchSpec
from command_console.commands.ids import DEFAULT_EXCLUSIVE_CATEGORIES, derive_command_id
from command_console.commands.launcher import launch
from command_console.commands.registry import CommandRegistry
from command_console.execution.base import ProcessFactory
from command_console.util.logging import get_logger


class CommandRunner:
    """Start external commands and track them in a :class:`CommandRegistry`."""

    def __init__(
        self,
        registry: CommandRegistry,
        *,
        exclusive_categories: Iterable[str] = DEFAULT_EXCLUSIVE_CATEGORIES,
        env: dict[str, str] | None = None,
    ) -> None:
        """Initialize the runner.

        Args:
            registry: Registry that owns the started commands.
            exclusive_categories: Categories that allow one command per directory.
            env: Extra environment variables for every started process.
        """

        self._registry = registry
        self._exclusive_categories = tuple(exclusive_categories)
        self._env = dict(env or {})
        self._logger = get_logger(self.__class__.__name__)

    @property
    def registry(self) -> CommandRegistry:
        return self._registry

    def run(
        self,
        category: str,
        working_directory: Path | str,
        executable_kind: str,
        executable_path: Path | str | None,
        args: Sequence[str],
        process_factory: ProcessFactory,
        stream_output: bool = True,
    ) -> str:
        """Start a command and register it.

        A command with the same derived id is replaced: if it is still running
        it is stopped and awaited before the new process starts.

        Args:
            category: Logical operation, e.g. "generate".
            working_directory: Directory to run the command in.
            executable_kind: Short tool name, e.g. "ng" or "npm".
            executable_path: Path of the executable to run.
            args: Arguments for the executable.
            process_factory: Factory used to spawn the process.
            stream_output: Publish output while the process runs. When False the
                output is published once the process exits.

        Returns:
            The id of the registered command. The command can be stopped or
            restarted through the registry as soon as this returns.

        Raises:
            ExecutableNotFoundError: If ``executable_path`` is not an existing file.
            SpawnFailedError: If the process cannot be started.
        """

        executable = self._check_executable(executable_path)
        cwd = Path(working_directory).resolve()
        arguments = [str(arg) for arg in args]
        command_id = derive_command_id(
            category,
            cwd,
            executable_kind,
            arguments,
            self._exclusive_categories,
        )
        spec = LaunchSpec(
            command_id=command_id,
            category=category,
            executable_kind=executable_kind,
            working_directory=cwd,
            command_line=(str(executable), *arguments),
            process_factory=process_factory,
            stream_output=stream_output,
            env=tuple(sorted(self._env.items())),
        )

        with self._registry.id_lock(command_id):
            previous = self._registry.find(command_id, "all")
            if previous is not None:
                if previous.is_running:
                    self._logger.info("Replacing running command %s.", command_id)
                # A stopped predecessor may not have exited yet.
                self._registry.stop_and_wait(previous)
            self._logger.info("Running %s in %s.", " ".join(spec.command_line), cwd)
            handle = launch(spec, self._registry.observability)
            self._registry.register(handle)
        return command_id

    def find(self, command_id: str) -> CommandHandle | None:
        """Return a registered command from any scope."""

        return self._registry.find(command_id, "all")

    def _check_executable(self, executable_path: Path | str | None) -> Path:
        if executable_path is None or str(executable_path) == "":
            raise ExecutableNotFoundError(str(executable_path or ""))
        executable = Path(executable_path)
        if not executable.is_file():
            raise ExecutableNotFoundError(str(executable))
        return executable
