"""UI-facing operations that drive the command runner.

Each method returns a plain dictionary envelope suitable for a transport layer
(e.g. ``{"id": ...}`` or ``{"result": True}``). Failures from the command core
are logged and re-raised as :class:`MutationError` with a readable message; the
original exception stays available as ``__cause__``.
"""

from __future__ import annotations

import json
import webbrowser
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Iterator, Sequence

from command_console.commands.errors import CommandError
from command_console.commands.registry import CommandRegistry
from command_console.commands.runner import CommandRunner
from command_console.executables import find_closest_ng, find_executable
from command_console.execution.base import ProcessFactory
from command_console.settings.store import SettingsError, SettingsStore
from command_console.util.logging import get_logger

NO_INTERACTIVE_FLAG = "--no-interactive"
DRY_RUN_FLAG = "--dry-run"


class MutationError(RuntimeError):
    """Raised when a console operation fails."""


class ConsoleMutations:
    """Operations exposed to the desktop UI."""

    def __init__(
        self,
        runner: CommandRunner,
        process_factory: ProcessFactory,
        settings: SettingsStore,
        *,
        ng_no_interactive: bool = True,
        open_url: Callable[[str], bool] = webbrowser.open,
    ) -> None:
        """Initialize the adapter.

        Args:
            runner: Runner used to start commands.
            process_factory: Factory passed to the runner for every command.
            settings: Store backing :meth:`update_settings`.
            ng_no_interactive: Append ``--no-interactive`` to ``ng`` commands.
            open_url: Callable opening a URL or file URI in the shell.
        """

        self._runner = runner
        self._factory = process_factory
        self._settings = settings
        self._ng_no_interactive = ng_no_interactive
        self._open_url = open_url
        self._logger = get_logger(self.__class__.__name__)

    @property
    def registry(self) -> CommandRegistry:
        return self._runner.registry

    def ng_add(self, path: str, name: str) -> dict[str, str]:
        with self._failure("Error when running 'ng add'"):
            command_id = self._runner.run(
                "add",
                path,
                "ng",
                find_closest_ng(path),
                ["add", name, *self._ng_flags()],
                self._factory,
            )
        return {"id": command_id}

    def ng_new(
        self,
        path: str,
        name: str,
        collection: str,
        new_command: Sequence[str],
    ) -> dict[str, str]:
        """Create a workspace ``name`` inside ``path`` with the global CLI."""

        with self._failure("Error when running 'ng new'"):
            command_id = self._runner.run(
                "new",
                path,
                "new-workspace",
                find_executable("ng", path),
                [
                    "new",
                    name,
                    f"--directory={name}",
                    f"--collection={collection}",
                    *new_command,
                    NO_INTERACTIVE_FLAG,
                ],
                self._factory,
            )
        return {"id": command_id}

    def generate(self, path: str, dry_run: bool, gen_command: Sequence[str]) -> dict[str, str]:
        """Run ``ng generate``; dry runs publish their output only on exit."""

        with self._failure("Error when running 'ng generate'"):
            command_id = self._runner.run(
                "generate",
                path,
                "ng",
                find_closest_ng(path),
                ["generate", *gen_command, *self._dry_run(dry_run), *self._ng_flags()],
                self._factory,
                not dry_run,
            )
        return {"id": command_id}

    def generate_using_npm(
        self,
        path: str,
        npm_client: str,
        dry_run: bool,
        gen_command: Sequence[str],
    ) -> dict[str, str]:
        with self._failure("Error when running npm script"):
            command_id = self._runner.run(
                "npm",
                path,
                npm_client,
                find_executable(npm_client, path),
                [*gen_command, *self._dry_run(dry_run), *self._ng_flags()],
                self._factory,
                not dry_run,
            )
        return {"id": command_id}

    def run_ng(self, path: str, run_command: Sequence[str]) -> dict[str, str]:
        with self._failure("Error when running 'ng ...'"):
            command_id = self._runner.run(
                "ng",
                path,
                "ng",
                find_closest_ng(path),
                list(run_command),
                self._factory,
            )
        return {"id": command_id}

    def run_npm(self, path: str, run_command: Sequence[str], npm_client: str) -> dict[str, str]:
        with self._failure("Error when running npm script"):
            command_id = self._runner.run(
                "npm",
                path,
                npm_client,
                find_executable(npm_client, path),
                list(run_command),
                self._factory,
            )
        return {"id": command_id}

    def stop_command(self, command_id: str) -> dict[str, bool]:
        """Stop a recent command; ``result`` is False if it is not known."""

        with self._failure("Error when stopping commands"):
            handle = self.registry.find(command_id, "recent")
            if handle is None:
                return {"result": False}
            self.registry.stop([handle])
        return {"result": True}

    def remove_command(self, command_id: str) -> dict[str, bool]:
        with self._failure("Error when removing commands"):
            self.registry.remove(command_id)
        return {"result": True}

    def remove_all_commands(self) -> dict[str, bool]:
        with self._failure("Error when removing commands"):
            self.registry.remove_all()
        return {"result": True}

    def restart_command(self, command_id: str) -> dict[str, bool]:
        with self._failure("Error when restarting commands"):
            self.registry.restart(command_id)
        return {"result": True}

    def command_status(self, command_id: str) -> dict[str, Any] | None:
        """Return a snapshot of a command, or None if it is not registered."""

        handle = self.registry.find(command_id, "all")
        return handle.to_dict() if handle is not None else None

    def open_in_browser(self, url: str) -> dict[str, bool]:
        if not url:
            return {"result": False}
        self._open_url(url)
        return {"result": True}

    def show_item_in_folder(self, item: str) -> dict[str, bool]:
        if not item:
            return {"result": False}
        self._open_url(Path(item).expanduser().resolve().as_uri())
        return {"result": True}

    def update_settings(self, data: str) -> dict[str, Any]:
        """Merge a JSON object of settings into the store and return them all."""

        try:
            changes = json.loads(data)
        except json.JSONDecodeError as exc:
            raise MutationError(f"Settings must be a JSON object. Message: \"{exc}\"") from exc
        if not isinstance(changes, dict):
            raise MutationError("Settings must be a JSON object.")
        try:
            return self._settings.update(changes)
        except (OSError, SettingsError) as exc:
            self._logger.exception("Storing settings failed.")
            raise MutationError(f"Error when storing settings. Message: \"{exc}\"") from exc

    def _ng_flags(self) -> list[str]:
        return [NO_INTERACTIVE_FLAG] if self._ng_no_interactive else []

    @staticmethod
    def _dry_run(dry_run: bool) -> list[str]:
        return [DRY_RUN_FLAG] if dry_run else []

    @contextmanager
    def _failure(self, prefix: str) -> Iterator[None]:
        try:
            yield
        except (CommandError, OSError) as exc:
            self._logger.error("%s: %s", prefix, exc)
            raise MutationError(f"{prefix}. Message: \"{exc}\"") from exc
