"""Registry of tracked commands."""

from __future__ import annotations

import threading
import weakref
from typing import Iterable, Literal

from command_console.commands.errors import CommandNotFoundError, DuplicateCommandError
from command_console.commands.handle import CommandHandle
from command_console.commands.launcher import launch
from command_console.util.logging import get_logger
from command_console.util.observability import (
    ObservabilityManager,
    create_observability_manager,
)

Scope = Literal["recent", "all"]

DEFAULT_RECENT_LIMIT = 20
DEFAULT_STOP_TIMEOUT_S = 5.0


class CommandRegistry:
    """In-memory table of command handles keyed by id.

    Insertion order is recency: newly registered commands go to the end, and a
    restarted command keeps its slot. Completed and failed commands stay in the
    registry until they are removed explicitly.

    The registry is usable as a context manager; leaving the block stops every
    running command.
    """

    def __init__(
        self,
        *,
        recent_limit: int = DEFAULT_RECENT_LIMIT,
        stop_timeout_s: float = DEFAULT_STOP_TIMEOUT_S,
        observability: ObservabilityManager | None = None,
    ) -> None:
        """Initialize the registry.

        Args:
            recent_limit: Number of most recent commands in the "recent" scope.
            stop_timeout_s: Grace period before a stopped process is killed when
                the caller has to wait for it (restart, replace, close).
            observability: Receives lifecycle events; a default one is created
                when omitted.
        """

        self._entries: dict[str, CommandHandle] = {}
        self._lock = threading.RLock()
        self._id_locks: weakref.WeakValueDictionary[str, threading.Lock] = (
            weakref.WeakValueDictionary()
        )
        self._recent_limit = recent_limit
        self._stop_timeout_s = stop_timeout_s
        self._observability = observability or create_observability_manager()
        self._logger = get_logger(self.__class__.__name__)

    @property
    def observability(self) -> ObservabilityManager:
        return self._observability

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __enter__(self) -> CommandRegistry:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def id_lock(self, command_id: str) -> threading.Lock:
        """Return the lock serializing restarts and replacements of an id.

        The lock is kept only while a caller references it.
        """

        with self._lock:
            return self._id_locks.setdefault(command_id, threading.Lock())

    def register(self, handle: CommandHandle) -> None:
        """Register a handle under its id.

        A finished command with the same id is replaced and the new handle
        becomes the most recent entry.

        Args:
            handle: Handle to register.

        Raises:
            DuplicateCommandError: If a running command already owns the id.
        """

        with self._lock:
            existing = self._entries.get(handle.id)
            if existing is not None and existing is not handle:
                if existing.is_running:
                    raise DuplicateCommandError(handle.id)
                existing.detach()
                del self._entries[handle.id]
            self._entries[handle.id] = handle

    def find(self, command_id: str, scope: Scope = "recent") -> CommandHandle | None:
        """Return the command registered under ``command_id`` within ``scope``."""

        with self._lock:
            handle = self._entries.get(command_id)
            if handle is None or scope == "all":
                return handle
            return handle if handle in self._recent_locked() else None

    def list(self, scope: Scope = "all") -> list[CommandHandle]:
        """Return the commands in ``scope``, oldest first."""

        with self._lock:
            if scope == "all":
                return list(self._entries.values())
            return self._recent_locked()

    def stop(self, commands: Iterable[CommandHandle | str]) -> None:
        """Request termination of running commands.

        Unknown ids and commands that already finished are skipped. Returns
        without waiting for the processes to exit.

        Args:
            commands: Handles or ids to stop.
        """

        for item in commands:
            handle = self.find(item, "all") if isinstance(item, str) else item
            if handle is None:
                continue
            self._stop_handle(handle)

    def restart(self, command_id: str) -> CommandHandle:
        """Stop a command if needed and start it again under the same id.

        Args:
            command_id: Id of the command to restart.

        Returns:
            The handle of the new process.

        Raises:
            CommandNotFoundError: If no command is registered under the id.
            SpawnFailedError: If the process cannot be started again.
        """

        with self.id_lock(command_id):
            handle = self.find(command_id, "all")
            if handle is None:
                raise CommandNotFoundError(command_id)
            self.stop_and_wait(handle)
            fresh = launch(handle.spec, self._observability)
            with self._lock:
                if self._entries.get(command_id) is handle:
                    handle.detach()
                    self._entries[command_id] = fresh
                    replaced = True
                else:
                    replaced = False
            if not replaced:
                # Removed while restarting; do not resurrect it.
                self._stop_handle(fresh)
                raise CommandNotFoundError(command_id)
            self._logger.info("Restarted command %s (pid %s).", command_id, fresh.pid)
            return fresh

    def remove(self, command_id: str) -> None:
        """Remove a command, stopping it first if it is running.

        Removing an unknown id is a no-op.
        """

        with self._lock:
            handle = self._entries.pop(command_id, None)
        if handle is None:
            return
        self._stop_handle(handle)
        handle.detach()
        self._observability.log_event("command.removed", {"id": command_id})

    def remove_all(self) -> None:
        """Stop every running command and clear the registry.

        A failure to signal one command is logged and does not prevent the
        others from being stopped.
        """

        with self._lock:
            handles = list(self._entries.values())
            self._entries.clear()
        for handle in handles:
            try:
                self._stop_handle(handle)
            except Exception:
                self._logger.exception("Failed to stop command %s.", handle.id)
            handle.detach()
        if handles:
            self._observability.log_event("command.removed", {"count": len(handles)})

    def close(self) -> None:
        """Tear down the registry and wait for its processes to exit."""

        with self._lock:
            handles = list(self._entries.values())
        self.remove_all()
        for handle in handles:
            self._await_exit(handle)

    def stop_and_wait(self, handle: CommandHandle) -> None:
        """Stop ``handle`` and block until its process has exited."""

        self._stop_handle(handle)
        self._await_exit(handle)

    def _stop_handle(self, handle: CommandHandle) -> None:
        if handle.request_stop():
            self._logger.info("Stopping command %s (pid %s).", handle.id, handle.pid)
            self._observability.log_event(
                "command.stopped", {"id": handle.id, "pid": handle.pid}
            )

    def _await_exit(self, handle: CommandHandle) -> None:
        if handle.wait(self._stop_timeout_s):
            return
        self._logger.warning(
            "Command %s did not exit within %.1fs; killing it.",
            handle.id,
            self._stop_timeout_s,
        )
        try:
            handle.kill()
        except OSError:
            self._logger.exception("Failed to kill command %s.", handle.id)
        if not handle.wait(self._stop_timeout_s):
            self._logger.error("Command %s is still running after kill.", handle.id)

    def _recent_locked(self) -> list[CommandHandle]:
        handles = list(self._entries.values())
        if self._recent_limit <= 0:
            newest: list[CommandHandle] = []
        else:
            newest = handles[-self._recent_limit :]
        newest_ids = {handle.id for handle in newest}
        return [
            handle
            for handle in handles
            if handle.id in newest_ids or handle.is_running
        ]
