"""Tracked state for a single spawned command."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path
from typing import Any, Iterator

from command_console.commands.errors import ProcessRuntimeError
from command_console.execution.base import ProcessFactory, SpawnedProcess


class CommandStatus(str, Enum):
    """Lifecycle states of a tracked command."""

    RUNNING = "running"
    STOPPED = "stopped"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class ExitInfo:
    """How a command left the RUNNING state.

    Attributes:
        exit_code: Process exit code, or None while a stopped process has not
            been observed to exit yet.
        error: Error description for failed commands.
    """

    exit_code: int | None
    error: str | None = None


@dataclass(frozen=True)
class LaunchSpec:
    """Everything needed to start (or restart) a command.

    Attributes:
        command_id: Registry id of the command.
        category: Logical operation that started the command.
        executable_kind: Short name of the tool, e.g. "ng" or "yarn".
        working_directory: Absolute directory the process runs in.
        command_line: Executable path followed by its arguments.
        process_factory: Factory used to spawn the process.
        stream_output: Whether output is published while the process runs.
        env: Extra environment variables for the process.
    """

    command_id: str
    category: str
    executable_kind: str
    working_directory: Path
    command_line: tuple[str, ...]
    process_factory: ProcessFactory
    stream_output: bool = True
    env: tuple[tuple[str, str], ...] = ()


class CommandHandle:
    """Registry record of one spawned process and its observed state.

    Status changes happen under the handle lock and only out of RUNNING, so a
    stop request racing the natural exit of the process records exactly one
    terminal status.
    """

    def __init__(self, spec: LaunchSpec, process: SpawnedProcess) -> None:
        self.spec = spec
        self._process = process
        self._condition = threading.Condition()
        self._status = CommandStatus.RUNNING
        self._exit_info: ExitInfo | None = None
        self._output: list[str] = []
        self._pending: list[str] = []
        self._detached = False
        self._streaming_done = False
        self._terminated = threading.Event()
        self.started_at = time.time()
        self.ended_at: float | None = None

    @property
    def id(self) -> str:
        return self.spec.command_id

    @property
    def category(self) -> str:
        return self.spec.category

    @property
    def working_directory(self) -> Path:
        return self.spec.working_directory

    @property
    def command_line(self) -> tuple[str, ...]:
        return self.spec.command_line

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def status(self) -> CommandStatus:
        with self._condition:
            return self._status

    @property
    def exit_info(self) -> ExitInfo | None:
        with self._condition:
            return self._exit_info

    @property
    def output(self) -> list[str]:
        """Return a copy of the output chunks received so far."""

        with self._condition:
            return list(self._output)

    @property
    def is_running(self) -> bool:
        return self.status is CommandStatus.RUNNING

    @property
    def detached(self) -> bool:
        with self._condition:
            return self._detached

    def append_output(self, chunk: str) -> None:
        """Record an output chunk from the reader thread.

        Chunks are buffered instead of published when streaming is disabled and
        dropped once the handle has been detached from its registry.
        """

        with self._condition:
            if self._detached:
                return
            if self.spec.stream_output:
                self._output.append(chunk)
                self._condition.notify_all()
            else:
                self._pending.append(chunk)

    def request_stop(self) -> bool:
        """Signal the process to terminate and mark the command STOPPED.

        Returns:
            True if this call performed the transition, False if the command was
            no longer running.
        """

        with self._condition:
            if self._status is not CommandStatus.RUNNING:
                return False
            self._status = CommandStatus.STOPPED
            self._exit_info = ExitInfo(exit_code=None)
            self.ended_at = time.time()
            self._condition.notify_all()
        self._process.terminate()
        return True

    def record_exit(self, exit_code: int | None, error: str | None = None) -> bool:
        """Record the observed process exit from the reader thread.

        Args:
            exit_code: Exit code reported by the process.
            error: Optional error seen while reading output.

        Returns:
            True if this call moved the command out of RUNNING. When the command
            was already stopped only the exit code is filled in.
        """

        with self._condition:
            if self._pending:
                if not self._detached:
                    self._output.append("".join(self._pending))
                self._pending.clear()
            self._streaming_done = True
            transitioned = self._status is CommandStatus.RUNNING
            if transitioned:
                if exit_code == 0 and error is None:
                    self._status = CommandStatus.COMPLETED
                    self._exit_info = ExitInfo(exit_code=0)
                else:
                    self._status = CommandStatus.FAILED
                    message = error or str(ProcessRuntimeError(self.id, exit_code))
                    self._exit_info = ExitInfo(exit_code=exit_code, error=message)
                self.ended_at = time.time()
            elif self._exit_info is not None and self._exit_info.exit_code is None:
                self._exit_info = replace(self._exit_info, exit_code=exit_code)
            self._condition.notify_all()
        self._terminated.set()
        return transitioned

    def detach(self) -> None:
        """Drop the output sink; late chunks from the reader are discarded."""

        with self._condition:
            self._detached = True
            self._pending.clear()
            self._condition.notify_all()

    def wait(self, timeout_s: float | None = None) -> bool:
        """Wait until the process exit has been observed.

        Returns:
            True if the process has exited, False on timeout.
        """

        return self._terminated.wait(timeout_s)

    def kill(self) -> None:
        """Forcefully kill the underlying process."""

        self._process.kill()

    def follow(self, start: int = 0) -> Iterator[str]:
        """Yield output chunks as they arrive, starting at index ``start``.

        The iterator is finite: it ends once the process exit has been recorded
        (or the handle is detached) and every published chunk was yielded.
        """

        index = start
        while True:
            with self._condition:
                while (
                    index >= len(self._output)
                    and not self._streaming_done
                    and not self._detached
                ):
                    self._condition.wait()
                chunks = self._output[index:]
                finished = self._streaming_done or self._detached
            index += len(chunks)
            yield from chunks
            if finished and not chunks:
                return

    def raise_for_status(self) -> None:
        """Raise :class:`ProcessRuntimeError` if the command failed."""

        with self._condition:
            status = self._status
            exit_info = self._exit_info
        if status is CommandStatus.FAILED:
            raise ProcessRuntimeError(self.id, exit_info.exit_code if exit_info else None)

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-friendly snapshot of the command."""

        with self._condition:
            exit_info = self._exit_info
            return {
                "id": self.id,
                "category": self.category,
                "executable_kind": self.spec.executable_kind,
                "working_directory": str(self.working_directory),
                "command_line": list(self.command_line),
                "status": self._status.value,
                "output": "".join(self._output),
                "exit_code": exit_info.exit_code if exit_info else None,
                "error": exit_info.error if exit_info else None,
                "started_at": self.started_at,
                "ended_at": self.ended_at,
            }

    def __repr__(self) -> str:
        return f"CommandHandle(id={self.id!r}, status={self.status.value!r})"
