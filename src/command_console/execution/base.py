"""Process spawning interfaces."""

from __future__ import annotations

import os
import signal
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterator

from command_console.util.logging import get_logger

_LOGGER = get_logger("command_console.execution")


class SpawnedProcess(ABC):
    """A live external process started by a :class:`ProcessFactory`.

    Output is consumed once through :meth:`read_chunks`; the iterator ends when
    the process closes its output channel.
    """

    @property
    @abstractmethod
    def pid(self) -> int:
        """Return the operating system process id."""

    @abstractmethod
    def read_chunks(self) -> Iterator[str]:
        """Yield decoded output chunks until end of output."""

    @abstractmethod
    def wait(self, timeout_s: float | None = None) -> int | None:
        """Wait for the process to exit.

        Args:
            timeout_s: Optional maximum wait in seconds.

        Returns:
            The exit code, or None if the process is still running after the
            timeout. Negative codes mean the process died from that signal.
        """

    @abstractmethod
    def terminate(self) -> None:
        """Ask the process (and its process group) to exit."""

    @abstractmethod
    def kill(self) -> None:
        """Forcefully kill the process (and its process group)."""

    def close(self) -> None:
        """Release file descriptors held for the process."""


class ProcessFactory(ABC):
    """Spawns external processes for the command runner."""

    @property
    @abstractmethod
    def kind(self) -> str:
        """Return a short name for the spawning mode ("pipe" or "pty")."""

    @abstractmethod
    def spawn(
        self,
        command: list[str],
        cwd: Path,
        env: dict[str, str] | None = None,
    ) -> SpawnedProcess:
        """Start a process.

        Args:
            command: Executable path followed by its arguments.
            cwd: Working directory for the process.
            env: Optional environment variables added to the current environment.

        Returns:
            The started process.

        Raises:
            OSError: If the operating system cannot start the process.
        """


def merge_env(env: dict[str, str] | None) -> dict[str, str]:
    """Return the current environment updated with ``env``."""

    merged_env = os.environ.copy()
    if env:
        merged_env.update(env)
    return merged_env


class PopenProcess(SpawnedProcess):
    """Shared signal and wait handling for processes backed by ``Popen``.

    Processes are started in their own session, so signals go to the whole
    process group and reach grandchildren such as dev servers.
    """

    def __init__(self, process: subprocess.Popen[bytes]) -> None:
        self._process = process

    @property
    def pid(self) -> int:
        return self._process.pid

    def wait(self, timeout_s: float | None = None) -> int | None:
        try:
            return self._process.wait(timeout=timeout_s)
        except subprocess.TimeoutExpired:
            return None

    def terminate(self) -> None:
        self._signal(signal.SIGTERM)

    def kill(self) -> None:
        self._signal(getattr(signal, "SIGKILL", signal.SIGTERM))

    def _signal(self, signum: int) -> None:
        if os.name == "posix":
            # The group outlives its leader while any member is alive.
            try:
                os.killpg(self._process.pid, signum)
                return
            except ProcessLookupError:
                return
            except PermissionError:
                _LOGGER.debug("Cannot signal process group %s; signalling pid.", self.pid)
        if self._process.poll() is not None:
            return
        try:
            self._process.send_signal(signum)
        except ProcessLookupError:
            pass
