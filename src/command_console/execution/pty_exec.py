"""Pseudo-terminal process spawning.

Tools such as the Angular CLI switch to plain, non-interactive output when they
are not attached to a terminal. Running them on a pseudo-terminal keeps their
colors and progress output intact.
"""

from __future__ import annotations

import codecs
import errno
import os
import subprocess
from pathlib import Path
from typing import Iterator

from command_console.execution.base import PopenProcess, ProcessFactory, merge_env
from command_console.util.logging import get_logger

READ_CHUNK_SIZE = 4096
DEFAULT_TERM = "xterm-256color"


class PtyProcess(PopenProcess):
    """Child process attached to the slave side of a pseudo-terminal."""

    def __init__(self, process: subprocess.Popen[bytes], master_fd: int) -> None:
        super().__init__(process)
        self._master_fd = master_fd
        self._logger = get_logger(self.__class__.__name__)

    def read_chunks(self) -> Iterator[str]:
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        while True:
            try:
                data = os.read(self._master_fd, READ_CHUNK_SIZE)
            except OSError as exc:
                # Linux reports EIO on the master once every slave fd is closed.
                if exc.errno not in {errno.EIO, errno.EBADF}:
                    self._logger.warning("Reading pty output failed: %s", exc)
                break
            if not data:
                break
            text = decoder.decode(data)
            if text:
                yield text
        tail = decoder.decode(b"", final=True)
        if tail:
            yield tail

    def close(self) -> None:
        if self._master_fd < 0:
            return
        try:
            os.close(self._master_fd)
        except OSError:
            pass
        self._master_fd = -1


class PtyProcessFactory(ProcessFactory):
    """Spawn commands inside a pseudo-terminal session (POSIX only)."""

    def __init__(self, term: str = DEFAULT_TERM) -> None:
        self._term = term

    @property
    def kind(self) -> str:
        return "pty"

    def spawn(
        self,
        command: list[str],
        cwd: Path,
        env: dict[str, str] | None = None,
    ) -> PtyProcess:
        """Start ``command`` in ``cwd`` with a pseudo-terminal as its stdio.

        Args:
            command: Executable path followed by its arguments.
            cwd: Working directory for the process.
            env: Optional environment variables to include.

        Returns:
            The started process.

        Raises:
            OSError: If the pty cannot be allocated or the process cannot start.
        """

        import pty

        merged_env = merge_env(env)
        merged_env.setdefault("TERM", self._term)
        master_fd, slave_fd = pty.openpty()
        try:
            process = subprocess.Popen(
                command,
                cwd=str(cwd),
                env=merged_env,
                stdin=slave_fd,
                stdout=slave_fd,
                stderr=slave_fd,
                start_new_session=True,
            )
        except OSError:
            os.close(master_fd)
            raise
        finally:
            os.close(slave_fd)
        return PtyProcess(process, master_fd)
