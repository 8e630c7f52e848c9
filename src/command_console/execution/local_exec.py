"""Direct child process spawning over pipes."""

from __future__ import annotations

import codecs
import os
import subprocess
from pathlib import Path
from typing import Iterator

from command_console.execution.base import PopenProcess, ProcessFactory, merge_env

READ_CHUNK_SIZE = 4096


class PipeProcess(PopenProcess):
    """Child process whose stdout and stderr share one pipe."""

    def read_chunks(self) -> Iterator[str]:
        stream = self._process.stdout
        if stream is None:
            return
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        fd = stream.fileno()
        while True:
            try:
                data = os.read(fd, READ_CHUNK_SIZE)
            except OSError:
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
        if self._process.stdout is not None:
            self._process.stdout.close()


class PipeProcessFactory(ProcessFactory):
    """Spawn commands as direct children with merged stdout and stderr."""

    @property
    def kind(self) -> str:
        return "pipe"

    def spawn(
        self,
        command: list[str],
        cwd: Path,
        env: dict[str, str] | None = None,
    ) -> PipeProcess:
        """Start ``command`` in ``cwd`` with output captured through a pipe.

        Args:
            command: Executable path followed by its arguments.
            cwd: Working directory for the process.
            env: Optional environment variables to include.

        Returns:
            The started process.
        """

        process = subprocess.Popen(
            command,
            cwd=str(cwd),
            env=merge_env(env),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            start_new_session=os.name == "posix",
        )
        return PipeProcess(process)
