"""Process spawning package."""

import os

from command_console.execution.base import ProcessFactory, SpawnedProcess
from command_console.execution.local_exec import PipeProcessFactory
from command_console.execution.pty_exec import PtyProcessFactory


def default_process_factory(use_pty: bool = True) -> ProcessFactory:
    """Return a pty factory on POSIX when requested, else a pipe factory."""

    if use_pty and os.name == "posix":
        return PtyProcessFactory()
    return PipeProcessFactory()


__all__ = [
    "PipeProcessFactory",
    "ProcessFactory",
    "PtyProcessFactory",
    "SpawnedProcess",
    "default_process_factory",
]
