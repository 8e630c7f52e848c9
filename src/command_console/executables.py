"""Resolution of project-local and global executables."""

from __future__ import annotations

import os
import shutil
from pathlib import Path

from command_console.commands.errors import ExecutableNotFoundError


def _candidate_names(name: str) -> list[str]:
    if os.name == "nt":
        return [f"{name}.cmd", f"{name}.exe", name]
    return [name]


def find_executable(name: str, path: Path | str) -> Path:
    """Locate ``name`` for a project directory.

    The closest ``node_modules/.bin`` directory at or above ``path`` wins;
    otherwise the executable is looked up on ``PATH``.

    Args:
        name: Executable name, e.g. "ng", "npm" or "yarn".
        path: Project directory to start the search from.

    Returns:
        Absolute path of the executable.

    Raises:
        ExecutableNotFoundError: If the executable cannot be found.
    """

    start = Path(path).expanduser().resolve()
    for directory in (start, *start.parents):
        bin_dir = directory / "node_modules" / ".bin"
        for candidate in _candidate_names(name):
            executable = bin_dir / candidate
            if executable.is_file():
                return executable
    found = shutil.which(name)
    if found is None:
        raise ExecutableNotFoundError(name)
    return Path(found)


def find_closest_ng(path: Path | str) -> Path:
    """Locate the Angular CLI used by the project at ``path``."""

    return find_executable("ng", path)
