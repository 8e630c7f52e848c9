"""Command id derivation."""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import Iterable, Sequence

DEFAULT_EXCLUSIVE_CATEGORIES: tuple[str, ...] = ("add", "new", "generate")


def derive_command_id(
    category: str,
    working_directory: Path,
    executable_kind: str,
    args: Sequence[str],
    exclusive_categories: Iterable[str] = DEFAULT_EXCLUSIVE_CATEGORIES,
) -> str:
    """Return the registry id for a logical command.

    Exclusive categories get one id per project directory, so a second
    ``generate`` in the same project replaces the first. Other categories are
    keyed by their full argument vector as well.

    Args:
        category: Logical operation, e.g. "generate" or "npm".
        working_directory: Directory the command runs in.
        executable_kind: Short tool name, e.g. "ng" or "yarn".
        args: Arguments passed to the executable.
        exclusive_categories: Categories keyed by directory only.

    Returns:
        A stable id of the form ``<category>-<digest>``.
    """

    parts = [category, str(working_directory)]
    if category not in set(exclusive_categories):
        parts.append(executable_kind)
        parts.extend(args)
    digest = hashlib.sha1("\0".join(parts).encode("utf-8")).hexdigest()[:12]
    return f"{category}-{digest}"
