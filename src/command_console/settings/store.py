"""Key-value persistence for UI settings."""

from __future__ import annotations

import json
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from command_console.util.logging import get_logger


class SettingsError(RuntimeError):
    """Raised when settings cannot be read or written."""


class SettingsStore(ABC):
    """Reads and writes an opaque mapping of settings."""

    @abstractmethod
    def read(self) -> dict[str, Any]:
        """Return the stored settings."""

    @abstractmethod
    def write(self, settings: dict[str, Any]) -> None:
        """Replace the stored settings."""

    def update(self, changes: dict[str, Any]) -> dict[str, Any]:
        """Merge ``changes`` into the stored settings and return the result."""

        merged = {**self.read(), **changes}
        self.write(merged)
        return self.read()


class InMemorySettingsStore(SettingsStore):
    """Settings kept in process memory."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._settings = dict(initial or {})

    def read(self) -> dict[str, Any]:
        return dict(self._settings)

    def write(self, settings: dict[str, Any]) -> None:
        self._settings = dict(settings)


class JsonSettingsStore(SettingsStore):
    """Settings stored as a JSON document on disk."""

    def __init__(self, path: Path) -> None:
        """Initialize the store.

        Args:
            path: JSON file holding the settings. Created on first write.
        """

        self._path = path.expanduser()
        self._lock = threading.Lock()
        self._logger = get_logger(self.__class__.__name__)

    @property
    def path(self) -> Path:
        return self._path

    def read(self) -> dict[str, Any]:
        with self._lock:
            if not self._path.exists():
                return {}
            try:
                data = json.loads(self._path.read_text(encoding="utf-8"))
            except json.JSONDecodeError as exc:
                raise SettingsError(f"Settings file {self._path} is not valid JSON") from exc
        if not isinstance(data, dict):
            raise SettingsError(f"Settings file {self._path} must contain a mapping")
        return data

    def write(self, settings: dict[str, Any]) -> None:
        with self._lock:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
            tmp_path.write_text(json.dumps(settings, indent=2, sort_keys=True), encoding="utf-8")
            tmp_path.replace(self._path)
        self._logger.debug("Stored settings at %s", self._path)
