"""Settings persistence package."""

from command_console.settings.store import (
    InMemorySettingsStore,
    JsonSettingsStore,
    SettingsError,
    SettingsStore,
)

__all__ = ["InMemorySettingsStore", "JsonSettingsStore", "SettingsError", "SettingsStore"]
