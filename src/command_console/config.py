"""Configuration models and loaders for the command console."""

from __future__ import annotations

import json
import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from command_console.commands.ids import DEFAULT_EXCLUSIVE_CATEGORIES
from command_console.commands.registry import DEFAULT_RECENT_LIMIT, DEFAULT_STOP_TIMEOUT_S

CONFIG_FILE_NAMES: tuple[str, ...] = ("command_console.yaml", "command_console.yml")
DEFAULT_SETTINGS_PATH = Path("~/.config/command-console/settings.json")


@dataclass(frozen=True)
class RunnerConfig:
    """Configuration for spawning and tracking commands.

    Attributes:
        use_pty: Run commands inside a pseudo-terminal where supported.
        stop_timeout_s: Grace period before a stopped process is killed.
        recent_limit: Number of commands in the "recent" scope.
        exclusive_categories: Categories allowing one command per directory.
        env: Extra environment variables for every command.
        ng_no_interactive: Pass ``--no-interactive`` to ``ng`` commands.
    """

    use_pty: bool = True
    stop_timeout_s: float = DEFAULT_STOP_TIMEOUT_S
    recent_limit: int = DEFAULT_RECENT_LIMIT
    exclusive_categories: list[str] = field(
        default_factory=lambda: list(DEFAULT_EXCLUSIVE_CATEGORIES)
    )
    env: dict[str, str] = field(default_factory=dict)
    ng_no_interactive: bool = True


@dataclass(frozen=True)
class SettingsConfig:
    """Configuration for UI settings persistence."""

    path: Path = DEFAULT_SETTINGS_PATH


@dataclass(frozen=True)
class ConsoleConfig:
    """Top-level configuration for the command console."""

    log_level: str = "INFO"
    runner: RunnerConfig = field(default_factory=lambda: RunnerConfig())
    settings: SettingsConfig = field(default_factory=lambda: SettingsConfig())


def load_config(path: Path | None = None) -> ConsoleConfig:
    """Load console configuration from disk.

    Args:
        path: Optional path to a configuration file or directory.

    Returns:
        Parsed ConsoleConfig with defaults applied when no config exists.
    """

    config_path = _resolve_config_path(path)
    if config_path is None:
        return ConsoleConfig()

    if config_path.suffix in {".yaml", ".yml", ".json"}:
        raw_data = _load_yaml(config_path)
    elif config_path.name == "pyproject.toml" or config_path.suffix == ".toml":
        raw_data = _load_toml(config_path)
    else:
        raise ValueError(f"Unsupported config file type: {config_path}")

    return _parse_console_config(raw_data, base_path=config_path.parent)


def config_to_dict(config: ConsoleConfig) -> dict[str, Any]:
    """Serialize a ConsoleConfig into a JSON-compatible dictionary."""

    return {
        "log_level": config.log_level,
        "runner": {
            "use_pty": config.runner.use_pty,
            "stop_timeout_s": config.runner.stop_timeout_s,
            "recent_limit": config.runner.recent_limit,
            "exclusive_categories": list(config.runner.exclusive_categories),
            "env": dict(config.runner.env),
            "ng_no_interactive": config.runner.ng_no_interactive,
        },
        "settings": {"path": str(config.settings.path)},
    }


def update_use_pty(config: ConsoleConfig, use_pty: bool) -> ConsoleConfig:
    """Return a config copy with an updated pty mode."""

    return replace(config, runner=replace(config.runner, use_pty=use_pty))


def _resolve_config_path(path: Path | None) -> Path | None:
    candidate_paths: list[Path] = []
    if path is None:
        candidate_paths.extend(Path(name) for name in CONFIG_FILE_NAMES)
        candidate_paths.append(Path("pyproject.toml"))
    elif path.is_dir():
        candidate_paths.extend(path / name for name in CONFIG_FILE_NAMES)
        candidate_paths.append(path / "pyproject.toml")
    else:
        candidate_paths.append(path)

    for candidate in candidate_paths:
        if candidate.exists():
            return candidate
    return None


def _load_toml(path: Path) -> dict[str, Any]:
    with path.open("rb") as handle:
        data = tomllib.load(handle)
    if path.name == "pyproject.toml":
        tool_config = data.get("tool", {}).get("command_console", {})
        if not isinstance(tool_config, dict):
            raise ValueError("tool.command_console must be a mapping.")
        return tool_config
    if not isinstance(data, dict):
        raise ValueError("TOML configuration must be a mapping.")
    return data


def _load_yaml(path: Path) -> dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        data = None
    if data is not None:
        if not isinstance(data, dict):
            raise ValueError("YAML configuration must be a mapping.")
        return data
    try:
        import yaml  # type: ignore[import-untyped]
    except ImportError as exc:
        raise RuntimeError(
            "PyYAML is required to parse non-JSON YAML configuration files."
        ) from exc
    parsed = yaml.safe_load(text)
    if parsed is None:
        return {}
    if not isinstance(parsed, dict):
        raise ValueError("YAML configuration must be a mapping.")
    return parsed


def _parse_console_config(raw_data: dict[str, Any], base_path: Path) -> ConsoleConfig:
    return ConsoleConfig(
        log_level=str(raw_data.get("log_level", "INFO")),
        runner=_parse_runner_config(raw_data.get("runner", {})),
        settings=_parse_settings_config(raw_data.get("settings", {}), base_path),
    )


def _parse_runner_config(raw: Any) -> RunnerConfig:
    if not isinstance(raw, dict):
        return RunnerConfig()
    env = raw.get("env", {})
    env_map: dict[str, str] = {}
    if isinstance(env, dict):
        env_map = {str(key): str(value) for key, value in env.items()}
    categories = raw.get("exclusive_categories", None)
    if categories is None:
        exclusive = list(DEFAULT_EXCLUSIVE_CATEGORIES)
    elif isinstance(categories, list):
        exclusive = [str(item) for item in categories]
    else:
        raise ValueError("exclusive_categories must be a list of category names.")
    recent_limit = int(raw.get("recent_limit", DEFAULT_RECENT_LIMIT))
    if recent_limit < 0:
        raise ValueError("recent_limit must not be negative.")
    return RunnerConfig(
        use_pty=bool(raw.get("use_pty", True)),
        stop_timeout_s=float(raw.get("stop_timeout_s", DEFAULT_STOP_TIMEOUT_S)),
        recent_limit=recent_limit,
        exclusive_categories=exclusive,
        env=env_map,
        ng_no_interactive=bool(raw.get("ng_no_interactive", True)),
    )


def _parse_settings_config(raw: Any, base_path: Path) -> SettingsConfig:
    if not isinstance(raw, dict) or raw.get("path") is None:
        return SettingsConfig()
    settings_path = Path(str(raw["path"])).expanduser()
    if not settings_path.is_absolute():
        settings_path = (base_path / settings_path).resolve()
    return SettingsConfig(path=settings_path)
