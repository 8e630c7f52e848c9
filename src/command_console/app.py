"""Application wiring for the command console."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence, TextIO

from command_console.commands.handle import CommandStatus
from command_console.commands.registry import CommandRegistry
from command_console.commands.runner import CommandRunner
from command_console.config import ConsoleConfig, config_to_dict, load_config, update_use_pty
from command_console.console.mutations import ConsoleMutations
from command_console.execution import default_process_factory
from command_console.execution.base import ProcessFactory
from command_console.settings.store import JsonSettingsStore, SettingsStore
from command_console.util.logging import get_logger
from command_console.util.observability import ObservabilityManager, create_observability_manager

CONFIG_FILE_NAME = "command_console.yaml"


class AppConfigError(RuntimeError):
    """Raised when configuration or runtime setup fails."""


@dataclass(frozen=True)
class RuntimeContext:
    """Container for the services backing the console."""

    config: ConsoleConfig
    registry: CommandRegistry
    runner: CommandRunner
    process_factory: ProcessFactory
    settings: SettingsStore
    mutations: ConsoleMutations
    observability: ObservabilityManager

    def close(self) -> None:
        """Stop every command started through this runtime."""

        self.registry.close()

    def __enter__(self) -> RuntimeContext:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


@dataclass(frozen=True)
class CommandOutcome:
    """Final state of a command followed until it exited."""

    command_id: str
    status: CommandStatus
    exit_code: int | None


_LOGGER = get_logger("command_console.app")


def initialize_config(workspace: Path) -> Path:
    """Create a default configuration file in ``workspace``.

    Raises:
        AppConfigError: If the config file already exists.
    """

    workspace = workspace.resolve()
    config_path = workspace / CONFIG_FILE_NAME
    if config_path.exists():
        raise AppConfigError(
            f"Config file already exists at {config_path}. Remove it or choose another "
            "directory."
        )
    config_path.write_text(json.dumps(config_to_dict(ConsoleConfig()), indent=2), encoding="utf-8")
    _LOGGER.info("Initialized configuration at %s", config_path)
    return config_path


def build_runtime(
    config: ConsoleConfig,
    *,
    process_factory: ProcessFactory | None = None,
    settings: SettingsStore | None = None,
) -> RuntimeContext:
    """Build the registry, runner and adapter for a configuration.

    Args:
        config: Console configuration.
        process_factory: Optional pre-built factory (for testing).
        settings: Optional pre-built settings store (for testing).

    Returns:
        RuntimeContext with initialized services.
    """

    factory = process_factory or default_process_factory(config.runner.use_pty)
    observability = create_observability_manager({"mode": factory.kind})
    registry = CommandRegistry(
        recent_limit=config.runner.recent_limit,
        stop_timeout_s=config.runner.stop_timeout_s,
        observability=observability,
    )
    runner = CommandRunner(
        registry,
        exclusive_categories=config.runner.exclusive_categories,
        env=config.runner.env,
    )
    settings_store = settings or JsonSettingsStore(config.settings.path)
    mutations = ConsoleMutations(
        runner,
        factory,
        settings_store,
        ng_no_interactive=config.runner.ng_no_interactive,
    )
    _LOGGER.info("Runtime initialized with %s process factory.", factory.kind)
    return RuntimeContext(
        config=config,
        registry=registry,
        runner=runner,
        process_factory=factory,
        settings=settings_store,
        mutations=mutations,
        observability=observability,
    )


def build_runtime_from_path(
    config_path: Path | None,
    *,
    use_pty: bool | None = None,
) -> RuntimeContext:
    """Load configuration from ``config_path`` and build the runtime."""

    try:
        config = load_config(config_path)
    except (OSError, ValueError, RuntimeError) as exc:
        raise AppConfigError(f"Cannot load configuration: {exc}") from exc
    if use_pty is not None:
        config = update_use_pty(config, use_pty)
    return build_runtime(config)


def run_and_follow(
    runtime: RuntimeContext,
    category: str,
    working_directory: Path,
    executable_kind: str,
    executable_path: Path,
    args: Sequence[str],
    out: TextIO,
) -> CommandOutcome:
    """Run a command, copy its output to ``out`` and wait for it to exit.

    Interrupting the wait stops the command before the interrupt propagates.
    """

    command_id = runtime.runner.run(
        category,
        working_directory,
        executable_kind,
        executable_path,
        args,
        runtime.process_factory,
    )
    handle = runtime.registry.find(command_id, "all")
    if handle is None:
        raise AppConfigError(f"Command {command_id} disappeared before it could be followed.")
    try:
        for chunk in handle.follow():
            out.write(chunk)
            out.flush()
    except KeyboardInterrupt:
        runtime.registry.stop_and_wait(handle)
        raise
    handle.wait()
    exit_info = handle.exit_info
    return CommandOutcome(
        command_id=command_id,
        status=handle.status,
        exit_code=exit_info.exit_code if exit_info else None,
    )
