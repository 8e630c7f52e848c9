"""CLI entrypoints for the command console."""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Optional

import typer

from command_console.app import (
    AppConfigError,
    CommandOutcome,
    RuntimeContext,
    build_runtime_from_path,
    initialize_config,
    run_and_follow,
)
from command_console.commands.errors import CommandError
from command_console.console.mutations import MutationError
from command_console.executables import find_closest_ng, find_executable
from command_console.util.logging import configure_logging

app = typer.Typer(help="Run and supervise project CLI commands.")


@app.callback()
def main(
    log_level: str = typer.Option(
        "WARNING",
        "--log-level",
        help="Logging level (e.g., DEBUG, INFO, WARNING).",
    ),
) -> None:
    """Configure CLI-level options."""

    configure_logging(log_level)


@app.command()
def init(directory: Path = typer.Argument(Path("."))) -> None:
    """Write a default configuration file."""

    try:
        config_path = initialize_config(directory)
    except AppConfigError as exc:
        typer.echo(f"Error: {exc}")
        raise typer.Exit(code=1) from exc
    typer.echo(f"Created configuration at {config_path}")


@app.command("run")
def run_command(
    category: str = typer.Argument(..., help="Category shown for the command."),
    executable: Path = typer.Argument(..., help="Executable to run."),
    args: Optional[list[str]] = typer.Argument(None, help="Arguments for the executable."),
    cwd: Path = typer.Option(Path("."), "--cwd", "-C", help="Working directory."),
    config: Optional[Path] = typer.Option(None, "--config", help="Configuration file."),
    pty: Optional[bool] = typer.Option(None, "--pty/--no-pty", help="Use a pseudo-terminal."),
) -> None:
    """Run an executable and stream its output."""

    _run(category, cwd, executable.name, executable, args or [], config, pty)


@app.command("ng")
def ng_command(
    args: Optional[list[str]] = typer.Argument(None, help="Arguments for ng."),
    cwd: Path = typer.Option(Path("."), "--cwd", "-C", help="Project directory."),
    config: Optional[Path] = typer.Option(None, "--config", help="Configuration file."),
    pty: Optional[bool] = typer.Option(None, "--pty/--no-pty", help="Use a pseudo-terminal."),
) -> None:
    """Run the project's Angular CLI."""

    try:
        executable = find_closest_ng(cwd)
    except CommandError as exc:
        typer.echo(f"Error: {exc}")
        raise typer.Exit(code=1) from exc
    _run("ng", cwd, "ng", executable, args or [], config, pty)


@app.command("npm")
def npm_command(
    client: str = typer.Argument(..., help="Package manager, e.g. npm or yarn."),
    args: Optional[list[str]] = typer.Argument(None, help="Arguments for the client."),
    cwd: Path = typer.Option(Path("."), "--cwd", "-C", help="Project directory."),
    config: Optional[Path] = typer.Option(None, "--config", help="Configuration file."),
    pty: Optional[bool] = typer.Option(None, "--pty/--no-pty", help="Use a pseudo-terminal."),
) -> None:
    """Run a package manager command."""

    try:
        executable = find_executable(client, cwd)
    except CommandError as exc:
        typer.echo(f"Error: {exc}")
        raise typer.Exit(code=1) from exc
    _run("npm", cwd, client, executable, args or [], config, pty)


@app.command("settings")
def settings_command(
    data: Optional[str] = typer.Option(None, "--set", help="JSON object to merge."),
    config: Optional[Path] = typer.Option(None, "--config", help="Configuration file."),
) -> None:
    """Show the stored settings, optionally merging new values first."""

    try:
        with build_runtime_from_path(config) as runtime:
            if data is None:
                settings = runtime.settings.read()
            else:
                settings = runtime.mutations.update_settings(data)
    except (AppConfigError, MutationError) as exc:
        typer.echo(f"Error: {exc}")
        raise typer.Exit(code=1) from exc
    typer.echo(json.dumps(settings, indent=2, sort_keys=True))


def _run(
    category: str,
    cwd: Path,
    executable_kind: str,
    executable: Path,
    args: list[str],
    config: Path | None,
    pty: bool | None,
) -> None:
    try:
        runtime = build_runtime_from_path(config, use_pty=pty)
    except AppConfigError as exc:
        typer.echo(f"Error: {exc}")
        raise typer.Exit(code=1) from exc

    with runtime:
        outcome = _follow(runtime, category, cwd, executable_kind, executable, args)

    if outcome.exit_code is None:
        raise typer.Exit(code=1)
    if outcome.exit_code != 0:
        typer.echo(f"Command {outcome.status.value} with exit code {outcome.exit_code}.", err=True)
        raise typer.Exit(code=outcome.exit_code if outcome.exit_code > 0 else 1)


def _follow(
    runtime: RuntimeContext,
    category: str,
    cwd: Path,
    executable_kind: str,
    executable: Path,
    args: list[str],
) -> CommandOutcome:
    try:
        return run_and_follow(
            runtime, category, cwd, executable_kind, executable, args, sys.stdout
        )
    except CommandError as exc:
        typer.echo(f"Error: {exc}")
        raise typer.Exit(code=1) from exc
    except KeyboardInterrupt as exc:
        typer.echo("Interrupted; command stopped.", err=True)
        raise typer.Exit(code=130) from exc
