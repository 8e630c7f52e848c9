"""Spawning of tracked commands and background output streaming."""

from __future__ import annotations

import threading

from command_console.commands.errors import SpawnFailedError
from command_console.commands.handle import CommandHandle, CommandStatus, LaunchSpec
from command_console.execution.base import SpawnedProcess
from command_console.util.logging import get_logger
from command_console.util.observability import ObservabilityManager

_LOGGER = get_logger("command_console.commands.launcher")


def launch(spec: LaunchSpec, observability: ObservabilityManager) -> CommandHandle:
    """Start the process described by ``spec`` and stream its output.

    Args:
        spec: Command to start.
        observability: Receives lifecycle events and metrics.

    Returns:
        A RUNNING handle whose reader thread is already started.

    Raises:
        SpawnFailedError: If the process factory cannot start the process.
    """

    try:
        with observability.track_duration("command.spawn"):
            process = spec.process_factory.spawn(
                list(spec.command_line),
                spec.working_directory,
                env=dict(spec.env) or None,
            )
    except OSError as exc:
        _LOGGER.error("Failed to start %s: %s", spec.command_line[0], exc)
        raise SpawnFailedError(
            f"Cannot start '{spec.command_line[0]}' in {spec.working_directory}: {exc}"
        ) from exc

    handle = CommandHandle(spec, process)
    observability.log_event(
        "command.started",
        {
            "id": spec.command_id,
            "category": spec.category,
            "pid": process.pid,
            "command_line": list(spec.command_line),
            "cwd": str(spec.working_directory),
            "mode": spec.process_factory.kind,
        },
    )
    reader = threading.Thread(
        target=_stream,
        args=(handle, process, observability),
        name=f"command-reader-{spec.command_id}",
        daemon=True,
    )
    reader.start()
    return handle


def _stream(
    handle: CommandHandle,
    process: SpawnedProcess,
    observability: ObservabilityManager,
) -> None:
    error: str | None = None
    try:
        for chunk in process.read_chunks():
            handle.append_output(chunk)
    except Exception as exc:
        _LOGGER.exception("Output reader for %s failed.", handle.id)
        error = f"Output reader failed: {exc}"
        process.terminate()
    exit_code = process.wait()
    process.close()
    transitioned = handle.record_exit(exit_code, error)
    status = handle.status
    if transitioned:
        event = "command.finished"
    else:
        event = "command.exited"
    observability.log_event(
        event,
        {"id": handle.id, "status": status.value, "exit_code": exit_code},
    )
    if handle.ended_at is not None:
        observability.metrics.record_duration(
            f"command.{handle.category}", handle.ended_at - handle.started_at
        )
    if status is CommandStatus.FAILED:
        _LOGGER.warning("Command %s failed with exit code %s.", handle.id, exit_code)
    else:
        _LOGGER.info("Command %s %s (exit code %s).", handle.id, status.value, exit_code)
