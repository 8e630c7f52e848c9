from __future__ import annotations

import os
import shutil
import sys
import time
from pathlib import Path

import pytest

from command_console.commands.handle import CommandStatus
from command_console.commands.registry import CommandRegistry
from command_console.commands.runner import CommandRunner
from command_console.execution import default_process_factory
from command_console.execution.local_exec import PipeProcessFactory
from command_console.execution.pty_exec import PtyProcessFactory

posix_only = pytest.mark.skipif(os.name != "posix", reason="requires POSIX process groups")


def _pid_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    stat = Path(f"/proc/{pid}/stat")
    try:
        state = stat.read_text().rsplit(")", 1)[1].split()[0]
    except (OSError, IndexError):
        return True
    return state != "Z"


def _wait_until(predicate, timeout_s: float = 10.0) -> bool:
    deadline = time.monotonic() + timeout_s
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.05)
    return predicate()


def test_pipe_factory_captures_output_and_exit_code(tmp_path: Path) -> None:
    with CommandRegistry() as registry:
        runner = CommandRunner(registry)
        command_id = runner.run(
            "npm",
            tmp_path,
            "python",
            sys.executable,
            ["-c", "import sys; print('hello'); sys.stderr.write('warn\\n'); sys.exit(3)"],
            PipeProcessFactory(),
        )
        handle = registry.find(command_id)

        assert handle.wait(10)
        output = "".join(handle.output)
        assert "hello" in output
        assert "warn" in output
        assert handle.status is CommandStatus.FAILED
        assert handle.exit_info.exit_code == 3


def test_pipe_factory_runs_in_working_directory(tmp_path: Path) -> None:
    with CommandRegistry() as registry:
        runner = CommandRunner(registry, env={"CONSOLE_TEST_VALUE": "42"})
        command_id = runner.run(
            "ng",
            tmp_path,
            "python",
            sys.executable,
            ["-c", "import os; print(os.getcwd()); print(os.environ['CONSOLE_TEST_VALUE'])"],
            PipeProcessFactory(),
        )
        handle = registry.find(command_id)

        assert handle.wait(10)
        output = "".join(handle.output)
        assert str(tmp_path.resolve()) in output
        assert "42" in output
        assert handle.status is CommandStatus.COMPLETED


@posix_only
def test_pty_factory_presents_a_terminal(tmp_path: Path) -> None:
    with CommandRegistry() as registry:
        runner = CommandRunner(registry)
        command_id = runner.run(
            "ng",
            tmp_path,
            "python",
            sys.executable,
            ["-c", "import sys; print('tty=%s' % sys.stdout.isatty())"],
            PtyProcessFactory(),
        )
        handle = registry.find(command_id)

        assert handle.wait(10)
        assert "tty=True" in "".join(handle.output)
        assert handle.status is CommandStatus.COMPLETED


@posix_only
def test_stop_terminates_real_process(tmp_path: Path) -> None:
    with CommandRegistry(stop_timeout_s=5.0) as registry:
        runner = CommandRunner(registry)
        command_id = runner.run(
            "ng",
            tmp_path,
            "python",
            sys.executable,
            ["-c", "import time; time.sleep(60)"],
            PipeProcessFactory(),
        )
        handle = registry.find(command_id)

        registry.stop([command_id])

        assert handle.wait(10)
        assert handle.status is CommandStatus.STOPPED
        assert handle.exit_info.exit_code is not None
        assert handle.exit_info.exit_code < 0
        assert not _pid_alive(handle.pid)


@posix_only
def test_remove_all_leaves_no_live_processes(tmp_path: Path) -> None:
    registry = CommandRegistry(stop_timeout_s=5.0)
    runner = CommandRunner(registry)
    factories = [PipeProcessFactory(), PtyProcessFactory()]
    handles = []
    for index, factory in enumerate(factories):
        command_id = runner.run(
            "ng",
            tmp_path,
            "python",
            sys.executable,
            ["-c", f"import time; time.sleep(60 + {index})"],
            factory,
        )
        handles.append(registry.find(command_id))
    pids = [handle.pid for handle in handles]
    assert all(_pid_alive(pid) for pid in pids)

    registry.close()

    assert len(registry) == 0
    for handle in handles:
        assert registry.find(handle.id, "all") is None
        assert handle.wait(10)
    assert not any(_pid_alive(pid) for pid in pids)


@posix_only
def test_close_stops_background_child_of_exited_leader(tmp_path: Path) -> None:
    shell = shutil.which("sh")
    assert shell is not None
    pidfile = tmp_path / "server.pid"
    registry = CommandRegistry(stop_timeout_s=5.0)
    runner = CommandRunner(registry)
    command_id = runner.run(
        "npm",
        tmp_path,
        "sh",
        shell,
        ["-c", "sleep 30 & echo $! > server.pid; echo started"],
        PipeProcessFactory(),
    )
    handle = registry.find(command_id)
    assert _wait_until(lambda: pidfile.exists() and pidfile.read_text().strip())
    server_pid = int(pidfile.read_text().strip())
    assert _pid_alive(server_pid)

    registry.close()

    assert handle.wait(10)
    assert _wait_until(lambda: not _pid_alive(server_pid))


def test_default_process_factory_selects_mode() -> None:
    assert default_process_factory(use_pty=False).kind == "pipe"
    expected = "pty" if os.name == "posix" else "pipe"
    assert default_process_factory(use_pty=True).kind == expected
