from __future__ import annotations

import itertools
import queue
import threading
from pathlib import Path
from typing import Iterator

import pytest

from command_console.commands.registry import CommandRegistry
from command_console.commands.runner import CommandRunner
from command_console.execution.base import ProcessFactory, SpawnedProcess

_PIDS = itertools.count(40000)
_EOF = object()


class FakeProcess(SpawnedProcess):
    """Process double whose output and exit are driven by the test."""

    def __init__(self, command: list[str], cwd: Path, ignore_terminate: bool = False) -> None:
        self.command = command
        self.cwd = cwd
        self.ignore_terminate = ignore_terminate
        self.terminate_calls = 0
        self.kill_calls = 0
        self.closed = False
        self._pid = next(_PIDS)
        self._chunks: queue.Queue[object] = queue.Queue()
        self._exit_code: int | None = None
        self._exited = threading.Event()
        self._lock = threading.Lock()

    @property
    def pid(self) -> int:
        return self._pid

    @property
    def alive(self) -> bool:
        return not self._exited.is_set()

    def emit(self, text: str) -> None:
        self._chunks.put(text)

    def exit(self, code: int) -> None:
        with self._lock:
            if self._exited.is_set():
                return
            self._exit_code = code
            self._exited.set()
        self._chunks.put(_EOF)

    def read_chunks(self) -> Iterator[str]:
        while True:
            item = self._chunks.get()
            if item is _EOF:
                return
            yield str(item)

    def wait(self, timeout_s: float | None = None) -> int | None:
        if not self._exited.wait(timeout_s):
            return None
        return self._exit_code

    def terminate(self) -> None:
        self.terminate_calls += 1
        if not self.ignore_terminate:
            self.exit(-15)

    def kill(self) -> None:
        self.kill_calls += 1
        self.exit(-9)

    def close(self) -> None:
        self.closed = True


class FakeProcessFactory(ProcessFactory):
    """Factory recording every spawned :class:`FakeProcess`."""

    def __init__(self) -> None:
        self.spawned: list[FakeProcess] = []
        self.fail_with: OSError | None = None
        self.ignore_terminate = False

    @property
    def kind(self) -> str:
        return "fake"

    def spawn(
        self,
        command: list[str],
        cwd: Path,
        env: dict[str, str] | None = None,
    ) -> FakeProcess:
        if self.fail_with is not None:
            raise self.fail_with
        process = FakeProcess(command, cwd, ignore_terminate=self.ignore_terminate)
        self.spawned.append(process)
        return process

    @property
    def last(self) -> FakeProcess:
        return self.spawned[-1]


@pytest.fixture
def factory() -> FakeProcessFactory:
    return FakeProcessFactory()


@pytest.fixture
def registry() -> Iterator[CommandRegistry]:
    with CommandRegistry(recent_limit=3, stop_timeout_s=1.0) as reg:
        yield reg


@pytest.fixture
def runner(registry: CommandRegistry) -> CommandRunner:
    return CommandRunner(registry)


@pytest.fixture
def executable(tmp_path: Path) -> Path:
    path = tmp_path / "bin" / "ng"
    path.parent.mkdir()
    path.write_text("#!/bin/sh\n", encoding="utf-8")
    path.chmod(0o755)
    return path


@pytest.fixture
def project(tmp_path: Path) -> Path:
    path = tmp_path / "proj"
    path.mkdir()
    return path
