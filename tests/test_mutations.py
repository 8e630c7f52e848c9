from __future__ import annotations

import json
from pathlib import Path

import pytest

from command_console.commands.errors import CommandNotFoundError, ExecutableNotFoundError
from command_console.commands.handle import CommandStatus
from command_console.console.mutations import ConsoleMutations, MutationError
from command_console.settings.store import InMemorySettingsStore


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    root = tmp_path / "workspace"
    bin_dir = root / "node_modules" / ".bin"
    bin_dir.mkdir(parents=True)
    for name in ("ng", "yarn"):
        executable = bin_dir / name
        executable.write_text("#!/bin/sh\n", encoding="utf-8")
        executable.chmod(0o755)
    (root / "apps" / "web").mkdir(parents=True)
    return root


@pytest.fixture
def opened() -> list[str]:
    return []


@pytest.fixture
def mutations(runner, factory, opened) -> ConsoleMutations:
    def fake_open(url: str) -> bool:
        opened.append(url)
        return True

    return ConsoleMutations(
        runner,
        factory,
        InMemorySettingsStore({"theme": "light"}),
        open_url=fake_open,
    )


def test_ng_add_uses_closest_cli(mutations, factory, workspace) -> None:
    result = mutations.ng_add(str(workspace / "apps" / "web"), "@angular/material")

    assert set(result) == {"id"}
    assert factory.last.command == [
        str((workspace / "node_modules" / ".bin" / "ng").resolve()),
        "add",
        "@angular/material",
        "--no-interactive",
    ]
    assert mutations.registry.find(result["id"]).category == "add"


def test_generate_dry_run_suppresses_streaming(mutations, factory, workspace) -> None:
    result = mutations.generate(str(workspace), True, ["component", "foo"])
    handle = mutations.registry.find(result["id"])

    assert factory.last.command[1:] == [
        "generate",
        "component",
        "foo",
        "--dry-run",
        "--no-interactive",
    ]
    assert handle.spec.stream_output is False
    factory.last.emit("CREATE foo.ts\n")
    factory.last.exit(0)
    assert handle.wait(2)
    assert handle.output == ["CREATE foo.ts\n"]


def test_run_npm_uses_requested_client(mutations, factory, workspace) -> None:
    result = mutations.run_npm(str(workspace), ["run", "lint"], "yarn")

    yarn = (workspace / "node_modules" / ".bin" / "yarn").resolve()
    assert factory.last.command == [str(yarn), "run", "lint"]
    handle = mutations.registry.find(result["id"])
    assert handle.spec.executable_kind == "yarn"
    assert handle.category == "npm"


def test_generate_using_npm_appends_flags(mutations, factory, workspace) -> None:
    mutations.generate_using_npm(str(workspace), "yarn", False, ["workspace-schematic", "lib"])

    assert factory.last.command[1:] == ["workspace-schematic", "lib", "--no-interactive"]


def test_ng_new_builds_workspace_arguments(mutations, factory, workspace) -> None:
    mutations.ng_new(str(workspace), "acme", "@nrwl/schematics", ["--style=scss"])

    assert factory.last.command[1:] == [
        "new",
        "acme",
        "--directory=acme",
        "--collection=@nrwl/schematics",
        "--style=scss",
        "--no-interactive",
    ]


def test_missing_cli_is_wrapped(mutations, tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("PATH", str(tmp_path / "empty"))

    with pytest.raises(MutationError) as excinfo:
        mutations.run_ng(str(tmp_path), ["build"])

    assert "Error when running 'ng ...'" in str(excinfo.value)
    assert isinstance(excinfo.value.__cause__, ExecutableNotFoundError)


def test_stop_command_reports_unknown_id(mutations, factory, workspace) -> None:
    assert mutations.stop_command("missing") == {"result": False}

    result = mutations.run_ng(str(workspace), ["serve"])

    assert mutations.stop_command(result["id"]) == {"result": True}
    assert mutations.registry.find(result["id"]).status is CommandStatus.STOPPED


def test_restart_and_remove_commands(mutations, factory, workspace) -> None:
    result = mutations.run_ng(str(workspace), ["serve"])

    assert mutations.restart_command(result["id"]) == {"result": True}
    assert len(factory.spawned) == 2
    assert mutations.remove_command(result["id"]) == {"result": True}
    assert mutations.remove_command(result["id"]) == {"result": True}
    assert mutations.command_status(result["id"]) is None

    with pytest.raises(MutationError) as excinfo:
        mutations.restart_command(result["id"])
    assert isinstance(excinfo.value.__cause__, CommandNotFoundError)


def test_remove_all_commands(mutations, factory, workspace) -> None:
    mutations.run_ng(str(workspace), ["serve"])
    mutations.run_ng(str(workspace), ["test"])

    assert mutations.remove_all_commands() == {"result": True}
    assert len(mutations.registry) == 0
    assert all(not process.alive for process in factory.spawned)


def test_command_status_snapshot(mutations, factory, workspace) -> None:
    result = mutations.run_ng(str(workspace), ["build"])
    factory.last.emit("built\n")
    factory.last.exit(0)
    assert mutations.registry.find(result["id"]).wait(2)

    snapshot = mutations.command_status(result["id"])

    assert snapshot["status"] == "completed"
    assert snapshot["output"] == "built\n"
    assert snapshot["exit_code"] == 0
    assert snapshot["working_directory"] == str(workspace.resolve())


def test_open_in_browser_and_show_item(mutations, opened, tmp_path: Path) -> None:
    assert mutations.open_in_browser("") == {"result": False}
    assert mutations.open_in_browser("http://localhost:4200") == {"result": True}
    assert mutations.show_item_in_folder("") == {"result": False}
    assert mutations.show_item_in_folder(str(tmp_path)) == {"result": True}

    assert opened == ["http://localhost:4200", tmp_path.resolve().as_uri()]


def test_update_settings_merges_json(mutations) -> None:
    settings = mutations.update_settings(json.dumps({"channel": "beta"}))

    assert settings == {"theme": "light", "channel": "beta"}

    with pytest.raises(MutationError):
        mutations.update_settings("[1, 2]")
    with pytest.raises(MutationError):
        mutations.update_settings("{not json")
