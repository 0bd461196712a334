import sys
from pathlib import Path

import pytest

from harness_godot.bridge.godot_runner import GodotRunError, GodotRunner
from harness_godot.engine.dispatcher import ENGINE_VERSION


def test_build_args(project: Path) -> None:
    runner = GodotRunner(command=["godot"], ops_script="res://ops.gd")
    assert runner.build_args(str(project), "read_scene", {"scene_path": "res://a.tscn"}) == [
        "godot",
        "--headless",
        "--path",
        str(project),
        "-s",
        "res://ops.gd",
        "--",
        "read_scene",
        '{"scene_path": "res://a.tscn"}',
    ]


def test_default_timeout_is_two_minutes() -> None:
    assert GodotRunner().timeout_seconds == 120.0


def test_timeout_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HARNESS_GODOT_TIMEOUT", "7.5")
    assert GodotRunner().timeout_seconds == 7.5


def test_bundled_engine_round_trip(project: Path) -> None:
    runner = GodotRunner()
    created = runner.execute(str(project), "create_scene", {"scene_path": "res://main.tscn"})
    assert created["success"] is True, created
    added = runner.execute(
        str(project),
        "add_node",
        {"scene_path": "res://main.tscn", "node_type": "Camera2D", "node_name": "Camera", "parent_path": "."},
    )
    assert added["success"] is True, added
    read = runner.execute(str(project), "read_scene", {"scene_path": "res://main.tscn"})
    assert [c["type"] for c in read["scene"]["children"]] == ["Camera2D"]


def test_unknown_operation_from_engine(project: Path) -> None:
    result = GodotRunner().execute(str(project), "bogus", {})
    assert result["success"] is False
    assert result["error"] == "Unknown operation: bogus"


def test_concurrent_writers_keep_at_least_one_edit(project: Path) -> None:
    runner = GodotRunner()
    assert runner.execute(str(project), "create_scene", {"scene_path": "res://main.tscn"})["success"]
    futures = [
        runner.execute_async(
            str(project), "add_node", {"scene_path": "res://main.tscn", "node_type": "Node2D", "node_name": name}
        )
        for name in ("Left", "Right")
    ]
    results = [f.result(timeout=120) for f in futures]
    assert all(r["success"] for r in results)
    read = runner.execute(str(project), "read_scene", {"scene_path": "res://main.tscn"})
    names = {child["name"] for child in read["scene"]["children"]}
    assert names & {"Left", "Right"}


def test_spawn_failure(project: Path) -> None:
    runner = GodotRunner(command=[str(project / "no-such-engine")])
    result = runner.execute(str(project), "list_scenes", {})
    assert result["success"] is False
    assert result["code"] == "ENGINE_EXEC_FAILED"


def test_timeout_kills_and_reports(project: Path) -> None:
    runner = GodotRunner(command=[sys.executable, "-c", "import time; time.sleep(5)"], timeout_seconds=0.5)
    result = runner.execute(str(project), "list_scenes", {})
    assert result["success"] is False
    assert result["code"] == "ENGINE_TIMEOUT"


def test_unframed_output_falls_back_to_exit_code(project: Path) -> None:
    ok = GodotRunner(command=[sys.executable, "-c", "print('hello')"]).execute(str(project), "list_scenes", {})
    assert ok == {"success": True, "message": "hello"}

    crash = GodotRunner(
        command=[sys.executable, "-c", "import sys; sys.stderr.write('boom'); sys.exit(3)"]
    ).execute(str(project), "list_scenes", {})
    assert crash["success"] is False
    assert crash["error"] == "boom"
    assert crash["code"] == "ENGINE_EXEC_FAILED"


def test_version_of_bundled_engine() -> None:
    assert GodotRunner().version() == ENGINE_VERSION


def test_missing_engine_binary(monkeypatch: pytest.MonkeyPatch, project: Path) -> None:
    monkeypatch.setenv("HARNESS_GODOT_BIN", str(project / "missing-godot"))
    runner = GodotRunner()
    result = runner.execute(str(project), "list_scenes", {})
    assert result["code"] == "ENGINE_NOT_FOUND"
    with pytest.raises(GodotRunError) as excinfo:
        runner.version()
    assert excinfo.value.code == "ENGINE_NOT_FOUND"
