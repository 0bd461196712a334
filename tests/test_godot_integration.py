import os
from pathlib import Path

import pytest

from harness_godot.bridge.godot_runner import GodotRunner


def _real_runner() -> GodotRunner:
    if os.getenv("HARNESS_GODOT_INTEGRATION") != "1":
        pytest.skip("Set HARNESS_GODOT_INTEGRATION=1 to run against a real Godot binary")
    binary = os.getenv("HARNESS_GODOT_TEST_BIN", "godot")
    ops_script = os.getenv("HARNESS_GODOT_TEST_OPS_SCRIPT")
    if not ops_script:
        pytest.skip("HARNESS_GODOT_TEST_OPS_SCRIPT must point at the engine operations script")
    return GodotRunner(command=[binary], ops_script=ops_script)


def test_real_engine_scene_edits(project: Path) -> None:
    runner = _real_runner()
    assert runner.execute(str(project), "create_scene", {"scene_path": "res://main.tscn"})["success"]
    assert runner.execute(
        str(project), "add_node", {"scene_path": "res://main.tscn", "node_type": "Sprite2D", "node_name": "Player"}
    )["success"]
    read = runner.execute(str(project), "read_scene", {"scene_path": "res://main.tscn"})
    assert read["scene"]["children"][0]["name"] == "Player"


def test_real_engine_version() -> None:
    assert _real_runner().version()
