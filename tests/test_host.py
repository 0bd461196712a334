import io
import json
from pathlib import Path
from typing import Any, Dict, List

from harness_godot.bridge.protocol import extract_result
from harness_godot.engine.dispatcher import ENGINE_VERSION
from harness_godot.engine.host import main, split_args


def _invoke(args: List[str]) -> Dict[str, Any]:
    out = io.StringIO()
    assert main(args, stdout=out) == 0
    result = extract_result(out.getvalue())
    assert result is not None
    return result


def test_split_args() -> None:
    argv = ["--headless", "--path", "/tmp/game", "-s", "ops.gd", "--", "read_scene", "{}"]
    assert split_args(argv) == ("/tmp/game", ["read_scene", "{}"])
    assert split_args(["--headless"]) == (None, [])


def test_no_operation(project: Path) -> None:
    result = _invoke(["--headless", "--path", str(project), "-s", "ops"])
    assert result["success"] is False
    assert result["error"] == "No operation specified"


def test_bad_parameters(project: Path) -> None:
    result = _invoke(["--headless", "--path", str(project), "-s", "ops", "--", "create_scene", "{not json"])
    assert result["success"] is False
    assert result["error"].startswith("Failed to parse parameters")
    result = _invoke(["--headless", "--path", str(project), "-s", "ops", "--", "create_scene", "[1]"])
    assert result["error"].startswith("Failed to parse parameters")


def test_operation_runs_against_project(project: Path) -> None:
    params = json.dumps({"scene_path": "res://main.tscn", "root_type": "Control", "root_name": "HUD"})
    result = _invoke(["--headless", "--path", str(project), "-s", "ops", "--", "create_scene", params])
    assert result["success"] is True
    assert (project / "main.tscn").is_file()


def test_version_flag() -> None:
    out = io.StringIO()
    assert main(["--version"], stdout=out) == 0
    assert out.getvalue() == ENGINE_VERSION + "\n"
