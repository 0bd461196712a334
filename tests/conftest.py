from pathlib import Path

import pytest

PROJECT_GODOT = """config_version=5

[application]

config/name="Test Game"
run/main_scene="res://main.tscn"
config/features=PackedStringArray("4.3", "Forward Plus")
"""


@pytest.fixture
def project(tmp_path: Path) -> Path:
    root = tmp_path / "game"
    root.mkdir()
    (root / "project.godot").write_text(PROJECT_GODOT, encoding="utf-8")
    return root


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("LOCALAPPDATA", str(tmp_path / "state"))
    monkeypatch.delenv("HARNESS_GODOT_BRIDGE_URL", raising=False)
    for name in (
        "HARNESS_GODOT_BIN",
        "HARNESS_GODOT_OPS_SCRIPT",
        "HARNESS_GODOT_TIMEOUT",
    ):
        monkeypatch.delenv(name, raising=False)
