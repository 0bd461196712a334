from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Dict

from harness_godot.engine import tscn
from harness_godot.engine.dispatcher import OperationDispatcher


def _run(project: Path, operation: str, **params: Any) -> Dict[str, Any]:
    return OperationDispatcher(project).dispatch(operation, params)


def _new_scene(project: Path, scene_path: str = "res://main.tscn") -> Path:
    result = _run(project, "create_scene", scene_path=scene_path)
    assert result["success"], result
    return project / scene_path[len("res://"):]


def test_create_then_read_round_trip(project: Path) -> None:
    result = _run(project, "create_scene", scene_path="res://levels/level1.tscn", root_type="Node3D", root_name="World")
    assert result["success"] is True
    assert (project / "levels" / "level1.tscn").is_file()

    read = _run(project, "read_scene", scene_path="res://levels/level1.tscn")
    assert read["success"] is True
    assert read["scene"] == {"name": "World", "type": "Node3D", "path": ".", "children": []}


def test_create_scene_defaults(project: Path) -> None:
    _new_scene(project)
    read = _run(project, "read_scene", scene_path="res://main.tscn")
    assert read["scene"]["name"] == "Root"
    assert read["scene"]["type"] == "Node2D"


def test_unknown_operation_touches_nothing(project: Path) -> None:
    before = sorted(p.name for p in project.iterdir())
    result = _run(project, "bogus", scene_path="res://main.tscn")
    assert result == {"success": False, "error": "Unknown operation: bogus", "code": "UNKNOWN_OPERATION"}
    assert sorted(p.name for p in project.iterdir()) == before


def test_missing_required_parameter(project: Path) -> None:
    result = _run(project, "add_node", scene_path="res://main.tscn", node_type="Node2D")
    assert result["success"] is False
    assert result["code"] == "INVALID_INPUT"
    assert "node_name" in result["error"]


def test_add_node_skips_unexposed_properties(project: Path) -> None:
    _new_scene(project)
    result = _run(
        project,
        "add_node",
        scene_path="res://main.tscn",
        node_type="Sprite2D",
        node_name="Player",
        properties={"position": {"_type": "Vector2", "x": 5}, "not_a_property": 1},
    )
    assert result["success"] is True
    assert result["node_path"] == "Player"
    assert result["applied_properties"] == ["position"]
    assert result["skipped_properties"] == ["not_a_property"]

    scene = tscn.load_scene(project / "main.tscn")
    assert scene.root.get_node_or_null("Player").get("position").x == 5.0


def test_add_node_under_nested_parent_and_name_collision(project: Path) -> None:
    _new_scene(project)
    _run(project, "add_node", scene_path="res://main.tscn", node_type="Node2D", node_name="Enemies")
    first = _run(project, "add_node", scene_path="res://main.tscn", node_type="Area2D", node_name="Enemy", parent_path="Enemies")
    second = _run(project, "add_node", scene_path="res://main.tscn", node_type="Area2D", node_name="Enemy", parent_path="Enemies")
    assert first["node_path"] == "Enemies/Enemy"
    assert second["node_path"] == "Enemies/Enemy2"

    missing = _run(project, "add_node", scene_path="res://main.tscn", node_type="Node", node_name="X", parent_path="Nope")
    assert missing["code"] == "NOT_FOUND"


def test_add_node_unknown_type_leaves_file_alone(project: Path) -> None:
    scene_file = _new_scene(project)
    original = scene_file.read_bytes()
    result = _run(project, "add_node", scene_path="res://main.tscn", node_type="Spaceship", node_name="Ship")
    assert result["code"] == "UNKNOWN_TYPE"
    assert scene_file.read_bytes() == original


def test_class_database_fallback_type(project: Path) -> None:
    _new_scene(project)
    result = _run(project, "add_node", scene_path="res://main.tscn", node_type="RemoteTransform2D", node_name="Follow")
    assert result["success"] is True
    nodes = _run(project, "list_nodes", scene_path="res://main.tscn")
    assert {"path": "Follow", "type": "RemoteTransform2D", "name": "Follow"} in nodes["nodes"]


def test_modify_node_is_strict(project: Path) -> None:
    scene_file = _new_scene(project)
    _run(project, "add_node", scene_path="res://main.tscn", node_type="Label", node_name="Title")
    original = scene_file.read_bytes()

    unknown = _run(project, "modify_node", scene_path="res://main.tscn", node_path="Title", properties={"not_a_property": 1})
    assert unknown["code"] == "PROPERTY_ERROR"
    wrong_type = _run(project, "modify_node", scene_path="res://main.tscn", node_path="Title", properties={"text": 12})
    assert wrong_type["code"] == "PROPERTY_ERROR"
    assert scene_file.read_bytes() == original

    ok = _run(
        project,
        "modify_node",
        scene_path="res://main.tscn",
        node_path="Title",
        properties={"text": "Hello", "modulate": {"_type": "Color", "r": 0.5}},
    )
    assert ok["success"] is True
    assert ok["modified_properties"] == ["text", "modulate"]
    text = scene_file.read_text(encoding="utf-8")
    assert 'text = "Hello"' in text
    assert "modulate = Color(0.5, 1, 1, 1)" in text


def test_remove_root_is_refused_and_file_unchanged(project: Path) -> None:
    scene_file = _new_scene(project)
    _run(project, "add_node", scene_path="res://main.tscn", node_type="Node2D", node_name="Child")
    original = scene_file.read_bytes()
    result = _run(project, "remove_node", scene_path="res://main.tscn", node_path=".")
    assert result["success"] is False
    assert result["code"] == "CANNOT_REMOVE_ROOT"
    assert scene_file.read_bytes() == original


def test_remove_node(project: Path) -> None:
    _new_scene(project)
    _run(project, "add_node", scene_path="res://main.tscn", node_type="Node2D", node_name="Child")
    _run(project, "add_node", scene_path="res://main.tscn", node_type="Sprite2D", node_name="Grandchild", parent_path="Child")
    assert _run(project, "remove_node", scene_path="res://main.tscn", node_path="Child")["success"] is True
    nodes = _run(project, "list_nodes", scene_path="res://main.tscn")
    assert nodes["count"] == 1
    assert _run(project, "remove_node", scene_path="res://main.tscn", node_path="Child")["code"] == "NOT_FOUND"


def test_load_failures(project: Path) -> None:
    missing = _run(project, "read_scene", scene_path="res://nowhere.tscn")
    assert missing["code"] == "LOAD_FAILED"

    (project / "broken.tscn").write_text("this is not a scene\n", encoding="utf-8")
    broken = _run(project, "list_nodes", scene_path="res://broken.tscn")
    assert broken["code"] == "LOAD_FAILED"


def test_path_outside_project_is_rejected(project: Path) -> None:
    result = _run(project, "create_scene", scene_path="res://../escape.tscn")
    assert result["code"] == "INVALID_INPUT"
    assert not (project.parent / "escape.tscn").exists()


def test_save_failure_has_its_own_code(project: Path) -> None:
    (project / "blocker").write_text("a file, not a directory", encoding="utf-8")
    result = _run(project, "create_scene", scene_path="res://blocker/main.tscn")
    assert result["success"] is False
    assert result["code"] == "SAVE_FAILED"


def test_create_script_templates_and_overwrite(project: Path) -> None:
    created = _run(project, "create_script", script_path="res://scripts/player.gd", extends="CharacterBody2D", class_name="Player")
    assert created["success"] is True
    content = (project / "scripts" / "player.gd").read_text(encoding="utf-8")
    assert content.startswith("class_name Player\nextends CharacterBody2D\n")
    assert "func _ready() -> void:" in content

    again = _run(project, "create_script", script_path="res://scripts/player.gd")
    assert again["code"] == "ALREADY_EXISTS"

    replaced = _run(project, "create_script", script_path="res://scripts/player.gd", template="character_2d", overwrite=True)
    assert replaced["success"] is True
    content = (project / "scripts" / "player.gd").read_text(encoding="utf-8")
    assert content.startswith("extends CharacterBody2D\n")
    assert "move_and_slide()" in content

    custom = _run(project, "create_script", script_path="res://scripts/raw.gd", content="extends Node\n")
    assert custom["success"] is True
    assert (project / "scripts" / "raw.gd").read_text(encoding="utf-8") == "extends Node\n"

    bad = _run(project, "create_script", script_path="res://scripts/x.gd", template="nope")
    assert bad["code"] == "INVALID_INPUT"


def test_attach_script(project: Path) -> None:
    _new_scene(project)
    missing = _run(project, "attach_script", scene_path="res://main.tscn", script_path="res://main.gd")
    assert missing["code"] == "NOT_FOUND"

    _run(project, "create_script", script_path="res://main.gd", extends="Node2D")
    attached = _run(project, "attach_script", scene_path="res://main.tscn", script_path="main.gd")
    assert attached["success"] is True
    assert attached["script_path"] == "res://main.gd"

    read = _run(project, "read_scene", scene_path="res://main.tscn")
    assert read["scene"]["script"] == "res://main.gd"
    assert 'path="res://main.gd"' in (project / "main.tscn").read_text(encoding="utf-8")


def test_animation_tracks_keep_keyframe_order(project: Path) -> None:
    _new_scene(project)
    _run(project, "add_node", scene_path="res://main.tscn", node_type="Sprite2D", node_name="Sprite")
    created = _run(project, "create_animation", scene_path="res://main.tscn", animation_name="bounce", duration=2.0, loop=True)
    assert created["success"] is True
    assert created["animation_player_path"] == "AnimationPlayer"
    assert created["created_player"] is True

    keyframes = [
        {"time": 0.0, "value": {"_type": "Vector2", "x": 0, "y": 0}},
        {"time": 1.0, "value": {"_type": "Vector2", "x": 0, "y": -50}},
        {"time": 0.5, "value": {"_type": "Vector2", "x": 0, "y": -20}},
        {"time": 0.5, "value": {"_type": "Vector2", "x": 0, "y": -30}},
    ]
    track = _run(
        project,
        "add_animation_track",
        scene_path="res://main.tscn",
        animation_player_path="AnimationPlayer",
        animation_name="bounce",
        target_node_path="Sprite",
        property="position",
        keyframes=keyframes,
    )
    assert track["success"] is True
    assert track["track_path"] == "Sprite:position"
    assert track["key_count"] == 4

    scene = tscn.load_scene(project / "main.tscn")
    animation = scene.root.get_node_or_null("AnimationPlayer").get_animation("bounce")
    assert animation.get("length") == 2.0
    assert animation.get("loop_mode") == 1
    assert [(k[0], k[1].y) for k in animation.tracks[0].keys] == [(0.0, 0.0), (1.0, -50.0), (0.5, -20.0), (0.5, -30.0)]

    second = _run(project, "create_animation", scene_path="res://main.tscn", animation_name="idle")
    assert second["created_player"] is False
    assert second["replaced"] is False
    replaced = _run(project, "create_animation", scene_path="res://main.tscn", animation_name="idle")
    assert replaced["replaced"] is True


def test_animation_track_errors(project: Path) -> None:
    _new_scene(project)
    _run(project, "add_node", scene_path="res://main.tscn", node_type="Sprite2D", node_name="Sprite")
    _run(project, "create_animation", scene_path="res://main.tscn", animation_name="walk")
    base = {
        "scene_path": "res://main.tscn",
        "animation_name": "walk",
        "target_node_path": "Sprite",
        "property": "modulate",
        "keyframes": [{"time": 0, "value": {"_type": "Color"}}],
    }
    assert _run(project, "add_animation_track", animation_player_path="Sprite", **base)["code"] == "INVALID_TARGET"
    assert _run(project, "add_animation_track", animation_player_path="Missing", **base)["code"] == "NOT_FOUND"

    other = dict(base, animation_name="run")
    assert _run(project, "add_animation_track", animation_player_path="AnimationPlayer", **other)["code"] == "NOT_FOUND"

    bad_keys = dict(base, keyframes=[{"value": 1}])
    assert _run(project, "add_animation_track", animation_player_path="AnimationPlayer", **bad_keys)["code"] == "INVALID_INPUT"

    bad_duration = _run(project, "create_animation", scene_path="res://main.tscn", duration=0)
    assert bad_duration["code"] == "INVALID_INPUT"


def test_create_resource(project: Path) -> None:
    result = _run(
        project,
        "create_resource",
        resource_path="res://shapes/hitbox.tres",
        resource_type="CircleShape2D",
        properties={"radius": 32, "not_a_property": True},
    )
    assert result["success"] is True
    assert result["skipped_properties"] == ["not_a_property"]
    text = (project / "shapes" / "hitbox.tres").read_text(encoding="utf-8")
    assert text.startswith('[gd_resource type="CircleShape2D" format=3]')
    assert "radius = 32.0" in text

    assert _run(project, "create_resource", resource_path="res://x.tres", resource_type="Node2D")["code"] == "UNKNOWN_TYPE"
    wrong = _run(project, "create_resource", resource_path="res://x.tres", resource_type="CircleShape2D", properties={"radius": "big"})
    assert wrong["code"] == "PROPERTY_ERROR"
    assert not (project / "x.tres").exists()


def test_project_queries(project: Path) -> None:
    _new_scene(project)
    _new_scene(project, "res://levels/level1.tscn")
    (project / "addons" / "plugin").mkdir(parents=True)
    (project / "addons" / "plugin" / "dock.tscn").write_text("", encoding="utf-8")
    (project / ".godot").mkdir()
    (project / ".godot" / "cache.tscn").write_text("", encoding="utf-8")
    _run(project, "create_script", script_path="res://player.gd")

    info = _run(project, "get_project_info")
    assert info["project_name"] == "Test Game"
    assert info["main_scene"] == "res://main.tscn"
    assert info["scene_count"] == 2
    assert info["script_count"] == 1

    scenes = _run(project, "list_scenes")
    assert scenes["scenes"] == ["res://levels/level1.tscn", "res://main.tscn"]
    assert _run(project, "list_scripts")["scripts"] == ["res://player.gd"]


def test_project_queries_require_a_project(tmp_path: Path) -> None:
    assert _run(tmp_path, "list_scenes")["code"] == "NOT_FOUND"


def test_concurrent_dispatchers_on_distinct_documents(project: Path) -> None:
    names = [f"scene_{i}" for i in range(8)]

    def build(name: str) -> Dict[str, Any]:
        scene_path = f"res://{name}.tscn"
        _run(project, "create_scene", scene_path=scene_path, root_name=name)
        return _run(project, "add_node", scene_path=scene_path, node_type="Node2D", node_name="Child")

    with ThreadPoolExecutor(max_workers=4) as pool:
        results = list(pool.map(build, names))
    assert all(r["success"] for r in results)
    for name in names:
        read = _run(project, "read_scene", scene_path=f"res://{name}.tscn")
        assert read["scene"]["name"] == name
        assert [c["name"] for c in read["scene"]["children"]] == ["Child"]


def test_scenes_with_multiline_text_stay_editable(project: Path) -> None:
    (project / "ui.tscn").write_text(
        '[gd_scene format=3]\n\n[node name="UI" type="Control"]\n\n'
        '[node name="Title" type="Label" parent="."]\ntext = "first line\nsecond line"\n',
        encoding="utf-8",
    )
    read = _run(project, "read_scene", scene_path="res://ui.tscn")
    assert read["success"] is True, read
    assert [child["name"] for child in read["scene"]["children"]] == ["Title"]

    modified = _run(project, "modify_node", scene_path="res://ui.tscn", node_path="Title", properties={"visible": False})
    assert modified["success"] is True, modified
    saved = (project / "ui.tscn").read_text(encoding="utf-8")
    assert 'text = "first line\nsecond line"\n' in saved
    assert "visible = false\n" in saved
