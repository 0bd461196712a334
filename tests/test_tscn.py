from pathlib import Path

import pytest

from harness_godot.engine import tscn
from harness_godot.engine.classdb import Animation, AnimationLibrary, AnimationPlayer, Script, instantiate
from harness_godot.engine.tree import serialize
from harness_godot.engine.variant import Vector2

SCENE_WITH_EXTRAS = """[gd_scene load_steps=2 format=3 uid="uid://b7x2k4m1q0abc"]

[ext_resource type="Script" uid="uid://c1y3n5p2r8def" path="res://player.gd" id="1_q8k2m"]

[node name="Main" type="Node2D"]
script = ExtResource("1_q8k2m")

[node name="Beacon" type="FancyBeacon" parent="."]
glow = 3

[node name="Button" type="Button" parent="."]
text = "Go"

[connection signal="pressed" from="Button" to="." method="_on_button_pressed"]
"""


def _build_scene() -> tscn.SceneFile:
    root = instantiate("Node2D")
    root.name = "Level"
    script = Script()
    script.resource_path = "res://level.gd"
    root.set("script", script)

    sprite = instantiate("Sprite2D")
    sprite.name = "Player"
    sprite.set("position", Vector2(10.0, 20.0))
    root.add_child(sprite)

    hitbox = instantiate("CollisionShape2D")
    hitbox.name = "Hitbox"
    shape = instantiate("CircleShape2D")
    shape.set("radius", 16.0)
    hitbox.set("shape", shape)
    sprite.add_child(hitbox)

    player = AnimationPlayer()
    player.name = "AnimationPlayer"
    library = AnimationLibrary()
    animation = Animation()
    animation.set("resource_name", "walk")
    animation.set("length", 2.0)
    track = animation.add_track()
    animation.track_set_path(track, "Player:position")
    animation.track_insert_key(track, 0.0, Vector2(0.0, 0.0))
    animation.track_insert_key(track, 1.5, Vector2(100.0, 0.0))
    library.add_animation("walk", animation)
    player.add_animation_library("", library)
    root.add_child(player)
    return tscn.SceneFile(root)


def test_scene_round_trip() -> None:
    scene = _build_scene()
    text = tscn.pack_scene(scene)

    assert text.startswith("[gd_scene load_steps=5 format=3]\n")
    assert '[ext_resource type="Script" path="res://level.gd" id="1_' in text
    assert '[sub_resource type="CircleShape2D" id="CircleShape2D_1"]\nradius = 16.0\n' in text
    assert '[node name="Hitbox" type="CollisionShape2D" parent="Player"]' in text
    assert "position = Vector2(10, 20)" in text

    loaded = tscn.load_scene_text(text)
    assert serialize(loaded.root) == serialize(scene.root)
    assert loaded.root.get_node_or_null("Player").get("position") == Vector2(10.0, 20.0)
    assert loaded.root.get_node_or_null("Player/Hitbox").get("shape").get("radius") == 16.0

    walk = loaded.root.get_node_or_null("AnimationPlayer").get_animation("walk")
    assert walk.get("length") == 2.0
    assert walk.tracks[0].path == "Player:position"
    assert [(k[0], k[1]) for k in walk.tracks[0].keys] == [(0.0, Vector2(0.0, 0.0)), (1.5, Vector2(100.0, 0.0))]

    assert tscn.pack_scene(loaded) == text


def test_subresources_precede_their_users() -> None:
    text = tscn.pack_scene(_build_scene())
    assert text.index('id="Animation_1"') < text.index('id="AnimationLibrary_1"')
    assert text.index('[sub_resource type="AnimationLibrary"') < text.index('[node name="Level"')


def test_load_preserves_uids_unknown_types_and_connections() -> None:
    scene = tscn.load_scene_text(SCENE_WITH_EXTRAS)
    assert scene.uid == "uid://b7x2k4m1q0abc"
    beacon = scene.root.get_node_or_null("Beacon")
    assert beacon.get_class() == "FancyBeacon"

    text = tscn.pack_scene(scene)
    assert 'uid="uid://b7x2k4m1q0abc"' in text
    assert 'uid="uid://c1y3n5p2r8def"' in text
    assert '[node name="Beacon" type="FancyBeacon" parent="."]\nglow = 3\n' in text
    assert '[connection signal="pressed" from="Button" to="." method="_on_button_pressed"]' in text


def test_connections_to_removed_nodes_are_dropped() -> None:
    scene = tscn.load_scene_text(SCENE_WITH_EXTRAS)
    button = scene.root.get_node_or_null("Button")
    scene.root.remove_child(button)
    button.free()
    assert "[connection" not in tscn.pack_scene(scene)


def test_malformed_documents_raise() -> None:
    with pytest.raises(tscn.DocumentFormatError):
        tscn.load_scene_text('[gd_resource type="Resource" format=3]\n')
    with pytest.raises(tscn.DocumentFormatError):
        tscn.load_scene_text('[gd_scene format=3]\n\n[node name="A" type="Node" parent="Missing"]\n')
    with pytest.raises(tscn.DocumentFormatError):
        tscn.load_scene_text('[gd_scene format=3]\n\n[node name="A" type="Node"]\nposition = Vector2(1,\n')


def test_resource_round_trip(tmp_path: Path) -> None:
    shape = instantiate("RectangleShape2D")
    shape.set("size", Vector2(32.0, 8.0))
    target = tmp_path / "shapes" / "floor.tres"
    tscn.save_resource(shape, target, res_path="res://shapes/floor.tres")

    text = target.read_text(encoding="utf-8")
    assert text.startswith('[gd_resource type="RectangleShape2D" format=3]\n')
    assert "size = Vector2(32, 8)" in text

    loaded = tscn.load_resource(target, res_path="res://shapes/floor.tres")
    assert loaded.get_class() == "RectangleShape2D"
    assert loaded.get("size") == Vector2(32.0, 8.0)
    assert loaded.resource_path == "res://shapes/floor.tres"


def test_atomic_write_leaves_no_temp_files(tmp_path: Path) -> None:
    target = tmp_path / "scene.tscn"
    target.write_text("old", encoding="utf-8")
    tscn.atomic_write(target, "new")
    assert target.read_text(encoding="utf-8") == "new"
    assert [p.name for p in tmp_path.iterdir()] == ["scene.tscn"]


MULTILINE_SCENE = """[gd_scene load_steps=2 format=3]

[sub_resource type="GDScript" id="GDScript_k3l9a"]
script/source = "extends Label

func _ready() -> void:
\\tprint(\\"ready [ok]\\")
"

[node name="UI" type="Control"]

[node name="Title" type="Label" parent="."]
script = SubResource("GDScript_k3l9a")
text = "first line
second line"
"""


def test_multiline_strings_load_and_round_trip() -> None:
    scene = tscn.load_scene_text(MULTILINE_SCENE)
    title = scene.root.get_node_or_null("Title")
    assert title.get("text") == "first line\nsecond line"
    source = title.get("script").get("script/source")
    assert source == 'extends Label\n\nfunc _ready() -> void:\n\tprint("ready [ok]")\n'

    text = tscn.pack_scene(scene)
    assert 'text = "first line\nsecond line"\n' in text
    assert '[sub_resource type="GDScript" id="GDScript_k3l9a"]' in text
    assert "\tprint(\\\"ready [ok]\\\")\n\"\n" in text
    assert tscn.pack_scene(tscn.load_scene_text(text)) == text


INSTANCED_SCENE = """[gd_scene load_steps=2 format=3]

[ext_resource type="PackedScene" path="res://player.tscn" id="1_abc"]

[node name="World" type="Node2D"]

[node name="Player" parent="." instance=ExtResource("1_abc")]

[node name="Sprite" parent="Player"]
visible = false
"""


def test_overrides_inside_instances_keep_no_type() -> None:
    scene = tscn.load_scene_text(INSTANCED_SCENE)
    text = tscn.pack_scene(scene)
    assert '[node name="Player" parent="." instance=ExtResource("1_abc")]' in text
    assert '[node name="Sprite" parent="Player"]\nvisible = false\n' in text
    assert 'type="Node"' not in text


def test_loaded_resource_ids_are_kept() -> None:
    text = tscn.pack_scene(tscn.load_scene_text(SCENE_WITH_EXTRAS))
    assert 'path="res://player.gd" id="1_q8k2m"]' in text
    assert 'script = ExtResource("1_q8k2m")' in text

    scene = tscn.load_scene_text(INSTANCED_SCENE)
    hitbox = instantiate("CollisionShape2D")
    hitbox.name = "Hitbox"
    hitbox.set("shape", instantiate("CircleShape2D"))
    scene.root.add_child(hitbox)
    text = tscn.pack_scene(scene)
    assert 'id="1_abc"' in text
    assert '[sub_resource type="CircleShape2D" id="CircleShape2D_1"]' in text


def test_integer_vectors_and_string_names_survive_save() -> None:
    source = """[gd_scene format=3]

[node name="Root" type="Node"]

[node name="View" type="SubViewport" parent="."]
size = Vector2i(320, 240)
metadata/cell = Vector3i(1, 2, 3)
metadata/frame = Rect2i(0, 0, 16, 16)

[node name="Anim" type="AnimationPlayer" parent="."]
autoplay = &"idle"
"""
    text = tscn.pack_scene(tscn.load_scene_text(source))
    assert "size = Vector2i(320, 240)\n" in text
    assert "metadata/cell = Vector3i(1, 2, 3)\n" in text
    assert "metadata/frame = Rect2i(0, 0, 16, 16)\n" in text
    assert 'autoplay = &"idle"\n' in text


def test_animation_library_keys_are_string_names() -> None:
    text = tscn.pack_scene(_build_scene())
    assert 'libraries = {\n&"": SubResource("AnimationLibrary_1")\n}' in text
    assert '_data = {\n&"walk": SubResource("Animation_1")\n}' in text
