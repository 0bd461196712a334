"""In-process class database: the object model the engine host edits.

Every class declares typed properties with defaults. Nodes form an ordered
tree; resources are property bags that may be shared between nodes and saved
either inline (sub-resources) or as their own files (external resources).
"""

import copy
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple, Type

from harness_godot.engine.variant import Color, NodePath, PackedArray, Rect2, StringName, Vector2, Vector3, type_name


class PropertyError(Exception):
    pass


@dataclass(frozen=True)
class Property:
    name: str
    type: Any = None
    default: Any = None


_PY_TYPE_NAMES = {
    bool: "bool",
    int: "int",
    float: "float",
    str: "String",
    list: "Array",
    dict: "Dictionary",
}


def _props(**declared: Tuple[Any, Any]) -> Dict[str, Property]:
    return {name: Property(name, spec[0], spec[1]) for name, spec in declared.items()}


def _coerce(prop: Property, value: Any, owner: str) -> Any:
    expected = prop.type
    if expected is None:
        return value
    if isinstance(expected, str):
        if value is None:
            return None
        if isinstance(value, Object) and is_parent_class(value.get_class(), expected):
            return value
    elif expected is bool:
        if isinstance(value, (bool, int)):
            return bool(value)
    elif expected is int:
        if isinstance(value, (bool, int)) or (isinstance(value, float) and value.is_integer()):
            return int(value)
    elif expected is float:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return float(value)
    elif expected is str:
        if isinstance(value, str):
            return value
    elif expected is NodePath:
        if isinstance(value, NodePath):
            return value
        if isinstance(value, str):
            return NodePath(value)
    elif expected is list:
        if isinstance(value, (list, tuple)):
            return list(value)
    elif isinstance(value, expected):
        return value
    wanted = expected if isinstance(expected, str) else _PY_TYPE_NAMES.get(expected, getattr(expected, "__name__", "?"))
    raise PropertyError(
        f"Invalid type in assignment of property '{prop.name}' on '{owner}': "
        f"expected {wanted}, got {type_name(value)}"
    )


class Object:
    class_name = "Object"
    abstract = False
    properties: Dict[str, Property] = {}

    def __init__(self) -> None:
        self._values: Dict[str, Any] = {}
        self._class_override: Optional[str] = None

    def get_class(self) -> str:
        return self._class_override or type(self).class_name

    @classmethod
    def property_map(cls) -> Dict[str, Property]:
        merged: Dict[str, Property] = {}
        for klass in reversed(cls.__mro__):
            merged.update(klass.__dict__.get("properties", {}))
        return merged

    def has_property(self, name: str) -> bool:
        return name in self.property_map()

    def get(self, name: str) -> Any:
        if name in self._values:
            return self._values[name]
        prop = self.property_map().get(name)
        if prop is None:
            raise PropertyError(f"Invalid access to property '{name}' on a base object of type '{self.get_class()}'")
        return copy.copy(prop.default)

    def set(self, name: str, value: Any) -> None:
        prop = self.property_map().get(name)
        if prop is None:
            raise PropertyError(f"Invalid assignment of property '{name}' on a base object of type '{self.get_class()}'")
        self._values[name] = _coerce(prop, value, self.get_class())

    def set_stored(self, name: str, value: Any) -> None:
        """Restore a value read from disk; no declaration or type checks."""
        self._values[name] = value

    def stored_properties(self) -> List[Tuple[str, Any]]:
        props = self.property_map()
        out = []
        for name, value in self._values.items():
            prop = props.get(name)
            if prop is not None and value == prop.default:
                continue
            out.append((name, value))
        return out


_INVALID_NAME_CHARS = re.compile(r'[.:@/"%]')


def validate_node_name(name: str) -> str:
    return _INVALID_NAME_CHARS.sub("_", name)


class Node(Object):
    class_name = "Node"
    properties = _props(
        process_mode=(int, 0),
        process_priority=(int, 0),
        editor_description=(str, ""),
        unique_name_in_owner=(bool, False),
        script=("Script", None),
    )

    def __init__(self) -> None:
        super().__init__()
        self._name = ""
        self._parent: Optional["Node"] = None
        self._children: List["Node"] = []
        self.groups: List[str] = []
        self.instance: Optional["Resource"] = None
        self.header_extras: Dict[str, Any] = {}
        self.type_declared = True

    @property
    def name(self) -> str:
        return self._name

    @name.setter
    def name(self, value: str) -> None:
        self._name = validate_node_name(str(value))

    def get_parent(self) -> Optional["Node"]:
        return self._parent

    def get_children(self) -> List["Node"]:
        return list(self._children)

    def get_child_count(self) -> int:
        return len(self._children)

    def _unique_child_name(self, wanted: str) -> str:
        taken = {child.name for child in self._children}
        if wanted not in taken:
            return wanted
        match = re.match(r"^(.*?)(\d+)$", wanted)
        base, counter = (match.group(1), int(match.group(2))) if match else (wanted, 1)
        while True:
            counter += 1
            candidate = f"{base}{counter}"
            if candidate not in taken:
                return candidate

    def add_child(self, node: "Node") -> None:
        if node._parent is not None:
            raise ValueError(f"Node '{node.name}' already has a parent")
        node.name = self._unique_child_name(node.name or node.get_class())
        node._parent = self
        self._children.append(node)

    def remove_child(self, node: "Node") -> None:
        if node._parent is not self:
            raise ValueError(f"Node '{node.name}' is not a child of '{self.name}'")
        self._children.remove(node)
        node._parent = None

    def find_child_of_class(self, class_name: str) -> Optional["Node"]:
        for child in self._children:
            if is_parent_class(child.get_class(), class_name):
                return child
        return None

    def walk(self) -> Iterator["Node"]:
        yield self
        for child in self._children:
            yield from child.walk()

    def get_node_or_null(self, path: str) -> Optional["Node"]:
        if path.startswith("/"):
            return None
        current: Optional[Node] = self
        for part in path.split("/"):
            if current is None:
                return None
            if part in ("", "."):
                continue
            if part == "..":
                current = current._parent
                continue
            current = next((c for c in current._children if c.name == part), None)
        return current

    def _ancestry(self) -> List["Node"]:
        chain = []
        node: Optional[Node] = self
        while node is not None:
            chain.append(node)
            node = node._parent
        return list(reversed(chain))

    def get_path_to(self, node: "Node") -> str:
        if node is self:
            return "."
        mine = self._ancestry()
        theirs = node._ancestry()
        if mine[0] is not theirs[0]:
            raise ValueError(f"Node '{node.name}' is not in the same tree as '{self.name}'")
        shared = 0
        while shared < min(len(mine), len(theirs)) and mine[shared] is theirs[shared]:
            shared += 1
        parts = [".."] * (len(mine) - shared) + [n.name for n in theirs[shared:]]
        return "/".join(parts)

    def free(self) -> None:
        for child in list(self._children):
            child.free()
        if self._parent is not None:
            self._parent._children.remove(self)
        self._parent = None
        self._values.clear()


class Resource(Object):
    class_name = "Resource"
    properties = _props(
        resource_local_to_scene=(bool, False),
        resource_name=(str, ""),
        script=("Script", None),
    )

    def __init__(self) -> None:
        super().__init__()
        self.resource_path = ""
        self.uid: Optional[str] = None
        # Section id from the document this resource was loaded from.
        self.scene_id: Optional[str] = None

    def is_external(self) -> bool:
        return self.resource_path.startswith("res://") and "::" not in self.resource_path


class Script(Resource):
    class_name = "Script"


class GDScript(Script):
    class_name = "GDScript"


class PackedScene(Resource):
    class_name = "PackedScene"


VALUE_TRACK = "value"
LOOP_NONE = 0
LOOP_LINEAR = 1


@dataclass
class Track:
    type: str = VALUE_TRACK
    path: str = ""
    interp: int = 1
    update: int = 0
    loop_wrap: bool = True
    enabled: bool = True
    imported: bool = False
    keys: List[Tuple[float, Any, float]] = field(default_factory=list)


_TRACK_FIELD_RE = re.compile(r"^tracks/(\d+)/(\w+)$")


class Animation(Resource):
    class_name = "Animation"
    properties = _props(
        length=(float, 1.0),
        loop_mode=(int, LOOP_NONE),
        step=(float, 0.1),
    )

    def __init__(self) -> None:
        super().__init__()
        self.tracks: List[Track] = []

    def add_track(self, track_type: str = VALUE_TRACK) -> int:
        self.tracks.append(Track(type=track_type))
        return len(self.tracks) - 1

    def track_set_path(self, index: int, path: str) -> None:
        self.tracks[index].path = path

    def track_insert_key(self, index: int, time: float, value: Any, transition: float = 1.0) -> None:
        # Keys stay in insertion order; equal times are kept side by side.
        self.tracks[index].keys.append((float(time), value, float(transition)))

    def set_stored(self, name: str, value: Any) -> None:
        match = _TRACK_FIELD_RE.match(name)
        if match is None:
            super().set_stored(name, value)
            return
        index, attr = int(match.group(1)), match.group(2)
        while len(self.tracks) <= index:
            self.tracks.append(Track())
        track = self.tracks[index]
        if attr == "path":
            track.path = value.path if isinstance(value, NodePath) else str(value)
        elif attr == "keys" and isinstance(value, dict):
            times = _items(value.get("times"))
            transitions = _items(value.get("transitions")) or [1.0] * len(times)
            values = _items(value.get("values"))
            track.update = int(value.get("update", 0))
            track.keys = [(float(t), v, float(tr)) for t, v, tr in zip(times, values, transitions)]
        elif attr in ("type", "interp", "loop_wrap", "enabled", "imported"):
            setattr(track, attr, value)

    def stored_properties(self) -> List[Tuple[str, Any]]:
        out = super().stored_properties()
        for index, track in enumerate(self.tracks):
            prefix = f"tracks/{index}/"
            out.extend(
                [
                    (prefix + "type", track.type),
                    (prefix + "imported", track.imported),
                    (prefix + "enabled", track.enabled),
                    (prefix + "path", NodePath(track.path)),
                    (prefix + "interp", track.interp),
                    (prefix + "loop_wrap", track.loop_wrap),
                    (
                        prefix + "keys",
                        {
                            "times": PackedArray("PackedFloat32Array", tuple(k[0] for k in track.keys)),
                            "transitions": PackedArray("PackedFloat32Array", tuple(k[2] for k in track.keys)),
                            "update": track.update,
                            "values": [k[1] for k in track.keys],
                        },
                    ),
                ]
            )
        return out


def _items(value: Any) -> List[Any]:
    if value is None:
        return []
    items = getattr(value, "items", None)
    if isinstance(items, tuple):
        return list(items)
    return list(value)


class AnimationLibrary(Resource):
    class_name = "AnimationLibrary"

    def __init__(self) -> None:
        super().__init__()
        self.animations: Dict[str, Animation] = {}

    def add_animation(self, name: str, animation: Animation) -> None:
        self.animations[name] = animation

    def has_animation(self, name: str) -> bool:
        return name in self.animations

    def get_animation(self, name: str) -> Optional[Animation]:
        return self.animations.get(name)

    def set_stored(self, name: str, value: Any) -> None:
        if name == "_data" and isinstance(value, dict):
            self.animations = {str(k): v for k, v in value.items()}
            return
        super().set_stored(name, value)

    def stored_properties(self) -> List[Tuple[str, Any]]:
        out = super().stored_properties()
        if self.animations:
            out.append(("_data", {StringName(k): v for k, v in self.animations.items()}))
        return out


def _define(name: str, parent: Type[Object], abstract: bool = False, **declared: Tuple[Any, Any]) -> Type[Object]:
    cls = type(name, (parent,), {"class_name": name, "abstract": abstract, "properties": _props(**declared)})
    _CLASSES[name] = cls
    return cls


_CLASSES: Dict[str, Type[Object]] = {
    cls.class_name: cls
    for cls in (Object, Node, Resource, Script, GDScript, PackedScene, Animation, AnimationLibrary)
}

# 2D
CanvasItem = _define(
    "CanvasItem", Node, abstract=True,
    visible=(bool, True), modulate=(Color, Color()), self_modulate=(Color, Color()),
    show_behind_parent=(bool, False), top_level=(bool, False), z_index=(int, 0),
    z_as_relative=(bool, True), y_sort_enabled=(bool, False), material=("Material", None),
)
Node2D = _define("Node2D", CanvasItem, position=(Vector2, Vector2()), rotation=(float, 0.0),
                 scale=(Vector2, Vector2(1.0, 1.0)), skew=(float, 0.0))
_define("Sprite2D", Node2D, texture=("Texture2D", None), centered=(bool, True), offset=(Vector2, Vector2()),
        flip_h=(bool, False), flip_v=(bool, False), hframes=(int, 1), vframes=(int, 1), frame=(int, 0),
        region_enabled=(bool, False), region_rect=(Rect2, Rect2()))
_define("AnimatedSprite2D", Node2D, sprite_frames=("SpriteFrames", None), animation=(str, "default"),
        autoplay=(str, ""), frame=(int, 0), speed_scale=(float, 1.0), centered=(bool, True),
        offset=(Vector2, Vector2()), flip_h=(bool, False), flip_v=(bool, False))
CollisionObject2D = _define("CollisionObject2D", Node2D, abstract=True, collision_layer=(int, 1),
                            collision_mask=(int, 1), input_pickable=(bool, True))
PhysicsBody2D = _define("PhysicsBody2D", CollisionObject2D, abstract=True)
_define("CharacterBody2D", PhysicsBody2D, motion_mode=(int, 0), up_direction=(Vector2, Vector2(0.0, -1.0)),
        velocity=(Vector2, Vector2()), floor_stop_on_slope=(bool, True), floor_max_angle=(float, 0.785398))
_define("RigidBody2D", PhysicsBody2D, mass=(float, 1.0), gravity_scale=(float, 1.0), freeze=(bool, False),
        linear_velocity=(Vector2, Vector2()), angular_velocity=(float, 0.0), lock_rotation=(bool, False))
_define("StaticBody2D", PhysicsBody2D, constant_linear_velocity=(Vector2, Vector2()),
        constant_angular_velocity=(float, 0.0))
_define("AnimatableBody2D", PhysicsBody2D, sync_to_physics=(bool, True))
_define("Area2D", CollisionObject2D, monitoring=(bool, True), monitorable=(bool, True), priority=(int, 0),
        gravity=(float, 980.0))
_define("CollisionShape2D", Node2D, shape=("Shape2D", None), disabled=(bool, False), one_way_collision=(bool, False))
_define("CollisionPolygon2D", Node2D, polygon=(None, None), disabled=(bool, False), build_mode=(int, 0))
_define("Camera2D", Node2D, offset=(Vector2, Vector2()), anchor_mode=(int, 1), enabled=(bool, True),
        zoom=(Vector2, Vector2(1.0, 1.0)), position_smoothing_enabled=(bool, False),
        position_smoothing_speed=(float, 5.0), limit_left=(int, -10000000), limit_top=(int, -10000000),
        limit_right=(int, 10000000), limit_bottom=(int, 10000000))
_define("Marker2D", Node2D, gizmo_extents=(float, 10.0))
_define("Line2D", Node2D, points=(None, None), width=(float, 10.0), default_color=(Color, Color(0.4, 0.5, 1.0, 1.0)),
        closed=(bool, False))
_define("Polygon2D", Node2D, color=(Color, Color()), polygon=(None, None), antialiased=(bool, False),
        texture=("Texture2D", None))
Light2D = _define("Light2D", Node2D, abstract=True, enabled=(bool, True), color=(Color, Color()),
                  energy=(float, 1.0), shadow_enabled=(bool, False))
_define("PointLight2D", Light2D, texture=("Texture2D", None), texture_scale=(float, 1.0), offset=(Vector2, Vector2()))
_define("DirectionalLight2D", Light2D, height=(float, 0.0), max_distance=(float, 10000.0))
_define("GPUParticles2D", Node2D, emitting=(bool, True), amount=(int, 8), lifetime=(float, 1.0),
        one_shot=(bool, False), process_material=("Material", None), texture=("Texture2D", None))
_define("CPUParticles2D", Node2D, emitting=(bool, True), amount=(int, 8), lifetime=(float, 1.0),
        one_shot=(bool, False), texture=("Texture2D", None), color=(Color, Color()))
_define("Path2D", Node2D, curve=("Curve2D", None))
_define("PathFollow2D", Node2D, progress=(float, 0.0), progress_ratio=(float, 0.0), h_offset=(float, 0.0),
        v_offset=(float, 0.0), rotates=(bool, True), loop=(bool, True))
_define("RayCast2D", Node2D, enabled=(bool, True), target_position=(Vector2, Vector2(0.0, 50.0)),
        collision_mask=(int, 1), exclude_parent=(bool, True))
_define("TileMapLayer", Node2D, tile_set=("TileSet", None), enabled=(bool, True))
_define("RemoteTransform2D", Node2D, remote_path=(NodePath, NodePath()), use_global_coordinates=(bool, True))
_define("VisibleOnScreenNotifier2D", Node2D, rect=(Rect2, Rect2(-10.0, -10.0, 20.0, 20.0)))
_define("NavigationAgent2D", Node, target_position=(Vector2, Vector2()), path_desired_distance=(float, 20.0),
        radius=(float, 10.0))
_define("Parallax2D", Node2D, scroll_scale=(Vector2, Vector2(1.0, 1.0)), repeat_size=(Vector2, Vector2()))

# 3D
Node3D = _define("Node3D", Node, position=(Vector3, Vector3()), rotation=(Vector3, Vector3()),
                 scale=(Vector3, Vector3(1.0, 1.0, 1.0)), visible=(bool, True), top_level=(bool, False))
VisualInstance3D = _define("VisualInstance3D", Node3D, abstract=True, layers=(int, 1))
GeometryInstance3D = _define("GeometryInstance3D", VisualInstance3D, abstract=True,
                             material_override=("Material", None), cast_shadow=(int, 1), transparency=(float, 0.0))
_define("MeshInstance3D", GeometryInstance3D, mesh=("Mesh", None), skeleton=(NodePath, NodePath("..")))
_define("Sprite3D", GeometryInstance3D, texture=("Texture2D", None), pixel_size=(float, 0.01),
        billboard=(int, 0), modulate=(Color, Color()))
_define("Camera3D", Node3D, fov=(float, 75.0), near=(float, 0.05), far=(float, 4000.0), current=(bool, False),
        projection=(int, 0), size=(float, 1.0))
CollisionObject3D = _define("CollisionObject3D", Node3D, abstract=True, collision_layer=(int, 1),
                            collision_mask=(int, 1))
PhysicsBody3D = _define("PhysicsBody3D", CollisionObject3D, abstract=True)
_define("CharacterBody3D", PhysicsBody3D, motion_mode=(int, 0), up_direction=(Vector3, Vector3(0.0, 1.0, 0.0)),
        velocity=(Vector3, Vector3()), floor_max_angle=(float, 0.785398))
_define("RigidBody3D", PhysicsBody3D, mass=(float, 1.0), gravity_scale=(float, 1.0), freeze=(bool, False),
        linear_velocity=(Vector3, Vector3()), angular_velocity=(Vector3, Vector3()))
_define("StaticBody3D", PhysicsBody3D, constant_linear_velocity=(Vector3, Vector3()),
        constant_angular_velocity=(Vector3, Vector3()))
_define("Area3D", CollisionObject3D, monitoring=(bool, True), monitorable=(bool, True), priority=(int, 0))
_define("CollisionShape3D", Node3D, shape=("Shape3D", None), disabled=(bool, False))
Light3D = _define("Light3D", VisualInstance3D, abstract=True, light_color=(Color, Color()),
                  light_energy=(float, 1.0), shadow_enabled=(bool, False))
_define("DirectionalLight3D", Light3D, directional_shadow_max_distance=(float, 100.0))
_define("OmniLight3D", Light3D, omni_range=(float, 5.0), omni_attenuation=(float, 1.0))
_define("SpotLight3D", Light3D, spot_range=(float, 5.0), spot_angle=(float, 45.0))
_define("WorldEnvironment", Node, environment=("Environment", None), camera_attributes=("CameraAttributes", None))
_define("Marker3D", Node3D, gizmo_extents=(float, 0.25))
_define("RayCast3D", Node3D, enabled=(bool, True), target_position=(Vector3, Vector3(0.0, -1.0, 0.0)),
        collision_mask=(int, 1))
_define("Path3D", Node3D, curve=("Curve3D", None))
_define("GPUParticles3D", GeometryInstance3D, emitting=(bool, True), amount=(int, 8), lifetime=(float, 1.0),
        one_shot=(bool, False), process_material=("Material", None))
_define("NavigationRegion3D", Node3D, enabled=(bool, True))

# UI
Control = _define(
    "Control", CanvasItem,
    position=(Vector2, Vector2()), size=(Vector2, Vector2()), rotation=(float, 0.0), scale=(Vector2, Vector2(1.0, 1.0)),
    pivot_offset=(Vector2, Vector2()), custom_minimum_size=(Vector2, Vector2()), anchor_left=(float, 0.0),
    anchor_top=(float, 0.0), anchor_right=(float, 0.0), anchor_bottom=(float, 0.0), offset_left=(float, 0.0),
    offset_top=(float, 0.0), offset_right=(float, 0.0), offset_bottom=(float, 0.0), layout_mode=(int, 0),
    anchors_preset=(int, 0), size_flags_horizontal=(int, 1), size_flags_vertical=(int, 1),
    mouse_filter=(int, 0), tooltip_text=(str, ""), theme=("Theme", None), clip_contents=(bool, False),
)
_define("Label", Control, text=(str, ""), horizontal_alignment=(int, 0), vertical_alignment=(int, 0),
        autowrap_mode=(int, 0), uppercase=(bool, False), label_settings=("LabelSettings", None))
_define("RichTextLabel", Control, text=(str, ""), bbcode_enabled=(bool, False), fit_content=(bool, False),
        scroll_active=(bool, True))
BaseButton = _define("BaseButton", Control, abstract=True, disabled=(bool, False), toggle_mode=(bool, False),
                     button_pressed=(bool, False))
_define("Button", BaseButton, text=(str, ""), icon=("Texture2D", None), flat=(bool, False),
        alignment=(int, 1), expand_icon=(bool, False))
_define("CheckBox", BaseButton, text=(str, ""))
_define("TextureButton", BaseButton, texture_normal=("Texture2D", None), texture_pressed=("Texture2D", None),
        texture_hover=("Texture2D", None), ignore_texture_size=(bool, False), stretch_mode=(int, 2))
_define("TextureRect", Control, texture=("Texture2D", None), expand_mode=(int, 0), stretch_mode=(int, 0),
        flip_h=(bool, False), flip_v=(bool, False))
_define("ColorRect", Control, color=(Color, Color()))
_define("Panel", Control)
_define("NinePatchRect", Control, texture=("Texture2D", None), draw_center=(bool, True),
        region_rect=(Rect2, Rect2()))
_define("LineEdit", Control, text=(str, ""), placeholder_text=(str, ""), max_length=(int, 0),
        editable=(bool, True), secret=(bool, False))
_define("TextEdit", Control, text=(str, ""), placeholder_text=(str, ""), editable=(bool, True),
        wrap_mode=(int, 0))
Range = _define("Range", Control, abstract=True, min_value=(float, 0.0), max_value=(float, 100.0),
                step=(float, 1.0), value=(float, 0.0))
_define("ProgressBar", Range, show_percentage=(bool, True), fill_mode=(int, 0))
_define("HSlider", Range, editable=(bool, True), scrollable=(bool, True))
_define("VSlider", Range, editable=(bool, True), scrollable=(bool, True))
_define("SpinBox", Range, prefix=(str, ""), suffix=(str, ""), editable=(bool, True))
Container = _define("Container", Control)
BoxContainer = _define("BoxContainer", Container, alignment=(int, 0), vertical=(bool, False))
_define("VBoxContainer", BoxContainer)
_define("HBoxContainer", BoxContainer)
_define("MarginContainer", Container)
_define("CenterContainer", Container, use_top_left=(bool, False))
_define("GridContainer", Container, columns=(int, 1))
_define("PanelContainer", Container)
_define("ScrollContainer", Container, follow_focus=(bool, False), horizontal_scroll_mode=(int, 1),
        vertical_scroll_mode=(int, 1))
_define("TabContainer", Container, current_tab=(int, 0), tabs_visible=(bool, True))
_define("CanvasLayer", Node, layer=(int, 1), offset=(Vector2, Vector2()), rotation=(float, 0.0),
        scale=(Vector2, Vector2(1.0, 1.0)), visible=(bool, True), follow_viewport_enabled=(bool, False))
_define("SubViewport", Node, size=(Vector2, Vector2(512.0, 512.0)), transparent_bg=(bool, False),
        disable_3d=(bool, False))

# Audio, animation and utility nodes
_define("AudioStreamPlayer", Node, stream=("AudioStream", None), volume_db=(float, 0.0), pitch_scale=(float, 1.0),
        autoplay=(bool, False), bus=(str, "Master"))
_define("AudioStreamPlayer2D", Node2D, stream=("AudioStream", None), volume_db=(float, 0.0),
        pitch_scale=(float, 1.0), autoplay=(bool, False), max_distance=(float, 2000.0), bus=(str, "Master"))
_define("AudioStreamPlayer3D", Node3D, stream=("AudioStream", None), volume_db=(float, 0.0),
        unit_size=(float, 10.0), pitch_scale=(float, 1.0), autoplay=(bool, False), max_distance=(float, 0.0),
        bus=(str, "Master"))
AnimationMixer = _define("AnimationMixer", Node, abstract=True, active=(bool, True), deterministic=(bool, True),
                         root_node=(NodePath, NodePath("..")))
_define("AnimationTree", AnimationMixer, tree_root=("AnimationRootNode", None),
        anim_player=(NodePath, NodePath()))
_define("Timer", Node, wait_time=(float, 1.0), one_shot=(bool, False), autostart=(bool, False),
        process_callback=(int, 1))
_define("HTTPRequest", Node, timeout=(float, 0.0), max_redirects=(int, 8), use_threads=(bool, False))
_define("ResourcePreloader", Node)


class AnimationPlayer(AnimationMixer):
    class_name = "AnimationPlayer"
    abstract = False
    properties = _props(
        autoplay=(str, ""),
        speed_scale=(float, 1.0),
        playback_default_blend_time=(float, 0.0),
    )

    def __init__(self) -> None:
        super().__init__()
        self.libraries: Dict[str, AnimationLibrary] = {}

    def has_animation_library(self, name: str) -> bool:
        return name in self.libraries

    def get_animation_library(self, name: str) -> Optional[AnimationLibrary]:
        return self.libraries.get(name)

    def add_animation_library(self, name: str, library: AnimationLibrary) -> None:
        self.libraries[name] = library

    def get_animation(self, name: str) -> Optional[Animation]:
        library_name, _, animation_name = name.rpartition("/")
        library = self.libraries.get(library_name)
        if library is None:
            return None
        return library.get_animation(animation_name)

    def set_stored(self, name: str, value: Any) -> None:
        if name == "libraries" and isinstance(value, dict):
            self.libraries = {str(k): v for k, v in value.items()}
            return
        super().set_stored(name, value)

    def stored_properties(self) -> List[Tuple[str, Any]]:
        out = super().stored_properties()
        if self.libraries:
            out.append(("libraries", {StringName(k): v for k, v in self.libraries.items()}))
        return out


_CLASSES["AnimationPlayer"] = AnimationPlayer

# Resources
Shape2D = _define("Shape2D", Resource, abstract=True, custom_solver_bias=(float, 0.0))
_define("RectangleShape2D", Shape2D, size=(Vector2, Vector2(20.0, 20.0)))
_define("CircleShape2D", Shape2D, radius=(float, 10.0))
_define("CapsuleShape2D", Shape2D, radius=(float, 10.0), height=(float, 30.0))
_define("SegmentShape2D", Shape2D, a=(Vector2, Vector2()), b=(Vector2, Vector2(0.0, 10.0)))
_define("WorldBoundaryShape2D", Shape2D, normal=(Vector2, Vector2(0.0, -1.0)), distance=(float, 0.0))
_define("ConvexPolygonShape2D", Shape2D, points=(None, None))
Shape3D = _define("Shape3D", Resource, abstract=True, margin=(float, 0.04))
_define("BoxShape3D", Shape3D, size=(Vector3, Vector3(1.0, 1.0, 1.0)))
_define("SphereShape3D", Shape3D, radius=(float, 0.5))
_define("CapsuleShape3D", Shape3D, radius=(float, 0.5), height=(float, 2.0))
_define("CylinderShape3D", Shape3D, radius=(float, 0.5), height=(float, 2.0))
_define("WorldBoundaryShape3D", Shape3D)
Mesh = _define("Mesh", Resource, abstract=True)
PrimitiveMesh = _define("PrimitiveMesh", Mesh, abstract=True, material=("Material", None),
                        flip_faces=(bool, False))
_define("BoxMesh", PrimitiveMesh, size=(Vector3, Vector3(1.0, 1.0, 1.0)))
_define("SphereMesh", PrimitiveMesh, radius=(float, 0.5), height=(float, 1.0), radial_segments=(int, 64),
        rings=(int, 32))
_define("CapsuleMesh", PrimitiveMesh, radius=(float, 0.5), height=(float, 2.0))
_define("CylinderMesh", PrimitiveMesh, top_radius=(float, 0.5), bottom_radius=(float, 0.5), height=(float, 2.0))
_define("PlaneMesh", PrimitiveMesh, size=(Vector2, Vector2(2.0, 2.0)))
_define("QuadMesh", PrimitiveMesh, size=(Vector2, Vector2(1.0, 1.0)))
_define("PrismMesh", PrimitiveMesh, size=(Vector3, Vector3(1.0, 1.0, 1.0)), left_to_right=(float, 0.5))
_define("TorusMesh", PrimitiveMesh, inner_radius=(float, 0.5), outer_radius=(float, 1.0))
Material = _define("Material", Resource, abstract=True, render_priority=(int, 0), next_pass=("Material", None))
BaseMaterial3D = _define(
    "BaseMaterial3D", Material, abstract=True,
    albedo_color=(Color, Color()), albedo_texture=("Texture2D", None), metallic=(float, 0.0),
    roughness=(float, 1.0), emission_enabled=(bool, False), emission=(Color, Color(0.0, 0.0, 0.0, 1.0)),
    transparency=(int, 0), cull_mode=(int, 0), shading_mode=(int, 1),
)
_define("StandardMaterial3D", BaseMaterial3D)
_define("ORMMaterial3D", BaseMaterial3D)
_define("ShaderMaterial", Material, shader=("Shader", None))
_define("CanvasItemMaterial", Material, blend_mode=(int, 0), light_mode=(int, 0))
_define("ParticleProcessMaterial", Material, direction=(Vector3, Vector3(1.0, 0.0, 0.0)), spread=(float, 45.0),
        gravity=(Vector3, Vector3(0.0, -9.8, 0.0)), initial_velocity_min=(float, 0.0),
        initial_velocity_max=(float, 0.0), color=(Color, Color()))
_define("Shader", Resource, code=(str, ""))
Texture = _define("Texture", Resource, abstract=True)
Texture2D = _define("Texture2D", Texture, abstract=True)
_define("ImageTexture", Texture2D)
_define("CompressedTexture2D", Texture2D)
_define("AtlasTexture", Texture2D, atlas=("Texture2D", None), region=(Rect2, Rect2()), filter_clip=(bool, False))
_define("GradientTexture2D", Texture2D, gradient=("Gradient", None), width=(int, 64), height=(int, 64),
        fill=(int, 0), fill_from=(Vector2, Vector2()), fill_to=(Vector2, Vector2(1.0, 0.0)))
_define("GradientTexture1D", Texture2D, gradient=("Gradient", None), width=(int, 256))
_define("NoiseTexture2D", Texture2D, width=(int, 512), height=(int, 512), seamless=(bool, False),
        noise=("Noise", None))
_define("PlaceholderTexture2D", Texture2D, size=(Vector2, Vector2(1.0, 1.0)))
Noise = _define("Noise", Resource, abstract=True)
_define("FastNoiseLite", Noise, noise_type=(int, 1), seed=(int, 0), frequency=(float, 0.01))
_define("Gradient", Resource, offsets=(None, None), colors=(None, None), interpolation_mode=(int, 0))
_define("Curve", Resource, min_value=(float, 0.0), max_value=(float, 1.0), bake_resolution=(int, 100))
_define("Curve2D", Resource, bake_interval=(float, 5.0))
_define("Curve3D", Resource, bake_interval=(float, 0.2), up_vector_enabled=(bool, True))
_define("Environment", Resource, background_mode=(int, 0), background_color=(Color, Color(0.0, 0.0, 0.0, 1.0)),
        ambient_light_color=(Color, Color(0.0, 0.0, 0.0, 1.0)), ambient_light_energy=(float, 1.0),
        glow_enabled=(bool, False), fog_enabled=(bool, False))
_define("PhysicsMaterial", Resource, friction=(float, 1.0), rough=(bool, False), bounce=(float, 0.0),
        absorbent=(bool, False))
_define("LabelSettings", Resource, font_size=(int, 16), font_color=(Color, Color()), outline_size=(int, 0),
        outline_color=(Color, Color()), shadow_size=(int, 1))
StyleBox = _define("StyleBox", Resource, abstract=True)
_define("StyleBoxFlat", StyleBox, bg_color=(Color, Color(0.6, 0.6, 0.6, 1.0)), draw_center=(bool, True),
        corner_radius_top_left=(int, 0), corner_radius_top_right=(int, 0), corner_radius_bottom_right=(int, 0),
        corner_radius_bottom_left=(int, 0))
_define("StyleBoxEmpty", StyleBox)
_define("Theme", Resource, default_base_scale=(float, 0.0), default_font_size=(int, -1))
_define("SpriteFrames", Resource)
_define("TileSet", Resource, tile_shape=(int, 0), tile_size=(Vector2, Vector2(16.0, 16.0)))
_define("AudioStream", Resource)
_define("AudioStreamWAV", _CLASSES["AudioStream"])
_define("AudioStreamOggVorbis", _CLASSES["AudioStream"], loop=(bool, False))
_define("CameraAttributes", Resource, abstract=True)
_define("CameraAttributesPractical", _CLASSES["CameraAttributes"], auto_exposure_enabled=(bool, False))
_define("AnimationRootNode", Resource, abstract=True)
_define("AnimationNodeStateMachine", _CLASSES["AnimationRootNode"])
_define("AnimationNodeBlendTree", _CLASSES["AnimationRootNode"])


def class_exists(name: str) -> bool:
    return name in _CLASSES


def get_class(name: str) -> Optional[Type[Object]]:
    return _CLASSES.get(name)


def is_parent_class(name: str, base: str) -> bool:
    cls = _CLASSES.get(name)
    parent = _CLASSES.get(base)
    if cls is None or parent is None:
        return False
    return issubclass(cls, parent)


def can_instantiate(name: str) -> bool:
    cls = _CLASSES.get(name)
    return cls is not None and not cls.abstract


def instantiate(name: str) -> Object:
    cls = _CLASSES.get(name)
    if cls is None:
        raise KeyError(f"Class does not exist: {name}")
    if cls.abstract:
        raise TypeError(f"Class is abstract and cannot be instantiated: {name}")
    return cls()
