import logging
from typing import Callable, Dict, Optional

from harness_godot.engine import classdb
from harness_godot.engine.classdb import Node, Object, Resource

logger = logging.getLogger("harness_godot.engine.registry")

Constructor = Callable[[], Object]

NODE_TYPES = [
    # Base
    "Node",
    "Node2D",
    "Node3D",
    "Control",
    "CanvasLayer",
    # 2D
    "Sprite2D",
    "AnimatedSprite2D",
    "CharacterBody2D",
    "RigidBody2D",
    "StaticBody2D",
    "AnimatableBody2D",
    "Area2D",
    "CollisionShape2D",
    "CollisionPolygon2D",
    "Camera2D",
    "Line2D",
    "Polygon2D",
    "PointLight2D",
    "DirectionalLight2D",
    "GPUParticles2D",
    "CPUParticles2D",
    "Path2D",
    "PathFollow2D",
    "RayCast2D",
    "TileMapLayer",
    # 3D
    "MeshInstance3D",
    "Sprite3D",
    "Camera3D",
    "CharacterBody3D",
    "RigidBody3D",
    "StaticBody3D",
    "Area3D",
    "CollisionShape3D",
    "DirectionalLight3D",
    "OmniLight3D",
    "SpotLight3D",
    "WorldEnvironment",
    "RayCast3D",
    "Path3D",
    "GPUParticles3D",
    # UI
    "Label",
    "RichTextLabel",
    "Button",
    "CheckBox",
    "TextureButton",
    "TextureRect",
    "ColorRect",
    "Panel",
    "NinePatchRect",
    "LineEdit",
    "TextEdit",
    "ProgressBar",
    "HSlider",
    "VSlider",
    "SpinBox",
    "VBoxContainer",
    "HBoxContainer",
    "MarginContainer",
    "CenterContainer",
    "GridContainer",
    "PanelContainer",
    "ScrollContainer",
    "TabContainer",
    # Audio
    "AudioStreamPlayer",
    "AudioStreamPlayer2D",
    "AudioStreamPlayer3D",
    # Animation and utility
    "AnimationPlayer",
    "AnimationTree",
    "Timer",
]

RESOURCE_TYPES = [
    # Shapes
    "RectangleShape2D",
    "CircleShape2D",
    "CapsuleShape2D",
    "SegmentShape2D",
    "WorldBoundaryShape2D",
    "ConvexPolygonShape2D",
    "BoxShape3D",
    "SphereShape3D",
    "CapsuleShape3D",
    "CylinderShape3D",
    # Meshes
    "BoxMesh",
    "SphereMesh",
    "CapsuleMesh",
    "CylinderMesh",
    "PlaneMesh",
    "QuadMesh",
    "PrismMesh",
    "TorusMesh",
    # Materials
    "StandardMaterial3D",
    "ORMMaterial3D",
    "ShaderMaterial",
    "CanvasItemMaterial",
    "ParticleProcessMaterial",
    # Textures
    "GradientTexture1D",
    "GradientTexture2D",
    "NoiseTexture2D",
    "ImageTexture",
    "AtlasTexture",
    # Curves and gradients
    "Curve",
    "Curve2D",
    "Curve3D",
    "Gradient",
    # Animation
    "Animation",
    "AnimationLibrary",
    # Misc
    "Environment",
    "LabelSettings",
]


def _table(names, base: type) -> Dict[str, Constructor]:
    table: Dict[str, Constructor] = {}
    for name in names:
        cls = classdb.get_class(name)
        if cls is None or not issubclass(cls, base) or cls.abstract:
            raise RuntimeError(f"Curated type is not a concrete {base.__name__}: {name}")
        table[name] = cls
    return table


_NODE_TABLE = _table(NODE_TYPES, Node)
_RESOURCE_TABLE = _table(RESOURCE_TYPES, Resource)


def _reflective(name: str, base: str) -> Optional[Constructor]:
    if not classdb.class_exists(name):
        return None
    if not classdb.is_parent_class(name, base):
        logger.debug("class %s exists but is not a %s", name, base)
        return None
    if not classdb.can_instantiate(name):
        logger.debug("class %s is abstract", name)
        return None
    return lambda: classdb.instantiate(name)


def resolve_node(name: str) -> Optional[Constructor]:
    """Return a constructor for a node type, or None if the name is not a concrete node class."""
    constructor = _NODE_TABLE.get(name)
    if constructor is None:
        constructor = _reflective(name, "Node")
    return constructor


def resolve_resource(name: str) -> Optional[Constructor]:
    constructor = _RESOURCE_TABLE.get(name)
    if constructor is None:
        constructor = _reflective(name, "Resource")
    return constructor
