from harness_godot.engine import registry


def test_curated_node_type_resolves() -> None:
    constructor = registry.resolve_node("Sprite2D")
    assert constructor is not None
    node = constructor()
    assert node.get_class() == "Sprite2D"
    assert node.has_property("texture")


def test_class_database_fallback_for_uncurated_types() -> None:
    assert "RemoteTransform2D" not in registry.NODE_TYPES
    constructor = registry.resolve_node("RemoteTransform2D")
    assert constructor is not None
    assert constructor().get_class() == "RemoteTransform2D"

    assert "StyleBoxFlat" not in registry.RESOURCE_TYPES
    resource = registry.resolve_resource("StyleBoxFlat")
    assert resource is not None
    assert resource().get_class() == "StyleBoxFlat"


def test_unknown_abstract_and_mismatched_types_are_rejected() -> None:
    assert registry.resolve_node("NotARealNode") is None
    assert registry.resolve_node("CanvasItem") is None
    assert registry.resolve_node("CircleShape2D") is None
    assert registry.resolve_resource("Sprite2D") is None
    assert registry.resolve_resource("Shape2D") is None


def test_constructors_return_fresh_instances() -> None:
    constructor = registry.resolve_node("Node2D")
    assert constructor() is not constructor()
