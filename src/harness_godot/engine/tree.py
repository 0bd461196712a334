from typing import Any, Dict, List, Optional

from harness_godot.engine.classdb import Node, Resource

ROOT_PATH = "."


def _script_path(node: Node) -> Optional[str]:
    script = node.get("script")
    if isinstance(script, Resource) and script.resource_path:
        return script.resource_path
    return None


def serialize(node: Node, root: Optional[Node] = None) -> Dict[str, Any]:
    """Describe ``node`` and its subtree with paths relative to ``root``."""
    root = root or node
    record: Dict[str, Any] = {
        "name": node.name,
        "type": node.get_class(),
        "path": root.get_path_to(node),
        "children": [serialize(child, root) for child in node.get_children()],
    }
    script = _script_path(node)
    if script:
        record["script"] = script
    if node.instance is not None:
        record["instance"] = node.instance.resource_path
    return record


def resolve_path(root: Node, path: str) -> Optional[Node]:
    if path == ROOT_PATH:
        return root
    if not path:
        return None
    return root.get_node_or_null(path)


def list_paths(root: Node) -> List[Dict[str, str]]:
    return [{"path": root.get_path_to(node), "type": node.get_class(), "name": node.name} for node in root.walk()]
