"""Engine-side operation dispatcher.

Each call to :meth:`OperationDispatcher.dispatch` is one pass through

    parse params -> load or create document -> locate target -> mutate -> save -> result

and never raises: every failure becomes ``{"success": False, "error": ..., "code": ...}``.
The loaded document lives in a :class:`DocumentHandle` owned by that single call and
is always discarded before the call returns.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from harness_godot import __version__
from harness_godot.engine import registry, tscn
from harness_godot.engine.classdb import (
    LOOP_LINEAR,
    LOOP_NONE,
    VALUE_TRACK,
    Animation,
    AnimationLibrary,
    AnimationPlayer,
    Node,
    Object,
    PropertyError,
    Script,
)
from harness_godot.engine.scripts import render_script
from harness_godot.engine.tree import list_paths, resolve_path, serialize
from harness_godot.engine.values import convert
from harness_godot.project import (
    ProjectPathError,
    find_scene_files,
    find_script_files,
    is_godot_project,
    normalize_res_path,
    project_summary,
    to_fs_path,
)

logger = logging.getLogger("harness_godot.engine.dispatcher")

ENGINE_VERSION = f"harness-godot-engine {__version__}"
DEFAULT_PLAYER_NAME = "AnimationPlayer"
DEFAULT_LIBRARY = ""


class Operation(str, Enum):
    CREATE_SCENE = "create_scene"
    ADD_NODE = "add_node"
    REMOVE_NODE = "remove_node"
    MODIFY_NODE = "modify_node"
    READ_SCENE = "read_scene"
    LIST_NODES = "list_nodes"
    CREATE_SCRIPT = "create_script"
    ATTACH_SCRIPT = "attach_script"
    CREATE_ANIMATION = "create_animation"
    ADD_ANIMATION_TRACK = "add_animation_track"
    CREATE_RESOURCE = "create_resource"
    GET_PROJECT_INFO = "get_project_info"
    LIST_SCENES = "list_scenes"
    LIST_SCRIPTS = "list_scripts"


class OperationError(Exception):
    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


def failure(code: str, message: str) -> Dict[str, Any]:
    return {"success": False, "error": message, "code": code}


@dataclass
class DocumentHandle:
    res_path: str
    fs_path: Path
    scene: tscn.SceneFile
    closed: bool = False

    @property
    def root(self) -> Node:
        return self.scene.root

    def save(self) -> None:
        try:
            tscn.save_scene(self.scene, self.fs_path)
        except (OSError, TypeError, ValueError) as exc:
            raise OperationError("SAVE_FAILED", f"Failed to save scene {self.res_path}: {exc}") from exc
        logger.debug("saved %s", self.fs_path)

    def discard(self) -> None:
        if not self.closed:
            self.scene.root.free()
            self.closed = True


def _require(params: Dict[str, Any], *names: str) -> None:
    for name in names:
        if params.get(name) is None or params.get(name) == "":
            raise OperationError("INVALID_INPUT", f"Missing required parameter: {name}")


def _mapping(params: Dict[str, Any], name: str) -> Dict[str, Any]:
    value = params.get(name)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise OperationError("INVALID_INPUT", f"Parameter '{name}' must be an object")
    return value


def _number(params: Dict[str, Any], name: str, default: float) -> float:
    value = params.get(name, default)
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise OperationError("INVALID_INPUT", f"Parameter '{name}' must be a number")
    return float(value)


def _assign(target: Object, name: str, value: Any) -> None:
    try:
        target.set(name, convert(value))
    except (PropertyError, TypeError, ValueError) as exc:
        raise OperationError("PROPERTY_ERROR", f"Failed to set property '{name}': {exc}") from exc


def _apply_exposed(target: Object, properties: Dict[str, Any]) -> Tuple[List[str], List[str]]:
    """Set only the properties ``target`` declares; the rest are reported as skipped."""
    applied, skipped = [], []
    for name, value in properties.items():
        if target.has_property(name):
            _assign(target, name, value)
            applied.append(name)
        else:
            skipped.append(name)
    if skipped:
        logger.info("skipped properties not exposed by %s: %s", target.get_class(), ", ".join(skipped))
    return applied, skipped


def _apply_all(target: Object, properties: Dict[str, Any]) -> List[str]:
    for name, value in properties.items():
        _assign(target, name, value)
    return list(properties)


class OperationDispatcher:
    def __init__(self, project_root: Path):
        self.project_root = Path(project_root)
        self._handlers: Dict[Operation, Callable[[Dict[str, Any]], Dict[str, Any]]] = {
            Operation.CREATE_SCENE: self._create_scene,
            Operation.ADD_NODE: self._add_node,
            Operation.REMOVE_NODE: self._remove_node,
            Operation.MODIFY_NODE: self._modify_node,
            Operation.READ_SCENE: self._read_scene,
            Operation.LIST_NODES: self._list_nodes,
            Operation.CREATE_SCRIPT: self._create_script,
            Operation.ATTACH_SCRIPT: self._attach_script,
            Operation.CREATE_ANIMATION: self._create_animation,
            Operation.ADD_ANIMATION_TRACK: self._add_animation_track,
            Operation.CREATE_RESOURCE: self._create_resource,
            Operation.GET_PROJECT_INFO: self._get_project_info,
            Operation.LIST_SCENES: self._list_scenes,
            Operation.LIST_SCRIPTS: self._list_scripts,
        }

    def dispatch(self, operation: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        try:
            op = Operation(operation)
        except ValueError:
            return failure("UNKNOWN_OPERATION", f"Unknown operation: {operation}")
        if params is None:
            params = {}
        if not isinstance(params, dict):
            return failure("INVALID_INPUT", "Parameters must be a JSON object")

        logger.info("running %s", op.value)
        try:
            result = self._handlers[op](params)
        except OperationError as exc:
            logger.info("%s failed [%s]: %s", op.value, exc.code, exc.message)
            return failure(exc.code, exc.message)
        except Exception as exc:
            logger.exception("%s raised unexpectedly", op.value)
            return failure("ERROR", f"{op.value} failed: {exc}")
        return {"success": True, **result}

    # -- document lifecycle -------------------------------------------------

    def _fs(self, res_path: str) -> Path:
        try:
            return to_fs_path(self.project_root, str(res_path))
        except ProjectPathError as exc:
            raise OperationError("INVALID_INPUT", str(exc)) from exc

    @contextmanager
    def _open(self, scene_path: str) -> Iterator[DocumentHandle]:
        fs_path = self._fs(scene_path)
        if not fs_path.is_file():
            raise OperationError("LOAD_FAILED", f"Failed to load scene {scene_path}: file does not exist")
        try:
            scene = tscn.load_scene(fs_path)
        except (OSError, UnicodeDecodeError, tscn.DocumentFormatError) as exc:
            raise OperationError("LOAD_FAILED", f"Failed to load scene {scene_path}: {exc}") from exc
        handle = DocumentHandle(normalize_res_path(str(scene_path)), fs_path, scene)
        try:
            yield handle
        finally:
            handle.discard()

    @staticmethod
    def _target(handle: DocumentHandle, path: str, what: str = "Node") -> Node:
        node = resolve_path(handle.root, str(path))
        if node is None:
            raise OperationError("NOT_FOUND", f"{what} not found: {path}")
        return node

    # -- scene operations ---------------------------------------------------

    def _create_scene(self, params: Dict[str, Any]) -> Dict[str, Any]:
        _require(params, "scene_path")
        scene_path = str(params["scene_path"])
        root_type = str(params.get("root_type") or "Node2D")
        root_name = str(params.get("root_name") or "Root")
        fs_path = self._fs(scene_path)
        constructor = registry.resolve_node(root_type)
        if constructor is None:
            raise OperationError("UNKNOWN_TYPE", f"Unknown node type: {root_type}")

        root = constructor()
        root.name = root_name
        handle = DocumentHandle(normalize_res_path(scene_path), fs_path, tscn.SceneFile(root))
        try:
            handle.save()
        finally:
            handle.discard()
        return {
            "message": f"Created scene {scene_path} with root '{root_name}' ({root_type})",
            "scene_path": scene_path,
            "root_type": root_type,
            "root_name": root_name,
        }

    def _add_node(self, params: Dict[str, Any]) -> Dict[str, Any]:
        _require(params, "scene_path", "node_type", "node_name")
        node_type = str(params["node_type"])
        parent_path = str(params.get("parent_path") or ".")
        properties = _mapping(params, "properties")
        constructor = registry.resolve_node(node_type)
        if constructor is None:
            raise OperationError("UNKNOWN_TYPE", f"Unknown node type: {node_type}")

        with self._open(params["scene_path"]) as doc:
            parent = self._target(doc, parent_path, "Parent node")
            node = constructor()
            node.name = str(params["node_name"])
            applied, skipped = _apply_exposed(node, properties)
            parent.add_child(node)
            node_path = doc.root.get_path_to(node)
            doc.save()
        return {
            "message": f"Added {node_type} '{node_path}' to {params['scene_path']}",
            "node_path": node_path,
            "applied_properties": applied,
            "skipped_properties": skipped,
        }

    def _remove_node(self, params: Dict[str, Any]) -> Dict[str, Any]:
        _require(params, "scene_path", "node_path")
        node_path = str(params["node_path"])
        with self._open(params["scene_path"]) as doc:
            node = self._target(doc, node_path)
            if node is doc.root:
                raise OperationError("CANNOT_REMOVE_ROOT", "Cannot remove the root node of a scene")
            node.get_parent().remove_child(node)
            node.free()
            doc.save()
        return {"message": f"Removed node '{node_path}' from {params['scene_path']}", "node_path": node_path}

    def _modify_node(self, params: Dict[str, Any]) -> Dict[str, Any]:
        _require(params, "scene_path", "node_path", "properties")
        node_path = str(params["node_path"])
        properties = _mapping(params, "properties")
        with self._open(params["scene_path"]) as doc:
            node = self._target(doc, node_path)
            modified = _apply_all(node, properties)
            doc.save()
        return {
            "message": f"Modified {len(modified)} properties on '{node_path}'",
            "node_path": node_path,
            "modified_properties": modified,
        }

    def _read_scene(self, params: Dict[str, Any]) -> Dict[str, Any]:
        _require(params, "scene_path")
        with self._open(params["scene_path"]) as doc:
            tree = serialize(doc.root)
        return {"message": f"Read scene {params['scene_path']}", "scene": tree}

    def _list_nodes(self, params: Dict[str, Any]) -> Dict[str, Any]:
        _require(params, "scene_path")
        with self._open(params["scene_path"]) as doc:
            nodes = list_paths(doc.root)
        return {"message": f"Found {len(nodes)} nodes", "nodes": nodes, "count": len(nodes)}

    # -- scripts ------------------------------------------------------------

    def _create_script(self, params: Dict[str, Any]) -> Dict[str, Any]:
        _require(params, "script_path")
        script_path = str(params["script_path"])
        fs_path = self._fs(script_path)
        if fs_path.exists() and not params.get("overwrite"):
            raise OperationError("ALREADY_EXISTS", f"Script already exists: {script_path}")
        content = params.get("content")
        if not content:
            try:
                content = render_script(
                    extends=str(params.get("extends") or "Node"),
                    class_name=params.get("class_name") or None,
                    template=str(params.get("template") or "default"),
                )
            except ValueError as exc:
                raise OperationError("INVALID_INPUT", str(exc)) from exc
        try:
            tscn.atomic_write(fs_path, str(content))
        except OSError as exc:
            raise OperationError("SAVE_FAILED", f"Failed to write script {script_path}: {exc}") from exc
        return {"message": f"Created script {script_path}", "script_path": script_path}

    def _attach_script(self, params: Dict[str, Any]) -> Dict[str, Any]:
        _require(params, "scene_path", "script_path")
        script_path = normalize_res_path(str(params["script_path"]))
        node_path = str(params.get("node_path") or ".")
        if not self._fs(script_path).is_file():
            raise OperationError("NOT_FOUND", f"Script not found: {script_path}")

        with self._open(params["scene_path"]) as doc:
            node = self._target(doc, node_path)
            script = Script()
            script.resource_path = script_path
            _assign(node, "script", script)
            doc.save()
        return {
            "message": f"Attached {script_path} to '{node_path}'",
            "node_path": node_path,
            "script_path": script_path,
        }

    # -- animation ----------------------------------------------------------

    def _create_animation(self, params: Dict[str, Any]) -> Dict[str, Any]:
        _require(params, "scene_path")
        node_path = str(params.get("node_path") or ".")
        animation_name = str(params.get("animation_name") or "default")
        duration = _number(params, "duration", 1.0)
        if duration <= 0:
            raise OperationError("INVALID_INPUT", "Parameter 'duration' must be greater than zero")
        loop = bool(params.get("loop", False))

        with self._open(params["scene_path"]) as doc:
            target = self._target(doc, node_path)
            player = target.find_child_of_class("AnimationPlayer")
            created_player = player is None
            if player is None:
                player = AnimationPlayer()
                player.name = DEFAULT_PLAYER_NAME
                target.add_child(player)
            library = player.get_animation_library(DEFAULT_LIBRARY)
            if library is None:
                library = AnimationLibrary()
                player.add_animation_library(DEFAULT_LIBRARY, library)

            animation = Animation()
            animation.set("resource_name", animation_name)
            animation.set("length", duration)
            animation.set("loop_mode", LOOP_LINEAR if loop else LOOP_NONE)
            replaced = library.has_animation(animation_name)
            library.add_animation(animation_name, animation)
            player_path = doc.root.get_path_to(player)
            doc.save()
        return {
            "message": f"{'Replaced' if replaced else 'Created'} animation '{animation_name}' on {player_path}",
            "animation_player_path": player_path,
            "animation_name": animation_name,
            "created_player": created_player,
            "replaced": replaced,
        }

    def _add_animation_track(self, params: Dict[str, Any]) -> Dict[str, Any]:
        _require(
            params,
            "scene_path",
            "animation_player_path",
            "animation_name",
            "target_node_path",
            "property",
            "keyframes",
        )
        keyframes = params["keyframes"]
        if not isinstance(keyframes, list):
            raise OperationError("INVALID_INPUT", "Parameter 'keyframes' must be an array")
        keys = []
        for index, keyframe in enumerate(keyframes):
            if not isinstance(keyframe, dict) or "time" not in keyframe or "value" not in keyframe:
                raise OperationError("INVALID_INPUT", f"Keyframe {index} must be an object with 'time' and 'value'")
            time = keyframe["time"]
            if isinstance(time, bool) or not isinstance(time, (int, float)):
                raise OperationError("INVALID_INPUT", f"Keyframe {index} has a non-numeric time")
            try:
                value = convert(keyframe["value"])
            except (TypeError, ValueError) as exc:
                raise OperationError("INVALID_INPUT", f"Keyframe {index} has an invalid value: {exc}") from exc
            keys.append((float(time), value))

        player_path = str(params["animation_player_path"])
        animation_name = str(params["animation_name"])
        track_path = f"{params['target_node_path']}:{params['property']}"
        with self._open(params["scene_path"]) as doc:
            player = self._target(doc, player_path, "AnimationPlayer")
            if not isinstance(player, AnimationPlayer):
                raise OperationError("INVALID_TARGET", f"Node '{player_path}' is not an AnimationPlayer")
            animation = player.get_animation(animation_name)
            if animation is None:
                raise OperationError("NOT_FOUND", f"Animation not found: {animation_name}")
            track = animation.add_track(VALUE_TRACK)
            animation.track_set_path(track, track_path)
            for time, value in keys:
                animation.track_insert_key(track, time, value)
            doc.save()
        return {
            "message": f"Added track '{track_path}' with {len(keys)} keyframes to '{animation_name}'",
            "track_index": track,
            "track_path": track_path,
            "key_count": len(keys),
        }

    # -- resources and project queries --------------------------------------

    def _create_resource(self, params: Dict[str, Any]) -> Dict[str, Any]:
        _require(params, "resource_path", "resource_type")
        resource_path = normalize_res_path(str(params["resource_path"]))
        resource_type = str(params["resource_type"])
        properties = _mapping(params, "properties")
        fs_path = self._fs(resource_path)
        constructor = registry.resolve_resource(resource_type)
        if constructor is None:
            raise OperationError("UNKNOWN_TYPE", f"Unknown resource type: {resource_type}")

        resource = constructor()
        applied, skipped = _apply_exposed(resource, properties)
        try:
            tscn.save_resource(resource, fs_path, res_path=resource_path)
        except (OSError, TypeError, ValueError) as exc:
            raise OperationError("SAVE_FAILED", f"Failed to save resource {resource_path}: {exc}") from exc
        return {
            "message": f"Created {resource_type} at {resource_path}",
            "resource_path": resource_path,
            "resource_type": resource_type,
            "applied_properties": applied,
            "skipped_properties": skipped,
        }

    def _require_project(self) -> None:
        if not is_godot_project(str(self.project_root)):
            raise OperationError("NOT_FOUND", f"Not a valid Godot project: {self.project_root}")

    def _get_project_info(self, params: Dict[str, Any]) -> Dict[str, Any]:
        self._require_project()
        try:
            info = project_summary(self.project_root, engine_version=ENGINE_VERSION)
        except (OSError, UnicodeDecodeError) as exc:
            raise OperationError("LOAD_FAILED", f"Failed to read project file: {exc}") from exc
        return {"message": f"Project '{info['project_name']}'", **info}

    def _list_scenes(self, params: Dict[str, Any]) -> Dict[str, Any]:
        self._require_project()
        scenes = find_scene_files(self.project_root)
        return {"message": f"Found {len(scenes)} scenes", "scenes": scenes, "count": len(scenes)}

    def _list_scripts(self, params: Dict[str, Any]) -> Dict[str, Any]:
        self._require_project()
        scripts = find_script_files(self.project_root)
        return {"message": f"Found {len(scripts)} scripts", "scripts": scripts, "count": len(scripts)}
