from pathlib import Path
from typing import Any, Callable, Dict, Tuple

from harness_godot import __version__
from harness_godot.bridge.godot_runner import GodotRunError, GodotRunner
from harness_godot.engine.tscn import atomic_write
from harness_godot.project import (
    PROJECT_DIRS,
    PROJECT_FILE,
    PROJECT_TEMPLATE,
    RENDERER_FEATURES,
    ProjectPathError,
    is_godot_project,
    to_fs_path,
)


class BridgeOperationError(Exception):
    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


# operation -> (required params, defaults); project_path is always required.
ENGINE_TOOLS: Dict[str, Tuple[Tuple[str, ...], Dict[str, Any]]] = {
    "create_scene": (("scene_path",), {"root_type": "Node2D", "root_name": "Root"}),
    "add_node": (("scene_path", "node_type", "node_name"), {"parent_path": ".", "properties": {}}),
    "remove_node": (("scene_path", "node_path"), {}),
    "modify_node": (("scene_path", "node_path", "properties"), {}),
    "read_scene": (("scene_path",), {}),
    "list_nodes": (("scene_path",), {}),
    "create_script": (
        ("script_path",),
        {"extends": "Node", "class_name": "", "content": "", "template": "default", "overwrite": False},
    ),
    "attach_script": (("scene_path", "script_path"), {"node_path": "."}),
    "create_animation": (
        ("scene_path",),
        {"node_path": ".", "animation_name": "default", "duration": 1.0, "loop": False},
    ),
    "add_animation_track": (
        ("scene_path", "animation_player_path", "animation_name", "target_node_path", "property", "keyframes"),
        {},
    ),
    "create_resource": (("resource_path", "resource_type"), {"properties": {}}),
    "list_scenes": ((), {}),
    "list_scripts": ((), {}),
}

ACTION_METHODS = [
    "system.health",
    "system.version",
    "system.actions",
    "init_project",
    "get_project_info",
    "get_godot_version",
    "launch_editor",
    "run_project",
    "read_script",
    "edit_script",
    *ENGINE_TOOLS,
]


def _runner() -> GodotRunner:
    return GodotRunner()


def _required(params: Dict[str, Any], *names: str) -> None:
    for name in names:
        if params.get(name) is None or params.get(name) == "":
            raise BridgeOperationError("INVALID_INPUT", f"Missing required parameter: {name}")


def _project(params: Dict[str, Any]) -> str:
    _required(params, "project_path")
    project = str(params["project_path"])
    if not is_godot_project(project):
        raise BridgeOperationError("NOT_FOUND", f"Not a valid Godot project: {project}")
    return project


def _project_file(project: str, res_path: str) -> Path:
    try:
        return to_fs_path(Path(project), res_path)
    except ProjectPathError as exc:
        raise BridgeOperationError("INVALID_INPUT", str(exc)) from exc


def _run(project: str, operation: str, params: Dict[str, Any]) -> Dict[str, Any]:
    out = _runner().execute(project, operation, params)
    if not out.get("success", False):
        raise BridgeOperationError(out.get("code", "ERROR"), out.get("error") or "Operation failed")
    out.pop("success", None)
    return out


def _engine_version() -> str:
    try:
        return _runner().version()
    except GodotRunError as exc:
        raise BridgeOperationError(exc.code, exc.message) from exc


def _engine_tool(operation: str) -> Callable[[Dict[str, Any]], Dict[str, Any]]:
    required, defaults = ENGINE_TOOLS[operation]

    def handler(params: Dict[str, Any]) -> Dict[str, Any]:
        project = _project(params)
        _required(params, *required)
        payload = dict(defaults)
        payload.update({key: value for key, value in params.items() if key != "project_path" and value is not None})
        return _run(project, operation, payload)

    handler.__name__ = f"_{operation}"
    return handler


def _system_health(_: Dict[str, Any]) -> Dict[str, Any]:
    return {"ok": True, "engineVersion": _engine_version()}


def _system_version(_: Dict[str, Any]) -> Dict[str, Any]:
    data: Dict[str, Any] = {"harnessVersion": __version__}
    try:
        data["engineVersion"] = _runner().version()
    except GodotRunError:
        data["engineVersion"] = None
    return data


def _system_actions(_: Dict[str, Any]) -> Dict[str, Any]:
    return {"actions": ACTION_METHODS}


def _init_project(params: Dict[str, Any]) -> Dict[str, Any]:
    _required(params, "project_path", "project_name")
    project_path = Path(str(params["project_path"]))
    name = str(params["project_name"])
    renderer = str(params.get("renderer") or "forward_plus")
    if renderer not in RENDERER_FEATURES:
        raise BridgeOperationError(
            "INVALID_INPUT", f"Unknown renderer: {renderer}. Expected one of: {', '.join(RENDERER_FEATURES)}"
        )
    project_file = project_path / PROJECT_FILE
    if project_file.exists():
        raise BridgeOperationError("ALREADY_EXISTS", f"Project already exists at {project_path}")

    try:
        project_path.mkdir(parents=True, exist_ok=True)
        atomic_write(
            project_file,
            PROJECT_TEMPLATE.format(name=name.replace('"', '\\"'), feature=RENDERER_FEATURES[renderer], renderer=renderer),
        )
        for directory in PROJECT_DIRS:
            (project_path / directory).mkdir(exist_ok=True)
            (project_path / directory / ".gitkeep").touch()
    except OSError as exc:
        raise BridgeOperationError("SAVE_FAILED", f"Failed to create project: {exc}") from exc
    return {
        "message": f'Created new Godot project "{name}" at {project_path}',
        "project_path": str(project_path),
        "created_directories": PROJECT_DIRS,
    }


def _get_project_info(params: Dict[str, Any]) -> Dict[str, Any]:
    project = _project(params)
    info = _run(project, "get_project_info", {})
    try:
        info["godot_version"] = _runner().version()
    except GodotRunError:
        info.setdefault("godot_version", None)
    return info


def _get_godot_version(_: Dict[str, Any]) -> Dict[str, Any]:
    return {"version": _engine_version()}


def _launch_editor(params: Dict[str, Any]) -> Dict[str, Any]:
    project = _project(params)
    out = _runner().launch_editor(project)
    if not out["success"]:
        raise BridgeOperationError(out["code"], out["error"])
    return {"message": out["message"], "pid": out["pid"]}


def _run_project(params: Dict[str, Any]) -> Dict[str, Any]:
    project = _project(params)
    out = _runner().run_project(project)
    if not out["success"]:
        raise BridgeOperationError(out["code"], out["error"])
    return {"message": out["message"], "pid": out["pid"]}


def _read_script(params: Dict[str, Any]) -> Dict[str, Any]:
    _required(params, "project_path", "script_path")
    script_path = str(params["script_path"])
    fs_path = _project_file(str(params["project_path"]), script_path)
    if not fs_path.is_file():
        raise BridgeOperationError("NOT_FOUND", f"Script not found: {script_path}")
    try:
        content = fs_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise BridgeOperationError("LOAD_FAILED", f"Failed to read script: {exc}") from exc
    return {"script_path": script_path, "content": content, "line_count": len(content.split("\n"))}


def _edit_script(params: Dict[str, Any]) -> Dict[str, Any]:
    _required(params, "project_path", "script_path")
    script_path = str(params["script_path"])
    content = params["content"]
    if not isinstance(content, str):
        raise BridgeOperationError("INVALID_INPUT", "Parameter 'content' must be a string")
    fs_path = _project_file(str(params["project_path"]), script_path)
    try:
        atomic_write(fs_path, content)
    except OSError as exc:
        raise BridgeOperationError("SAVE_FAILED", f"Failed to edit script: {exc}") from exc
    return {"message": f"Updated script at {script_path}", "script_path": script_path}


def execute(method: str, params: Dict[str, Any]) -> Dict[str, Any]:
    operations: Dict[str, Callable[[Dict[str, Any]], Dict[str, Any]]] = {
        "system.health": _system_health,
        "system.version": _system_version,
        "system.actions": _system_actions,
        "init_project": _init_project,
        "get_project_info": _get_project_info,
        "get_godot_version": _get_godot_version,
        "launch_editor": _launch_editor,
        "run_project": _run_project,
        "read_script": _read_script,
        "edit_script": _edit_script,
    }
    for operation in ENGINE_TOOLS:
        operations[operation] = _engine_tool(operation)
    operation = operations.get(method)
    if operation is None:
        raise BridgeOperationError("UNKNOWN_OPERATION", f"Unknown method: {method}")
    if params is None:
        params = {}
    if not isinstance(params, dict):
        raise BridgeOperationError("INVALID_INPUT", "Parameters must be a JSON object")
    try:
        return operation(params)
    except KeyError as exc:
        raise BridgeOperationError("INVALID_INPUT", f"Missing required parameter: {exc}") from exc
