import json
import os
import signal
import subprocess
import sys
import time
from pathlib import Path
from typing import Any, Dict, Optional

import typer

from harness_godot import __version__
from harness_godot.bridge.client import BridgeClient, BridgeClientError
from harness_godot.bridge.operations import BridgeOperationError, execute
from harness_godot.bridge.protocol import ERROR_CODES, PROTOCOL_VERSION
from harness_godot.bridge.server import run_bridge_server
from harness_godot.config import DEFAULT_BRIDGE_URL, Settings, configure_logging

app = typer.Typer(add_completion=False, help="CLI for headless Godot project automation")
bridge_app = typer.Typer(add_completion=False, help="Bridge lifecycle")
project_app = typer.Typer(add_completion=False, help="Project commands")
scene_app = typer.Typer(add_completion=False, help="Scene and node commands")
script_app = typer.Typer(add_completion=False, help="GDScript commands")
animation_app = typer.Typer(add_completion=False, help="Animation commands")
resource_app = typer.Typer(add_completion=False, help="Resource commands")

app.add_typer(bridge_app, name="bridge")
app.add_typer(project_app, name="project")
app.add_typer(scene_app, name="scene")
app.add_typer(script_app, name="script")
app.add_typer(animation_app, name="animation")
app.add_typer(resource_app, name="resource")

DEFAULT_BRIDGE_PORT = 41759


def _print(payload: Dict[str, Any]) -> None:
    typer.echo(json.dumps(payload, indent=2))


def _ok(command: str, data: Dict[str, Any]) -> None:
    if isinstance(data, dict):
        data.setdefault("warnings", [])
    _print({"ok": True, "protocolVersion": PROTOCOL_VERSION, "command": command, "data": data})


def _fail(command: str, code: str, message: str, retryable: bool = False) -> None:
    _print(
        {
            "ok": False,
            "protocolVersion": PROTOCOL_VERSION,
            "command": command,
            "error": {"code": code, "message": message, "retryable": retryable},
        }
    )
    raise SystemExit(ERROR_CODES.get(code, ERROR_CODES["ERROR"]))


def _bridge_state_dir() -> Path:
    root = Path(os.getenv("LOCALAPPDATA", Path.home()))
    return root / "harness-godot"


def _bridge_pid_file() -> Path:
    return _bridge_state_dir() / "bridge.pid"


def _bridge_url_file() -> Path:
    return _bridge_state_dir() / "bridge.url"


def _bridge_url() -> Optional[str]:
    from_env = Settings.from_env().bridge_url
    if from_env:
        return from_env
    url_file = _bridge_url_file()
    if url_file.exists():
        return url_file.read_text(encoding="utf-8").strip() or None
    return None


def _call(command: str, method: str, params: Dict[str, Any]) -> Dict[str, Any]:
    """Run a host operation through the bridge when one is configured, otherwise in-process."""
    url = _bridge_url()
    try:
        if url:
            return BridgeClient(url).call(method, params)
        return execute(method, params)
    except BridgeClientError as exc:
        _fail(command, exc.code, exc.message, retryable=exc.code == "BRIDGE_UNAVAILABLE")
    except BridgeOperationError as exc:
        _fail(command, exc.code, exc.message, retryable=exc.code == "ENGINE_TIMEOUT")
    except Exception as exc:
        _fail(command, "ERROR", str(exc))
    raise RuntimeError("unreachable")


def _json_option(command: str, name: str, raw: Optional[str]) -> Any:
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        _fail(command, "INVALID_INPUT", f"Invalid JSON for {name}: {exc}")
    raise RuntimeError("unreachable")


@bridge_app.command("serve")
def bridge_serve(
    host: str = typer.Option("127.0.0.1", "--host"),
    port: int = typer.Option(DEFAULT_BRIDGE_PORT, "--port"),
) -> None:
    run_bridge_server(host, port)


@bridge_app.command("start")
def bridge_start(
    host: str = typer.Option("127.0.0.1", "--host"),
    port: int = typer.Option(DEFAULT_BRIDGE_PORT, "--port"),
) -> None:
    pid_file = _bridge_pid_file()
    if pid_file.exists():
        try:
            pid = int(pid_file.read_text(encoding="utf-8").strip())
            os.kill(pid, 0)
            _ok("bridge.start", {"status": "already-running", "pid": pid, "host": host, "port": port})
            return
        except (OSError, ValueError):
            pid_file.unlink(missing_ok=True)

    creationflags = 0
    if os.name == "nt":
        creationflags = subprocess.CREATE_NEW_PROCESS_GROUP | subprocess.DETACHED_PROCESS
    process = subprocess.Popen(
        [sys.executable, "-m", "harness_godot", "bridge", "serve", "--host", host, "--port", str(port)],
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
        creationflags=creationflags,
    )
    _bridge_state_dir().mkdir(parents=True, exist_ok=True)
    pid_file.write_text(str(process.pid), encoding="utf-8")
    url = f"http://{host}:{port}"
    _bridge_url_file().write_text(url, encoding="utf-8")
    for _ in range(30):
        time.sleep(0.1)
        try:
            health = BridgeClient(url).health()
            if health.get("ok"):
                _ok("bridge.start", {"status": "started", "pid": process.pid, "host": host, "port": port})
                return
        except BridgeClientError:
            continue
    _fail("bridge.start", "BRIDGE_UNAVAILABLE", "Bridge process started but health check failed")


@bridge_app.command("stop")
def bridge_stop() -> None:
    pid_file = _bridge_pid_file()
    if not pid_file.exists():
        _ok("bridge.stop", {"status": "not-running"})
        return
    pid = int(pid_file.read_text(encoding="utf-8").strip())
    try:
        os.kill(pid, signal.SIGTERM)
    except ProcessLookupError:
        pass
    pid_file.unlink(missing_ok=True)
    _bridge_url_file().unlink(missing_ok=True)
    _ok("bridge.stop", {"status": "stopped", "pid": pid})


@bridge_app.command("status")
def bridge_status() -> None:
    client = BridgeClient(_bridge_url() or DEFAULT_BRIDGE_URL)
    try:
        health = client.health()
        _ok("bridge.status", {"running": True, "health": health, "url": client.url})
    except BridgeClientError as exc:
        _fail("bridge.status", exc.code, exc.message, retryable=True)


@app.command("actions")
def actions() -> None:
    _ok("actions", _call("actions", "system.actions", {}))


@app.command("version")
def version() -> None:
    _ok("version", {"harnessVersion": __version__})


@app.command("health")
def health() -> None:
    _ok("health", _call("health", "system.health", {}))


@app.command("exec")
def exec_method(
    method: str,
    params_json: str = typer.Option("{}", "--params-json"),
) -> None:
    params = _json_option("exec", "--params-json", params_json)
    if not isinstance(params, dict):
        _fail("exec", "INVALID_INPUT", "--params-json must be a JSON object")
    _ok("exec", _call("exec", method, params))


@project_app.command("init")
def project_init(
    project: Path,
    name: str = typer.Option(..., "--name"),
    renderer: str = typer.Option("forward_plus", "--renderer"),
) -> None:
    _ok(
        "project.init",
        _call(
            "project.init",
            "init_project",
            {"project_path": str(project), "project_name": name, "renderer": renderer},
        ),
    )


@project_app.command("info")
def project_info(project: Path) -> None:
    _ok("project.info", _call("project.info", "get_project_info", {"project_path": str(project)}))


@project_app.command("scenes")
def project_scenes(project: Path) -> None:
    _ok("project.scenes", _call("project.scenes", "list_scenes", {"project_path": str(project)}))


@project_app.command("launch-editor")
def project_launch_editor(project: Path) -> None:
    _ok("project.launch-editor", _call("project.launch-editor", "launch_editor", {"project_path": str(project)}))


@project_app.command("run")
def project_run(project: Path) -> None:
    _ok("project.run", _call("project.run", "run_project", {"project_path": str(project)}))


@project_app.command("engine-version")
def project_engine_version() -> None:
    _ok("project.engine-version", _call("project.engine-version", "get_godot_version", {}))


@scene_app.command("create")
def scene_create(
    project: Path,
    scene_path: str,
    root_type: str = typer.Option("Node2D", "--root-type"),
    root_name: str = typer.Option("Root", "--root-name"),
) -> None:
    _ok(
        "scene.create",
        _call(
            "scene.create",
            "create_scene",
            {"project_path": str(project), "scene_path": scene_path, "root_type": root_type, "root_name": root_name},
        ),
    )


@scene_app.command("read")
def scene_read(project: Path, scene_path: str) -> None:
    _ok("scene.read", _call("scene.read", "read_scene", {"project_path": str(project), "scene_path": scene_path}))


@scene_app.command("nodes")
def scene_nodes(project: Path, scene_path: str) -> None:
    _ok("scene.nodes", _call("scene.nodes", "list_nodes", {"project_path": str(project), "scene_path": scene_path}))


@scene_app.command("add-node")
def scene_add_node(
    project: Path,
    scene_path: str,
    node_type: str,
    node_name: str,
    parent_path: str = typer.Option(".", "--parent"),
    properties_json: Optional[str] = typer.Option(None, "--properties-json"),
) -> None:
    _ok(
        "scene.add-node",
        _call(
            "scene.add-node",
            "add_node",
            {
                "project_path": str(project),
                "scene_path": scene_path,
                "node_type": node_type,
                "node_name": node_name,
                "parent_path": parent_path,
                "properties": _json_option("scene.add-node", "--properties-json", properties_json) or {},
            },
        ),
    )


@scene_app.command("remove-node")
def scene_remove_node(project: Path, scene_path: str, node_path: str) -> None:
    _ok(
        "scene.remove-node",
        _call(
            "scene.remove-node",
            "remove_node",
            {"project_path": str(project), "scene_path": scene_path, "node_path": node_path},
        ),
    )


@scene_app.command("modify-node")
def scene_modify_node(
    project: Path,
    scene_path: str,
    node_path: str,
    properties_json: str = typer.Option(..., "--properties-json"),
) -> None:
    _ok(
        "scene.modify-node",
        _call(
            "scene.modify-node",
            "modify_node",
            {
                "project_path": str(project),
                "scene_path": scene_path,
                "node_path": node_path,
                "properties": _json_option("scene.modify-node", "--properties-json", properties_json),
            },
        ),
    )


@script_app.command("create")
def script_create(
    project: Path,
    script_path: str,
    extends: str = typer.Option("Node", "--extends"),
    class_name: Optional[str] = typer.Option(None, "--class-name"),
    template: str = typer.Option("default", "--template"),
    content: Optional[str] = typer.Option(None, "--content"),
    overwrite: bool = typer.Option(False, "--overwrite"),
) -> None:
    _ok(
        "script.create",
        _call(
            "script.create",
            "create_script",
            {
                "project_path": str(project),
                "script_path": script_path,
                "extends": extends,
                "class_name": class_name,
                "template": template,
                "content": content,
                "overwrite": overwrite,
            },
        ),
    )


@script_app.command("attach")
def script_attach(
    project: Path,
    scene_path: str,
    script_path: str,
    node_path: str = typer.Option(".", "--node"),
) -> None:
    _ok(
        "script.attach",
        _call(
            "script.attach",
            "attach_script",
            {"project_path": str(project), "scene_path": scene_path, "script_path": script_path, "node_path": node_path},
        ),
    )


@script_app.command("read")
def script_read(project: Path, script_path: str) -> None:
    _ok(
        "script.read",
        _call("script.read", "read_script", {"project_path": str(project), "script_path": script_path}),
    )


@script_app.command("edit")
def script_edit(
    project: Path,
    script_path: str,
    content: Optional[str] = typer.Option(None, "--content"),
    content_file: Optional[Path] = typer.Option(None, "--content-file"),
) -> None:
    if (content is None) == (content_file is None):
        _fail("script.edit", "INVALID_INPUT", "Pass exactly one of --content or --content-file")
    if content_file is not None:
        if not content_file.exists():
            _fail("script.edit", "NOT_FOUND", f"File not found: {content_file}")
        content = content_file.read_text(encoding="utf-8")
    _ok(
        "script.edit",
        _call(
            "script.edit",
            "edit_script",
            {"project_path": str(project), "script_path": script_path, "content": content},
        ),
    )


@script_app.command("list")
def script_list(project: Path) -> None:
    _ok("script.list", _call("script.list", "list_scripts", {"project_path": str(project)}))


@animation_app.command("create")
def animation_create(
    project: Path,
    scene_path: str,
    node_path: str = typer.Option(".", "--node"),
    name: str = typer.Option("default", "--name"),
    duration: float = typer.Option(1.0, "--duration"),
    loop: bool = typer.Option(False, "--loop"),
) -> None:
    _ok(
        "animation.create",
        _call(
            "animation.create",
            "create_animation",
            {
                "project_path": str(project),
                "scene_path": scene_path,
                "node_path": node_path,
                "animation_name": name,
                "duration": duration,
                "loop": loop,
            },
        ),
    )


@animation_app.command("add-track")
def animation_add_track(
    project: Path,
    scene_path: str,
    player_path: str,
    animation_name: str,
    target_node_path: str,
    property_name: str,
    keyframes_json: str = typer.Option(..., "--keyframes-json"),
) -> None:
    _ok(
        "animation.add-track",
        _call(
            "animation.add-track",
            "add_animation_track",
            {
                "project_path": str(project),
                "scene_path": scene_path,
                "animation_player_path": player_path,
                "animation_name": animation_name,
                "target_node_path": target_node_path,
                "property": property_name,
                "keyframes": _json_option("animation.add-track", "--keyframes-json", keyframes_json),
            },
        ),
    )


@resource_app.command("create")
def resource_create(
    project: Path,
    resource_path: str,
    resource_type: str,
    properties_json: Optional[str] = typer.Option(None, "--properties-json"),
) -> None:
    _ok(
        "resource.create",
        _call(
            "resource.create",
            "create_resource",
            {
                "project_path": str(project),
                "resource_path": resource_path,
                "resource_type": resource_type,
                "properties": _json_option("resource.create", "--properties-json", properties_json) or {},
            },
        ),
    )


def main() -> None:
    configure_logging()
    app()


if __name__ == "__main__":
    main()
