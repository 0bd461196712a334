"""Project directory helpers shared by the host tools and the engine host."""

import re
from pathlib import Path
from typing import Dict, Iterable, List, Optional

PROJECT_FILE = "project.godot"
RES_PREFIX = "res://"
SCENE_EXTENSIONS = (".tscn", ".scn")
SCRIPT_EXTENSIONS = (".gd",)
SKIPPED_DIRS = {"addons"}


class ProjectPathError(ValueError):
    pass


def is_godot_project(project_path: str) -> bool:
    return (Path(project_path) / PROJECT_FILE).is_file()


def to_fs_path(project_root: Path, res_path: str) -> Path:
    """Map 'res://a/b.tscn' (or a project-relative path) onto the filesystem."""
    relative = res_path[len(RES_PREFIX):] if res_path.startswith(RES_PREFIX) else res_path
    root = Path(project_root).resolve()
    target = (root / relative.lstrip("/")).resolve()
    if target != root and root not in target.parents:
        raise ProjectPathError(f"Path escapes the project directory: {res_path}")
    return target


def normalize_res_path(path: str) -> str:
    if path.startswith(RES_PREFIX):
        return path
    return RES_PREFIX + path.lstrip("/")


def find_files(project_root: Path, extensions: Iterable[str]) -> List[str]:
    """List res:// paths of files with the given extensions, skipping hidden and addon directories."""
    root = Path(project_root)
    wanted = tuple(extensions)
    found: List[str] = []

    def scan(directory: Path) -> None:
        for entry in sorted(directory.iterdir(), key=lambda p: p.name):
            if entry.name.startswith(".") or entry.name in SKIPPED_DIRS:
                continue
            if entry.is_dir():
                scan(entry)
            elif entry.name.endswith(wanted):
                found.append(RES_PREFIX + entry.relative_to(root).as_posix())

    if root.is_dir():
        scan(root)
    return found


def find_scene_files(project_root: Path) -> List[str]:
    return find_files(project_root, SCENE_EXTENSIONS)


def find_script_files(project_root: Path) -> List[str]:
    return find_files(project_root, SCRIPT_EXTENSIONS)


_SECTION_RE = re.compile(r"^\[(?P<name>[^\]]+)\]\s*$")
_ENTRY_RE = re.compile(r"^(?P<key>[^=;\s][^=]*?)\s*=\s*(?P<value>.*)$")


def read_project_config(project_root: Path) -> Dict[str, Dict[str, str]]:
    """Read project.godot into {section: {key: raw value}}; string values are unquoted."""
    config: Dict[str, Dict[str, str]] = {"": {}}
    section = ""
    text = (Path(project_root) / PROJECT_FILE).read_text(encoding="utf-8")
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith(";"):
            continue
        match = _SECTION_RE.match(stripped)
        if match:
            section = match.group("name")
            config.setdefault(section, {})
            continue
        match = _ENTRY_RE.match(stripped)
        if match:
            value = match.group("value").strip()
            if len(value) >= 2 and value.startswith('"') and value.endswith('"'):
                value = value[1:-1]
            config[section][match.group("key")] = value
    return config


def project_summary(project_root: Path, engine_version: Optional[str] = None) -> Dict[str, object]:
    config = read_project_config(project_root)
    application = config.get("application", {})
    scenes = find_scene_files(project_root)
    scripts = find_script_files(project_root)
    summary: Dict[str, object] = {
        "project_name": application.get("config/name", "Unknown"),
        "project_path": str(project_root),
        "main_scene": application.get("run/main_scene", ""),
        "scene_count": len(scenes),
        "script_count": len(scripts),
    }
    if engine_version is not None:
        summary["godot_version"] = engine_version
    return summary


PROJECT_TEMPLATE = """; Engine configuration file.
; It's best edited using the editor UI and not directly,
; since the parameters that go here are not all obvious.
;
; Format:
;   [section] ; section goes between []
;   param=value ; assign values to parameters

config_version=5

[application]

config/name="{name}"
config/features=PackedStringArray("4.3", "{feature}")

[rendering]

renderer/rendering_method="{renderer}"
"""

RENDERER_FEATURES = {
    "forward_plus": "Forward Plus",
    "mobile": "Mobile",
    "gl_compatibility": "GL Compatibility",
}

PROJECT_DIRS = ["scenes", "scripts", "resources", "assets"]
