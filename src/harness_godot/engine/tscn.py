"""Reader and writer for the text scene (.tscn) and text resource (.tres) formats."""

import contextlib
import hashlib
import itertools
import logging
import os
import re
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Set, Tuple

from harness_godot.engine import classdb
from harness_godot.engine.classdb import Node, Resource
from harness_godot.engine.variant import NodePath, PackedArray, ResourceRef, VariantParseError, parse_header, parse_value, to_text

logger = logging.getLogger("harness_godot.engine.tscn")

FORMAT_VERSION = 3


class DocumentFormatError(ValueError):
    pass


@dataclass
class Section:
    tag: str
    attrs: Dict[str, Any] = field(default_factory=dict)
    props: List[Tuple[str, Any]] = field(default_factory=list)


@dataclass
class SceneFile:
    root: Node
    uid: Optional[str] = None
    trailing: List[Section] = field(default_factory=list)


_PROP_RE = re.compile(r'^("(?:[^"\\]|\\.)*"|[^\s=]+)\s*=\s*(.*)$')


def _scan(text: str) -> Tuple[int, bool]:
    """Return the bracket depth at the end of ``text`` and whether a string is still open."""
    depth = 0
    in_string = False
    escaped = False
    for ch in text:
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch in "([{":
            depth += 1
        elif ch in ")]}":
            depth -= 1
    return depth, in_string


def _incomplete(text: str) -> bool:
    depth, in_string = _scan(text)
    return in_string or depth > 0


def parse_sections(text: str) -> List[Section]:
    sections: List[Section] = []
    pending_key: Optional[str] = None
    pending: List[str] = []
    for lineno, raw in enumerate(text.replace("\r\n", "\n").split("\n"), start=1):
        if pending_key is not None:
            pending.append(raw)
            joined = "\n".join(pending)
            if not _incomplete(joined):
                sections[-1].props.append((pending_key, _parse(joined, lineno)))
                pending_key, pending = None, []
            continue
        line = raw.strip()
        if not line or line.startswith(";"):
            continue
        if line.startswith("[") and line.endswith("]"):
            try:
                tag, attrs = parse_header(line[1:-1])
            except VariantParseError as exc:
                raise DocumentFormatError(f"line {lineno}: {exc}") from exc
            sections.append(Section(tag, attrs))
            continue
        match = _PROP_RE.match(raw.lstrip())
        if match is None or not sections:
            raise DocumentFormatError(f"line {lineno}: unexpected content: {line!r}")
        key = match.group(1)
        if key.startswith('"'):
            key = key[1:-1]
        value_text = match.group(2)
        if _incomplete(value_text):
            pending_key, pending = key, [value_text]
            continue
        sections[-1].props.append((key, _parse(value_text, lineno)))
    if pending_key is not None:
        raise DocumentFormatError(f"unterminated value for property '{pending_key}'")
    return sections


def _parse(text: str, lineno: int) -> Any:
    try:
        return parse_value(text)
    except VariantParseError as exc:
        raise DocumentFormatError(f"line {lineno}: {exc}") from exc


class _Resolver:
    def __init__(self) -> None:
        self.ext: Dict[str, Resource] = {}
        self.sub: Dict[str, Resource] = {}

    def add_external(self, attrs: Dict[str, Any]) -> None:
        type_name = str(attrs.get("type", "Resource"))
        res = _new_resource(type_name)
        res.resource_path = str(attrs.get("path", ""))
        res.uid = attrs.get("uid")
        res.scene_id = _section_id(attrs)
        self.ext[str(attrs.get("id"))] = res

    def add_sub(self, section: Section) -> None:
        res = _new_resource(str(section.attrs.get("type", "Resource")))
        res.scene_id = _section_id(section.attrs)
        for key, value in section.props:
            res.set_stored(key, self.resolve(value))
        self.sub[str(section.attrs.get("id"))] = res

    def resolve(self, value: Any) -> Any:
        if isinstance(value, ResourceRef):
            table = self.ext if value.kind == "ExtResource" else self.sub
            if value.id not in table:
                raise DocumentFormatError(f"{value.kind} id not defined: {value.id}")
            return table[value.id]
        if isinstance(value, list):
            return [self.resolve(v) for v in value]
        if isinstance(value, dict):
            return {k: self.resolve(v) for k, v in value.items()}
        return value


def _section_id(attrs: Dict[str, Any]) -> Optional[str]:
    return str(attrs["id"]) if attrs.get("id") is not None else None


def _new_resource(type_name: str) -> Resource:
    if classdb.can_instantiate(type_name) and classdb.is_parent_class(type_name, "Resource"):
        return classdb.instantiate(type_name)
    res = Resource()
    res._class_override = type_name
    return res


def _new_node(type_name: str) -> Node:
    if classdb.can_instantiate(type_name) and classdb.is_parent_class(type_name, "Node"):
        return classdb.instantiate(type_name)
    logger.warning("unknown node type %s; loading as generic Node", type_name)
    node = Node()
    node._class_override = type_name
    return node


_NODE_ATTRS = ("name", "type", "parent", "instance", "groups")


def load_scene_text(text: str) -> SceneFile:
    sections = parse_sections(text)
    if not sections or sections[0].tag != "gd_scene":
        raise DocumentFormatError("not a text scene: missing [gd_scene] header")
    resolver = _Resolver()
    scene = SceneFile(root=None, uid=sections[0].attrs.get("uid"))
    for section in sections[1:]:
        if section.tag == "ext_resource":
            resolver.add_external(section.attrs)
        elif section.tag == "sub_resource":
            resolver.add_sub(section)
        elif section.tag == "node":
            _load_node(scene, section, resolver)
        else:
            scene.trailing.append(section)
    if scene.root is None:
        raise DocumentFormatError("scene has no root node")
    return scene


def _load_node(scene: SceneFile, section: Section, resolver: _Resolver) -> None:
    attrs = section.attrs
    if "type" in attrs:
        node = _new_node(str(attrs["type"]))
    else:
        # Instanced roots and overrides of nodes inside an instance carry no type.
        node = Node()
        node.type_declared = False
    if "instance" in attrs:
        node.instance = resolver.resolve(attrs["instance"])
    node.name = str(attrs.get("name", ""))
    groups = attrs.get("groups") or []
    if isinstance(groups, PackedArray):
        groups = groups.items
    node.groups = [str(g) for g in groups]
    node.header_extras = {k: v for k, v in attrs.items() if k not in _NODE_ATTRS}
    for key, value in section.props:
        node.set_stored(key, resolver.resolve(value))

    parent_path = attrs.get("parent")
    if parent_path is None:
        if scene.root is not None:
            raise DocumentFormatError(f"second root node: {node.name}")
        scene.root = node
        return
    if scene.root is None:
        raise DocumentFormatError(f"node '{node.name}' appears before the root node")
    parent = scene.root if parent_path == "." else scene.root.get_node_or_null(str(parent_path))
    if parent is None:
        raise DocumentFormatError(f"parent node not found for '{node.name}': {parent_path}")
    parent.add_child(node)


class _Packer:
    """Assigns ids to every resource reachable from the packed properties."""

    def __init__(self, own_path: str = ""):
        self.own_path = own_path
        self.ext: Dict[int, Tuple[Resource, str]] = {}
        self.sub: Dict[int, Tuple[Resource, str, List[Tuple[str, Any]]]] = {}
        self.sub_order: List[int] = []
        self._taken: Set[str] = set()

    def encode(self, value: Any) -> Any:
        if isinstance(value, Resource):
            return self.ref(value)
        if isinstance(value, list):
            return [self.encode(v) for v in value]
        if isinstance(value, dict):
            return {k: self.encode(v) for k, v in value.items()}
        return value

    def ref(self, res: Resource) -> ResourceRef:
        key = id(res)
        if res.is_external() and res.resource_path != self.own_path:
            if key not in self.ext:
                digest = hashlib.sha1(res.resource_path.encode("utf-8")).hexdigest()[:5]
                candidates = (f"{n}_{digest}" for n in itertools.count(len(self.ext) + 1))
                self.ext[key] = (res, self._claim(res, candidates))
            return ResourceRef("ExtResource", self.ext[key][1])
        if key not in self.sub:
            props = [(k, self.encode(v)) for k, v in res.stored_properties()]
            class_name = res.get_class()
            candidates = (f"{class_name}_{n}" for n in itertools.count(1))
            self.sub[key] = (res, self._claim(res, candidates), props)
            self.sub_order.append(key)
        return ResourceRef("SubResource", self.sub[key][1])

    def _claim(self, res: Resource, candidates: Iterator[str]) -> str:
        """Keep the id a loaded resource already had; otherwise take the first free candidate."""
        rid = res.scene_id
        if not rid or rid in self._taken:
            rid = next(c for c in candidates if c not in self._taken)
        self._taken.add(rid)
        return rid

    def load_steps(self) -> int:
        return len(self.ext) + len(self.sub) + 1

    def resource_sections(self) -> List[str]:
        out = []
        for res, rid in self.ext.values():
            attrs = [("type", res.get_class())]
            if res.uid:
                attrs.append(("uid", res.uid))
            attrs.extend([("path", res.resource_path), ("id", rid)])
            out.append(_header("ext_resource", attrs))
        for key in self.sub_order:
            res, rid, props = self.sub[key]
            out.append(_header("sub_resource", [("type", res.get_class()), ("id", rid)]) + _body(props))
        return out


def _header(tag: str, attrs: List[Tuple[str, Any]]) -> str:
    parts = [tag] + [f"{k}={to_text(v)}" for k, v in attrs]
    return "[" + " ".join(parts) + "]\n"


def _body(props: List[Tuple[str, Any]]) -> str:
    return "".join(f"{k} = {to_text(v)}\n" for k, v in props)


def pack_scene(scene: SceneFile) -> str:
    root = scene.root
    packer = _Packer()
    node_blocks = []
    for node in root.walk():
        attrs: List[Tuple[str, Any]] = [("name", node.name)]
        if node.instance is None and node.type_declared:
            attrs.append(("type", node.get_class()))
        if node is not root:
            attrs.append(("parent", root.get_path_to(node.get_parent())))
        if node.instance is not None:
            attrs.append(("instance", packer.encode(node.instance)))
        attrs.extend(node.header_extras.items())
        if node.groups:
            attrs.append(("groups", list(node.groups)))
        props = [(k, packer.encode(v)) for k, v in node.stored_properties()]
        node_blocks.append(_header("node", attrs) + _body(props))

    trailing = [
        _header(s.tag, list(s.attrs.items())) + _body(s.props) for s in scene.trailing if _still_valid(root, s)
    ]

    head: List[Tuple[str, Any]] = []
    if packer.load_steps() > 1:
        head.append(("load_steps", packer.load_steps()))
    head.append(("format", FORMAT_VERSION))
    if scene.uid:
        head.append(("uid", scene.uid))
    blocks = [_header("gd_scene", head)] + packer.resource_sections() + node_blocks + trailing
    return "\n".join(blocks)


def _still_valid(root: Node, section: Section) -> bool:
    if section.tag != "connection":
        return True
    for key in ("from", "to"):
        path = section.attrs.get(key)
        if isinstance(path, NodePath):
            path = path.path
        if isinstance(path, str) and root.get_node_or_null(path) is None:
            logger.info("dropping connection %s: node %s no longer exists", section.attrs.get("signal"), path)
            return False
    return True


def pack_resource(resource: Resource, own_path: str = "") -> str:
    packer = _Packer(own_path)
    props = [(k, packer.encode(v)) for k, v in resource.stored_properties()]
    head: List[Tuple[str, Any]] = [("type", resource.get_class())]
    if packer.load_steps() > 1:
        head.append(("load_steps", packer.load_steps()))
    head.append(("format", FORMAT_VERSION))
    if resource.uid:
        head.append(("uid", resource.uid))
    blocks = [_header("gd_resource", head)] + packer.resource_sections() + [_header("resource", []) + _body(props)]
    return "\n".join(blocks)


def load_resource_text(text: str) -> Resource:
    sections = parse_sections(text)
    if not sections or sections[0].tag != "gd_resource":
        raise DocumentFormatError("not a text resource: missing [gd_resource] header")
    resolver = _Resolver()
    main: Optional[Resource] = None
    for section in sections[1:]:
        if section.tag == "ext_resource":
            resolver.add_external(section.attrs)
        elif section.tag == "sub_resource":
            resolver.add_sub(section)
        elif section.tag == "resource":
            main = _new_resource(str(sections[0].attrs.get("type", "Resource")))
            main.uid = sections[0].attrs.get("uid")
            for key, value in section.props:
                main.set_stored(key, resolver.resolve(value))
    if main is None:
        raise DocumentFormatError("resource file has no [resource] section")
    return main


def atomic_write(path: Path, text: str) -> None:
    """Write through a sibling temp file so a failed write leaves the old file intact."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as handle:
            handle.write(text)
        os.replace(tmp, path)
    except BaseException:
        with contextlib.suppress(FileNotFoundError):
            os.unlink(tmp)
        raise


def load_scene(path: Path) -> SceneFile:
    return load_scene_text(path.read_text(encoding="utf-8"))


def save_scene(scene: SceneFile, path: Path) -> None:
    atomic_write(path, pack_scene(scene))


def load_resource(path: Path, res_path: str = "") -> Resource:
    resource = load_resource_text(path.read_text(encoding="utf-8"))
    resource.resource_path = res_path
    return resource


def save_resource(resource: Resource, path: Path, res_path: str = "") -> None:
    atomic_write(path, pack_resource(resource, own_path=res_path))
