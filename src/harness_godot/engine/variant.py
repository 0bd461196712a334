"""Native engine values and the text literal grammar used by .tscn/.tres files."""

import math
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple


class VariantParseError(ValueError):
    pass


class StringName(str):
    """A string written with the &"..." prefix."""

    __slots__ = ()


@dataclass(frozen=True)
class Vector2:
    x: float = 0.0
    y: float = 0.0


@dataclass(frozen=True)
class Vector2i(Vector2):
    pass


@dataclass(frozen=True)
class Vector3:
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0


@dataclass(frozen=True)
class Vector3i(Vector3):
    pass


@dataclass(frozen=True)
class Color:
    r: float = 1.0
    g: float = 1.0
    b: float = 1.0
    a: float = 1.0


@dataclass(frozen=True)
class Rect2:
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0


@dataclass(frozen=True)
class Rect2i(Rect2):
    pass


@dataclass(frozen=True)
class NodePath:
    path: str = ""


@dataclass(frozen=True)
class PackedArray:
    kind: str
    items: Tuple[Any, ...] = ()


@dataclass(frozen=True)
class ResourceRef:
    """An unresolved ExtResource("id") / SubResource("id") reference."""

    kind: str
    id: str


@dataclass(frozen=True)
class RawVariant:
    """A constructor literal this model does not interpret, kept for round trips."""

    name: str
    args: Tuple[Any, ...] = ()


_CONSTRUCTORS = {
    "Vector2": (Vector2, 2, float),
    "Vector2i": (Vector2i, 2, int),
    "Vector3": (Vector3, 3, float),
    "Vector3i": (Vector3i, 3, int),
    "Color": (Color, 4, float),
    "Rect2": (Rect2, 4, float),
    "Rect2i": (Rect2i, 4, int),
}

_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "b": "\b", "f": "\f", "a": "\a", "v": "\v"}
_ESCAPE_RE = re.compile(r"\\(u[0-9a-fA-F]{4}|U[0-9a-fA-F]{6}|.)", re.DOTALL)


def _unescape(match: "re.Match[str]") -> str:
    seq = match.group(1)
    if len(seq) > 1:
        return chr(int(seq[1:], 16))
    return _ESCAPES.get(seq, seq)


def unquote(literal: str) -> str:
    """Decode a quoted string literal; newlines may appear unescaped inside it."""
    return _ESCAPE_RE.sub(_unescape, literal[1:-1])


def quote(text: str) -> str:
    # Only backslash and quote are escaped; newlines are written as-is.
    return '"' + text.replace("\\", "\\\\").replace('"', '\\"') + '"'


_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
  | (?P<string>&?"(?:[^"\\]|\\.)*")
  | (?P<number>[-+]?(?:\d+\.\d*|\.\d+|\d+)(?:[eE][-+]?\d+)?)
  | (?P<ident>[A-Za-z_][A-Za-z0-9_/]*)
  | (?P<punct>[\[\]{}(),:=])
    """,
    re.VERBOSE | re.DOTALL,
)


def _tokenize(text: str) -> List[Tuple[str, str]]:
    tokens = []
    pos = 0
    while pos < len(text):
        match = _TOKEN_RE.match(text, pos)
        if match is None:
            raise VariantParseError(f"Unexpected character {text[pos]!r} at offset {pos}")
        kind = match.lastgroup
        if kind != "ws":
            tokens.append((kind, match.group()))
        pos = match.end()
    return tokens


class _Parser:
    def __init__(self, text: str):
        self.tokens = _tokenize(text)
        self.pos = 0

    def peek(self) -> Optional[Tuple[str, str]]:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def next(self) -> Tuple[str, str]:
        token = self.peek()
        if token is None:
            raise VariantParseError("Unexpected end of value")
        self.pos += 1
        return token

    def expect(self, value: str) -> None:
        kind, text = self.next()
        if text != value:
            raise VariantParseError(f"Expected {value!r}, got {text!r}")

    def at_end(self) -> bool:
        return self.pos >= len(self.tokens)

    def value(self) -> Any:
        kind, text = self.next()
        if kind == "string":
            if text.startswith("&"):
                return StringName(unquote(text[1:]))
            return unquote(text)
        if kind == "number":
            if re.fullmatch(r"[-+]?\d+", text):
                return int(text)
            return float(text)
        if kind == "punct":
            if text == "[":
                return self._array()
            if text == "{":
                return self._dict()
            raise VariantParseError(f"Unexpected {text!r}")
        if text == "true":
            return True
        if text == "false":
            return False
        if text == "null":
            return None
        if text in ("inf", "inf_neg", "nan"):
            return {"inf": math.inf, "inf_neg": -math.inf, "nan": math.nan}[text]
        return self._constructor(text)

    def _array(self) -> List[Any]:
        items = []
        while True:
            token = self.peek()
            if token is not None and token[1] == "]":
                self.next()
                return items
            items.append(self.value())
            if self.peek() is not None and self.peek()[1] == ",":
                self.next()

    def _dict(self) -> Dict[Any, Any]:
        out: Dict[Any, Any] = {}
        while True:
            token = self.peek()
            if token is not None and token[1] == "}":
                self.next()
                return out
            key = self.value()
            self.expect(":")
            out[key] = self.value()
            if self.peek() is not None and self.peek()[1] == ",":
                self.next()

    def _constructor(self, name: str) -> Any:
        self.expect("(")
        args = []
        while True:
            token = self.peek()
            if token is not None and token[1] == ")":
                self.next()
                break
            args.append(self.value())
            if self.peek() is not None and self.peek()[1] == ",":
                self.next()
        if name in _CONSTRUCTORS:
            cls, arity, component = _CONSTRUCTORS[name]
            if len(args) != arity:
                raise VariantParseError(f"{name} takes {arity} arguments, got {len(args)}")
            return cls(*(component(a) for a in args))
        if name == "NodePath":
            return NodePath(args[0] if args else "")
        if name in ("ExtResource", "SubResource"):
            return ResourceRef(name, str(args[0]))
        if name.startswith("Packed") and name.endswith("Array"):
            return PackedArray(name, tuple(args))
        return RawVariant(name, tuple(args))


def parse_value(text: str) -> Any:
    parser = _Parser(text)
    value = parser.value()
    if not parser.at_end():
        raise VariantParseError(f"Trailing data after value: {text!r}")
    return value


def parse_header(text: str) -> Tuple[str, Dict[str, Any]]:
    """Parse the inside of a section header, e.g. 'node name="A" parent="."'."""
    parser = _Parser(text)
    kind, tag = parser.next()
    if kind != "ident":
        raise VariantParseError(f"Invalid section header: [{text}]")
    attrs: Dict[str, Any] = {}
    while not parser.at_end():
        kind, key = parser.next()
        if kind != "ident":
            raise VariantParseError(f"Invalid attribute name {key!r} in [{text}]")
        parser.expect("=")
        attrs[key] = parser.value()
    return tag, attrs


def _num(value: float) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if math.isinf(value):
        return "inf" if value > 0 else "inf_neg"
    if math.isnan(value):
        return "nan"
    if value == int(value):
        return str(int(value))
    return repr(value)


def _float(value: float) -> str:
    text = _num(value)
    if re.fullmatch(r"-?\d+", text):
        return text + ".0"
    return text


def to_text(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return _float(value)
    if isinstance(value, StringName):
        return "&" + quote(value)
    if isinstance(value, str):
        return quote(value)
    if isinstance(value, Vector2):
        return f"{type(value).__name__}({_num(value.x)}, {_num(value.y)})"
    if isinstance(value, Vector3):
        return f"{type(value).__name__}({_num(value.x)}, {_num(value.y)}, {_num(value.z)})"
    if isinstance(value, Color):
        return f"Color({_num(value.r)}, {_num(value.g)}, {_num(value.b)}, {_num(value.a)})"
    if isinstance(value, Rect2):
        return f"{type(value).__name__}({_num(value.x)}, {_num(value.y)}, {_num(value.width)}, {_num(value.height)})"
    if isinstance(value, NodePath):
        return f"NodePath({quote(value.path)})"
    if isinstance(value, ResourceRef):
        return f'{value.kind}("{value.id}")'
    if isinstance(value, PackedArray):
        return f"{value.kind}({', '.join(to_text(v) if not isinstance(v, float) else _num(v) for v in value.items)})"
    if isinstance(value, RawVariant):
        return f"{value.name}({', '.join(to_text(v) for v in value.args)})"
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(to_text(v) for v in value) + "]"
    if isinstance(value, dict):
        if not value:
            return "{}"
        body = ",\n".join(f"{to_text(k)}: {to_text(v)}" for k, v in value.items())
        return "{\n" + body + "\n}"
    raise TypeError(f"Cannot encode value of type {type(value).__name__}")


def type_name(value: Any) -> str:
    if value is None:
        return "Nil"
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, int):
        return "int"
    if isinstance(value, float):
        return "float"
    if isinstance(value, StringName):
        return "StringName"
    if isinstance(value, str):
        return "String"
    if isinstance(value, (list, tuple)):
        return "Array"
    if isinstance(value, dict):
        return "Dictionary"
    get_class = getattr(value, "get_class", None)
    if callable(get_class):
        return get_class()
    return type(value).__name__
