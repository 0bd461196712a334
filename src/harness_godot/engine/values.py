from typing import Any, Callable, Dict

from harness_godot.engine.variant import Color, Rect2, Vector2, Vector3

TYPE_KEY = "_type"


def _f(record: Dict[str, Any], key: str, default: float) -> float:
    value = record.get(key, default)
    if value is None:
        return default
    return float(value)


_BUILDERS: Dict[str, Callable[[Dict[str, Any]], Any]] = {
    "Vector2": lambda r: Vector2(_f(r, "x", 0.0), _f(r, "y", 0.0)),
    "Vector3": lambda r: Vector3(_f(r, "x", 0.0), _f(r, "y", 0.0), _f(r, "z", 0.0)),
    "Color": lambda r: Color(_f(r, "r", 1.0), _f(r, "g", 1.0), _f(r, "b", 1.0), _f(r, "a", 1.0)),
    "Rect2": lambda r: Rect2(_f(r, "x", 0.0), _f(r, "y", 0.0), _f(r, "width", 0.0), _f(r, "height", 0.0)),
}


def convert(value: Any) -> Any:
    """Turn a tagged record such as {"_type": "Vector2", "x": 5} into its native value.

    Records with an unrecognised tag, plain values and values that are already
    native are returned unchanged; a bad value is left for the property setter
    to reject.
    """
    if isinstance(value, dict):
        tag = value.get(TYPE_KEY)
        if isinstance(tag, str) and tag in _BUILDERS:
            return _BUILDERS[tag](value)
    return value
