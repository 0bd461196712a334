import json
import re
from typing import Any, Dict, Optional

PROTOCOL_VERSION = "1.0"

RESULT_BEGIN = "[HARNESS_GODOT_RESULT]"
RESULT_END = "[/HARNESS_GODOT_RESULT]"

ERROR_CODES = {
    "ERROR": 1,
    "INVALID_INPUT": 2,
    "UNKNOWN_OPERATION": 2,
    "NOT_FOUND": 3,
    "UNKNOWN_TYPE": 3,
    "INVALID_TARGET": 4,
    "CANNOT_REMOVE_ROOT": 4,
    "PROPERTY_ERROR": 4,
    "ALREADY_EXISTS": 4,
    "LOAD_FAILED": 5,
    "SAVE_FAILED": 5,
    "ENGINE_NOT_FOUND": 6,
    "ENGINE_EXEC_FAILED": 7,
    "ENGINE_TIMEOUT": 7,
    "BRIDGE_UNAVAILABLE": 8,
}

_FRAME_RE = re.compile(re.escape(RESULT_BEGIN) + r"(.*?)" + re.escape(RESULT_END), re.DOTALL)


def encode_result(result: Dict[str, Any]) -> str:
    """Frame a result record for stdout; the JSON body stays on a single line."""
    body = json.dumps(result, separators=(",", ":"), ensure_ascii=True, allow_nan=False)
    return f"{RESULT_BEGIN}\n{body}\n{RESULT_END}\n"


def extract_result(stdout: str) -> Optional[Dict[str, Any]]:
    """Return the last framed JSON object in ``stdout``, or None."""
    frames = _FRAME_RE.findall(stdout or "")
    if not frames:
        return None
    try:
        payload = json.loads(frames[-1].strip())
    except json.JSONDecodeError:
        return None
    if not isinstance(payload, dict):
        return None
    payload.setdefault("success", True)
    return payload


def decode_output(stdout: str, stderr: str, returncode: Optional[int]) -> Dict[str, Any]:
    framed = extract_result(stdout)
    if framed is not None:
        return framed
    result: Dict[str, Any] = {"success": returncode == 0, "message": (stdout or "").strip()}
    error = (stderr or "").strip()
    if error:
        result["error"] = error
    elif returncode != 0:
        result["error"] = f"Engine exited with code {returncode} and no result"
    return result
