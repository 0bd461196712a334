"""Headless engine host: the process the orchestrator spawns for every operation.

Accepts the same argument vector as an engine binary running an operations
script::

    --headless --path <project> -s <script> -- <operation> <json params>

and writes exactly one framed result to stdout.
"""

import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, TextIO, Tuple

from harness_godot.bridge.protocol import encode_result
from harness_godot.config import configure_logging
from harness_godot.engine.dispatcher import ENGINE_VERSION, OperationDispatcher, failure

logger = logging.getLogger("harness_godot.engine.host")


def split_engine_args(argv: List[str]) -> List[str]:
    return argv[: argv.index("--")] if "--" in argv else argv


def split_args(argv: List[str]) -> Tuple[Optional[str], List[str]]:
    """Return (project path, user args after the '--' separator)."""
    project: Optional[str] = None
    engine_args, user_args = argv, []
    if "--" in argv:
        cut = argv.index("--")
        engine_args, user_args = argv[:cut], argv[cut + 1 :]
    for index, arg in enumerate(engine_args):
        if arg == "--path" and index + 1 < len(engine_args):
            project = engine_args[index + 1]
    return project, user_args


def run(argv: List[str]) -> Dict[str, Any]:
    project, user_args = split_args(argv)
    if not user_args:
        return failure("INVALID_INPUT", "No operation specified")
    operation = user_args[0]
    params: Any = {}
    if len(user_args) > 1:
        try:
            params = json.loads(user_args[1])
        except json.JSONDecodeError as exc:
            return failure("INVALID_INPUT", f"Failed to parse parameters: {exc}")
        if not isinstance(params, dict):
            return failure("INVALID_INPUT", "Failed to parse parameters: expected a JSON object")
    dispatcher = OperationDispatcher(Path(project) if project else Path.cwd())
    return dispatcher.dispatch(operation, params)


def main(argv: Optional[List[str]] = None, stdout: Optional[TextIO] = None) -> int:
    configure_logging()
    out = stdout or sys.stdout
    args = list(sys.argv[1:] if argv is None else argv)
    if "--version" in split_engine_args(args):
        out.write(ENGINE_VERSION + "\n")
        out.flush()
        return 0
    try:
        result = run(args)
    except Exception:
        logger.exception("engine host crashed")
        return 1
    out.write(encode_result(result))
    out.flush()
    return 0
