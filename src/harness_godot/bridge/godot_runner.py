import json
import logging
import os
import shutil
import subprocess
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from harness_godot.bridge.protocol import decode_output
from harness_godot.config import Settings

logger = logging.getLogger("harness_godot.runner")

_POOL = ThreadPoolExecutor(max_workers=8, thread_name_prefix="harness-godot")


class GodotRunError(Exception):
    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


def resolve_engine_command(settings: Optional[Settings] = None) -> List[str]:
    settings = settings or Settings.from_env()
    if settings.engine_bin:
        candidate = Path(settings.engine_bin)
        if candidate.exists():
            return [str(candidate)]
        in_path = shutil.which(settings.engine_bin)
        if in_path:
            return [in_path]
        raise GodotRunError("ENGINE_NOT_FOUND", f"HARNESS_GODOT_BIN does not exist: {settings.engine_bin}")
    return settings.engine_command()


def _failure(code: str, message: str) -> Dict[str, Any]:
    return {"success": False, "error": message, "code": code}


class GodotRunner:
    """Runs one engine process per operation and decodes its framed result.

    Process problems (spawn errors, timeouts, missing result blocks) are returned
    as ``{"success": False, ...}`` records of the same shape the engine emits.
    """

    def __init__(
        self,
        command: Optional[Sequence[str]] = None,
        ops_script: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        settings: Optional[Settings] = None,
    ):
        settings = settings or Settings.from_env()
        self._command = list(command) if command else None
        self._settings = settings
        self.ops_script = ops_script or settings.ops_script
        self.timeout_seconds = timeout_seconds if timeout_seconds is not None else settings.timeout_seconds

    @property
    def command(self) -> List[str]:
        if self._command is None:
            self._command = resolve_engine_command(self._settings)
        return list(self._command)

    def build_args(self, project_path: str, operation: str, params: Optional[Dict[str, Any]] = None) -> List[str]:
        return [
            *self.command,
            "--headless",
            "--path",
            str(project_path),
            "-s",
            self.ops_script,
            "--",
            operation,
            json.dumps(params or {}),
        ]

    def execute(self, project_path: str, operation: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        try:
            cmd = self.build_args(project_path, operation, params)
        except GodotRunError as exc:
            return _failure(exc.code, exc.message)
        logger.debug("spawning %s for %s", cmd[0], operation)
        try:
            proc = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                cwd=str(project_path),
                env=os.environ.copy(),
                timeout=self.timeout_seconds,
            )
        except subprocess.TimeoutExpired:
            logger.warning("%s timed out after %ss", operation, self.timeout_seconds)
            return _failure("ENGINE_TIMEOUT", f"Engine timed out after {self.timeout_seconds}s running {operation}")
        except OSError as exc:
            return _failure("ENGINE_EXEC_FAILED", str(exc))

        result = decode_output(proc.stdout, proc.stderr, proc.returncode)
        if not result.get("success", False):
            result.setdefault("code", "ENGINE_EXEC_FAILED" if proc.returncode != 0 else "ERROR")
            result.setdefault("error", "Operation failed")
        logger.debug("%s finished with exit code %s", operation, proc.returncode)
        return result

    def execute_async(
        self, project_path: str, operation: str, params: Optional[Dict[str, Any]] = None
    ) -> "Future[Dict[str, Any]]":
        return _POOL.submit(self.execute, project_path, operation, params)

    def run_raw(self, args: Sequence[str], cwd: Optional[str] = None) -> Dict[str, Any]:
        """Invoke the engine with ``args`` and no operations script."""
        try:
            cmd = [*self.command, *args]
        except GodotRunError as exc:
            return _failure(exc.code, exc.message)
        try:
            proc = subprocess.run(cmd, capture_output=True, text=True, cwd=cwd, timeout=self.timeout_seconds)
        except subprocess.TimeoutExpired:
            return _failure("ENGINE_TIMEOUT", f"Engine timed out after {self.timeout_seconds}s")
        except OSError as exc:
            return _failure("ENGINE_EXEC_FAILED", str(exc))
        result: Dict[str, Any] = {"success": proc.returncode == 0, "output": (proc.stdout or "").strip()}
        error = (proc.stderr or "").strip()
        if error:
            result["error"] = error
        return result

    def _launch(self, args: Sequence[str], message: str) -> Dict[str, Any]:
        try:
            cmd = [*self.command, *args]
        except GodotRunError as exc:
            return _failure(exc.code, exc.message)
        creationflags = 0
        if os.name == "nt":
            creationflags = subprocess.CREATE_NEW_PROCESS_GROUP | subprocess.DETACHED_PROCESS
        try:
            process = subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                creationflags=creationflags,
                start_new_session=os.name != "nt",
            )
        except OSError as exc:
            return _failure("ENGINE_EXEC_FAILED", str(exc))
        return {"success": True, "message": message, "pid": process.pid}

    def launch_editor(self, project_path: str) -> Dict[str, Any]:
        return self._launch(["--editor", "--path", str(project_path)], f"Launched editor for project at {project_path}")

    def run_project(self, project_path: str) -> Dict[str, Any]:
        return self._launch(["--path", str(project_path)], f"Running project at {project_path}")

    def version(self) -> str:
        result = self.run_raw(["--version"])
        if not result["success"]:
            raise GodotRunError(result.get("code", "ENGINE_EXEC_FAILED"), result.get("error", "unknown error"))
        first_line = (result.get("output") or "").splitlines()
        return first_line[0].strip() if first_line else "unknown"
