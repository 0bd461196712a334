"""Environment-driven settings and logging setup."""

import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

DEFAULT_TIMEOUT_SECONDS = 120.0
DEFAULT_BRIDGE_URL = "http://127.0.0.1:41759"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

BUNDLED_OPS_SCRIPT = str(Path(__file__).resolve().parent / "engine" / "__main__.py")


def bundled_engine_command() -> List[str]:
    return [sys.executable, "-m", "harness_godot.engine"]


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logging.getLogger("harness_godot.config").warning("ignoring non-numeric %s=%r", name, raw)
        return default


@dataclass
class Settings:
    engine_bin: Optional[str] = None
    ops_script: str = BUNDLED_OPS_SCRIPT
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    bridge_url: Optional[str] = None
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            engine_bin=os.getenv("HARNESS_GODOT_BIN") or None,
            ops_script=os.getenv("HARNESS_GODOT_OPS_SCRIPT") or BUNDLED_OPS_SCRIPT,
            timeout_seconds=_float_env("HARNESS_GODOT_TIMEOUT", DEFAULT_TIMEOUT_SECONDS),
            bridge_url=os.getenv("HARNESS_GODOT_BRIDGE_URL") or None,
            log_level=os.getenv("HARNESS_GODOT_LOG_LEVEL", "WARNING").upper(),
        )

    def engine_command(self) -> List[str]:
        if self.engine_bin:
            return [self.engine_bin]
        return bundled_engine_command()


_handler: Optional[logging.Handler] = None


def configure_logging(level: Optional[str] = None) -> None:
    """Send package logs to stderr; stdout is reserved for machine-readable output."""
    global _handler
    root = logging.getLogger("harness_godot")
    if _handler is None:
        _handler = logging.StreamHandler(sys.stderr)
        _handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(_handler)
    name = (level or Settings.from_env().log_level).upper()
    root.setLevel(getattr(logging, name, logging.WARNING))
