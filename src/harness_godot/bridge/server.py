import json
import logging
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Dict

from harness_godot.bridge.operations import ACTION_METHODS, BridgeOperationError, execute
from harness_godot.bridge.protocol import PROTOCOL_VERSION

logger = logging.getLogger("harness_godot.bridge")


class BridgeRequestHandler(BaseHTTPRequestHandler):
    server_version = "HarnessGodotBridge/1.0"

    def do_POST(self) -> None:  # noqa: N802
        if self.path != "/rpc":
            self._send(404, {"ok": False, "error": {"code": "NOT_FOUND", "message": "Route not found"}})
            return
        request_id = None
        try:
            content_length = int(self.headers.get("Content-Length", "0"))
            raw_body = self.rfile.read(content_length).decode("utf-8")
            payload = json.loads(raw_body)
            if not isinstance(payload, dict):
                raise BridgeOperationError("INVALID_INPUT", "Request body must be a JSON object")
            method = payload.get("method")
            params = payload.get("params", {})
            request_id = payload.get("id")
            logger.info("rpc %s", method)
            result = execute(method, params)
            self._send(
                200,
                {
                    "ok": True,
                    "protocolVersion": PROTOCOL_VERSION,
                    "id": request_id,
                    "result": result,
                },
            )
        except json.JSONDecodeError as exc:
            self._error(400, request_id, "INVALID_INPUT", f"Invalid JSON body: {exc}")
        except BridgeOperationError as exc:
            self._error(400, request_id, exc.code, exc.message)
        except Exception as exc:
            logger.exception("rpc handler failed")
            self._error(500, request_id, "ERROR", str(exc))

    def do_GET(self) -> None:  # noqa: N802
        if self.path == "/health":
            self._send(200, {"ok": True, "protocolVersion": PROTOCOL_VERSION, "status": "ok"})
            return
        if self.path == "/actions":
            self._send(200, {"ok": True, "protocolVersion": PROTOCOL_VERSION, "actions": ACTION_METHODS})
            return
        self._send(404, {"ok": False, "error": {"code": "NOT_FOUND", "message": "Route not found"}})

    def log_message(self, format: str, *args: object) -> None:
        logger.debug("%s - %s", self.address_string(), format % args)

    def _error(self, status: int, request_id: Any, code: str, message: str) -> None:
        self._send(
            status,
            {
                "ok": False,
                "protocolVersion": PROTOCOL_VERSION,
                "id": request_id,
                "error": {"code": code, "message": message},
            },
        )

    def _send(self, status: int, payload: Dict[str, Any]) -> None:
        data = json.dumps(payload).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(data)))
        self.end_headers()
        self.wfile.write(data)


def create_bridge_server(host: str, port: int) -> ThreadingHTTPServer:
    return ThreadingHTTPServer((host, port), BridgeRequestHandler)


def run_bridge_server(host: str, port: int) -> None:
    server = create_bridge_server(host, port)
    logger.info("bridge listening on %s:%s", host, port)
    try:
        server.serve_forever()
    finally:
        server.server_close()
