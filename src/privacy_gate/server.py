"""HTTP sidecar server for privacy-gate.

Runs as a lightweight stdlib HTTP server on localhost.  A web front end
calls this over HTTP instead of embedding the library.

Endpoints:
    GET  /health          — Health check
    GET  /route/<tier>    — Privacy route for a tier
    POST /detect          — PII types and ranges in text (no values)
    POST /sanitize        — Apply tier policy to chat messages
    POST /restore         — Restore placeholders in a model reply

All endpoints expect/return JSON.

The sidecar keeps no per-request state: /sanitize hands the placeholder
map back to the caller, which sends it again with /restore.
"""

from __future__ import annotations
import json
import logging
import os
from http.server import HTTPServer, BaseHTTPRequestHandler
from typing import Any

from .config import configure_logging
from .patterns import detect_pii
from .providers import get_model_config, is_valid_model_id
from .router import (
    CredentialPool,
    credential_pool_id,
    process_messages_for_privacy,
    restore_response_pii,
    route_for,
)

logger = logging.getLogger(__name__)

DEFAULT_PORT = int(os.environ.get("PRIVACY_GATE_PORT", "18792"))

BLOCKED_MESSAGE = "Your message contains sensitive information that cannot be transmitted."

# Shared state
_pool: CredentialPool = CredentialPool.shared()


class BadRequest(ValueError):
    pass


class PrivacyHandler(BaseHTTPRequestHandler):
    """HTTP request handler for the privacy-gate sidecar."""

    def _read_json(self) -> dict[str, Any]:
        length = int(self.headers.get("Content-Length", 0))
        body = self.rfile.read(length).decode("utf-8")
        try:
            data = json.loads(body) if body else {}
        except json.JSONDecodeError as e:
            raise BadRequest(f"invalid JSON: {e.msg}") from e
        if not isinstance(data, dict):
            raise BadRequest("body must be a JSON object")
        return data

    def _respond(self, status: int, data: Any) -> None:
        body = json.dumps(data, ensure_ascii=False).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format: str, *args: Any) -> None:
        logger.debug("%s - %s", self.address_string(), format % args)

    def do_GET(self) -> None:
        if self.path == "/health":
            self._respond(200, {"status": "ok"})
        elif self.path.startswith("/route/"):
            tier = self.path[len("/route/"):]
            try:
                self._respond(200, route_for(tier).to_dict())
            except ValueError:
                self._respond(400, {"error": f"unknown tier: {tier}"})
        else:
            self._respond(404, {"error": "not found"})

    def do_POST(self) -> None:
        try:
            body = self._read_json()

            if self.path == "/detect":
                self._respond(200, {"detections": [
                    {"type": d.type.value, "start": d.position.start, "end": d.position.end}
                    for d in detect_pii(_require_str(body, "text"))
                ]})

            elif self.path == "/sanitize":
                self._respond(*_handle_sanitize(body))

            elif self.path == "/restore":
                text = _require_str(body, "text")
                placeholder_map = body.get("placeholder_map") or {}
                if not isinstance(placeholder_map, dict):
                    raise BadRequest("placeholder_map must be an object")
                self._respond(200, {"text": restore_response_pii(text, placeholder_map)})

            else:
                self._respond(404, {"error": "not found"})

        except BadRequest as e:
            self._respond(400, {"error": str(e)})
        except Exception as e:
            logger.exception("unhandled error on %s", self.path)
            self._respond(500, {"error": str(e)})


def _handle_sanitize(body: dict[str, Any]) -> tuple[int, dict[str, Any]]:
    tier = body.get("tier", "community")
    messages = body.get("messages", [])
    if not isinstance(messages, list):
        raise BadRequest("messages must be a list")
    try:
        route_for(tier)
    except ValueError:
        raise BadRequest(f"unknown tier: {tier}") from None

    model = body.get("model")
    if model is not None and not is_valid_model_id(model):
        raise BadRequest(f"invalid model: {model}")

    result = process_messages_for_privacy(tier, messages)
    if result.blocked:
        return 422, {
            "error": "Message blocked",
            "message": BLOCKED_MESSAGE,
            "blockedTypes": [t.value for t in result.blocked_types],
        }

    payload: dict[str, Any] = {
        "messages": result.messages,
        "placeholder_map": result.placeholder_map,
        "route": result.route.to_dict(),
        "detected_types": [t.value for t in result.detected_types],
        "credential_pool_id": credential_pool_id(tier, _pool),
    }
    if model is not None:
        cfg = get_model_config(model)
        payload["provider"] = cfg.provider.value
        payload["provider_model"] = cfg.provider_id
    return 200, payload


def _require_str(body: dict[str, Any], key: str) -> str:
    value = body.get(key, "")
    if not isinstance(value, str):
        raise BadRequest(f"{key} must be a string")
    return value


def serve(port: int = DEFAULT_PORT) -> None:
    """Start the privacy-gate HTTP sidecar."""
    server = HTTPServer(("127.0.0.1", port), PrivacyHandler)
    logger.info("privacy-gate sidecar listening on http://127.0.0.1:%d", port)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("shutting down")
        server.shutdown()


if __name__ == "__main__":
    import argparse
    parser = argparse.ArgumentParser(description="privacy-gate HTTP sidecar")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    parser.add_argument("--log-level", default="INFO")
    args = parser.parse_args()
    configure_logging(args.log_level)
    serve(port=args.port)
