"""JSON-RPC 2.0 envelope helpers shared by both transports."""
from __future__ import annotations

import json
from typing import Any

JSONRPC_VERSION = "2.0"

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603


class ProtocolError(Exception):
    """A message that cannot be answered with an id-correlated envelope."""

    def __init__(self, code: int, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message

    def to_envelope(self) -> dict:
        return _err(None, self.code, self.message)


def _ok(request_id: Any, result: Any) -> dict:
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "result": result}


def _err(request_id: Any, code: int, message: str, data: dict | None = None) -> dict:
    error: dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        error["data"] = data
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "error": error}


def is_notification(message: dict) -> bool:
    method = message.get("method")
    return "id" not in message and isinstance(method, str) and method.startswith("notifications/")


def parse_message(raw: str | bytes) -> dict:
    """Decode one JSON-RPC message or raise :class:`ProtocolError`.

    Anything that is not a JSON object, or an object that is neither a
    notification nor carries an ``id``, has no id to correlate a response to.
    """
    try:
        message = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ProtocolError(PARSE_ERROR, "Parse error") from exc
    if not isinstance(message, dict):
        raise ProtocolError(INVALID_REQUEST, "Invalid request: expected a JSON object")
    if "id" not in message and not is_notification(message):
        raise ProtocolError(INVALID_REQUEST, "Invalid request: missing id")
    return message


def encode(envelope: dict) -> str:
    return json.dumps(envelope, ensure_ascii=False)
