"""Transport-agnostic JSON-RPC dispatch for tool listing and invocation.

Every request runs Received -> Parsed -> Validated -> Executed -> Responded.
A failure at any step becomes an error envelope that echoes the request id;
nothing a client sends can raise out of :meth:`Dispatcher.handle`.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any

from .content import ImagePart, TextPart, ToolResult
from .protocol import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    JSONRPC_VERSION,
    METHOD_NOT_FOUND,
    _err,
    _ok,
    is_notification,
)
from .registry import RegisteredTool, ToolNotFoundError, ToolRegistry
from .schema import ValidationError, validate

log = logging.getLogger("devtools-mcp.dispatcher")

SUPPORTED_PROTOCOL_VERSIONS = ("2024-11-05", "2025-03-26")

_LIST_METHODS = {"listTools", "tools/list"}
_CALL_METHODS = {"callTool", "tools/call"}


class ToolTimeoutError(RuntimeError):
    pass


class MalformedResultError(TypeError):
    """A handler returned something other than a ToolResult of text/image parts."""


class Dispatcher:
    def __init__(
        self,
        registry: ToolRegistry,
        *,
        tool_timeout: float | None = None,
        server_name: str = "devtools-mcp",
        server_version: str = "0.1.0",
    ) -> None:
        self.registry = registry
        self.tool_timeout = tool_timeout
        self.server_name = server_name
        self.server_version = server_version

    async def handle(self, message: dict[str, Any]) -> dict[str, Any] | None:
        """Process one decoded request; return its response, or None for notifications."""
        if is_notification(message):
            log.debug("Notification %s", message.get("method"))
            return None

        req_id = message.get("id")
        method = message.get("method")
        if message.get("jsonrpc") != JSONRPC_VERSION:
            return _err(req_id, INVALID_REQUEST, "Invalid request: jsonrpc must be \"2.0\"")
        if not isinstance(method, str) or not method:
            return _err(req_id, INVALID_REQUEST, "Invalid request: method must be a string")

        params = message.get("params")
        if params is None:
            params = {}
        if not isinstance(params, dict):
            return _err(req_id, INVALID_PARAMS, "Invalid params",
                        {"path": "params", "reason": "type_mismatch", "message": "expected object"})

        if method in _LIST_METHODS:
            return _ok(req_id, {"tools": [d.to_wire() for d in self.registry.list()]})
        if method in _CALL_METHODS:
            return await self._call_tool(req_id, params)
        if method == "initialize":
            return _ok(req_id, self._initialize(params))
        if method == "ping":
            return _ok(req_id, {})
        return _err(req_id, METHOD_NOT_FOUND, f"Method not found: {method}")

    def _initialize(self, params: dict[str, Any]) -> dict[str, Any]:
        client_ver = params.get("protocolVersion")
        agreed_ver = client_ver if client_ver in SUPPORTED_PROTOCOL_VERSIONS else SUPPORTED_PROTOCOL_VERSIONS[0]
        return {
            "protocolVersion": agreed_ver,
            "capabilities": {"tools": {}},
            "serverInfo": {"name": self.server_name, "version": self.server_version},
        }

    async def _call_tool(self, req_id: Any, params: dict[str, Any]) -> dict[str, Any]:
        name = params.get("name")
        if not isinstance(name, str):
            reason = "missing_field" if "name" not in params else "type_mismatch"
            return _err(req_id, INVALID_PARAMS, "Invalid params",
                        {"path": "params.name", "reason": reason, "message": "tool name must be a string"})
        try:
            tool = self.registry.resolve(name)
        except ToolNotFoundError as exc:
            return _err(req_id, METHOD_NOT_FOUND, "Tool not found", {"name": name, "detail": str(exc)})

        if "arguments" not in params:
            return _err(req_id, INVALID_PARAMS, "Invalid params",
                        {"path": "params.arguments", "reason": "missing_field",
                         "message": "required field is missing"})

        try:
            args = validate(tool.descriptor.parameter_schema, params["arguments"])
        except ValidationError as exc:
            log.info("Rejected call to %s: %s", name, exc)
            return _err(req_id, INVALID_PARAMS, "Invalid params", exc.to_data())

        try:
            result = await self._execute(tool, args)
        except ToolTimeoutError as exc:
            log.warning("%s", exc)
            return _err(req_id, INTERNAL_ERROR, "Internal error", {"detail": str(exc)})
        except Exception as exc:
            log.error("Tool %s failed: %s", name, exc, exc_info=True)
            return _err(req_id, INTERNAL_ERROR, "Internal error", {"detail": str(exc) or type(exc).__name__})

        try:
            content = _wire_content(name, result)
        except MalformedResultError as exc:
            log.error("%s", exc)
            return _err(req_id, INTERNAL_ERROR, "Internal error", {"detail": str(exc)})
        return _ok(req_id, {"content": content, "isError": False})

    async def _execute(self, tool: RegisteredTool, args: dict[str, Any]) -> Any:
        if self.tool_timeout is None:
            return await tool.handler(args)
        # Only the deadline itself is reported as a timeout; a TimeoutError
        # raised by the handler keeps its own message.
        task = asyncio.ensure_future(tool.handler(args))
        try:
            done, _ = await asyncio.wait({task}, timeout=self.tool_timeout)
        except asyncio.CancelledError:
            task.cancel()
            raise
        if not done:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
            raise ToolTimeoutError(f"Tool '{tool.name}' timed out after {self.tool_timeout:g}s")
        return task.result()


def _wire_content(name: str, result: Any) -> list[dict[str, Any]]:
    if not isinstance(result, ToolResult):
        raise MalformedResultError(f"Tool '{name}' returned {type(result).__name__}, expected ToolResult")
    if not isinstance(result.parts, (tuple, list)):
        raise MalformedResultError(f"Tool '{name}' returned parts of type {type(result.parts).__name__}")
    for index, part in enumerate(result.parts):
        if not isinstance(part, (TextPart, ImagePart)):
            raise MalformedResultError(
                f"Tool '{name}' returned {type(part).__name__} at parts[{index}], expected TextPart or ImagePart"
            )
    return result.to_wire()
