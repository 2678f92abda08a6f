"""Tool registry: name -> (descriptor, handler), fixed once the server starts."""
from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from .content import ToolResult
from .schema import ObjectNode

log = logging.getLogger("devtools-mcp.registry")

ToolHandler = Callable[[dict[str, Any]], Awaitable[ToolResult]]


class RegistryError(RuntimeError):
    pass


class DuplicateToolError(RegistryError):
    pass


class ToolNotFoundError(LookupError):
    pass


@dataclass(frozen=True)
class ToolDescriptor:
    name: str
    description: str
    parameter_schema: ObjectNode

    def to_wire(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.parameter_schema.json_schema(),
        }


@dataclass(frozen=True)
class RegisteredTool:
    descriptor: ToolDescriptor
    handler: ToolHandler

    @property
    def name(self) -> str:
        return self.descriptor.name


class ToolRegistry:
    def __init__(self) -> None:
        # dicts keep insertion order, which is the order listTools reports.
        self._tools: dict[str, RegisteredTool] = {}
        self._sealed = False

    def register(self, descriptor: ToolDescriptor, handler: ToolHandler) -> None:
        if self._sealed:
            raise RegistryError(f"Cannot register '{descriptor.name}': registry is sealed")
        if descriptor.name in self._tools:
            raise DuplicateToolError(f"Tool '{descriptor.name}' is already registered")
        self._tools[descriptor.name] = RegisteredTool(descriptor=descriptor, handler=handler)
        log.info("Registered tool %s", descriptor.name)

    def seal(self) -> "ToolRegistry":
        self._sealed = True
        return self

    @property
    def sealed(self) -> bool:
        return self._sealed

    def list(self) -> list[ToolDescriptor]:
        return [tool.descriptor for tool in self._tools.values()]

    def resolve(self, name: str) -> RegisteredTool:
        tool = self._tools.get(name)
        if tool is None:
            raise ToolNotFoundError(f"Unknown tool: {name}")
        return tool

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools
