from __future__ import annotations

from ..config import ServerConfig
from ..registry import ToolRegistry
from . import api_tests, architect, code_review, screenshot


def build_registry(config: ServerConfig) -> ToolRegistry:
    """Register every built-in tool, in the order listTools reports them, and seal."""
    registry = ToolRegistry()
    registry.register(screenshot.descriptor(config), screenshot.make_handler(config))
    registry.register(architect.descriptor(), architect.make_handler(config))
    registry.register(code_review.descriptor(), code_review.make_handler())
    registry.register(api_tests.descriptor(), api_tests.make_handler(config))
    return registry.seal()


__all__ = ["build_registry"]
