from __future__ import annotations


class ToolInputError(ValueError):
    """Arguments passed schema validation but cannot be acted on."""
