"""Tool output: an ordered list of text and image parts."""
from __future__ import annotations

import base64
from dataclasses import dataclass, field
from typing import Any, Union


@dataclass(frozen=True, slots=True)
class TextPart:
    text: str

    def to_wire(self) -> dict[str, Any]:
        return {"type": "text", "text": self.text}


@dataclass(frozen=True, slots=True)
class ImagePart:
    mime_type: str
    base64_data: str

    @classmethod
    def from_bytes(cls, data: bytes, mime_type: str = "image/png") -> "ImagePart":
        return cls(mime_type=mime_type, base64_data=base64.standard_b64encode(data).decode("ascii"))

    def to_wire(self) -> dict[str, Any]:
        return {
            "type": "image",
            "image_url": {"url": f"data:{self.mime_type};base64,{self.base64_data}"},
        }


ContentPart = Union[TextPart, ImagePart]


@dataclass(frozen=True, slots=True)
class ToolResult:
    parts: tuple[ContentPart, ...] = field(default_factory=tuple)

    @classmethod
    def text(cls, text: str) -> "ToolResult":
        return cls(parts=(TextPart(text),))

    def to_wire(self) -> list[dict[str, Any]]:
        return [part.to_wire() for part in self.parts]
