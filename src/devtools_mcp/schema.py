"""Declarative argument schemas and the validator that enforces them.

A tool declares its parameters as a tree of schema nodes.  The same tree is
rendered to JSON Schema for ``listTools`` and used by :func:`validate` to turn
raw client arguments into the dict a handler receives.

Validation walks fields in declaration order and stops at the first problem,
so a given bad payload always produces the same error.
"""
from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any


class _Missing:
    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class ValidationError(ValueError):
    reason = "invalid"

    def __init__(self, path: str, message: str) -> None:
        super().__init__(f"{path}: {message}")
        self.path = path
        self.message = message

    def to_data(self) -> dict[str, Any]:
        return {"path": self.path, "reason": self.reason, "message": self.message}


class MissingField(ValidationError):
    reason = "missing_field"

    def __init__(self, path: str) -> None:
        super().__init__(path, "required field is missing")


class TypeMismatch(ValidationError):
    reason = "type_mismatch"

    def __init__(self, path: str, expected: str, value: Any) -> None:
        super().__init__(path, f"expected {expected}, got {_kind_of(value)}")
        self.expected = expected

    def to_data(self) -> dict[str, Any]:
        data = super().to_data()
        data["expected"] = self.expected
        return data


class InvalidEnumValue(ValidationError):
    reason = "invalid_enum_value"

    def __init__(self, path: str, value: Any, allowed: tuple[str, ...]) -> None:
        super().__init__(path, f"{value!r} is not one of {', '.join(allowed)}")
        self.allowed = allowed

    def to_data(self) -> dict[str, Any]:
        data = super().to_data()
        data["allowed"] = list(self.allowed)
        return data


class ConstraintViolation(ValidationError):
    reason = "constraint_violation"


def _kind_of(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


# ---------------------------------------------------------------------------
# Schema nodes
# ---------------------------------------------------------------------------

class SchemaNode:
    """Base class for every node in an argument schema."""

    description: str = ""

    def check(self, value: Any, path: str) -> Any:
        raise NotImplementedError

    def json_schema(self) -> dict[str, Any]:
        raise NotImplementedError

    def _with_description(self, schema: dict[str, Any]) -> dict[str, Any]:
        if self.description:
            schema["description"] = self.description
        return schema


@dataclass(frozen=True)
class StringNode(SchemaNode):
    description: str = ""
    min_length: int = 0
    min_length_message: str = ""

    def check(self, value: Any, path: str) -> str:
        if not isinstance(value, str):
            raise TypeMismatch(path, "string", value)
        if len(value) < self.min_length:
            message = self.min_length_message or f"must be at least {self.min_length} characters"
            raise ConstraintViolation(path, message)
        return value

    def json_schema(self) -> dict[str, Any]:
        schema: dict[str, Any] = {"type": "string"}
        if self.min_length:
            schema["minLength"] = self.min_length
        return self._with_description(schema)


@dataclass(frozen=True)
class NumberNode(SchemaNode):
    description: str = ""

    def check(self, value: Any, path: str) -> int | float:
        # bool is an int subclass; a JSON true is never a number.
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise TypeMismatch(path, "number", value)
        return value

    def json_schema(self) -> dict[str, Any]:
        return self._with_description({"type": "number"})


@dataclass(frozen=True)
class BooleanNode(SchemaNode):
    description: str = ""

    def check(self, value: Any, path: str) -> bool:
        if not isinstance(value, bool):
            raise TypeMismatch(path, "boolean", value)
        return value

    def json_schema(self) -> dict[str, Any]:
        return self._with_description({"type": "boolean"})


@dataclass(frozen=True)
class EnumNode(SchemaNode):
    values: tuple[str, ...] = ()
    description: str = ""

    def check(self, value: Any, path: str) -> str:
        if not isinstance(value, str):
            raise TypeMismatch(path, "string", value)
        if value not in self.values:
            raise InvalidEnumValue(path, value, self.values)
        return value

    def json_schema(self) -> dict[str, Any]:
        return self._with_description({"type": "string", "enum": list(self.values)})


@dataclass(frozen=True)
class ArrayNode(SchemaNode):
    items: SchemaNode = field(default_factory=StringNode)
    description: str = ""

    def check(self, value: Any, path: str) -> list[Any]:
        if not isinstance(value, list):
            raise TypeMismatch(path, "array", value)
        return [self.items.check(item, f"{path}[{i}]") for i, item in enumerate(value)]

    def json_schema(self) -> dict[str, Any]:
        return self._with_description({"type": "array", "items": self.items.json_schema()})


@dataclass(frozen=True)
class Field:
    name: str
    node: SchemaNode
    required: bool = True
    default: Any = MISSING

    @property
    def is_required(self) -> bool:
        return self.required and self.default is MISSING


@dataclass(frozen=True)
class ObjectNode(SchemaNode):
    fields: tuple[Field, ...] = ()
    description: str = ""

    def __post_init__(self) -> None:
        names = [f.name for f in self.fields]
        if len(names) != len(set(names)):
            raise ValueError(f"duplicate field names in object schema: {names}")

    def check(self, value: Any, path: str) -> dict[str, Any]:
        if not isinstance(value, dict):
            raise TypeMismatch(path, "object", value)
        validated: dict[str, Any] = {}
        for spec in self.fields:
            field_path = f"{path}.{spec.name}"
            if spec.name not in value:
                if spec.default is not MISSING:
                    validated[spec.name] = copy.deepcopy(spec.default)
                elif spec.required:
                    raise MissingField(field_path)
                continue
            validated[spec.name] = spec.node.check(value[spec.name], field_path)
        return validated

    def json_schema(self) -> dict[str, Any]:
        properties: dict[str, Any] = {}
        for spec in self.fields:
            prop = spec.node.json_schema()
            if spec.default is not MISSING:
                prop["default"] = copy.deepcopy(spec.default)
            properties[spec.name] = prop
        schema: dict[str, Any] = {
            "type": "object",
            "properties": properties,
            "required": [f.name for f in self.fields if f.is_required],
        }
        return self._with_description(schema)


def validate(schema: ObjectNode, raw_args: Any, path: str = "arguments") -> dict[str, Any]:
    """Return validated arguments for *schema* or raise :class:`ValidationError`.

    Declared defaults are filled in for absent fields, absent optional fields
    without a default are left out, and keys the schema does not declare are
    dropped.  *raw_args* is never mutated.
    """
    return schema.check(raw_args, path)
