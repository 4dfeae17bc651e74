"""Declarative tool parameter schemas and the generic argument validator.

A tool is a ``ToolSpec``: a name, a description, a list of ``Param`` and a
handler. ``validate_arguments`` checks a raw argument mapping against the
params before the handler runs, so handlers only see clean values.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from .db import MIN_PREFIX_LENGTH
from .errors import ValidationError

STRING = "string"
BOOLEAN = "boolean"
ARRAY = "array"

# Value formats checked after type and enum checks.
UUID = "uuid"
TASK_REF = "task-ref"
DATE_TIME = "date-time"

_PY_TYPES = {STRING: str, BOOLEAN: bool, ARRAY: list}
_HEX = set("0123456789abcdef-")


@dataclass
class Param:
    """One named tool parameter."""

    name: str
    type: str
    description: str
    required: bool = False
    enum: Optional[tuple[str, ...]] = None
    format: Optional[str] = None

    def json_schema(self) -> dict[str, Any]:
        schema: dict[str, Any] = {"type": self.type, "description": self.description}
        if self.type == ARRAY:
            schema["items"] = {"type": STRING}
        if self.enum:
            schema["enum"] = list(self.enum)
        if self.format == DATE_TIME:
            schema["format"] = DATE_TIME
        return schema


@dataclass
class ToolSpec:
    """A declared tool: metadata, parameters and the function that runs it."""

    name: str
    description: str
    params: list[Param] = field(default_factory=list)
    handler: Optional[Callable[..., Any]] = None

    @property
    def required(self) -> list[str]:
        return [p.name for p in self.params if p.required]

    def input_schema(self) -> dict[str, Any]:
        schema: dict[str, Any] = {
            "type": "object",
            "properties": {p.name: p.json_schema() for p in self.params},
        }
        if self.required:
            schema["required"] = self.required
        return schema


def parse_datetime(value: str, field_name: str = "due_date") -> datetime:
    """Parse ISO 8601 (``2025-12-01T15:04:05Z`` or ``2025-12-01``) to aware UTC."""
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as exc:
        raise ValidationError(
            f"invalid {field_name} '{value}': must be ISO 8601, "
            "e.g. '2025-12-01T15:04:05Z' or '2025-12-01'"
        ) from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _check_format(param: Param, value: Any) -> Any:
    if param.format == UUID:
        try:
            return str(uuid.UUID(value))
        except ValueError as exc:
            raise ValidationError(
                f"invalid {param.name} '{value}': must be a full UUID, "
                "e.g. 'abc12345-1234-1234-1234-123456789abc'"
            ) from exc
    if param.format == TASK_REF:
        ref = value.strip()
        if len(ref) == 36:
            try:
                return str(uuid.UUID(ref))
            except ValueError:
                pass
        if len(ref) < MIN_PREFIX_LENGTH:
            raise ValidationError(
                f"invalid {param.name} '{value}': give the full UUID or at least "
                f"{MIN_PREFIX_LENGTH} leading characters"
            )
        if not set(ref) <= _HEX:
            raise ValidationError(
                f"invalid {param.name} '{value}': IDs are lowercase hexadecimal"
            )
        return ref
    if param.format == DATE_TIME:
        return parse_datetime(value, param.name)
    return value


def validate_arguments(spec: ToolSpec, arguments: Optional[dict]) -> dict[str, Any]:
    """Check ``arguments`` against ``spec`` and return the cleaned values.

    Checks run in a fixed order: unknown names, required fields, types,
    enumerations, then value formats. ``None`` counts as "not supplied".
    """
    supplied = {k: v for k, v in (arguments or {}).items() if v is not None}
    known = {p.name: p for p in spec.params}

    unknown = sorted(set(supplied) - set(known))
    if unknown:
        raise ValidationError(
            f"unknown argument(s) for {spec.name}: {', '.join(unknown)}"
        )

    for param in spec.params:
        if not param.required:
            continue
        value = supplied.get(param.name)
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValidationError(f"missing required argument '{param.name}'")

    for name, value in supplied.items():
        param = known[name]
        expected = _PY_TYPES[param.type]
        if not isinstance(value, expected):
            raise ValidationError(
                f"invalid {name}: expected {param.type}, got {type(value).__name__}"
            )
        if param.type == ARRAY and not all(isinstance(item, str) for item in value):
            raise ValidationError(f"invalid {name}: every item must be a string")

    for name, value in supplied.items():
        param = known[name]
        if param.enum and value not in param.enum:
            raise ValidationError(
                f"invalid {name} '{value}': must be one of "
                + ", ".join(f"'{option}'" for option in param.enum)
            )

    return {name: _check_format(known[name], value) for name, value in supplied.items()}
