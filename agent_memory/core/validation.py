"""Declarative schema validation for tenant-defined short-term and long-term data."""

from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import BaseModel

from .schemas import SchemaField


class FieldError(BaseModel):
    """One schema violation, serialised as-is in API error responses."""

    field: str
    message: str
    expected: str | None = None
    received: str | None = None


def value_type(value: Any) -> str:
    """Name the declarative type of a decoded JSON value.

    bool is checked before int because ``bool`` subclasses ``int`` in Python.
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, Mapping):
        return "object"
    return type(value).__name__


def validate_against_schema(
    data: Mapping[str, Any],
    schema: Iterable[SchemaField],
) -> list[FieldError]:
    """Check ``data`` against ``schema``; an empty list means valid.

    Reports missing required fields first, then unknown fields and type
    mismatches in the order the keys appear in ``data``.
    """
    fields = {f.name: f for f in schema}
    errors: list[FieldError] = []

    for field in fields.values():
        if field.required and field.name not in data:
            errors.append(
                FieldError(
                    field=field.name,
                    message=f"Missing required field: {field.name}",
                    expected=field.type.value,
                )
            )

    for key, value in data.items():
        field = fields.get(key)
        if field is None:
            errors.append(FieldError(field=key, message=f"Unknown field: {key}. Not defined in schema."))
            continue
        actual = value_type(value)
        if actual != field.type.value:
            errors.append(
                FieldError(
                    field=key,
                    message=f"Type mismatch for field: {key}",
                    expected=field.type.value,
                    received=actual,
                )
            )

    return errors
