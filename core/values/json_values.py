"""
core.values.json_values

Coercion helpers for the JSON-like values that flow through the engine
(session data, flow state, flow descriptors, action payloads).

A JSON-like value is one of:

    None | bool | int | float | str | list[JSON] | dict[str, JSON]

Values are validated once at the store boundaries with pydantic's
`JsonValue` adapter; anything else (sets, tuples, arbitrary objects,
non-string keys) is rejected with a TypeError instead of leaking into
the session.
"""

from __future__ import annotations

import copy
from typing import Any

from pydantic import JsonValue, TypeAdapter
from pydantic import ValidationError as PydanticValidationError


_JSON_ADAPTER: TypeAdapter[JsonValue] = TypeAdapter(JsonValue)


def to_json_value(value: Any) -> JsonValue:
    """
    Validate `value` as a JSON-like value and return an independent copy.

    Raises
    ------
    TypeError
        If the value (or anything nested in it) is not JSON-representable.
    """
    try:
        validated = _JSON_ADAPTER.validate_python(value)
    except PydanticValidationError as exc:
        first = exc.errors()[0] if exc.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ())) or "<value>"
        raise TypeError(
            f"Value is not JSON-representable at {location}: {type(value).__name__}"
        ) from exc
    return copy.deepcopy(validated)


def copy_json(value: JsonValue) -> JsonValue:
    """Deep-copy an already validated JSON-like value."""
    return copy.deepcopy(value)
