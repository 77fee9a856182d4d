"""Conversion of JSON object columns."""

from __future__ import annotations

import json
from typing import Any


def json_map_to_db(value: dict[str, Any] | None) -> str:
    """Serialise a mapping to the JSON text stored in the database."""
    return json.dumps(value)


def json_map_from_db(src: str | bytes | None) -> dict[str, Any]:
    """Parse a stored JSON object; empty or NULL columns give an empty mapping."""
    if src is None:
        source = ""
    elif isinstance(src, (bytes, bytearray)):
        source = bytes(src).decode("utf-8")
    elif isinstance(src, str):
        source = src
    else:
        raise TypeError("Invalid data type for JSONMap")

    if not source:
        source = "{}"
    parsed = json.loads(source)
    if parsed is None:
        return {}
    if not isinstance(parsed, dict):
        raise ValueError("JSONMap value is not a JSON object")
    return parsed