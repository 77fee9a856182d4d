"""Conversion of optional text columns, where an empty string is stored as NULL."""

from __future__ import annotations


def null_string_from_db(value: object) -> str:
    """Read a nullable text column: NULL becomes the empty string."""
    if value is None:
        return ""
    if not isinstance(value, str):
        raise TypeError("Column is not a string")
    return value


def null_string_to_db(value: str | None) -> str | None:
    """Write a nullable text column: an empty or missing string becomes NULL."""
    if not value:
        return None
    return str(value)