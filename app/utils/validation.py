"""Parsing helpers for request values."""

from __future__ import annotations

import math
from typing import Any

from flask import request


def json_payload() -> dict[str, Any]:
    """Request body as a JSON object; anything else reads as empty."""
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


def first_value(value: Any) -> Any:
    """Collapse repeated query parameters to their first element."""
    if isinstance(value, (list, tuple)):
        return value[0] if value else None
    return value


def parse_identifier(value: Any) -> int | None:
    value = first_value(value)
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    text = str(value).strip()
    # isdigit() also accepts superscripts and other digits int() refuses
    if not (text.isascii() and text.isdecimal()):
        return None
    number = int(text)
    return number if number > 0 else None


def parse_coordinate(value: Any) -> float | None:
    """Return ``value`` as a finite float, or None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str) and not value.strip():
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def parse_bool_flag(value: Any) -> bool | None:
    """Parse the literal strings ``true``/``false``; anything else is None."""
    if value == "true":
        return True
    if value == "false":
        return False
    return None


__all__ = ["first_value", "json_payload", "parse_bool_flag", "parse_coordinate", "parse_identifier"]
