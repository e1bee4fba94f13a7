"""
Request body parsing for the JSON API.

JSON numbers arrive as int/float. Money never goes through float
arithmetic: a float from the decoder is converted via its shortest repr
(str) and then handled as Decimal.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from flask import request

from .money import MoneyError, to_money
from .time_utils import parse_iso_datetime


class ValidationError(ValueError):
    """400-level input problem."""


def require_json() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def parse_money(value: Any, field: str, *, required: bool = False) -> Decimal | None:
    if value is None or value == "":
        if required:
            raise ValidationError(f"{field} is required")
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    if isinstance(value, float):
        value = repr(value)
    # Scientific notation is rejected as in integer fields
    if isinstance(value, str) and "e" in value.lower():
        raise ValidationError(f"{field} must be a plain decimal (scientific notation not allowed)")
    try:
        return to_money(value)
    except MoneyError:
        raise ValidationError(f"{field} must be a decimal amount")


def parse_int(value: Any, field: str, *, required: bool = False, minimum: int | None = None) -> int | None:
    if value is None:
        if required:
            raise ValidationError(f"{field} is required")
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        result = value
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped or "." in stripped or "e" in stripped.lower():
            raise ValidationError(f"{field} must be an integer")
        try:
            result = int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    else:
        raise ValidationError(f"{field} must be an integer")
    if minimum is not None and result < minimum:
        raise ValidationError(f"{field} must be >= {minimum}")
    return result


def parse_bool(value: Any, field: str) -> bool | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false", "1", "0"):
        return value.strip().lower() in ("true", "1")
    raise ValidationError(f"{field} must be a boolean")


def parse_datetime(value: Any, field: str, *, required: bool = False):
    if value is None or value == "":
        if required:
            raise ValidationError(f"{field} is required")
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be an ISO-8601 string")
    try:
        return parse_iso_datetime(value)
    except ValueError:
        raise ValidationError(f"{field} must be an ISO-8601 datetime")


def optional_str(value: Any, field: str, *, max_length: int = 255) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    value = value.strip()
    if len(value) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters")
    return value or None
