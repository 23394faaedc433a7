# Overview: Strict coercion of JSON request values (integer cents, ids, flags).

from __future__ import annotations

from typing import Any

from .errors import ValidationError


# Maximum amount: 9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_AMOUNT_CENTS = 999_999_999


def coerce_int(value: Any, field: str) -> int:
    """
    Integers only: rejects floats, booleans, decimals and scientific notation.
    """
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if "e" in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    raise ValidationError(f"{field} must be an integer")


def require_int(payload: dict, field: str, *, minimum: int | None = None) -> int:
    if field not in payload or payload[field] is None:
        raise ValidationError(f"{field} is required")
    value = coerce_int(payload[field], field)
    if minimum is not None and value < minimum:
        raise ValidationError(f"{field} must be at least {minimum}")
    return value


def optional_int(payload: dict, field: str, default: int | None = None) -> int | None:
    value = payload.get(field)
    if value is None or value == "":
        return default
    return coerce_int(value, field)


def require_cents(payload: dict, field: str) -> int:
    """Non-negative money amount in cents."""
    value = require_int(payload, field, minimum=0)
    if value > MAX_AMOUNT_CENTS:
        raise ValidationError(f"{field} cannot exceed {MAX_AMOUNT_CENTS} cents")
    return value


def optional_str(payload: dict, field: str, max_length: int | None = None) -> str | None:
    value = payload.get(field)
    if value is None:
        return None
    value = str(value).strip()
    if not value:
        return None
    if max_length is not None and len(value) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters")
    return value


def json_payload(data: Any) -> dict:
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")
    return data
