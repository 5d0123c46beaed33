from __future__ import annotations

from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from .errors import ValidationError
from .time_utils import parse_iso_datetime


# Maximum money value: 9,999,999,999.99
# Matches Numeric(12, 2) storage and prevents overflow on insert
MAX_AMOUNT = Decimal("9999999999.99")
CENT = Decimal("0.01")


def to_money(value) -> Decimal:
    """Quantize anything numeric to a 2-place Decimal (half-up)."""
    if value is None:
        return Decimal("0.00")
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def parse_amount(value: Any, field: str, *, default=None, allow_zero: bool = True) -> Decimal:
    """
    Parse a money field from JSON input.

    Accepts int, float or numeric strings; rejects booleans, NaN/Infinity,
    negatives and (unless allow_zero) zero.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        if default is None:
            raise ValidationError(f"{field} is required")
        value = default

    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")

    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number")

    if not amount.is_finite():
        raise ValidationError(f"{field} must be a finite number")

    amount = to_money(amount)

    if amount < 0:
        raise ValidationError(f"{field} must be >= 0")
    if not allow_zero and amount == 0:
        raise ValidationError(f"{field} must be greater than 0")
    if amount > MAX_AMOUNT:
        raise ValidationError(f"{field} cannot exceed {MAX_AMOUNT}")
    return amount


def parse_int(value: Any, field: str, *, default: int | None = None, minimum: int | None = None) -> int:
    """
    Strict integer parsing: rejects floats, decimals in strings and
    scientific notation.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        if default is None:
            raise ValidationError(f"{field} is required")
        return default

    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")

    if isinstance(value, int):
        result = value
    elif isinstance(value, float):
        if not value.is_integer():
            raise ValidationError(f"{field} must be an integer, not a decimal")
        result = int(value)
    elif isinstance(value, str):
        stripped = value.strip()
        if "e" in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            result = int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    else:
        raise ValidationError(f"{field} must be an integer")

    if minimum is not None and result < minimum:
        raise ValidationError(f"{field} must be >= {minimum}")
    return result


def parse_choice(value: Any, field: str, choices, *, default: str | None = None) -> str:
    if value is None or value == "":
        if default is None:
            raise ValidationError(f"{field} is required")
        return default
    if value not in choices:
        raise ValidationError(
            f"Invalid {field} value. Must be one of: {', '.join(sorted(choices))}"
        )
    return value


def parse_optional_datetime(value: Any, field: str) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be an ISO-8601 datetime")
    try:
        return parse_iso_datetime(value)
    except ValueError:
        raise ValidationError(f"{field} must be an ISO-8601 datetime")


def parse_bool(value: Any, default: bool | None = None) -> bool | None:
    """Query-string friendly boolean ('true'/'false')."""
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes"}


def require_payload(payload) -> dict:
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload


def require_lines(lines, label: str) -> list[dict]:
    if not lines or not isinstance(lines, list):
        raise ValidationError(f"{label} must have at least one item")
    for line in lines:
        if not isinstance(line, dict):
            raise ValidationError(f"Each {label.lower()} item must be an object")
    return lines
