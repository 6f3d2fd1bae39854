from __future__ import annotations
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable

from stockledger.time_utils import parse_iso_datetime
from .errors import ValidationError


# NUMERIC(15, 2): 13 integer digits, 2 fractional digits
MAX_DECIMAL = Decimal("9999999999999.99")
DECIMAL_PLACES = 2


def require_int(value: Any, field: str) -> int:
    """
    Strict integer coercion for ids coming from JSON or query strings.

    Rejects bools, floats, scientific notation and decimal strings.
    """
    if value is None or value == "":
        raise ValidationError(f"{field} is required")
    # bool is a subclass of int
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} is required")
        if 'e' in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if '.' in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    raise ValidationError(f"{field} must be an integer")


def optional_int(value: Any, field: str) -> int | None:
    if value is None or value == "":
        return None
    return require_int(value, field)


def parse_decimal(value: Any, field: str, *, default: Decimal | None = None) -> Decimal:
    """
    Coerce a JSON number or numeric string to Decimal.

    Floats go through str() so 0.1 stays 0.1. At most two decimal places are
    accepted, matching the NUMERIC(15, 2) columns.
    """
    if value is None or value == "":
        if default is not None:
            return default
        raise ValidationError(f"{field} is required")
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    try:
        d = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number")
    if not d.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    if abs(d) > MAX_DECIMAL:
        raise ValidationError(f"{field} exceeds the maximum of {MAX_DECIMAL}")
    if d.as_tuple().exponent < -DECIMAL_PLACES and d != d.quantize(Decimal("0.01")):
        raise ValidationError(f"{field} supports at most {DECIMAL_PLACES} decimal places")
    return d


def parse_quantity(value: Any, field: str = "quantity") -> Decimal:
    """Quantity that must be strictly positive."""
    if value is None or value == "":
        raise ValidationError(f"{field} must be greater than 0")
    d = parse_decimal(value, field)
    if d <= 0:
        raise ValidationError(f"{field} must be greater than 0")
    return d


def parse_non_negative(value: Any, field: str, *, default: Decimal | None = None) -> Decimal:
    d = parse_decimal(value, field, default=default)
    if d < 0:
        raise ValidationError(f"{field} must be 0 or greater")
    return d


def require_choice(value: Any, field: str, choices: Iterable[str]) -> str:
    choices = tuple(choices)
    if value is None or value == "":
        raise ValidationError(f"{field} is required ({', '.join(choices)})")
    if not isinstance(value, str) or value.strip().upper() not in choices:
        raise ValidationError(f"Invalid {field}. Allowed values: {', '.join(choices)}")
    return value.strip().upper()


def parse_datetime(value: Any, field: str) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be an ISO-8601 datetime")
    try:
        return parse_iso_datetime(value)
    except ValueError:
        raise ValidationError(f"{field} must be an ISO-8601 datetime")
