"""
Input coercion shared by the POS core and the API routes.

Money is carried as integer cents inside the process; decimal amounts only
appear at the edges (typed input, JSON wire fields).
"""
from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from .pos.errors import ValidationError


# Maximum amount: $9,999,999.99 (999,999,999 cents)
MAX_AMOUNT_CENTS = 999_999_999

_CENT = Decimal("0.01")


def parse_amount_cents(value: Any, field: str = "amount", *, allow_negative: bool = False) -> int:
    """
    Parse a decimal money amount into integer cents.

    Accepts int, Decimal, float and strings such as "150", "87.50" or
    "$1,200.00". Rounds half up to the cent.
    """
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} is required")

    if isinstance(value, str):
        stripped = value.strip().replace("$", "").replace(",", "")
        if not stripped:
            raise ValidationError(f"{field} is required")
        value = stripped

    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number", {"field": field, "value": str(value)})

    if not amount.is_finite():
        raise ValidationError(f"{field} must be a finite number", {"field": field})

    cents = int((amount.quantize(_CENT, rounding=ROUND_HALF_UP) * 100).to_integral_value())

    if cents < 0 and not allow_negative:
        raise ValidationError(f"{field} cannot be negative", {"field": field})
    if abs(cents) > MAX_AMOUNT_CENTS:
        raise ValidationError(f"{field} exceeds the maximum amount", {"field": field})
    return cents


def parse_optional_amount_cents(value: Any, field: str = "amount", *, allow_negative: bool = False) -> int:
    """Like parse_amount_cents, but None / blank means zero."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return 0
    return parse_amount_cents(value, field, allow_negative=allow_negative)


def format_cents(cents: int) -> str:
    """12345 -> "123.45" (wire format for decimal amounts)."""
    sign = "-" if cents < 0 else ""
    whole, frac = divmod(abs(int(cents)), 100)
    return f"{sign}{whole}.{frac:02d}"


def parse_int(value: Any, field: str, *, minimum: int | None = None, maximum: int | None = None) -> int:
    """Strict integer parsing: rejects floats, decimals and scientific notation."""
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        result = value
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped or "e" in stripped.lower() or "." in stripped:
            raise ValidationError(f"{field} must be a plain integer")
        try:
            result = int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    else:
        raise ValidationError(f"{field} must be an integer")

    if minimum is not None and result < minimum:
        raise ValidationError(f"{field} must be >= {minimum}")
    if maximum is not None and result > maximum:
        raise ValidationError(f"{field} must be <= {maximum}")
    return result
