from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any


# Maximum single amount: 99,999,999.99 (9,999,999,999 cents)
# Matches DECIMAL(12,2) upstream and keeps sums well inside 64-bit integers
MAX_AMOUNT_CENTS = 9_999_999_999

# Ids and quantities are stored in 32-bit INTEGER columns
MAX_INTEGER = 2_147_483_647

_CENT = Decimal("0.01")


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., due already settled)."""


class NotFoundError(LookupError):
    """404-level: referenced id does not exist or is not owned by the caller."""


def require_payload(payload: Any) -> dict:
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload


def require_text(value: Any, label: str, *, max_length: int | None = None) -> str:
    """Coerce to a stripped, non-empty string."""
    if value is None:
        raise ValidationError(f"{label} is required")
    if not isinstance(value, (str, int)) or isinstance(value, bool):
        raise ValidationError(f"{label} must be a string")
    text = str(value).strip()
    if not text:
        raise ValidationError(f"{label} is required")
    if max_length is not None and len(text) > max_length:
        raise ValidationError(f"{label} exceeds max length {max_length}")
    return text


def optional_text(value: Any, label: str, *, max_length: int | None = None) -> str | None:
    if value is None:
        return None
    if isinstance(value, str) and not value.strip():
        return None
    return require_text(value, label, max_length=max_length)


def parse_choice(value: Any, label: str, choices: tuple[str, ...]) -> str:
    """Case-insensitive enum check; returns the canonical lower-case value."""
    if not isinstance(value, str) or value.strip().lower() not in choices:
        raise ValidationError(f"{label} must be one of: {', '.join(choices)}")
    return value.strip().lower()


def parse_positive_int(value: Any, label: str, *, maximum: int = MAX_INTEGER) -> int:
    """
    Strict integer parsing: rejects bools, floats with a fraction,
    scientific notation and blank strings, and values above maximum.
    """
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{label} must be a positive integer")
    if isinstance(value, int):
        number = value
    elif isinstance(value, float):
        if not value.is_integer():
            raise ValidationError(f"{label} must be an integer, not a decimal")
        number = int(value)
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped or not stripped.lstrip("-").isdigit():
            raise ValidationError(f"{label} must be a positive integer")
        number = int(stripped)
    else:
        raise ValidationError(f"{label} must be a positive integer")

    if number <= 0:
        raise ValidationError(f"{label} must be a positive integer")
    if number > maximum:
        raise ValidationError(f"{label} exceeds the maximum of {maximum}")
    return number


def parse_money_cents(value: Any, label: str, *, allow_zero: bool = True) -> int:
    """
    Parse a money amount (number or numeric string) into integer cents.

    Floats go through their shortest repr, so 0.1 becomes exactly 10 cents.
    More than two fractional digits is rejected rather than rounded.
    """
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{label} is required")
    if isinstance(value, (int, float)):
        raw = repr(value) if isinstance(value, float) else str(value)
    elif isinstance(value, str):
        raw = value.strip()
    else:
        raise ValidationError(f"{label} must be a number")

    try:
        amount = Decimal(raw)
    except InvalidOperation:
        raise ValidationError(f"{label} must be a number")

    if not amount.is_finite():
        raise ValidationError(f"{label} must be a finite number")
    if amount != amount.quantize(_CENT):
        raise ValidationError(f"{label} cannot have more than 2 decimal places")

    cents = int(amount.quantize(_CENT) * 100)
    if cents < 0:
        raise ValidationError(f"{label} must be non-negative")
    if cents == 0 and not allow_zero:
        raise ValidationError(f"{label} must be greater than zero")
    if cents > MAX_AMOUNT_CENTS:
        raise ValidationError(f"{label} exceeds the maximum of {format_money(MAX_AMOUNT_CENTS)}")
    return cents


def format_money(cents: int | None) -> str | None:
    """Render integer cents as a fixed 2-digit decimal string ("150.00")."""
    if cents is None:
        return None
    return str((Decimal(cents) / 100).quantize(_CENT))
