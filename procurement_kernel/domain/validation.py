"""
Lightweight domain validation helpers (kernel primitives).

Pure checks with no I/O.  Used at the data-validation boundary of every
module service so that malformed input is rejected before any transition
runs.  Values outside an enumeration are rejected, never coerced.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, TypeVar
from uuid import UUID

from procurement_kernel.exceptions import ValidationError

E = TypeVar("E", bound=Enum)

SUPPORTED_CURRENCIES: tuple[str, ...] = ("CNY", "USD", "EUR", "JPY", "HKD")


def coerce_enum(enum_cls: type[E], value: Any, field: str) -> E:
    """Return ``enum_cls(value)`` or raise ValidationError naming the field."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationError(
            f"{value!r} is not a valid {field}", field=field,
        ) from None


def require_text(value: Any, field: str) -> str:
    """Return the stripped string or raise when missing/blank."""
    if value is None or not str(value).strip():
        raise ValidationError(f"{field} is required", field=field)
    return str(value).strip()


def optional_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def to_decimal(value: Any, field: str, default: Decimal | None = None) -> Decimal:
    """Parse a Decimal from str/int/Decimal.  Floats go through ``str``."""
    if value is None:
        if default is None:
            raise ValidationError(f"{field} is required", field=field)
        return default
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number", field=field) from None


def require_non_negative(value: Decimal, field: str) -> Decimal:
    if value < 0:
        raise ValidationError(f"{field} cannot be negative", field=field)
    return value


def require_positive(value: Decimal, field: str) -> Decimal:
    if value <= 0:
        raise ValidationError(f"{field} must be greater than 0", field=field)
    return value


def require_range(
    value: Decimal,
    field: str,
    minimum: Decimal,
    maximum: Decimal,
) -> Decimal:
    if value < minimum or value > maximum:
        raise ValidationError(
            f"{field} must be between {minimum} and {maximum}", field=field,
        )
    return value


def to_uuid(value: Any, field: str) -> UUID:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (ValueError, TypeError, AttributeError):
        raise ValidationError(f"{field} must be a valid identifier", field=field) from None


def require_currency(
    value: Any,
    field: str = "currency",
    allowed: tuple[str, ...] = SUPPORTED_CURRENCIES,
) -> str:
    code = require_text(value, field).upper()
    if code not in allowed:
        raise ValidationError(f"{value!r} is not a valid {field}", field=field)
    return code
