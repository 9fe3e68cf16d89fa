"""Validation helpers shared across budgeting services."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterable, Optional

from .exceptions import ValidationError
from .models import CATEGORIES


def _quantize_two_decimals(amount: Decimal) -> Decimal:
    """Round the amount to two decimal places using HALF_UP rounding."""
    return amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def _to_decimal(raw: object, field: str) -> Decimal:
    if isinstance(raw, bool):
        raise ValidationError(f"{field} must be a numeric value")
    try:
        amount = Decimal(str(raw).strip())
    except (InvalidOperation, TypeError) as exc:
        raise ValidationError(f"{field} must be a numeric value") from exc
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    return amount


def parse_amount(raw: object, field: str) -> Decimal:
    """Convert raw input to a positive Decimal with exactly two fraction digits."""
    amount = _to_decimal(raw, field)
    if amount <= 0:
        raise ValidationError(f"{field} must be greater than zero")
    return _quantize_two_decimals(amount)


def parse_non_negative_amount(raw: object, field: str) -> Decimal:
    amount = _to_decimal(raw, field)
    if amount < 0:
        raise ValidationError(f"{field} cannot be negative")
    return _quantize_two_decimals(amount)


def parse_uses(raw: object) -> int:
    """Parse an expected number of uses, clamping anything below one up to one."""
    try:
        uses = int(str(raw).strip())
    except (TypeError, ValueError):
        return 1
    return max(1, uses)


def validate_optional_str(value: object, field: str, max_length: int) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    trimmed = value.strip()
    if len(trimmed) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters")
    return trimmed


def validate_category(value: object, allowed: Iterable[str] = CATEGORIES) -> str:
    """Match a category case-insensitively and return its canonical spelling."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("category cannot be empty")
    canonical = value.strip().lower()
    for category in allowed:
        if category.lower() == canonical:
            return category
    raise ValidationError(f"category must be one of: {', '.join(allowed)}")


def validate_passphrase(value: Optional[str]) -> str:
    if value is None or not value.strip():
        raise ValidationError("passphrase cannot be empty")
    return value
