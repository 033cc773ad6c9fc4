# Overview: Money helpers. Amounts are stored as integer cents and shown as 2dp strings.

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from .errors import ValidationError

CENT = Decimal("0.01")

# $9,999,999.99 keeps every amount well inside a 32-bit integer column
MAX_AMOUNT_CENTS = 999_999_999


def parse_amount(value, field: str = "amount") -> int:
    """
    Parse a client-supplied money value (number or numeric string) into cents.

    Rejects booleans, non-finite values, more than 2 decimal places and
    values above MAX_AMOUNT_CENTS. Sign is NOT checked here; callers decide
    whether zero or negative amounts make sense.
    """
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} is required")
    if isinstance(value, str):
        value = value.strip()
        if not value:
            raise ValidationError(f"{field} is required")
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number")
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a number")
    if amount != amount.quantize(CENT):
        raise ValidationError(f"{field} must have at most 2 decimal places")

    cents = int(amount * 100)
    if abs(cents) > MAX_AMOUNT_CENTS:
        raise ValidationError(f"{field} is too large")
    return cents


def parse_positive_amount(value, field: str = "amount") -> int:
    cents = parse_amount(value, field)
    if cents <= 0:
        raise ValidationError(f"{field} must be greater than 0")
    return cents


def apply_rate(cents: int, rate: Decimal) -> int:
    """cents x rate, rounded half-up to a whole cent."""
    return int((Decimal(cents) * rate).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def percent_of(cents: int, pct) -> int:
    return apply_rate(cents, Decimal(pct) / Decimal(100))


def cents_to_decimal(cents: int | None) -> Decimal | None:
    if cents is None:
        return None
    return (Decimal(cents) / 100).quantize(CENT)


def format_cents(cents: int | None) -> str | None:
    """16200 -> "162.00", -500 -> "-5.00"."""
    amount = cents_to_decimal(cents)
    return None if amount is None else str(amount)
