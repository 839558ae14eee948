# Overview: Fixed-point helpers shared by every monetary and quantity computation.
"""
Money & quantity arithmetic (authoritative)

- Monetary values cross the boundary as decimals (e.g. 12.345) and are
  converted to integer cents, rounding half-up to the nearest cent, BEFORE any
  multiplication or allocation happens.
- All allocation math runs on integer cents; the sum of parts equals the whole.
- Cents are converted back to a 2-place Decimal only when persisting or
  serializing.
- Stock quantities are decimals persisted with 2 places.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP


CENT = Decimal("0.01")
ONE = Decimal("1")
ZERO = Decimal("0")


def to_decimal(value) -> Decimal:
    """
    Coerce int, float, str or Decimal into a Decimal.

    Floats go through str() so 0.1 stays 0.1 instead of its binary expansion.
    Raises ValueError for anything non-numeric or non-finite.
    """
    if isinstance(value, bool):
        raise ValueError(f"not a number: {value!r}")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float, str)):
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValueError(f"not a number: {value!r}") from None
    else:
        raise ValueError(f"not a number: {value!r}")

    if not result.is_finite():
        raise ValueError(f"not a finite number: {value!r}")
    return result


def round_cents(value) -> int:
    """Round a (possibly fractional) cent amount to an integer, half-up."""
    return int(to_decimal(value).quantize(ONE, rounding=ROUND_HALF_UP))


def to_cents(amount) -> int:
    """Decimal amount -> integer cents (nearest cent, half-up)."""
    if amount is None:
        return 0
    return round_cents(to_decimal(amount) * 100)


def cents_to_amount(cents: int) -> Decimal:
    """Integer cents -> 2-place Decimal amount."""
    return (Decimal(int(cents)) / 100).quantize(CENT)


def prorate_cents(part_cents: int, numerator_cents: int, whole_cents: int) -> int:
    """
    round(part * numerator / whole), half-up; 0 when whole is 0.

    Used to spread an aggregate (e.g. a sale-level discount) over a slice of
    the value it applied to.
    """
    if whole_cents == 0:
        return 0
    return round_cents(Decimal(part_cents) * Decimal(numerator_cents) / Decimal(whole_cents))


def quantize_quantity(value) -> Decimal:
    """Stock/line quantity with 2 decimal places."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def to_number(value: Decimal | None) -> float | int | None:
    """JSON-friendly number for API responses (ints stay ints)."""
    if value is None:
        return None
    value = to_decimal(value)
    if value == value.to_integral_value():
        return int(value)
    return float(value)
