"""
Fixed-precision money helpers.

Every amount in the system is a ``Decimal`` with exactly two fractional
digits. Floats are rejected here; the HTTP boundary converts JSON numbers
through ``str`` before they reach this module (see validation.parse_money).

Rounding is banker's rounding (ROUND_HALF_EVEN) and happens only in
``quantize``; everything else composes exact Decimal arithmetic.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_EVEN

MONEY_PLACES = 2
CENT = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")

# Largest single amount accepted from callers; keeps minor units inside a 64-bit column
MAX_AMOUNT = Decimal("9999999.99")


class MoneyError(ValueError):
    """Raised when a value cannot be interpreted as a money amount."""


def to_decimal(value) -> Decimal:
    """Coerce ``value`` (Decimal, int or numeric string) to Decimal. Floats are refused."""
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool):
        raise MoneyError("Boolean is not a money amount")
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except InvalidOperation as exc:
            raise MoneyError(f"Invalid amount: {value!r}") from exc
    elif isinstance(value, float):
        raise MoneyError("Floats are not accepted as money; pass a string or Decimal")
    else:
        raise MoneyError(f"Unsupported amount type: {type(value).__name__}")

    if not result.is_finite():
        raise MoneyError(f"Invalid amount: {value!r}")
    return result


def quantize(value) -> Decimal:
    """Round to the cent with banker's rounding."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_EVEN)


def to_money(value) -> Decimal:
    """Quantize caller input, refusing amounts beyond MAX_AMOUNT either way."""
    amount = to_decimal(value)
    if abs(amount) > MAX_AMOUNT:
        raise MoneyError(f"Amount cannot exceed {MAX_AMOUNT}")
    return quantize(amount)


def floor_zero(value: Decimal) -> Decimal:
    return value if value > ZERO else ZERO


def percentage_of(amount: Decimal, percentage: Decimal) -> Decimal:
    """``amount * percentage / 100`` rounded to the cent."""
    return quantize(to_decimal(amount) * to_decimal(percentage) / HUNDRED)


def money_sum(values) -> Decimal:
    total = ZERO
    for value in values:
        total += to_decimal(value)
    return quantize(total)


def money_str(value) -> str | None:
    """Serialize for JSON: always two decimals, never a float."""
    if value is None:
        return None
    return f"{quantize(value):.2f}"
