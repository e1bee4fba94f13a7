from __future__ import annotations

from decimal import Decimal

from sqlalchemy.types import Integer, TypeDecorator

from ..money import to_decimal


class ScaledDecimal(TypeDecorator):
    """
    Decimal stored as a scaled integer (minor units).

    SQLite has no native decimal type, so amounts are persisted the way the
    POS tables persist ``*_cents`` columns and handed back to Python as
    Decimal with ``places`` fractional digits.
    """

    impl = Integer
    cache_ok = True

    def __init__(self, places: int = 2, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.places = places
        self._scale = Decimal(10) ** places
        self._exponent = Decimal(1).scaleb(-places)

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        scaled = to_decimal(value).quantize(self._exponent) * self._scale
        return int(scaled)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return (Decimal(value) / self._scale).quantize(self._exponent)


def Money():
    """Column type for a 2-decimal money amount."""
    return ScaledDecimal(2)


def Percentage():
    """Column type for a 0-100 percentage with 2 decimals (e.g. 3.49)."""
    return ScaledDecimal(2)


__all__ = ["ScaledDecimal", "Money", "Percentage"]
