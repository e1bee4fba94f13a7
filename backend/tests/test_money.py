from decimal import Decimal

import pytest

from salondesk.money import (
    MAX_AMOUNT,
    MoneyError,
    ZERO,
    floor_zero,
    money_str,
    money_sum,
    percentage_of,
    quantize,
    to_decimal,
    to_money,
)


def test_quantize_uses_bankers_rounding():
    assert quantize("0.125") == Decimal("0.12")
    assert quantize("0.135") == Decimal("0.14")
    assert quantize("2.675") == Decimal("2.68")
    assert quantize(3) == Decimal("3.00")


def test_floats_and_booleans_are_refused():
    with pytest.raises(MoneyError):
        to_decimal(0.1)
    with pytest.raises(MoneyError):
        to_decimal(True)
    with pytest.raises(MoneyError):
        to_decimal("abc")
    with pytest.raises(MoneyError):
        to_decimal("NaN")


def test_percentage_of_rounds_to_the_cent():
    assert percentage_of(Decimal("100.00"), Decimal("3")) == Decimal("3.00")
    assert percentage_of(Decimal("10.50"), Decimal("1")) == Decimal("0.10")
    assert percentage_of(Decimal("11.50"), Decimal("1")) == Decimal("0.12")


def test_sum_and_serialization():
    assert money_sum(["0.10", "0.20", Decimal("0.30")]) == Decimal("0.60")
    assert money_sum([]) == ZERO
    assert money_str(Decimal("7")) == "7.00"
    assert money_str(None) is None


def test_floor_zero():
    assert floor_zero(Decimal("-5.00")) == ZERO
    assert floor_zero(Decimal("5.00")) == Decimal("5.00")


def test_to_money_bounds_caller_input():
    assert to_money("9999999.99") == MAX_AMOUNT
    assert to_money("-9999999.99") == -MAX_AMOUNT
    with pytest.raises(MoneyError):
        to_money("10000000.00")
    with pytest.raises(MoneyError):
        to_money("1" + "0" * 40)
