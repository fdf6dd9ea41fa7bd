from decimal import Decimal

import pytest

from bambora_service.money import Price, round_price


def test_round_half_up_to_cents():
    assert round_price(Price(Decimal("10.005"), "CAD")).number == Decimal("10.01")
    assert round_price(Price(Decimal("10.004"), "CAD")).number == Decimal("10.00")


def test_round_uses_currency_minor_units():
    assert round_price(Price(Decimal("1234.5"), "JPY")).number == Decimal("1235")
    assert round_price(Price(Decimal("1.2345"), "KWD")).number == Decimal("1.235")


def test_price_arithmetic():
    total = Price(Decimal("10.00"), "cad").add(Price(Decimal("2.50"), "CAD"))
    assert total == Price(Decimal("12.50"), "CAD")
    assert total.subtract(Price(Decimal("12.50"), "CAD")).is_zero()
    assert Price(Decimal("1"), "CAD").less_than(total)


def test_mixed_currencies_are_rejected():
    with pytest.raises(ValueError):
        Price(Decimal("1"), "CAD").add(Price(Decimal("1"), "USD"))
