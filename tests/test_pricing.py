"""Server-side cost computation."""

from decimal import Decimal

import pytest

from paygate.host.pricing import currency_exponent, round_cost


def test_surcharge_is_applied_as_percent():
    assert round_cost(Decimal("100.00"), "USD", Decimal("2.5")) == Decimal("102.50")


def test_rounds_half_up_to_cents():
    assert round_cost(Decimal("10.005"), "USD") == Decimal("10.01")
    assert round_cost(Decimal("10.004"), "usd") == Decimal("10.00")


@pytest.mark.parametrize(
    "currency, exponent, expected",
    [
        ("JPY", 0, Decimal("1235")),
        ("KWD", 3, Decimal("1234.568")),
        ("EUR", 2, Decimal("1234.57")),
    ],
)
def test_minor_units_follow_currency(currency, exponent, expected):
    assert currency_exponent(currency) == exponent
    assert round_cost(Decimal("1234.5678"), currency) == expected
