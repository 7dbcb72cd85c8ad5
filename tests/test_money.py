from __future__ import annotations

from decimal import Decimal

import pytest

from fiskal.utils.money import format_amount, mul, round2, to_decimal, total


class TestRound2:
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("1.125", "1.13"),
            ("1.124", "1.12"),
            ("0.005", "0.01"),
            ("2.675", "2.68"),
            ("-1.125", "-1.13"),
            ("-0.005", "-0.01"),
            ("10", "10.00"),
        ],
    )
    def test_half_up_away_from_zero(self, value, expected):
        assert round2(Decimal(value)) == Decimal(expected)

    def test_always_two_places(self):
        assert str(round2(Decimal("3"))) == "3.00"

    def test_not_bankers_rounding(self):
        # ROUND_HALF_EVEN would give 0.02
        assert round2(Decimal("0.025")) == Decimal("0.03")


class TestToDecimal:
    def test_float_goes_through_repr(self):
        assert to_decimal(0.1) == Decimal("0.1")

    def test_repeating_decimal_product_rounds_to_one(self):
        third = to_decimal(1.0 / 3.0)
        assert round2(mul(third, to_decimal(3.0))) == Decimal("1.00")

    def test_int_and_decimal(self):
        assert to_decimal(5) == Decimal(5)
        assert to_decimal(Decimal("2.50")) == Decimal("2.50")

    def test_rejects_str_by_default(self):
        with pytest.raises(TypeError):
            to_decimal("1.00")

    def test_str_when_allowed(self):
        assert to_decimal(" 3.75 ", allow_str=True) == Decimal("3.75")

    def test_rejects_non_numeric_str(self):
        with pytest.raises(TypeError):
            to_decimal("abc", allow_str=True)

    @pytest.mark.parametrize("value", [True, None, [], float("nan"), float("inf")])
    def test_rejects_non_numbers(self, value):
        with pytest.raises(TypeError):
            to_decimal(value)


class TestArithmetic:
    def test_small_decimal_product(self):
        assert round2(mul(to_decimal(0.1), to_decimal(0.2))) == Decimal("0.02")

    def test_large_product_exact(self):
        a = Decimal("999999.99")
        assert mul(a, a) == Decimal("999999980000.0001")

    def test_total_of_nothing_is_zero(self):
        assert total([]) == Decimal("0.00")
        assert str(total([])) == "0.00"


class TestFormatAmount:
    def test_two_decimals(self):
        assert format_amount(Decimal("25")) == "25.00"
        assert format_amount(Decimal("1.125")) == "1.13"

    def test_negative(self):
        assert format_amount(Decimal("-2.5")) == "-2.50"

    def test_no_negative_zero(self):
        assert format_amount(Decimal("-0.001")) == "0.00"
