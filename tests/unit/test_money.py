"""Tests for Money and half-up cent rounding."""

from decimal import Decimal

import pytest

from billing_kernel.domain.values import Money, round_half_up_cents


class TestRoundHalfUpCents:
    def test_half_cent_rounds_up(self):
        assert round_half_up_cents(Decimal("12.5")) == 13

    def test_below_half_rounds_down(self):
        assert round_half_up_cents(Decimal("12.49")) == 12

    def test_negative_half_rounds_away_from_zero(self):
        assert round_half_up_cents(Decimal("-0.5")) == -1

    def test_rejects_float(self):
        with pytest.raises(TypeError):
            round_half_up_cents(12.5)


class TestMoneyConstruction:
    def test_defaults_to_usd(self):
        assert Money(100).currency == "USD"

    def test_currency_is_normalized(self):
        assert Money(100, " eur ").currency == "EUR"

    @pytest.mark.parametrize("cents", [1.5, True, Decimal("1"), "100"])
    def test_non_int_cents_rejected(self, cents):
        with pytest.raises(TypeError):
            Money(cents)

    @pytest.mark.parametrize("currency", ["US", "USDX", "12$", ""])
    def test_bad_currency_rejected(self, currency):
        with pytest.raises(ValueError):
            Money(100, currency)

    def test_is_hashable_and_immutable(self):
        m = Money(100)
        assert {m: 1}[Money(100)] == 1
        with pytest.raises(AttributeError):
            m.cents = 5


class TestMoneyArithmetic:
    def test_add_and_subtract(self):
        assert Money(150) + Money(50) == Money(200)
        assert Money(150) - Money(50) == Money(100)

    def test_mixed_currency_rejected(self):
        with pytest.raises(ValueError, match="different currencies"):
            Money(100, "USD") + Money(100, "EUR")

    def test_min(self):
        assert Money(15000).min(Money(10000)) == Money(10000)
        assert Money(500).min(Money(10000)) == Money(500)

    def test_comparisons(self):
        assert Money(1) < Money(2)
        assert Money(2) >= Money(2)
        assert Money.zero().is_zero
        assert Money(1).is_positive

    def test_percent(self):
        assert Money(300000).percent(Decimal("5")) == Money(15000)

    def test_percent_rounds_half_up(self):
        # 10 cents at 5% is 0.5 cent
        assert Money(10).percent(Decimal("5")) == Money(1)
        # 9 cents at 5% is 0.45 cent
        assert Money(9).percent(Decimal("5")) == Money(0)

    def test_percent_rejects_float_rate(self):
        with pytest.raises(TypeError):
            Money(100).percent(5.0)

    def test_str(self):
        assert str(Money(150005)) == "1500.05 USD"
        assert str(Money(-5)) == "-0.05 USD"
