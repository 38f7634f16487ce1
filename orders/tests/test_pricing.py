"""Tests for the pricing calculator."""

from decimal import Decimal

import pytest

from orders.pricing_utils import calculate_order_totals, calculate_shipping, calculate_subtotal, to_money


class TestToMoney:

    def test_rounds_half_up_to_two_places(self):
        assert to_money("10.005") == Decimal("10.01")
        assert to_money(3) == Decimal("3.00")

    @pytest.mark.parametrize("value", ["abc", None, "NaN", "Infinity"])
    def test_rejects_non_numbers(self, value):
        with pytest.raises(ValueError):
            to_money(value)


class TestShipping:

    def test_flat_fee_below_threshold(self):
        assert calculate_shipping(Decimal("499.99")) == Decimal("50.00")

    def test_free_at_threshold(self):
        assert calculate_shipping(Decimal("500.00")) == Decimal("0.00")

    def test_threshold_comes_from_settings(self, settings):
        settings.FREE_SHIPPING_THRESHOLD = "1000"
        settings.FLAT_SHIPPING_FEE = "75"
        assert calculate_shipping(Decimal("600")) == Decimal("75.00")


class TestOrderTotals:

    def test_subtotal_sums_price_times_quantity(self):
        lines = [{"price": "300", "quantity": 2}, {"price": "99.50", "quantity": 1}]
        assert calculate_subtotal(lines) == Decimal("699.50")

    def test_free_shipping_and_no_discount(self):
        totals = calculate_order_totals([{"price": "300", "quantity": 2}])

        assert totals == {
            "total_amount": Decimal("600.00"),
            "shipping_fee": Decimal("0.00"),
            "discount": Decimal("0.00"),
            "final_amount": Decimal("600.00"),
        }

    def test_shipping_uses_pre_discount_total(self):
        # 520 qualifies for free shipping even though 520 - 100 is below it
        totals = calculate_order_totals([{"price": "520", "quantity": 1}], Decimal("100"))

        assert totals["shipping_fee"] == Decimal("0.00")
        assert totals["final_amount"] == Decimal("420.00")

    def test_small_order_pays_shipping(self):
        totals = calculate_order_totals([{"price": "120", "quantity": 1}], Decimal("20"))
        assert totals["final_amount"] == Decimal("150.00")

    @pytest.mark.parametrize("discount", ["-1", "600.01"])
    def test_discount_outside_total_is_rejected(self, discount):
        with pytest.raises(ValueError):
            calculate_order_totals([{"price": "300", "quantity": 2}], Decimal(discount))
