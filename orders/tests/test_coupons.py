"""Tests for coupon evaluation and redemption."""

from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone

from orders.coupon_utils import CouponEvaluator
from orders.models import Coupon


@pytest.fixture
def evaluator():
    return CouponEvaluator()


class TestEvaluate:

    def test_percentage_with_minimum(self, evaluator, make_coupon):
        make_coupon(code="WELCOME10", value="10", min_amount=Decimal("1000"))

        result = evaluator.evaluate("WELCOME10", Decimal("1200"))

        assert result.applied
        assert result.discount == Decimal("120.00")
        assert result.reason == ""

    def test_percentage_is_capped_by_max_discount(self, evaluator, make_coupon):
        make_coupon(code="BIG50", value="50", max_discount=Decimal("200"))

        result = evaluator.evaluate("BIG50", Decimal("1000"))

        assert result.discount == Decimal("200.00")

    def test_fixed_discount_is_clamped_to_total(self, evaluator, make_coupon):
        make_coupon(code="FLAT500", type=Coupon.Type.FIXED, value="500")

        result = evaluator.evaluate("FLAT500", Decimal("350"))

        assert result.applied
        assert result.discount == Decimal("350.00")

    def test_unknown_code(self, evaluator, db):
        result = evaluator.evaluate("NOPE", Decimal("100"))

        assert not result.applied
        assert result.reason == "Coupon does not exist"
        assert result.coupon is None

    def test_below_minimum_amount(self, evaluator, make_coupon):
        make_coupon(code="WELCOME10", value="10", min_amount=Decimal("1000"))

        result = evaluator.evaluate("WELCOME10", Decimal("999.99"))

        assert not result.applied
        assert result.discount == Decimal("0.00")
        assert "Minimum order amount" in result.reason

    @pytest.mark.parametrize(
        "overrides, reason",
        [
            ({"is_active": False}, "Coupon is not active"),
            ({"valid_from_offset": timedelta(days=1)}, "Coupon is not valid yet"),
            ({"valid_until_offset": timedelta(days=-1)}, "Coupon has expired"),
            ({"usage_limit": 5, "used_count": 5}, "Coupon usage limit reached"),
        ],
    )
    def test_rejection_reasons(self, evaluator, make_coupon, overrides, reason):
        now = timezone.now()
        fields = dict(overrides)
        if "valid_from_offset" in fields:
            fields["valid_from"] = now + fields.pop("valid_from_offset")
        if "valid_until_offset" in fields:
            fields["valid_until"] = now + fields.pop("valid_until_offset")
        make_coupon(code="SALE", **fields)

        result = evaluator.evaluate("SALE", Decimal("1000"), now=now)

        assert not result.applied
        assert result.reason == reason


class TestRedeem:

    def test_increments_used_count(self, evaluator, make_coupon):
        coupon = make_coupon(usage_limit=2)

        assert evaluator.redeem(coupon, Decimal("100"))
        coupon.refresh_from_db()
        assert coupon.used_count == 1

    def test_refuses_at_usage_limit(self, evaluator, make_coupon):
        coupon = make_coupon(usage_limit=1)

        assert evaluator.redeem(coupon, Decimal("100"))
        assert not evaluator.redeem(coupon, Decimal("100"))

        coupon.refresh_from_db()
        assert coupon.used_count == 1

    def test_rechecks_rules_in_the_update(self, evaluator, make_coupon):
        coupon = make_coupon()
        # deactivated after it was evaluated
        Coupon.objects.filter(pk=coupon.pk).update(is_active=False)

        assert not evaluator.redeem(coupon, Decimal("100"))

    def test_rechecks_minimum_amount(self, evaluator, make_coupon):
        coupon = make_coupon(min_amount=Decimal("1000"))

        assert not evaluator.redeem(coupon, Decimal("500"))
