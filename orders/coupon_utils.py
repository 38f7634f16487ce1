# orders/coupon_utils.py
import logging
from dataclasses import dataclass
from decimal import Decimal

from django.db.models import F, Q
from django.utils import timezone

from .models import Coupon
from .pricing_utils import to_money

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CouponResult:
    code: str
    applied: bool
    discount: Decimal = Decimal('0.00')
    reason: str = ""
    coupon: Coupon = None


class CouponEvaluator:
    """Stateless pricing rules for discount coupons.

    ``evaluate`` never raises for an inapplicable coupon; it returns a
    result with ``applied=False`` and the reason, and the caller decides
    whether that is a warning or an error.
    """

    def evaluate(self, code, candidate_total, now=None):
        now = now or timezone.now()
        candidate_total = to_money(candidate_total)

        coupon = Coupon.objects.filter(code=code).first()
        if coupon is None:
            return CouponResult(code=code, applied=False, reason="Coupon does not exist")

        reason = self.rejection_reason(coupon, candidate_total, now)
        if reason:
            logger.info(f"Coupon {code} not applied: {reason}")
            return CouponResult(code=code, applied=False, reason=reason, coupon=coupon)

        return CouponResult(
            code=code,
            applied=True,
            discount=self.calculate_discount(coupon, candidate_total),
            coupon=coupon,
        )

    @staticmethod
    def rejection_reason(coupon, candidate_total, now):
        if not coupon.is_active:
            return "Coupon is not active"
        if now < coupon.valid_from:
            return "Coupon is not valid yet"
        if now > coupon.valid_until:
            return "Coupon has expired"
        if coupon.usage_limit is not None and coupon.used_count >= coupon.usage_limit:
            return "Coupon usage limit reached"
        if coupon.min_amount is not None and candidate_total < coupon.min_amount:
            return f"Minimum order amount is {coupon.min_amount}"
        return ""

    @staticmethod
    def calculate_discount(coupon, candidate_total):
        if coupon.type == Coupon.Type.PERCENTAGE:
            discount = candidate_total * coupon.value / Decimal('100')
            if coupon.max_discount is not None:
                discount = min(discount, coupon.max_discount)
        else:
            discount = coupon.value
        # never discount below a zero total
        return to_money(min(discount, candidate_total))

    def redeem(self, coupon, candidate_total, now=None):
        """Count one use of ``coupon``, re-checking its rules in the same UPDATE.

        Returns False when a concurrent redemption got there first.
        """
        now = now or timezone.now()
        updated = (
            Coupon.objects.filter(
                id=coupon.id,
                is_active=True,
                valid_from__lte=now,
                valid_until__gte=now,
            )
            .filter(Q(usage_limit__isnull=True) | Q(used_count__lt=F('usage_limit')))
            .filter(Q(min_amount__isnull=True) | Q(min_amount__lte=to_money(candidate_total)))
            .update(used_count=F('used_count') + 1)
        )
        return updated == 1
