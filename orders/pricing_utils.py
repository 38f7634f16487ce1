# orders/pricing_utils.py
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from django.conf import settings

TWO_PLACES = Decimal('0.01')


def to_money(value):
    """Convert a number or numeric string to a 2-place Decimal.

    Raises ValueError for anything that is not a finite number.
    """
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise ValueError(f"Invalid amount: {value!r}")
    if not amount.is_finite():
        raise ValueError(f"Invalid amount: {value!r}")
    return amount.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def calculate_shipping(total_amount):
    """Flat fee below the free-shipping threshold, free at or above it"""
    if total_amount >= to_money(settings.FREE_SHIPPING_THRESHOLD):
        return Decimal('0.00')
    return to_money(settings.FLAT_SHIPPING_FEE)


def calculate_subtotal(lines):
    """Sum of snapshot price x quantity over order lines"""
    return to_money(sum((to_money(line['price']) * line['quantity'] for line in lines), Decimal('0')))


def calculate_order_totals(lines, discount=Decimal('0')):
    """
    Price a set of order lines.
    ``discount`` must already be clamped to the subtotal by the coupon evaluator.
    """
    total_amount = calculate_subtotal(lines)
    discount = to_money(discount)
    if discount < 0 or discount > total_amount:
        raise ValueError(f"Discount {discount} outside 0..{total_amount}")

    shipping_fee = calculate_shipping(total_amount)
    final_amount = total_amount - discount + shipping_fee

    return {
        'total_amount': total_amount,
        'shipping_fee': shipping_fee,
        'discount': discount,
        'final_amount': final_amount,
    }
