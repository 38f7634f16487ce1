# orders/order_utils.py
import logging
import random
import string
import time
from dataclasses import dataclass

from django.conf import settings
from django.db import IntegrityError, transaction

from accounts.utils import AddressBook
from catalog.stock_utils import CatalogAccessor
from marketplace.errors import (
    CouponRejected,
    EmptyCart,
    InsufficientStock,
    OrderCreationFailed,
    PaymentValidationFailed,
    ProductUnavailable,
)

from .coupon_utils import CouponEvaluator
from .models import CartItem, Order, OrderItem
from .notify_utils import OrderEventDispatcher
from .pricing_utils import calculate_order_totals, calculate_subtotal, to_money

logger = logging.getLogger(__name__)

ORDER_NUMBER_ATTEMPTS = 2


def generate_order_number(prefix=None):
    """Prefix + last 6 digits of the ms clock + 4 random characters.

    Unique only with high probability; the caller handles collisions.
    """
    prefix = prefix if prefix is not None else settings.ORDER_NUMBER_PREFIX
    timestamp = str(int(time.time() * 1000))
    suffix = ''.join(random.choices(string.ascii_uppercase + string.digits, k=4))
    return f"{prefix}{timestamp[-6:]}{suffix}"


@dataclass
class OrderCreationResult:
    order: Order
    coupon_warning: str = ""


class OrderCreationEngine:
    """Turns a user's cart into a priced, stock-reserved order.

    Everything between reading the cart and clearing it runs in one
    database transaction: stock decrements, the coupon usage increment,
    the order rows and the cart delete commit together or not at all.
    """

    def __init__(self, catalog=None, address_book=None, coupons=None, events=None,
                 number_generator=generate_order_number, coupon_policy=None):
        self.catalog = catalog or CatalogAccessor()
        self.address_book = address_book or AddressBook()
        self.coupons = coupons or CouponEvaluator()
        self.events = events or OrderEventDispatcher()
        self.number_generator = number_generator
        self.coupon_policy = coupon_policy or settings.COUPON_REJECTION_POLICY

    def create_order(self, user_id, address_id, payment_method, coupon_code=None, notes=None, strict_coupon=None):
        if payment_method not in Order.PaymentMethod.values:
            raise PaymentValidationFailed(f"Invalid payment method: {payment_method}")
        if strict_coupon is None:
            strict_coupon = self.coupon_policy == "strict"
        coupon_code = (coupon_code or "").strip() or None

        address = self.address_book.get_address(address_id, user_id)

        with transaction.atomic():
            cart_items = list(
                CartItem.objects.filter(user_id=user_id)
                .select_related('product')
                .order_by('product_id')
            )
            if not cart_items:
                raise EmptyCart()

            lines = self.snapshot_lines(cart_items)
            subtotal = calculate_subtotal(lines)

            discount, applied_code, coupon_warning = self._apply_coupon(coupon_code, subtotal, strict_coupon)
            totals = calculate_order_totals(lines, discount)

            order = self._insert_order(
                user_id=user_id,
                address=address,
                notes=notes,
                payment_method=payment_method,
                coupon_code=applied_code,
                **totals,
            )
            OrderItem.objects.bulk_create([
                OrderItem(
                    order=order,
                    product=line['product'],
                    title=line['title'],
                    price=line['price'],
                    quantity=line['quantity'],
                    total=line['total'],
                )
                for line in lines
            ])

            # lines are sorted by product id so concurrent checkouts lock rows in the same order
            for line in lines:
                if not self.catalog.reserve(line['product'].id, line['quantity']):
                    raise InsufficientStock(line['product'], line['quantity'])

            CartItem.objects.filter(user_id=user_id).delete()
            self.events.order_created(order)

        logger.info(
            f"Order {order.order_number} created for user #{user_id}: "
            f"total={order.total_amount} discount={order.discount} final={order.final_amount}"
        )
        return OrderCreationResult(order=order, coupon_warning=coupon_warning)

    @staticmethod
    def snapshot_lines(cart_items):
        """Capture price at purchase time and validate every line"""
        lines = []
        for item in cart_items:
            product = item.product
            if not product.is_active:
                raise ProductUnavailable(product)
            if product.stock < item.quantity:
                raise InsufficientStock(product, item.quantity)

            price = to_money(product.price)
            lines.append({
                'product': product,
                'title': product.title,
                'price': price,
                'quantity': item.quantity,
                'total': price * item.quantity,
            })
        return lines

    def _apply_coupon(self, coupon_code, subtotal, strict):
        """Returns (discount, applied code or None, warning)"""
        if not coupon_code:
            return to_money(0), None, ""

        result = self.coupons.evaluate(coupon_code, subtotal)
        reason = result.reason
        if result.applied and result.discount > 0:
            if self.coupons.redeem(result.coupon, subtotal):
                return result.discount, result.code, ""
            reason = "Coupon usage limit reached"
        elif result.applied:
            reason = "Coupon gives no discount on this order"

        if strict:
            raise CouponRejected(coupon_code, reason)
        logger.info(f"Coupon {coupon_code} ignored at checkout: {reason}")
        return to_money(0), None, reason

    def _insert_order(self, **fields):
        for attempt in range(1, ORDER_NUMBER_ATTEMPTS + 1):
            order_number = self.number_generator()
            try:
                with transaction.atomic():
                    return Order.objects.create(order_number=order_number, **fields)
            except IntegrityError:
                if not Order.objects.filter(order_number=order_number).exists():
                    raise
                logger.warning(f"Order number collision on {order_number} (attempt {attempt})")
        raise OrderCreationFailed("Could not allocate a unique order number, please retry")
