# orders/status_utils.py
import logging
import random
import string
import time
from dataclasses import dataclass

from django.db import transaction
from django.utils import timezone

from accounts.models import User
from catalog.stock_utils import CatalogAccessor
from marketplace.errors import IllegalTransition, InsufficientStock, NotFound

from .models import Order
from .notify_utils import OrderEventDispatcher
from .query_utils import scope_orders

logger = logging.getLogger(__name__)

Status = Order.Status
Role = User.Role

# (role, current status) -> statuses that role may move the order to.
# Admins are not listed: they may move any order to any other status.
TRANSITIONS = {
    Role.CUSTOMER: {
        Status.PENDING: {Status.CANCELLED},
        Status.CONFIRMED: {Status.CANCELLED},
    },
    Role.SELLER: {
        Status.PENDING: {Status.CONFIRMED, Status.CANCELLED},
        Status.CONFIRMED: {Status.PROCESSING, Status.SHIPPED, Status.CANCELLED},
        Status.PROCESSING: {Status.SHIPPED},
    },
    Role.DELIVERY: {
        Status.SHIPPED: {Status.OUT_FOR_DELIVERY},
        Status.OUT_FOR_DELIVERY: {Status.DELIVERED},
    },
}


def allowed_targets(role, current):
    if role == Role.ADMIN:
        return set(Status.values) - {current}
    return set(TRANSITIONS.get(role, {}).get(current, set()))


def generate_tracking_number():
    timestamp = int(time.time() * 1000)
    suffix = ''.join(random.choices(string.ascii_uppercase + string.digits, k=6))
    return f"TRK{timestamp}{suffix}"


@dataclass
class TransitionResult:
    order: Order
    changed: bool
    previous_status: str


class OrderStatusMachine:
    """Role-scoped order status changes and their side effects.

    The order row is locked for the whole transition and
    ``Order.stock_released`` records whether the order still holds its
    reserved stock, so stock is given back once per reservation however
    the order reaches CANCELLED.
    """

    def __init__(self, catalog=None, events=None):
        self.catalog = catalog or CatalogAccessor()
        self.events = events or OrderEventDispatcher()

    def transition(self, actor, order_id, target, delivery_partner_id=None):
        if not scope_orders(actor, Order.objects.filter(pk=order_id)).exists():
            raise NotFound("Order", order_id)

        with transaction.atomic():
            order = Order.objects.select_for_update().get(pk=order_id)
            current = order.order_status

            if target not in Status.values:
                raise IllegalTransition(current, target, "unknown status")

            if target == current:
                if target == Status.CANCELLED:
                    logger.info(f"Order {order.order_number} already cancelled, nothing to do")
                    return TransitionResult(order=order, changed=False, previous_status=current)
                raise IllegalTransition(current, target, "order is already in this status")

            if target not in allowed_targets(actor.role, current):
                raise IllegalTransition(current, target)

            self._apply_effects(actor, order, current, target, delivery_partner_id)

            order.order_status = target
            order.save()
            self.events.order_status_changed(order, current, target)

        logger.info(f"Order {order.order_number}: {current} -> {target} by {actor.role} #{actor.id}")
        return TransitionResult(order=order, changed=True, previous_status=current)

    def _apply_effects(self, actor, order, current, target, delivery_partner_id):
        if target == Status.SHIPPED:
            self._assign_delivery(actor, order, current, delivery_partner_id)
        elif target == Status.DELIVERED:
            now = timezone.now()
            order.delivered_at = now
            order.estimated_delivery = now

        if target == Status.CANCELLED:
            self._restore_stock(order)
        elif order.stock_released and target != Status.RETURNED:
            self._reserve_stock(order)

    def _assign_delivery(self, actor, order, current, delivery_partner_id):
        if not delivery_partner_id:
            if actor.role == Role.ADMIN:
                return
            raise IllegalTransition(current, Status.SHIPPED, "a delivery partner is required")

        partner = User.objects.filter(pk=delivery_partner_id, role=Role.DELIVERY, is_active=True).first()
        if partner is None:
            raise IllegalTransition(current, Status.SHIPPED, f"user {delivery_partner_id} is not an active delivery partner")

        order.delivery_partner = partner
        tracking_number = generate_tracking_number()
        while Order.objects.filter(tracking_number=tracking_number).exists():
            tracking_number = generate_tracking_number()
        order.tracking_number = tracking_number

    def _restore_stock(self, order):
        """Give back stock reserved at checkout (compensates the order's decrements)"""
        if order.stock_released:
            logger.info(f"Order {order.order_number} holds no stock, nothing to restore")
            return
        for item in order.items.order_by('product_id'):
            self.catalog.release(item.product_id, item.quantity)
        order.stock_released = True
        logger.info(f"Stock restored for cancelled order {order.order_number}")

    def _reserve_stock(self, order):
        for item in order.items.select_related('product').order_by('product_id'):
            if not self.catalog.reserve(item.product_id, item.quantity):
                raise InsufficientStock(item.product, item.quantity)
        order.stock_released = False
        logger.info(f"Stock re-reserved for reopened order {order.order_number}")
