# orders/cart_utils.py
import logging
from decimal import Decimal

from django.db import IntegrityError, transaction

from catalog.stock_utils import CatalogAccessor
from marketplace.errors import InsufficientStock, MarketplaceError, NotFound

from .models import CartItem
from .pricing_utils import to_money

logger = logging.getLogger(__name__)


def _validate_quantity(quantity):
    try:
        quantity = int(quantity)
    except (TypeError, ValueError):
        raise MarketplaceError("Quantity must be a whole number")
    if quantity < 1:
        raise MarketplaceError("Quantity must be at least 1")
    return quantity


class CartStore:
    """Per-user product -> quantity lines.

    The cart is advisory: stock is checked here but only reserved when an
    order is created.
    """

    def __init__(self, catalog=None):
        self.catalog = catalog or CatalogAccessor()

    def add(self, user_id, product_id, quantity=1):
        quantity = _validate_quantity(quantity)
        product = self.catalog.get_product(product_id)

        try:
            item = self._merge_line(user_id, product, quantity)
        except IntegrityError:
            # a concurrent add created the line first, merge into it (once)
            logger.info(f"Cart line race for user #{user_id}, product #{product.id}; retrying as merge")
            item = self._merge_line(user_id, product, quantity)

        logger.info(f"Cart: user #{user_id} now has {item.quantity} x product #{product.id}")
        return item

    def _merge_line(self, user_id, product, quantity):
        with transaction.atomic():
            item = (
                CartItem.objects.select_for_update()
                .filter(user_id=user_id, product_id=product.id)
                .first()
            )
            requested_total = quantity + (item.quantity if item else 0)
            if product.stock < requested_total:
                raise InsufficientStock(product, requested_total)

            if item:
                item.quantity = requested_total
                item.save(update_fields=['quantity', 'updated_at'])
            else:
                item = CartItem.objects.create(user_id=user_id, product=product, quantity=quantity)
        return item

    def update(self, user_id, item_id, quantity):
        quantity = _validate_quantity(quantity)
        item = self._get_item(user_id, item_id)
        if item.product.stock < quantity:
            raise InsufficientStock(item.product, quantity)

        item.quantity = quantity
        item.save(update_fields=['quantity', 'updated_at'])
        return item

    def remove(self, user_id, item_id):
        item = self._get_item(user_id, item_id)
        item.delete()
        logger.info(f"Cart: removed line #{item_id} for user #{user_id}")

    def clear(self, user_id):
        deleted, _ = CartItem.objects.filter(user_id=user_id).delete()
        return deleted

    def list(self, user_id):
        items = list(CartItem.objects.filter(user_id=user_id).select_related('product'))
        return {
            'items': items,
            'summary': self.summarize(items),
        }

    @staticmethod
    def summarize(items):
        subtotal = sum((item.product.price * item.quantity for item in items), Decimal('0'))
        total_mrp = sum((item.product.mrp * item.quantity for item in items), Decimal('0'))
        return {
            'item_count': len(items),
            'total_quantity': sum(item.quantity for item in items),
            'subtotal': to_money(subtotal),
            'total_mrp': to_money(total_mrp),
            'savings': to_money(total_mrp - subtotal),
        }

    def _get_item(self, user_id, item_id):
        try:
            return CartItem.objects.select_related('product').get(id=item_id, user_id=user_id)
        except (CartItem.DoesNotExist, ValueError, TypeError):
            raise NotFound("Cart item", item_id)
