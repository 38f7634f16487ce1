# catalog/stock_utils.py
import logging

from django.db.models import F

from marketplace.errors import NotFound

from .models import Product

logger = logging.getLogger(__name__)


class CatalogAccessor:
    """Product lookups and atomic stock adjustments for the order engine.

    Stock is never read-then-written: every change is a single conditional
    UPDATE, so concurrent checkouts cannot drive it below zero.
    """

    def get_product(self, product_id, active_only=True):
        queryset = Product.objects.all()
        if active_only:
            queryset = queryset.filter(is_active=True)
        try:
            return queryset.get(id=product_id)
        except (Product.DoesNotExist, ValueError, TypeError):
            raise NotFound("Product", product_id)

    def adjust_stock(self, product_id, delta):
        """Add ``delta`` (may be negative) to a product's stock.

        Returns False, changing nothing, when the result would be negative.
        """
        queryset = Product.objects.filter(id=product_id)
        if delta < 0:
            queryset = queryset.filter(stock__gte=-delta)
        updated = queryset.update(stock=F('stock') + delta)
        if not updated:
            logger.warning(f"Stock adjustment of {delta} refused for product #{product_id}")
        return updated == 1

    def reserve(self, product_id, quantity):
        return self.adjust_stock(product_id, -quantity)

    def release(self, product_id, quantity):
        return self.adjust_stock(product_id, quantity)
