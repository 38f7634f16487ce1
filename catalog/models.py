# catalog/models.py
from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils.text import slugify


def unique_product_slug(title, exclude_pk=None):
    base = slugify(title)[:180] or 'product'
    taken = set(
        Product.objects.filter(slug__startswith=base)
        .exclude(pk=exclude_pk)
        .values_list('slug', flat=True)
    )
    candidate, suffix = base, 1
    while candidate in taken:
        candidate = f"{base}-{suffix}"
        suffix += 1
    return candidate


class Product(models.Model):
    seller = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='products')
    title = models.CharField(max_length=200)
    slug = models.SlugField(max_length=200, unique=True, blank=True)
    price = models.DecimalField(max_digits=10, decimal_places=2)
    mrp = models.DecimalField(max_digits=10, decimal_places=2, help_text="Maximum retail price, shown as the struck-out price")
    stock = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.CheckConstraint(condition=Q(stock__gte=0), name='product_stock_non_negative'),
        ]

    def save(self, *args, **kwargs):
        if not self.slug:
            self.slug = unique_product_slug(self.title, exclude_pk=self.pk)
        super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.title} (stock: {self.stock})"
