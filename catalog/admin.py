from django.contrib import admin
from .models import Product


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ('title', 'seller', 'price', 'mrp', 'stock', 'is_active', 'created_at')
    list_filter = ('is_active', 'seller')
    search_fields = ('title', 'slug')
    ordering = ('-created_at',)

    fieldsets = (
        ('Product Details', {
            'fields': ('title', 'slug', 'seller', 'is_active')
        }),
        ('Pricing', {
            'fields': ('price', 'mrp')
        }),
        ('Inventory', {
            'fields': ('stock',),
        }),
        ('Date Information', {
            'fields': ('created_at',),
        }),
    )

    readonly_fields = ('created_at',)
