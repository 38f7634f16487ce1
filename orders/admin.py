from django.contrib import admin, messages

from accounts.utils import Actor
from marketplace.errors import MarketplaceError

from .models import CartItem, Coupon, Order, OrderItem, Payment
from .notify_utils import build_event_dispatcher
from .status_utils import OrderStatusMachine


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    readonly_fields = ('product', 'title', 'price', 'quantity', 'total')  # Snapshot taken at checkout
    fields = ('product', 'title', 'price', 'quantity', 'total')
    can_delete = False  # Prevent accidental deletion in inline view


class PaymentInline(admin.TabularInline):
    model = Payment
    extra = 0
    readonly_fields = ('amount', 'method', 'status', 'transaction_id', 'message', 'created_at')
    fields = readonly_fields
    can_delete = False


def _transition_selected(modeladmin, request, queryset, target):
    """Run the status machine for every selected order, reporting failures per order"""
    machine = OrderStatusMachine(events=build_event_dispatcher())
    actor = Actor.from_user(request.user)
    moved = 0
    for order in queryset:
        try:
            if machine.transition(actor, order.pk, target).changed:
                moved += 1
        except MarketplaceError as e:
            modeladmin.message_user(request, f"{order.order_number}: {e.message}", level=messages.ERROR)
    if moved:
        modeladmin.message_user(request, f"{moved} order(s) moved to {target}", level=messages.SUCCESS)


@admin.action(description="Confirm selected orders")
def confirm_orders(modeladmin, request, queryset):
    _transition_selected(modeladmin, request, queryset, Order.Status.CONFIRMED)


@admin.action(description="Cancel selected orders (restores stock)")
def cancel_orders(modeladmin, request, queryset):
    _transition_selected(modeladmin, request, queryset, Order.Status.CANCELLED)


@admin.action(description="Mark selected orders as delivered")
def deliver_orders(modeladmin, request, queryset):
    _transition_selected(modeladmin, request, queryset, Order.Status.DELIVERED)


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = (
        "order_number",
        "user",
        "order_status",
        "payment_method",
        "payment_status",
        "final_amount",
        "delivery_partner",
        "tracking_number",
        "created_at",
    )

    list_filter = (
        "order_status",
        "payment_status",
        "payment_method",
        "created_at",
    )

    search_fields = (
        "order_number",
        "user__username",
        "user__email",
        "tracking_number",
        "coupon_code",
    )

    # Status and money only change through the engine (actions below)
    readonly_fields = (
        'order_number',
        'user',
        'address',
        'total_amount',
        'shipping_fee',
        'discount',
        'final_amount',
        'coupon_code',
        'payment_method',
        'payment_status',
        'order_status',
        'delivery_partner',
        'tracking_number',
        'estimated_delivery',
        'delivered_at',
        'stock_released',
        'created_at',
        'updated_at',
    )

    inlines = [OrderItemInline, PaymentInline]
    actions = [confirm_orders, cancel_orders, deliver_orders]

    fieldsets = (
        ("Customer", {
            "fields": (
                "order_number",
                "user",
                "address",
                "notes",
            )
        }),
        ("Payment & Pricing", {
            "fields": (
                "payment_method",
                "payment_status",
                "total_amount",
                "shipping_fee",
                "discount",
                "coupon_code",
                "final_amount",
            )
        }),
        ("Fulfillment", {
            "fields": (
                "order_status",
                "delivery_partner",
                "tracking_number",
                "estimated_delivery",
                "delivered_at",
                "stock_released",
            )
        }),
        ("System Metadata", {
            "fields": (
                "created_at",
                "updated_at",
            ),
            "classes": ("collapse",)  # Collapsible section
        }),
    )

    def get_queryset(self, request):
        return super().get_queryset(request).select_related('user', 'delivery_partner').prefetch_related('items')


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ("id", "order", "method", "amount", "status", "transaction_id", "created_at")
    list_filter = ("status", "method", ("created_at", admin.DateFieldListFilter))
    search_fields = ("transaction_id", "order__order_number")
    readonly_fields = ("order", "amount", "method", "status", "transaction_id", "message", "gateway_response", "created_at")
    list_select_related = ("order",)


@admin.register(Coupon)
class CouponAdmin(admin.ModelAdmin):
    list_display = ("code", "type", "value", "min_amount", "max_discount", "used_count", "usage_limit",
                    "valid_from", "valid_until", "is_active")
    list_filter = ("type", "is_active")
    search_fields = ("code",)
    readonly_fields = ("used_count", "created_at")


@admin.register(CartItem)
class CartItemAdmin(admin.ModelAdmin):
    list_display = ("id", "user", "product", "quantity", "updated_at")
    search_fields = ("user__username", "product__title")
    list_select_related = ("user", "product")
