import logging
from decimal import Decimal

from django.core.paginator import EmptyPage, Paginator
from django.db.models import Count, Q, Sum
from django.utils import timezone

from accounts.models import User
from marketplace.errors import MarketplaceError, NotFound

from .models import Order, OrderItem

logger = logging.getLogger(__name__)

Role = User.Role
MAX_PAGE_SIZE = 100

REVENUE_STATUSES = (
    Order.Status.CONFIRMED,
    Order.Status.PROCESSING,
    Order.Status.SHIPPED,
    Order.Status.OUT_FOR_DELIVERY,
    Order.Status.DELIVERED,
)


def scope_orders(actor, queryset=None):
    """Restrict an Order queryset to what ``actor`` is allowed to see"""
    queryset = Order.objects.all() if queryset is None else queryset
    if actor.role == Role.ADMIN:
        return queryset
    if actor.role == Role.CUSTOMER:
        return queryset.filter(user_id=actor.id)
    if actor.role == Role.SELLER:
        return queryset.filter(items__product__seller_id=actor.id).distinct()
    if actor.role == Role.DELIVERY:
        return queryset.filter(delivery_partner_id=actor.id)
    return queryset.none()


def get_order(actor, order_id):
    queryset = scope_orders(actor).select_related('address', 'user', 'delivery_partner').prefetch_related('items', 'payments')
    try:
        return queryset.get(pk=order_id)
    except (Order.DoesNotExist, ValueError, TypeError):
        raise NotFound("Order", order_id)


def list_orders(actor, status=None, search=None, page=1, limit=10):
    try:
        page = max(int(page), 1)
        limit = min(max(int(limit), 1), MAX_PAGE_SIZE)
    except (TypeError, ValueError):
        raise MarketplaceError("page and limit must be whole numbers")

    queryset = scope_orders(actor).select_related('address').prefetch_related('items')
    if status:
        if status not in Order.Status.values:
            raise MarketplaceError(f"Unknown order status: {status}")
        queryset = queryset.filter(order_status=status)
    if search and actor.role == Role.ADMIN:
        queryset = queryset.filter(
            Q(order_number__icontains=search) | Q(user__email__icontains=search) | Q(user__username__icontains=search)
        )

    paginator = Paginator(queryset.order_by('-created_at', '-id'), limit)
    try:
        orders_page = paginator.page(page)
        orders = list(orders_page.object_list)
    except EmptyPage:
        orders = []

    return {
        'orders': orders,
        'pagination': {
            'page': page,
            'limit': limit,
            'total': paginator.count,
            'pages': paginator.num_pages if paginator.count else 0,
        },
    }


def dashboard_stats(actor):
    """Order counters for the actor's dashboard"""
    today_start = timezone.now().replace(hour=0, minute=0, second=0, microsecond=0)

    if actor.role == Role.SELLER:
        orders = scope_orders(actor)
        revenue = OrderItem.objects.filter(
            product__seller_id=actor.id,
            order__order_status__in=REVENUE_STATUSES,
        ).aggregate(total=Sum('total'))['total']
        return {
            'total_orders': orders.count(),
            'pending_orders': orders.filter(order_status=Order.Status.PENDING).count(),
            'total_revenue': revenue or Decimal('0.00'),
        }

    if actor.role == Role.DELIVERY:
        orders = scope_orders(actor)
        return {
            'total_orders': orders.count(),
            'awaiting_pickup': orders.filter(order_status=Order.Status.SHIPPED).count(),
            'out_for_delivery': orders.filter(order_status=Order.Status.OUT_FOR_DELIVERY).count(),
            'delivered_orders': orders.filter(order_status=Order.Status.DELIVERED).count(),
            'today_deliveries': orders.filter(order_status=Order.Status.DELIVERED, delivered_at__gte=today_start).count(),
        }

    if actor.role == Role.ADMIN:
        by_status = dict(
            Order.objects.values_list('order_status').annotate(count=Count('id')).order_by()
        )
        revenue = Order.objects.filter(order_status=Order.Status.DELIVERED).aggregate(total=Sum('final_amount'))['total']
        return {
            'total_orders': sum(by_status.values()),
            'orders_by_status': {status: by_status.get(status, 0) for status in Order.Status.values},
            'total_revenue': revenue or Decimal('0.00'),
            'orders_today': Order.objects.filter(created_at__gte=today_start).count(),
        }

    orders = scope_orders(actor)
    return {
        'total_orders': orders.count(),
        'active_orders': orders.exclude(order_status__in=Order.TERMINAL_STATUSES).count(),
        'delivered_orders': orders.filter(order_status=Order.Status.DELIVERED).count(),
    }


def delivery_partners():
    return User.objects.filter(role=Role.DELIVERY, is_active=True).order_by('first_name', 'username')
