import logging

from django.http import HttpResponse, JsonResponse
from django.views.decorators.cache import never_cache
from django.views.decorators.http import require_GET, require_POST

from accounts.models import User
from marketplace.errors import MarketplaceError

from .cart_utils import CartStore
from .decorators import api_view, require_roles
from .invoice_utils import build_invoice
from .models import Order, Payment
from .notify_utils import build_event_dispatcher
from .order_utils import OrderCreationEngine
from .payment_utils import build_payment_dispatcher
from .query_utils import dashboard_stats, delivery_partners, get_order, list_orders
from .serializers import serialize_cart, serialize_cart_item, serialize_order, serialize_payment
from .status_utils import OrderStatusMachine

logger = logging.getLogger(__name__)

Role = User.Role

PAYMENT_METHODS = [
    {"id": "COD", "name": "Cash on Delivery", "description": "Pay when you receive your order", "icon": "💵"},
    {"id": "DEBIT_CARD", "name": "Debit Card", "description": "Visa, Mastercard, RuPay", "icon": "💳"},
    {"id": "CREDIT_CARD", "name": "Credit Card", "description": "Visa, Mastercard, American Express", "icon": "💎"},
    {"id": "UPI", "name": "UPI", "description": "Google Pay, PhonePe, Paytm, BHIM", "icon": "📱"},
    {"id": "NET_BANKING", "name": "Net Banking", "description": "All major banks supported", "icon": "🏦"},
    {"id": "WALLET", "name": "Wallet", "description": "Paytm, Amazon Pay, etc.", "icon": "👛"},
]


def _cart_store():
    return CartStore()


def _order_engine():
    return OrderCreationEngine(events=build_event_dispatcher())


def _status_machine():
    return OrderStatusMachine(events=build_event_dispatcher())


def _payment_dispatcher():
    return build_payment_dispatcher(events=build_event_dispatcher())


# ==================== CART ====================

@never_cache
@require_GET
@api_view
def cart_detail(request):
    """Cart lines with subtotal / MRP / savings summary"""
    cart = _cart_store().list(request.actor.id)
    return JsonResponse({"success": True, "data": serialize_cart(cart)})


@require_POST
@api_view
def add_to_cart(request):
    product_id = request.data.get("productId")
    if not product_id:
        raise MarketplaceError("productId is required")
    item = _cart_store().add(request.actor.id, product_id, request.data.get("quantity", 1))
    return JsonResponse({"success": True, "message": "Item added to cart", "data": serialize_cart_item(item)})


@require_POST
@api_view
def update_cart_item(request, item_id):
    item = _cart_store().update(request.actor.id, item_id, request.data.get("quantity"))
    return JsonResponse({"success": True, "message": "Cart updated", "data": serialize_cart_item(item)})


@require_POST
@api_view
def remove_cart_item(request, item_id):
    _cart_store().remove(request.actor.id, item_id)
    return JsonResponse({"success": True, "message": "Item removed from cart"})


@require_POST
@api_view
def clear_cart(request):
    _cart_store().clear(request.actor.id)
    return JsonResponse({"success": True, "message": "Cart cleared"})


# ==================== ORDERS ====================

@require_POST
@api_view
@require_roles(Role.CUSTOMER, Role.ADMIN)
def create_order(request):
    data = request.data
    address_id = data.get("addressId")
    if not address_id:
        raise MarketplaceError("addressId is required")

    result = _order_engine().create_order(
        user_id=request.actor.id,
        address_id=address_id,
        payment_method=data.get("paymentMethod"),
        coupon_code=data.get("couponCode"),
        notes=data.get("notes"),
        strict_coupon=data.get("strictCoupon"),
    )
    payload = {"success": True, "message": "Order created successfully", "data": serialize_order(result.order)}
    if result.coupon_warning:
        payload["warning"] = {"error": "CouponRejected", "message": result.coupon_warning}
    return JsonResponse(payload, status=201)


@require_GET
@api_view
def order_list(request):
    result = list_orders(
        request.actor,
        status=request.GET.get("status"),
        search=request.GET.get("search"),
        page=request.GET.get("page", 1),
        limit=request.GET.get("limit", 10),
    )
    return JsonResponse({
        "success": True,
        "data": {
            "orders": [serialize_order(order) for order in result["orders"]],
            "pagination": result["pagination"],
        },
    })


@require_GET
@api_view
def order_detail(request, order_id):
    order = get_order(request.actor, order_id)
    return JsonResponse({"success": True, "data": serialize_order(order, detail=True)})


@require_POST
@api_view
def update_order_status(request, order_id):
    status = request.data.get("status")
    if not status:
        raise MarketplaceError("status is required")

    result = _status_machine().transition(
        request.actor,
        order_id,
        status,
        delivery_partner_id=request.data.get("deliveryPartnerId"),
    )
    message = f"Order {status.lower().replace('_', ' ')} successfully" if result.changed else "Order already in requested status"
    order = get_order(request.actor, order_id)
    return JsonResponse({"success": True, "message": message, "data": serialize_order(order)})


@require_POST
@api_view
@require_roles(Role.CUSTOMER)
def cancel_order(request, order_id):
    result = _status_machine().transition(request.actor, order_id, Order.Status.CANCELLED)
    message = "Order cancelled successfully" if result.changed else "Order was already cancelled"
    order = get_order(request.actor, order_id)
    return JsonResponse({"success": True, "message": message, "data": serialize_order(order)})


@require_GET
@api_view
def order_invoice(request, order_id):
    document = build_invoice(get_order(request.actor, order_id))
    response = HttpResponse(document.content, content_type=document.content_type)
    response["Content-Disposition"] = f'attachment; filename="{document.filename}"'
    return response


@require_GET
@api_view
def order_dashboard(request):
    stats = dashboard_stats(request.actor)
    return JsonResponse({"success": True, "data": {key: float(value) if not isinstance(value, (int, dict)) else value
                                                    for key, value in stats.items()}})


@require_GET
@api_view
@require_roles(Role.SELLER, Role.ADMIN)
def delivery_partner_list(request):
    partners = [
        {
            "id": partner.id,
            "username": partner.username,
            "name": partner.get_full_name(),
            "email": partner.email,
            "phone": partner.phone_number,
        }
        for partner in delivery_partners()
    ]
    return JsonResponse({"success": True, "data": partners})


# ==================== PAYMENTS ====================

@require_GET
def payment_methods(request):
    methods = [{**method, "enabled": True} for method in PAYMENT_METHODS]
    return JsonResponse({"success": True, "data": {"methods": methods}})


@never_cache
@require_POST
@api_view
def process_payment(request):
    data = request.data
    order_id = data.get("orderId")
    if not order_id:
        raise MarketplaceError("orderId is required")
    if data.get("amount") in (None, ""):
        raise MarketplaceError("amount is required")

    payment = _payment_dispatcher().process_payment(
        request.actor,
        order_id,
        data.get("method"),
        data.get("amount"),
        data.get("paymentData"),
    )
    return JsonResponse({
        "success": True,
        "data": {
            "paymentId": payment.id,
            "transactionId": payment.transaction_id,
            "status": "SUCCESS",
            "message": payment.message,
            "method": payment.method,
        },
    })


@require_GET
@api_view
def payment_detail(request, payment_id):
    payment = Payment.objects.select_related("order").filter(pk=payment_id, order__user_id=request.actor.id).first()
    if payment is None and request.actor.is_admin:
        payment = Payment.objects.select_related("order").filter(pk=payment_id).first()
    if payment is None:
        return JsonResponse({"success": False, "error": "NotFound", "message": "Payment not found"}, status=404)

    data = serialize_payment(payment)
    data["order"] = {
        "order_number": payment.order.order_number,
        "total_amount": float(payment.order.total_amount),
        "final_amount": float(payment.order.final_amount),
    }
    return JsonResponse({"success": True, "data": data})
