"""JSON shapes returned by the order, cart and payment views."""


def _iso(value):
    return value.isoformat() if value else None


def serialize_cart_item(item):
    product = item.product
    return {
        "id": item.id,
        "product_id": product.id,
        "title": product.title,
        "slug": product.slug,
        "price": float(product.price),
        "mrp": float(product.mrp),
        "stock": product.stock,
        "is_active": product.is_active,
        "quantity": item.quantity,
    }


def serialize_cart(cart):
    summary = cart["summary"]
    return {
        "items": [serialize_cart_item(item) for item in cart["items"]],
        "summary": {
            "itemCount": summary["item_count"],
            "totalQuantity": summary["total_quantity"],
            "subtotal": float(summary["subtotal"]),
            "totalMRP": float(summary["total_mrp"]),
            "savings": float(summary["savings"]),
        },
    }


def serialize_order_item(item):
    return {
        "id": item.id,
        "product_id": item.product_id,
        "title": item.title,
        "price": float(item.price),
        "quantity": item.quantity,
        "total": float(item.total),
    }


def serialize_payment(payment):
    return {
        "id": payment.id,
        "order_id": payment.order_id,
        "amount": float(payment.amount),
        "method": payment.method,
        "status": payment.status,
        "transaction_id": payment.transaction_id,
        "message": payment.message,
        "gateway_response": payment.gateway_response,
        "created_at": _iso(payment.created_at),
    }


def serialize_order(order, detail=False):
    data = {
        "id": order.id,
        "order_number": order.order_number,
        "user_id": order.user_id,
        "address_id": order.address_id,
        "total_amount": float(order.total_amount),
        "shipping_fee": float(order.shipping_fee),
        "discount": float(order.discount),
        "final_amount": float(order.final_amount),
        "coupon_code": order.coupon_code,
        "payment_method": order.payment_method,
        "payment_status": order.payment_status,
        "order_status": order.order_status,
        "delivery_partner_id": order.delivery_partner_id,
        "tracking_number": order.tracking_number,
        "estimated_delivery": _iso(order.estimated_delivery),
        "delivered_at": _iso(order.delivered_at),
        "notes": order.notes,
        "created_at": _iso(order.created_at),
        "updated_at": _iso(order.updated_at),
        "items": [serialize_order_item(item) for item in order.items.all()],
    }
    if detail:
        data["address"] = order.address.as_dict()
        data["payments"] = [serialize_payment(payment) for payment in order.payments.all()]
    return data
