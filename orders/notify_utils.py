import hashlib
import hmac
import json
import logging
from functools import partial

import requests
from django.conf import settings
from django.core.mail import send_mail
from django.core.serializers.json import DjangoJSONEncoder
from django.db import transaction
from django.utils.module_loading import import_string

logger = logging.getLogger(__name__)


class OrderEventSink:
    """Receiver of engine events. Subclasses override what they care about."""

    def order_created(self, order):
        pass

    def order_status_changed(self, order, old_status, new_status):
        pass

    def payment_processed(self, order, payment):
        pass


class EmailNotificationSink(OrderEventSink):
    """Customer emails for new orders, status changes and payment outcomes"""

    def order_created(self, order):
        items = list(order.items.all())
        item_names = [item.title for item in items[:3]]
        items_text = ", ".join(item_names)
        if len(items) > 3:
            items_text += f" and {len(items) - 3} more"

        message = f"""
Marketplace - Order Placed!

═══════════════════════════════════════

📋 ORDER DETAILS:
Order Number: {order.order_number}
Items: {items_text}
Subtotal: ₹{order.total_amount}
Shipping: ₹{order.shipping_fee}
Discount: ₹{order.discount}
Total: ₹{order.final_amount}
Payment Method: {order.get_payment_method_display()}

═══════════════════════════════════════

Thank you for shopping with us! 😊
        """.strip()

        self._send(order, f'Order Placed - {order.order_number}', message)

    def order_status_changed(self, order, old_status, new_status):
        lines = [
            f"Your order {order.order_number} is now {order.get_order_status_display().upper()}.",
        ]
        if new_status == order.Status.SHIPPED and order.tracking_number:
            lines.append(f"Tracking Number: {order.tracking_number}")
        if new_status == order.Status.CANCELLED:
            lines.append("Any payment made will be refunded to the original payment method.")

        self._send(order, f'Order {order.order_number} - {new_status.replace("_", " ").title()}', "\n\n".join(lines))

    def payment_processed(self, order, payment):
        if payment.status == payment.Status.COMPLETED:
            message = f"We received your payment of ₹{payment.amount} for order {order.order_number}.\nTransaction ID: {payment.transaction_id}"
        else:
            message = f"Your payment of ₹{payment.amount} for order {order.order_number} did not go through.\nReason: {payment.message}\nYou can retry the payment from your orders page."

        self._send(order, f'Payment {payment.status.title()} - {order.order_number}', message)

    @staticmethod
    def _send(order, subject, message):
        if not order.user.email:
            logger.info(f"No email on file for order {order.order_number}, skipping notification")
            return
        send_mail(
            subject=subject,
            message=message,
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=[order.user.email],
            fail_silently=False,
        )
        logger.info(f"Email '{subject}' sent for order {order.order_number}")


class AnalyticsWebhookSink(OrderEventSink):
    """POST signed JSON events to an analytics collector, if one is configured"""

    def __init__(self, url=None, secret=None, timeout=None):
        self.url = url if url is not None else settings.ANALYTICS_WEBHOOK_URL
        self.secret = secret if secret is not None else settings.ANALYTICS_WEBHOOK_SECRET
        self.timeout = timeout or settings.ANALYTICS_WEBHOOK_TIMEOUT

    def order_created(self, order):
        self._post("order_created", order, {
            "final_amount": order.final_amount,
            "discount": order.discount,
            "coupon_code": order.coupon_code,
            "item_count": order.items.count(),
        })

    def order_status_changed(self, order, old_status, new_status):
        self._post("order_status_changed", order, {"from": old_status, "to": new_status})

    def payment_processed(self, order, payment):
        self._post("payment_processed", order, {
            "payment_id": payment.id,
            "method": payment.method,
            "status": payment.status,
            "amount": payment.amount,
        })

    def sign(self, body):
        return hmac.new(self.secret.encode("utf-8"), body, hashlib.sha256).hexdigest()

    def _post(self, event, order, data):
        if not self.url:
            return
        body = json.dumps({
            "event": event,
            "order_id": order.id,
            "order_number": order.order_number,
            "data": data,
        }, cls=DjangoJSONEncoder).encode("utf-8")
        headers = {
            "Content-Type": "application/json",
            "X-Marketplace-Signature": self.sign(body),
        }
        response = requests.post(self.url, data=body, headers=headers, timeout=self.timeout)
        response.raise_for_status()
        logger.info(f"Analytics event {event} delivered for order {order.order_number}")


class OrderEventDispatcher:
    """Fan out events to sinks once the surrounding transaction commits.

    A failing sink is logged and skipped; it never fails the operation that
    raised the event.
    """

    def __init__(self, sinks=None):
        self.sinks = list(sinks or [])

    def order_created(self, order):
        self._dispatch("order_created", order)

    def order_status_changed(self, order, old_status, new_status):
        self._dispatch("order_status_changed", order, old_status, new_status)

    def payment_processed(self, order, payment):
        self._dispatch("payment_processed", order, payment)

    def _dispatch(self, event, *args):
        transaction.on_commit(partial(self._deliver, event, args))

    def _deliver(self, event, args):
        for sink in self.sinks:
            try:
                getattr(sink, event)(*args)
            except Exception as e:
                logger.error(f"{type(sink).__name__} failed on {event}: {str(e)}", exc_info=True)


def build_event_dispatcher():
    sinks = [import_string(path)() for path in settings.ORDER_EVENT_SINKS]
    return OrderEventDispatcher(sinks)
