# orders/invoice_utils.py
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List

from django.conf import settings
from django.utils.module_loading import import_string

from marketplace.errors import InvoiceUnavailable

from .models import Order


@dataclass(frozen=True)
class InvoiceLine:
    title: str
    quantity: int
    price: Decimal
    total: Decimal


@dataclass(frozen=True)
class InvoiceSnapshot:
    """Everything an invoice needs, frozen at the moment of delivery"""

    order_number: str
    order_date: str
    delivered_at: str
    customer_name: str
    address_lines: List[str]
    payment_method: str
    total_amount: Decimal
    shipping_fee: Decimal
    discount: Decimal
    final_amount: Decimal
    lines: List[InvoiceLine] = field(default_factory=list)

    @classmethod
    def from_order(cls, order):
        if order.order_status != Order.Status.DELIVERED:
            raise InvoiceUnavailable()
        address = order.address
        return cls(
            order_number=order.order_number,
            order_date=order.created_at.strftime('%d-%b-%Y'),
            delivered_at=order.delivered_at.strftime('%d-%b-%Y') if order.delivered_at else "",
            customer_name=address.full_name,
            address_lines=[address.address, f"{address.city}, {address.state} - {address.pin_code}", address.phone_number],
            payment_method=order.get_payment_method_display(),
            total_amount=order.total_amount,
            shipping_fee=order.shipping_fee,
            discount=order.discount,
            final_amount=order.final_amount,
            lines=[
                InvoiceLine(title=item.title, quantity=item.quantity, price=item.price, total=item.total)
                for item in order.items.all()
            ],
        )


@dataclass(frozen=True)
class InvoiceDocument:
    filename: str
    content_type: str
    content: bytes


class TextInvoiceGenerator:
    """Plain-text invoice; swap in a PDF renderer through INVOICE_GENERATOR"""

    def generate(self, snapshot):
        rule = "═" * 48
        item_lines = "\n".join(
            f"• {line.title} (Qty: {line.quantity}, Price: ₹{line.price}) = ₹{line.total}"
            for line in snapshot.lines
        )
        address = "\n".join(snapshot.address_lines)
        text = f"""
INVOICE {snapshot.order_number}
Order Date: {snapshot.order_date}
Delivered: {snapshot.delivered_at}

{rule}

BILL TO:
{snapshot.customer_name}
{address}

{rule}

ITEMS:
{item_lines}

{rule}

Subtotal: ₹{snapshot.total_amount}
Shipping: ₹{snapshot.shipping_fee}
Discount: ₹{snapshot.discount}
TOTAL: ₹{snapshot.final_amount}
Paid via: {snapshot.payment_method}
        """.strip()
        return InvoiceDocument(
            filename=f"invoice-{snapshot.order_number}.txt",
            content_type="text/plain; charset=utf-8",
            content=text.encode("utf-8"),
        )


def build_invoice(order, generator=None):
    snapshot = InvoiceSnapshot.from_order(order)
    generator = generator or import_string(settings.INVOICE_GENERATOR)()
    return generator.generate(snapshot)
