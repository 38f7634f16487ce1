"""Tests for invoice snapshots and the text generator."""

from decimal import Decimal

import pytest
from django.utils import timezone

from marketplace.errors import InvoiceUnavailable
from orders.invoice_utils import InvoiceDocument, InvoiceSnapshot, build_invoice
from orders.models import Order
from orders.order_utils import OrderCreationEngine


@pytest.fixture
def order(events, customer, address, make_product, fill_cart):
    fill_cart(customer, (make_product(title="Notebook", price="150", stock=5), 2))
    return OrderCreationEngine(events=events).create_order(customer.id, address.id, "UPI").order


def mark_delivered(order):
    Order.objects.filter(pk=order.pk).update(order_status=Order.Status.DELIVERED, delivered_at=timezone.now())
    order.refresh_from_db()


class OrderNumberGenerator:
    def generate(self, snapshot):
        return InvoiceDocument(filename="x.txt", content_type="text/plain", content=snapshot.order_number.encode())


def test_only_delivered_orders_have_invoices(order):
    with pytest.raises(InvoiceUnavailable):
        InvoiceSnapshot.from_order(order)


def test_snapshot_carries_lines_and_amounts(order):
    mark_delivered(order)

    snapshot = InvoiceSnapshot.from_order(order)

    assert snapshot.customer_name == "Asha Menon"
    assert snapshot.payment_method == "UPI"
    assert snapshot.final_amount == Decimal("350.00")
    assert [(line.title, line.quantity, line.total) for line in snapshot.lines] == [("Notebook", 2, Decimal("300.00"))]


def test_text_invoice(order):
    mark_delivered(order)

    document = build_invoice(order)

    assert document.filename == f"invoice-{order.order_number}.txt"
    text = document.content.decode("utf-8")
    assert f"INVOICE {order.order_number}" in text
    assert "Notebook (Qty: 2, Price: ₹150.00) = ₹300.00" in text
    assert "TOTAL: ₹350.00" in text


def test_generator_is_pluggable(order):
    mark_delivered(order)

    document = build_invoice(order, generator=OrderNumberGenerator())

    assert document.content == order.order_number.encode()
