"""Shared fixtures: users per role, products, carts, coupons and engines."""

from datetime import timedelta
from decimal import Decimal

import pytest
from django.core.cache import cache
from django.utils import timezone

from accounts.models import Address, User
from catalog.models import Product
from orders.models import CartItem, Coupon
from orders.notify_utils import OrderEventDispatcher, OrderEventSink


class RecordingSink(OrderEventSink):
    """Keeps every delivered event for assertions."""

    def __init__(self):
        self.events = []

    def order_created(self, order):
        self.events.append(("order_created", order.order_number))

    def order_status_changed(self, order, old_status, new_status):
        self.events.append(("order_status_changed", order.order_number, old_status, new_status))

    def payment_processed(self, order, payment):
        self.events.append(("payment_processed", order.order_number, payment.status))


@pytest.fixture(autouse=True)
def engine_settings(settings):
    settings.FREE_SHIPPING_THRESHOLD = "500"
    settings.FLAT_SHIPPING_FEE = "50"
    settings.COUPON_REJECTION_POLICY = "silent"
    settings.PAYMENT_SIMULATION_DELAY = 0
    settings.PAYMENT_SUCCESS_RATE = 100
    settings.PAYMENT_TIMEOUT = 5
    settings.ANALYTICS_WEBHOOK_URL = None
    settings.EMAIL_BACKEND = "django.core.mail.backends.locmem.EmailBackend"
    cache.clear()
    yield settings
    cache.clear()


def make_user(username, role, **extra):
    return User.objects.create_user(
        username=username,
        email=extra.pop("email", f"{username}@example.com"),
        password="pass12345",
        role=role,
        **extra,
    )


@pytest.fixture
def customer(db):
    return make_user("asha", User.Role.CUSTOMER, first_name="Asha")


@pytest.fixture
def other_customer(db):
    return make_user("ravi", User.Role.CUSTOMER)


@pytest.fixture
def seller(db):
    return make_user("books_and_more", User.Role.SELLER)


@pytest.fixture
def other_seller(db):
    return make_user("gadget_hub", User.Role.SELLER)


@pytest.fixture
def courier(db):
    return make_user("courier1", User.Role.DELIVERY, first_name="Kiran")


@pytest.fixture
def platform_admin(db):
    return make_user("ops", User.Role.ADMIN)


@pytest.fixture
def address(customer):
    return Address.objects.create(
        user=customer,
        full_name="Asha Menon",
        phone_number="9876543210",
        address="12 MG Road",
        city="Bengaluru",
        state="Karnataka",
        pin_code="560001",
        is_default=True,
    )


@pytest.fixture
def make_product(seller):
    def factory(title="Notebook", price="300", stock=5, mrp=None, owner=None, **extra):
        return Product.objects.create(
            seller=owner or seller,
            title=title,
            price=Decimal(price),
            mrp=Decimal(mrp or price),
            stock=stock,
            **extra,
        )
    return factory


@pytest.fixture
def fill_cart():
    def fill(user, *lines):
        for product, quantity in lines:
            CartItem.objects.create(user=user, product=product, quantity=quantity)
    return fill


@pytest.fixture
def make_coupon(db):
    def factory(code="WELCOME10", type=Coupon.Type.PERCENTAGE, value="10", **extra):
        now = timezone.now()
        fields = {
            "valid_from": now - timedelta(days=1),
            "valid_until": now + timedelta(days=30),
        }
        fields.update(extra)
        return Coupon.objects.create(code=code, type=type, value=Decimal(value), **fields)
    return factory


@pytest.fixture
def recorder():
    return RecordingSink()


@pytest.fixture
def events(recorder):
    return OrderEventDispatcher([recorder])
