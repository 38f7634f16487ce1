"""Tests for payment validation, the simulated gateway and the dispatcher."""

import random
import threading
from datetime import date
from decimal import Decimal

import pytest
from django.core.cache import cache

from accounts.utils import Actor
from marketplace.errors import (
    AmountMismatch,
    IllegalTransition,
    NotFound,
    PaymentAlreadyCompleted,
    PaymentDeclined,
    PaymentInProgress,
    PaymentTimeout,
    PaymentValidationFailed,
)
from orders.models import Order, Payment
from orders.order_utils import OrderCreationEngine
from orders.payment_utils import (
    CardDetails,
    PaymentDispatcher,
    SimulatedGateway,
    WalletDetails,
    build_payment_dispatcher,
    card_type,
    parse_payment_details,
    validate_card_number,
    validate_expiry,
    validate_upi_id,
)
from orders.status_utils import OrderStatusMachine

VALID_CARD = {"cardNumber": "4111 1111 1111 1111", "expiryMonth": 12, "expiryYear": date.today().year + 2,
              "cvv": "123", "cardHolder": "ASHA MENON"}


class BlockingGateway:
    """Never answers until released"""

    def __init__(self):
        self.release = threading.Event()

    def charge(self, method, details, amount):
        self.release.wait(5)
        return None


class InterleavingDispatcher(PaymentDispatcher):
    """Runs ``interleave`` after the gateway answers, before the outcome is recorded"""

    def __init__(self, interleave, **kwargs):
        super().__init__(**kwargs)
        self.interleave = interleave

    def _charge(self, method, details, amount):
        result = super()._charge(method, details, amount)
        self.interleave()
        return result


@pytest.fixture
def pending_order(events, customer, address, make_product, fill_cart):
    fill_cart(customer, (make_product(price="300", stock=5), 2))
    return OrderCreationEngine(events=events).create_order(customer.id, address.id, "CREDIT_CARD").order


@pytest.fixture
def dispatcher(events):
    return PaymentDispatcher(gateway=SimulatedGateway(delay=0, success_rate=100), events=events)


@pytest.fixture
def buyer(customer):
    return Actor.from_user(customer)


class TestValidators:

    def test_card_number_ignores_spaces(self):
        assert validate_card_number("4111 1111 1111 1111")
        assert not validate_card_number("4111 1111 1111")
        assert not validate_card_number("4111-1111-1111-1111")

    def test_expiry(self):
        today = date(2026, 6, 15)
        assert validate_expiry(6, 2026, today=today)
        assert not validate_expiry(5, 2026, today=today)
        assert not validate_expiry(12, 2025, today=today)
        assert not validate_expiry(13, 2030, today=today)
        assert not validate_expiry("x", 2030, today=today)

    def test_upi_id(self):
        assert validate_upi_id("asha@okaxis")
        assert not validate_upi_id("asha")

    def test_card_brand_from_first_digit(self):
        assert card_type("4111111111111111") == "Visa"
        assert card_type("5500000000000004") == "Mastercard"
        assert card_type("340000000000009") == "American Express"
        assert card_type("6011000000000004") == "Unknown"

    def test_parse_card(self):
        details = parse_payment_details("DEBIT_CARD", VALID_CARD)

        assert isinstance(details, CardDetails)
        assert details.card_number == "4111111111111111"

    def test_parse_wallet_normalises_phone(self):
        details = parse_payment_details("WALLET", {"walletType": "Paytm", "phone": "98765-43210"})

        assert details == WalletDetails(wallet_type="Paytm", phone="9876543210")

    def test_cod_needs_no_details(self):
        assert parse_payment_details("COD", None) is None

    @pytest.mark.parametrize(
        "method, data",
        [
            ("CREDIT_CARD", None),
            ("CREDIT_CARD", {**VALID_CARD, "cvv": "12"}),
            ("UPI", {"upiId": "no-at-sign"}),
            ("NET_BANKING", {"bankCode": ""}),
            ("WALLET", {"walletType": "Paytm", "phone": "12345"}),
        ],
    )
    def test_invalid_details(self, method, data):
        with pytest.raises(PaymentValidationFailed):
            parse_payment_details(method, data)


class TestSimulatedGateway:

    def test_card_response_shape(self):
        gateway = SimulatedGateway(delay=0, success_rate=100, rng=random.Random(7))

        result = gateway.charge("CREDIT_CARD", CardDetails.parse(VALID_CARD), Decimal("600"))

        assert result.success
        assert result.transaction_id.startswith("CC-")
        response = result.response.as_dict()
        assert response["method"] == "CARD"
        assert response["card_last4"] == "1111"
        assert response["card_type"] == "Visa"
        assert len(response["auth_code"]) == 6

    def test_wallet_phone_is_masked(self):
        gateway = SimulatedGateway(delay=0, success_rate=100)
        details = WalletDetails(wallet_type="Paytm", phone="9876543210")

        response = gateway.charge("WALLET", details, Decimal("10")).response.as_dict()

        assert response["phone"] == "******3210"

    def test_declines_at_zero_success_rate(self):
        gateway = SimulatedGateway(delay=0, success_rate=0)

        result = gateway.charge("UPI", parse_payment_details("UPI", {"upiId": "asha@okaxis"}), Decimal("10"))

        assert not result.success
        assert result.transaction_id is None
        assert result.message == "UPI payment failed - Please try again"


class TestProcessPayment:

    def test_card_payment_confirms_order(self, dispatcher, buyer, pending_order):
        payment = dispatcher.process_payment(buyer, pending_order.id, "CREDIT_CARD", "600.00", VALID_CARD)

        assert payment.status == Payment.Status.COMPLETED
        assert payment.amount == Decimal("600.00")
        assert payment.gateway_response["method"] == "CARD"
        pending_order.refresh_from_db()
        assert pending_order.payment_status == Order.PaymentStatus.COMPLETED
        assert pending_order.order_status == Order.Status.CONFIRMED
        assert cache.get(f"payment_lock_{pending_order.id}") is None

    def test_cod_skips_gateway(self, events, buyer, pending_order):
        dispatcher = PaymentDispatcher(gateway=BlockingGateway(), events=events, timeout=0.1)

        payment = dispatcher.process_payment(buyer, pending_order.id, "COD", 600)

        assert payment.status == Payment.Status.COMPLETED
        assert payment.transaction_id.startswith("COD-")
        assert payment.gateway_response == {"method": "COD"}

    def test_expired_card_is_rejected_before_any_record(self, dispatcher, buyer, pending_order):
        expired = {**VALID_CARD, "expiryYear": date.today().year - 1}

        with pytest.raises(PaymentValidationFailed):
            dispatcher.process_payment(buyer, pending_order.id, "CREDIT_CARD", "600.00", expired)

        assert not Payment.objects.filter(order=pending_order, status=Payment.Status.COMPLETED).exists()
        pending_order.refresh_from_db()
        assert pending_order.order_status == Order.Status.PENDING
        assert pending_order.payment_status == Order.PaymentStatus.PENDING

    def test_declined_payment_is_recorded(self, events, buyer, pending_order):
        dispatcher = PaymentDispatcher(gateway=SimulatedGateway(delay=0, success_rate=0), events=events)

        with pytest.raises(PaymentDeclined) as exc_info:
            dispatcher.process_payment(buyer, pending_order.id, "UPI", "600", {"upiId": "asha@okaxis"})

        failed = exc_info.value.payment
        assert failed.status == Payment.Status.FAILED
        assert failed.transaction_id is None
        pending_order.refresh_from_db()
        assert pending_order.payment_status == Order.PaymentStatus.FAILED
        assert pending_order.order_status == Order.Status.PENDING

    def test_declined_payment_keeps_stock_reserved(self, events, buyer, pending_order):
        product = pending_order.items.get().product
        dispatcher = PaymentDispatcher(gateway=SimulatedGateway(delay=0, success_rate=0), events=events)

        with pytest.raises(PaymentDeclined):
            dispatcher.process_payment(buyer, pending_order.id, "UPI", "600", {"upiId": "asha@okaxis"})

        product.refresh_from_db()
        assert product.stock == 3

    def test_retry_after_decline(self, events, buyer, pending_order):
        declining = PaymentDispatcher(gateway=SimulatedGateway(delay=0, success_rate=0), events=events)
        approving = PaymentDispatcher(gateway=SimulatedGateway(delay=0, success_rate=100), events=events)
        with pytest.raises(PaymentDeclined):
            declining.process_payment(buyer, pending_order.id, "UPI", "600", {"upiId": "asha@okaxis"})

        approving.process_payment(buyer, pending_order.id, "UPI", "600", {"upiId": "asha@okaxis"})

        assert pending_order.payments.count() == 2
        pending_order.refresh_from_db()
        assert pending_order.order_status == Order.Status.CONFIRMED

    def test_gateway_timeout(self, events, buyer, pending_order):
        gateway = BlockingGateway()
        dispatcher = PaymentDispatcher(gateway=gateway, events=events, timeout=0.05)

        try:
            with pytest.raises(PaymentTimeout) as exc_info:
                dispatcher.process_payment(buyer, pending_order.id, "NET_BANKING", "600", {"bankCode": "hdfc"})
        finally:
            gateway.release.set()

        assert exc_info.value.payment.gateway_response["method"] == "TIMEOUT"
        assert exc_info.value.status_code == 504
        pending_order.refresh_from_db()
        assert pending_order.order_status == Order.Status.PENDING
        assert cache.get(f"payment_lock_{pending_order.id}") is None

    def test_amount_must_match(self, dispatcher, buyer, pending_order):
        with pytest.raises(AmountMismatch):
            dispatcher.process_payment(buyer, pending_order.id, "COD", "599.99")

        assert not pending_order.payments.exists()

    def test_invalid_amount(self, dispatcher, buyer, pending_order):
        with pytest.raises(PaymentValidationFailed):
            dispatcher.process_payment(buyer, pending_order.id, "COD", "six hundred")

    def test_unknown_method(self, dispatcher, buyer, pending_order):
        with pytest.raises(PaymentValidationFailed):
            dispatcher.process_payment(buyer, pending_order.id, "CHEQUE", "600")

    def test_only_owner_can_pay(self, dispatcher, other_customer, pending_order):
        with pytest.raises(NotFound):
            dispatcher.process_payment(Actor.from_user(other_customer), pending_order.id, "COD", "600")

    def test_second_payment_is_rejected(self, dispatcher, buyer, pending_order):
        dispatcher.process_payment(buyer, pending_order.id, "COD", "600")

        with pytest.raises(PaymentAlreadyCompleted):
            dispatcher.process_payment(buyer, pending_order.id, "COD", "600")

        assert pending_order.payments.count() == 1

    def test_concurrent_submission_is_rejected(self, dispatcher, buyer, pending_order):
        cache.add(f"payment_lock_{pending_order.id}", True, 60)

        with pytest.raises(PaymentInProgress):
            dispatcher.process_payment(buyer, pending_order.id, "COD", "600")

        assert not pending_order.payments.exists()

    def test_cancelled_order_cannot_be_paid(self, dispatcher, buyer, pending_order):
        Order.objects.filter(pk=pending_order.pk).update(order_status=Order.Status.CANCELLED)

        with pytest.raises(IllegalTransition):
            dispatcher.process_payment(buyer, pending_order.id, "COD", "600")

    def test_order_cancelled_during_charge(self, events, buyer, pending_order):
        product = pending_order.items.get().product

        def cancel():
            OrderStatusMachine(events=events).transition(buyer, pending_order.id, Order.Status.CANCELLED)

        dispatcher = InterleavingDispatcher(cancel, gateway=SimulatedGateway(delay=0, success_rate=100),
                                            events=events)

        with pytest.raises(IllegalTransition) as exc_info:
            dispatcher.process_payment(buyer, pending_order.id, "UPI", "600", {"upiId": "asha@okaxis"})

        payment = exc_info.value.payment
        assert payment.status == Payment.Status.FAILED
        assert payment.transaction_id.startswith("UPI-")
        assert "refund required" in payment.message
        pending_order.refresh_from_db()
        assert pending_order.order_status == Order.Status.CANCELLED
        assert pending_order.payment_status != Order.PaymentStatus.COMPLETED
        product.refresh_from_db()
        assert product.stock == 5

    def test_parallel_submission_completes_once(self, events, buyer, pending_order):
        other = PaymentDispatcher(gateway=SimulatedGateway(delay=0, success_rate=100), events=events)

        def pay_from_another_worker():
            # a separate process does not see this process's cache lock
            cache.delete(f"payment_lock_{pending_order.id}")
            other.process_payment(buyer, pending_order.id, "COD", "600")

        dispatcher = InterleavingDispatcher(pay_from_another_worker,
                                            gateway=SimulatedGateway(delay=0, success_rate=100), events=events)

        with pytest.raises(PaymentAlreadyCompleted) as exc_info:
            dispatcher.process_payment(buyer, pending_order.id, "UPI", "600", {"upiId": "asha@okaxis"})

        assert exc_info.value.payment.status == Payment.Status.FAILED
        assert pending_order.payments.filter(status=Payment.Status.COMPLETED).count() == 1
        pending_order.refresh_from_db()
        assert pending_order.payment_status == Order.PaymentStatus.COMPLETED
        assert pending_order.order_status == Order.Status.CONFIRMED

    def test_events_after_commit(self, dispatcher, recorder, buyer, pending_order,
                                 django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True):
            dispatcher.process_payment(buyer, pending_order.id, "COD", "600")

        assert recorder.events == [
            ("payment_processed", pending_order.order_number, Payment.Status.COMPLETED),
            ("order_status_changed", pending_order.order_number, Order.Status.PENDING, Order.Status.CONFIRMED),
        ]


def test_build_payment_dispatcher_uses_configured_gateway(settings):
    settings.PAYMENT_GATEWAY = "orders.payment_utils.SimulatedGateway"
    settings.PAYMENT_TIMEOUT = 7

    dispatcher = build_payment_dispatcher()

    assert isinstance(dispatcher.gateway, SimulatedGateway)
    assert dispatcher.gateway.delay == 0
    assert dispatcher.timeout == 7
