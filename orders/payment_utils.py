# orders/payment_utils.py
import logging
import random
import re
import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import asdict, dataclass
from datetime import date
from typing import ClassVar, Optional

from django.conf import settings
from django.core.cache import cache
from django.db import transaction
from django.utils.module_loading import import_string

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

from .models import Order, Payment
from .notify_utils import OrderEventDispatcher
from .pricing_utils import to_money

logger = logging.getLogger(__name__)

Method = Order.PaymentMethod

TRANSACTION_PREFIXES = {
    Method.COD: "COD",
    Method.DEBIT_CARD: "DC",
    Method.CREDIT_CARD: "CC",
    Method.UPI: "UPI",
    Method.NET_BANKING: "NB",
    Method.WALLET: "WLT",
}

BANKS = ["HDFC Bank", "ICICI Bank", "SBI", "Axis Bank", "Kotak Bank", "PNB"]
BANK_CODES = {
    "HDFC": "HDFC Bank",
    "ICICI": "ICICI Bank",
    "SBI": "State Bank of India",
    "AXIS": "Axis Bank",
    "KOTAK": "Kotak Mahindra Bank",
}
UPI_APPS = ["Google Pay", "PhonePe", "Paytm", "BHIM", "Amazon Pay"]

UPI_ID_PATTERN = re.compile(r'^[\w.-]+@[\w.-]+$')
CVV_PATTERN = re.compile(r'^\d{3,4}$')


def generate_transaction_id(method):
    return f"{TRANSACTION_PREFIXES.get(method, 'PAY')}-{uuid.uuid4().hex[:16].upper()}"


# ==================== PAYMENT DETAILS (request side) ====================

def validate_card_number(card_number):
    """16 digits once spaces are removed (no Luhn check)"""
    return bool(re.fullmatch(r'\d{16}', re.sub(r'\s', '', str(card_number or ''))))


def validate_expiry(month, year, today=None):
    today = today or date.today()
    try:
        exp_month = int(month)
        exp_year = int(year)
    except (TypeError, ValueError):
        return False
    if not 1 <= exp_month <= 12:
        return False
    if exp_year < today.year:
        return False
    if exp_year == today.year and exp_month < today.month:
        return False
    return True


def validate_cvv(cvv):
    return bool(CVV_PATTERN.match(str(cvv or '')))


def validate_upi_id(upi_id):
    return bool(UPI_ID_PATTERN.match(str(upi_id or '')))


@dataclass(frozen=True)
class CardDetails:
    card_number: str
    expiry_month: int
    expiry_year: int
    cvv: str
    card_holder: str = ""

    @classmethod
    def parse(cls, data):
        card_number = re.sub(r'\s', '', str(data.get('cardNumber') or ''))
        if not validate_card_number(card_number):
            raise PaymentValidationFailed("Invalid card number")
        if not validate_expiry(data.get('expiryMonth'), data.get('expiryYear')):
            raise PaymentValidationFailed("Card expired or invalid expiry date")
        if not validate_cvv(data.get('cvv')):
            raise PaymentValidationFailed("Invalid CVV")
        return cls(
            card_number=card_number,
            expiry_month=int(data['expiryMonth']),
            expiry_year=int(data['expiryYear']),
            cvv=str(data['cvv']),
            card_holder=str(data.get('cardHolder') or ''),
        )


@dataclass(frozen=True)
class UpiDetails:
    upi_id: str

    @classmethod
    def parse(cls, data):
        upi_id = str(data.get('upiId') or '').strip()
        if not validate_upi_id(upi_id):
            raise PaymentValidationFailed("Invalid UPI ID")
        return cls(upi_id=upi_id)


@dataclass(frozen=True)
class NetBankingDetails:
    bank_code: str

    @classmethod
    def parse(cls, data):
        bank_code = str(data.get('bankCode') or '').strip().upper()
        if not bank_code:
            raise PaymentValidationFailed("Bank code is required")
        return cls(bank_code=bank_code)


@dataclass(frozen=True)
class WalletDetails:
    wallet_type: str
    phone: str

    @classmethod
    def parse(cls, data):
        wallet_type = str(data.get('walletType') or '').strip()
        phone = re.sub(r'\D', '', str(data.get('phone') or ''))
        if not wallet_type:
            raise PaymentValidationFailed("Wallet type is required")
        if len(phone) != 10:
            raise PaymentValidationFailed("Invalid wallet phone number")
        return cls(wallet_type=wallet_type, phone=phone)


DETAIL_PARSERS = {
    Method.DEBIT_CARD: CardDetails.parse,
    Method.CREDIT_CARD: CardDetails.parse,
    Method.UPI: UpiDetails.parse,
    Method.NET_BANKING: NetBankingDetails.parse,
    Method.WALLET: WalletDetails.parse,
}


def parse_payment_details(method, data):
    """Validate the method-specific payload; COD takes none"""
    if method == Method.COD:
        return None
    if not isinstance(data, dict):
        raise PaymentValidationFailed("Payment details are required")
    return DETAIL_PARSERS[method](data)


# ==================== GATEWAY RESPONSES (one shape per method) ====================

@dataclass(frozen=True)
class GatewayResponse:
    method: ClassVar[str] = ""

    def as_dict(self):
        return {"method": self.method, **asdict(self)}


@dataclass(frozen=True)
class CodResponse(GatewayResponse):
    method: ClassVar[str] = "COD"


@dataclass(frozen=True)
class CardResponse(GatewayResponse):
    card_last4: str
    card_type: str
    bank_name: str
    auth_code: Optional[str] = None
    method: ClassVar[str] = "CARD"


@dataclass(frozen=True)
class UpiResponse(GatewayResponse):
    upi_id: str
    psp_name: str
    rrn: Optional[str] = None
    method: ClassVar[str] = "UPI"


@dataclass(frozen=True)
class NetBankingResponse(GatewayResponse):
    bank_code: str
    bank_name: str
    reference_number: Optional[str] = None
    method: ClassVar[str] = "NET_BANKING"


@dataclass(frozen=True)
class WalletResponse(GatewayResponse):
    wallet_type: str
    phone: str
    wallet_txn_id: Optional[str] = None
    method: ClassVar[str] = "WALLET"


@dataclass(frozen=True)
class TimeoutResponse(GatewayResponse):
    timeout_seconds: float
    method: ClassVar[str] = "TIMEOUT"


@dataclass(frozen=True)
class GatewayResult:
    success: bool
    message: str
    response: GatewayResponse
    transaction_id: Optional[str] = None
    timed_out: bool = False


# ==================== SIMULATED GATEWAY ====================

class SimulatedGateway:
    """Stand-in for a real payment gateway.

    Sleeps for ``delay`` seconds and then approves ``success_rate`` percent
    of charges. Payment details arrive already validated.
    """

    def __init__(self, delay=None, success_rate=None, rng=None):
        self.delay = settings.PAYMENT_SIMULATION_DELAY if delay is None else delay
        self.success_rate = settings.PAYMENT_SUCCESS_RATE if success_rate is None else success_rate
        self.rng = rng or random.Random()
        self._processors = {
            Method.DEBIT_CARD: self._process_card,
            Method.CREDIT_CARD: self._process_card,
            Method.UPI: self._process_upi,
            Method.NET_BANKING: self._process_net_banking,
            Method.WALLET: self._process_wallet,
        }

    def charge(self, method, details, amount):
        if self.delay:
            time.sleep(self.delay)
        success = self.rng.random() * 100 < self.success_rate
        response, failure_message = self._processors[method](details, success)
        return GatewayResult(
            success=success,
            message="Payment successful" if success else failure_message,
            response=response,
            transaction_id=generate_transaction_id(method) if success else None,
        )

    def _code(self, length):
        return ''.join(self.rng.choices("ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789", k=length))

    def _digits(self, length):
        return ''.join(self.rng.choices("0123456789", k=length))

    def _process_card(self, details, success):
        response = CardResponse(
            card_last4=details.card_number[-4:],
            card_type=card_type(details.card_number),
            bank_name=self.rng.choice(BANKS),
            auth_code=self._code(6) if success else None,
        )
        return response, "Payment declined by bank"

    def _process_upi(self, details, success):
        response = UpiResponse(
            upi_id=details.upi_id,
            psp_name=self.rng.choice(UPI_APPS),
            rrn=self._digits(12) if success else None,
        )
        return response, "UPI payment failed - Please try again"

    def _process_net_banking(self, details, success):
        response = NetBankingResponse(
            bank_code=details.bank_code,
            bank_name=BANK_CODES.get(details.bank_code, "Unknown Bank"),
            reference_number=self._digits(10) if success else None,
        )
        return response, "Net banking payment failed"

    def _process_wallet(self, details, success):
        response = WalletResponse(
            wallet_type=details.wallet_type,
            phone=mask_phone(details.phone),
            wallet_txn_id=self._code(8) if success else None,
        )
        return response, "Wallet payment failed - Insufficient balance"


def card_type(card_number):
    first_digit = card_number[:1]
    if first_digit == '4':
        return 'Visa'
    if first_digit == '5':
        return 'Mastercard'
    if first_digit == '3':
        return 'American Express'
    return 'Unknown'


def mask_phone(phone):
    return f"******{phone[-4:]}"


# ==================== DISPATCHER ====================

class PaymentDispatcher:
    """Routes a payment to its processor and records the outcome.

    No row lock is held while the gateway is working; the order is only
    locked to write the Payment record and the new order state.
    """

    def __init__(self, gateway=None, events=None, timeout=None, lock_timeout=None):
        self.gateway = gateway or SimulatedGateway()
        self.events = events or OrderEventDispatcher()
        self.timeout = settings.PAYMENT_TIMEOUT if timeout is None else timeout
        self.lock_timeout = settings.PAYMENT_LOCK_TIMEOUT if lock_timeout is None else lock_timeout

    def process_payment(self, actor, order_id, method, amount, payment_data=None):
        try:
            order = Order.objects.get(pk=order_id, user_id=actor.id)
        except (Order.DoesNotExist, ValueError, TypeError):
            raise NotFound("Order", order_id)

        if method not in Method.values:
            raise PaymentValidationFailed(f"Invalid payment method: {method}")
        try:
            amount = to_money(amount)
        except ValueError:
            raise PaymentValidationFailed("Invalid amount")
        if amount != order.final_amount:
            raise AmountMismatch(order.final_amount, amount)
        if order.payment_status == Order.PaymentStatus.COMPLETED:
            raise PaymentAlreadyCompleted()
        if order.order_status != Order.Status.PENDING:
            raise IllegalTransition(order.order_status, Order.Status.CONFIRMED, "only pending orders can be paid")

        details = parse_payment_details(method, payment_data)

        lock_key = f"payment_lock_{order.id}"
        if not cache.add(lock_key, True, self.lock_timeout):
            raise PaymentInProgress()
        try:
            result = self._charge(method, details, amount)
            payment = self._record(order.id, method, amount, result)
        finally:
            cache.delete(lock_key)

        if result.timed_out:
            raise PaymentTimeout(payment=payment)
        if not result.success:
            raise PaymentDeclined(result.message, payment=payment)
        return payment

    def _charge(self, method, details, amount):
        if method == Method.COD:
            return GatewayResult(
                success=True,
                message="Cash on Delivery order confirmed",
                response=CodResponse(),
                transaction_id=generate_transaction_id(method),
            )

        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="payment-gateway")
        future = executor.submit(self.gateway.charge, method, details, amount)
        try:
            return future.result(timeout=self.timeout)
        except FutureTimeout:
            future.cancel()
            logger.error(f"Payment gateway timed out after {self.timeout}s for {method} charge of {amount}")
            return GatewayResult(
                success=False,
                message="Payment gateway timed out, please retry",
                response=TimeoutResponse(timeout_seconds=self.timeout),
                timed_out=True,
            )
        finally:
            executor.shutdown(wait=False)

    def _record(self, order_id, method, amount, result):
        conflict = None
        with transaction.atomic():
            order = Order.objects.select_for_update().get(pk=order_id)
            previous_status = order.order_status

            status = Payment.Status.COMPLETED if result.success else Payment.Status.FAILED
            message = result.message
            if result.success:
                # state may have moved on while the gateway was working
                if order.payment_status == Order.PaymentStatus.COMPLETED:
                    conflict = PaymentAlreadyCompleted()
                elif previous_status != Order.Status.PENDING:
                    conflict = IllegalTransition(previous_status, Order.Status.CONFIRMED,
                                                 "order changed during payment")
                if conflict is not None:
                    status = Payment.Status.FAILED
                    message = f"Charge captured but not applied ({conflict.message}), refund required"
                    logger.error(f"Order {order.order_number}: {message}, transaction {result.transaction_id}")

            payment = Payment.objects.create(
                order=order,
                amount=amount,
                method=method,
                status=status,
                transaction_id=result.transaction_id,
                message=message[:255],
                gateway_response=result.response.as_dict(),
            )

            if status == Payment.Status.COMPLETED:
                order.payment_status = Order.PaymentStatus.COMPLETED
                order.order_status = Order.Status.CONFIRMED
            elif order.payment_status != Order.PaymentStatus.COMPLETED:
                order.payment_status = Order.PaymentStatus.FAILED
            order.save(update_fields=['payment_status', 'order_status', 'updated_at'])

            self.events.payment_processed(order, payment)
            if order.order_status != previous_status:
                self.events.order_status_changed(order, previous_status, order.order_status)

        logger.info(f"Payment #{payment.id} for order {order.order_number}: {payment.status} ({payment.message})")
        if conflict is not None:
            conflict.payment = payment
            raise conflict
        return payment


def build_payment_dispatcher(events=None):
    gateway = import_string(settings.PAYMENT_GATEWAY)()
    return PaymentDispatcher(gateway=gateway, events=events)
