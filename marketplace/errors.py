"""Error kinds raised by the order and fulfillment engine.

Every error carries a stable ``code`` (returned to API clients) and the
HTTP ``status_code`` the JSON views answer with.
"""


class MarketplaceError(Exception):
    """Base exception for all engine errors."""

    code = "error"
    status_code = 400

    def __init__(self, message=None):
        super().__init__(message or self.__class__.__doc__.strip())

    @property
    def message(self):
        return str(self)


class NotFound(MarketplaceError):
    """Requested record was not found."""

    code = "NotFound"
    status_code = 404

    def __init__(self, what, identifier=None):
        self.what = what
        self.identifier = identifier
        msg = f"{what} not found"
        if identifier is not None:
            msg = f"{what} {identifier} not found"
        super().__init__(msg)


class EmptyCart(MarketplaceError):
    """Cart is empty."""

    code = "EmptyCart"


class ProductUnavailable(MarketplaceError):
    """Raised when a product in the cart is no longer active."""

    code = "ProductUnavailable"

    def __init__(self, product):
        self.product_id = product.pk
        super().__init__(f"Product {product.title} is no longer available")


class InsufficientStock(MarketplaceError):
    """Raised when stock cannot cover the requested quantity."""

    code = "InsufficientStock"
    status_code = 409

    def __init__(self, product, requested=None):
        self.product_id = product.pk
        self.requested = requested
        super().__init__(f"Insufficient stock for {product.title}")


class AmountMismatch(MarketplaceError):
    """Raised when the paid amount differs from the order's final amount."""

    code = "AmountMismatch"

    def __init__(self, expected, received):
        self.expected = expected
        self.received = received
        super().__init__(f"Amount mismatch: expected {expected}, received {received}")


class IllegalTransition(MarketplaceError):
    """Raised when a status change is not allowed for the actor."""

    code = "IllegalTransition"
    status_code = 409

    def __init__(self, current, requested, reason=None):
        self.current = current
        self.requested = requested
        msg = f"Cannot move order from {current} to {requested}"
        if reason:
            msg = f"{msg} ({reason})"
        super().__init__(msg)


class OrderCreationFailed(MarketplaceError):
    """Order could not be created, please retry."""

    code = "OrderCreationFailed"
    status_code = 503


class CouponRejected(MarketplaceError):
    """Raised when a coupon does not apply and the caller asked for strict handling."""

    code = "CouponRejected"

    def __init__(self, code, reason):
        self.coupon_code = code
        self.reason = reason
        super().__init__(f"Coupon {code} cannot be applied: {reason}")


class PaymentValidationFailed(MarketplaceError):
    """Payment details are invalid."""

    code = "PaymentValidationFailed"


class PaymentDeclined(MarketplaceError):
    """Payment was declined by the gateway."""

    code = "PaymentDeclined"
    status_code = 402

    def __init__(self, message=None, payment=None):
        self.payment = payment
        super().__init__(message)


class PaymentTimeout(PaymentDeclined):
    """Payment gateway did not answer in time, please retry."""

    code = "PaymentTimeout"
    status_code = 504


class PaymentAlreadyCompleted(MarketplaceError):
    """Order has already been paid."""

    code = "PaymentAlreadyCompleted"
    status_code = 409


class PaymentInProgress(MarketplaceError):
    """A payment for this order is already being processed."""

    code = "PaymentInProgress"
    status_code = 409


class InvoiceUnavailable(MarketplaceError):
    """Invoices can only be generated for delivered orders."""

    code = "InvoiceUnavailable"
    status_code = 409
