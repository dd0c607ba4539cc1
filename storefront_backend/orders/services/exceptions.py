# orders/services/exceptions.py

"""
CHECKOUT ERRORS

Fatal (raised, abort the checkout):
- CheckoutValidationError  400  nothing external was called
- PaymentFailedError       400  gateway declined / unreachable; no order row
- OrderPersistenceError    500  money captured but no order row (reconcile!)

Non-fatal (recorded on the CheckoutResult, never raised to the view):
- DiscountAccountingFailure
- TokenCreditFailure
- NotificationFailure
"""

from __future__ import annotations


class CheckoutError(Exception):
    """Base checkout exception"""

    status_code = 400

    def __init__(self, message: str = "", **context):
        super().__init__(message)
        self.message = message
        self.context = context


class CheckoutValidationError(CheckoutError):
    status_code = 400


class PaymentFailedError(CheckoutError):
    status_code = 400

    def __init__(self, result, **context):
        super().__init__(result.user_message or "Payment processing failed", **context)
        self.result = result


class OrderPersistenceError(CheckoutError):
    status_code = 500


# -----------------------------
# Non-fatal step failures
# -----------------------------


class CheckoutStepFailure(Exception):
    """A best-effort step failed; the checkout still succeeds."""


class DiscountAccountingFailure(CheckoutStepFailure):
    pass


class TokenCreditFailure(CheckoutStepFailure):
    pass


class NotificationFailure(CheckoutStepFailure):
    pass
