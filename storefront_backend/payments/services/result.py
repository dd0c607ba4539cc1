# payments/services/result.py

"""
PAYMENT RESULT (TAGGED UNION)

Every gateway call returns exactly one of:
- PaymentSuccess       funds captured; carries the gateway reference + amount
- PaymentDeclined      the gateway processed the request and said no
- PaymentGatewayError  the request could not be completed (category + detail)

Callers branch on `.ok` / `.category`, never on SDK exception types.
Results are transient: the orchestrator folds a success into the Order row.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Union


class PaymentErrorCategory(str, Enum):
    CARD_DECLINED = "card_declined"
    INVALID_PAYMENT_DETAILS = "invalid_payment_details"
    RATE_LIMITED = "rate_limited"
    GATEWAY_UNAVAILABLE = "gateway_unavailable"
    AUTHENTICATION_MISCONFIGURED = "authentication_misconfigured"
    UNKNOWN = "unknown"

    @property
    def retryable(self) -> bool:
        return self in RETRYABLE_CATEGORIES

    @property
    def user_message(self) -> str:
        return USER_MESSAGES[self]


RETRYABLE_CATEGORIES = frozenset(
    {PaymentErrorCategory.RATE_LIMITED, PaymentErrorCategory.GATEWAY_UNAVAILABLE}
)

USER_MESSAGES = {
    PaymentErrorCategory.CARD_DECLINED: "Your card was declined. Please check your card details.",
    PaymentErrorCategory.INVALID_PAYMENT_DETAILS: "Invalid payment information. Please check your payment details.",
    PaymentErrorCategory.RATE_LIMITED: "Too many requests. Please try again later.",
    PaymentErrorCategory.GATEWAY_UNAVAILABLE: "Payment service is temporarily unavailable. Please try again later.",
    PaymentErrorCategory.AUTHENTICATION_MISCONFIGURED: "Payment service authentication error. Please contact support.",
    PaymentErrorCategory.UNKNOWN: "Payment processing failed. Please try again.",
}


@dataclass(frozen=True)
class PaymentSuccess:
    reference: str
    amount: Decimal
    currency: str
    status: str = "succeeded"
    provider: str = ""
    synthetic: bool = False
    details: dict[str, Any] = field(default_factory=dict)

    ok = True
    category = None
    retryable = False

    @property
    def user_message(self) -> str:
        return ""


@dataclass(frozen=True)
class PaymentDeclined:
    reason: str = ""
    status: str = ""
    reference: str = ""
    provider: str = ""

    ok = False
    category = PaymentErrorCategory.CARD_DECLINED
    retryable = False

    @property
    def user_message(self) -> str:
        if self.reason:
            return self.reason
        if self.status:
            return f"Payment status: {self.status}"
        return self.category.user_message


@dataclass(frozen=True)
class PaymentGatewayError:
    category: PaymentErrorCategory = PaymentErrorCategory.UNKNOWN
    detail: str = ""
    message: str = ""
    provider: str = ""

    ok = False

    @property
    def retryable(self) -> bool:
        return self.category.retryable

    @property
    def user_message(self) -> str:
        return self.message or self.category.user_message


PaymentResult = Union[PaymentSuccess, PaymentDeclined, PaymentGatewayError]


@dataclass(frozen=True)
class RedirectOrder:
    """
    A wallet order created for the redirect flow. The client approves it with
    the wallet provider and then submits the order id for capture.
    """

    order_id: str
    status: str = "CREATED"
    approve_url: str = ""
    synthetic: bool = False

    ok = True


def failure_payload(result: PaymentResult) -> dict[str, Any]:
    """
    Client-facing error body for a failed charge (camelCase, no raw SDK objects).
    """
    payload: dict[str, Any] = {
        "success": False,
        "error": result.user_message,
        "errorCategory": result.category.value if result.category else None,
        "retryable": bool(result.retryable),
    }
    if isinstance(result, PaymentDeclined):
        if result.status:
            payload["paymentStatus"] = result.status
        if result.reference:
            payload["paymentReference"] = result.reference
    elif isinstance(result, PaymentGatewayError) and result.detail:
        payload["paymentError"] = result.detail
    return payload
