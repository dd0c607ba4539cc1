# payments/services/__init__.py

from payments.services.result import (
    PaymentDeclined,
    PaymentErrorCategory,
    PaymentGatewayError,
    PaymentSuccess,
    RedirectOrder,
)

__all__ = [
    "PaymentDeclined",
    "PaymentErrorCategory",
    "PaymentGatewayError",
    "PaymentSuccess",
    "RedirectOrder",
]
