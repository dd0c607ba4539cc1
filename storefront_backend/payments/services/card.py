# payments/services/card.py

"""
CARD-NETWORK GATEWAY (Stripe)

charge(payment_details, amount, currency) -> PaymentResult

Flow:
1) amount must be a positive decimal (<= 2dp)
2) prefer a tokenized payment method (paymentMethodId from Stripe Elements)
3) raw card fallback: validate MM/YY expiry (future month) and card number
   length LOCALLY, then tokenize via PaymentMethod.create
4) PaymentIntent.create(confirm=True, redirects disabled)
5) only status == "succeeded" is a success; anything else (requires_action,
   processing, requires_capture, ...) is a decline carrying the status string

Non-production:
- without a secret key and with PAYMENTS["TEST_MODE"] on, a deterministic
  synthetic success is returned (synthetic=True). Without TEST_MODE the
  missing key is an AuthenticationMisconfigured error.

The gateway never touches the database.
"""

from __future__ import annotations

import hashlib
import logging
from typing import Any

import stripe
from django.utils import timezone

from payments.services import config
from payments.services.money import from_minor_units, parse_charge_amount, to_minor_units
from payments.services.result import (
    PaymentDeclined,
    PaymentErrorCategory,
    PaymentGatewayError,
    PaymentResult,
    PaymentSuccess,
)

logger = logging.getLogger(__name__)

PROVIDER = "stripe"
MIN_CARD_NUMBER_LENGTH = 13


class CardDetailsError(ValueError):
    """Raw card fields failed local validation (no network call was made)."""


def parse_expiry(value, *, today=None) -> tuple[int, int]:
    """
    "MM/YY" -> (month, four-digit year). The month must not be in the past.
    """
    parts = str(value or "").strip().split("/")
    if len(parts) != 2:
        raise CardDetailsError("Invalid expiry date format. Please use MM/YY format.")

    month_s, year_s = parts[0].strip(), parts[1].strip()
    if not (month_s.isdigit() and year_s.isdigit() and len(year_s) == 2):
        raise CardDetailsError("Invalid expiry date format. Please use MM/YY format.")

    month = int(month_s)
    if month < 1 or month > 12:
        raise CardDetailsError("Invalid expiry month. Please use MM/YY format (e.g., 12/25).")

    year = 2000 + int(year_s)
    today = today or timezone.localdate()
    if (year, month) < (today.year, today.month):
        raise CardDetailsError("Card has expired. Please use a future expiry date.")

    return month, year


def clean_card_number(value) -> str:
    number = "".join(str(value or "").split())
    if len(number) < MIN_CARD_NUMBER_LENGTH or not number.isdigit():
        raise CardDetailsError("Invalid card number. Please check your card details.")
    return number


def _stripe_error_detail(exc: stripe.StripeError) -> str:
    code = getattr(exc, "code", None)
    message = getattr(exc, "user_message", None) or str(exc)
    return f"{code}: {message}" if code else message


def configure_stripe_sdk(timeout: int) -> None:
    """
    Process-wide SDK transport, set once from PaymentsConfig.ready():
    no silent SDK retries (retry is client-initiated) and a bounded
    request timeout.
    """
    stripe.max_network_retries = 0
    stripe.default_http_client = stripe.RequestsClient(timeout=timeout)


class CardGateway:
    provider = PROVIDER

    def __init__(
        self,
        *,
        secret_key: str = "",
        currency: str = "usd",
        test_mode: bool = False,
        timeout: int = 25,
        client=None,
    ):
        self.secret_key = (secret_key or "").strip()
        self.currency = (currency or "usd").lower()
        self.test_mode = bool(test_mode)
        self.timeout = timeout
        self._stripe = client if client is not None else stripe

    @classmethod
    def from_settings(cls) -> "CardGateway":
        return cls(
            secret_key=config.stripe_cfg().get("SECRET_KEY") or "",
            currency=config.default_currency(),
            test_mode=config.test_mode_enabled(),
            timeout=config.gateway_timeout(),
        )

    @property
    def configured(self) -> bool:
        return bool(self.secret_key)

    # -----------------------------
    # Public API
    # -----------------------------

    def charge(
        self,
        payment_details: dict | None,
        amount,
        currency: str | None = None,
        *,
        idempotency_key: str | None = None,
        description: str = "",
    ) -> PaymentResult:
        details = payment_details or {}
        currency = (currency or self.currency).lower()

        value = parse_charge_amount(amount)
        if value is None:
            return PaymentGatewayError(
                category=PaymentErrorCategory.INVALID_PAYMENT_DETAILS,
                detail=f"invalid amount: {amount!r}",
                message="Invalid payment amount.",
                provider=PROVIDER,
            )

        if not self.configured:
            return self._unconfigured(value, currency, idempotency_key)

        try:
            payment_method_id = (details.get("paymentMethodId") or "").strip()
            if not payment_method_id:
                payment_method_id = self._tokenize_raw_card(details)

            options = {"api_key": self.secret_key}
            if idempotency_key:
                options["idempotency_key"] = idempotency_key

            intent = self._stripe.PaymentIntent.create(
                **options,
                amount=to_minor_units(value),
                currency=currency,
                payment_method=payment_method_id,
                confirm=True,
                description=description or f"Order payment - {details.get('cardName') or 'Customer'}",
                metadata={"payment_method": details.get("method") or "card"},
                automatic_payment_methods={"enabled": True, "allow_redirects": "never"},
            )
        except CardDetailsError as exc:
            return PaymentGatewayError(
                category=PaymentErrorCategory.INVALID_PAYMENT_DETAILS,
                detail="local validation",
                message=str(exc),
                provider=PROVIDER,
            )
        except stripe.StripeError as exc:
            return self._from_stripe_error(exc, value)

        return self._from_intent(intent, value, currency)

    # -----------------------------
    # Internals
    # -----------------------------

    def _unconfigured(self, value, currency, idempotency_key) -> PaymentResult:
        if not self.test_mode:
            logger.error("Card gateway has no secret key configured")
            return PaymentGatewayError(
                category=PaymentErrorCategory.AUTHENTICATION_MISCONFIGURED,
                detail="STRIPE secret key missing",
                message="Payment processing is not configured. Please contact support.",
                provider=PROVIDER,
            )

        seed = f"{idempotency_key or ''}|{value}|{currency}"
        reference = "test_pi_" + hashlib.sha256(seed.encode("utf-8")).hexdigest()[:24]
        logger.warning(
            "Card gateway not configured - synthesizing payment in test mode",
            extra={"payment_reference": reference, "amount": str(value), "currency": currency},
        )
        return PaymentSuccess(
            reference=reference,
            amount=value,
            currency=currency,
            status="succeeded",
            provider=PROVIDER,
            synthetic=True,
        )

    def _tokenize_raw_card(self, details: dict) -> str:
        logger.warning("No payment method id provided, tokenizing raw card fields")

        month, year = parse_expiry(details.get("expiryDate"))
        number = clean_card_number(details.get("cardNumber"))

        payment_method = self._stripe.PaymentMethod.create(
            api_key=self.secret_key,
            type="card",
            card={
                "number": number,
                "exp_month": month,
                "exp_year": year,
                "cvc": details.get("cvv"),
            },
            billing_details={"name": details.get("cardName") or None},
        )
        return payment_method.id

    def _from_intent(self, intent, value, currency) -> PaymentResult:
        intent_id = getattr(intent, "id", "") or ""
        status = getattr(intent, "status", "") or ""

        if status != "succeeded":
            logger.warning(
                "Payment not succeeded: ref=%s status=%s",
                intent_id,
                status,
                extra={"payment_reference": intent_id, "status": status},
            )
            return PaymentDeclined(
                reason=f"Payment status: {status}",
                status=status,
                reference=intent_id,
                provider=PROVIDER,
            )

        captured = getattr(intent, "amount_received", None) or getattr(intent, "amount", None)
        amount = from_minor_units(captured) if captured is not None else value

        logger.info(
            "Card payment captured",
            extra={"payment_reference": intent_id, "amount": str(amount), "currency": currency},
        )
        return PaymentSuccess(
            reference=intent_id,
            amount=amount,
            currency=(getattr(intent, "currency", None) or currency).lower(),
            status=status,
            provider=PROVIDER,
            details=_intent_details(intent),
        )

    def _from_stripe_error(self, exc: stripe.StripeError, value) -> PaymentResult:
        detail = _stripe_error_detail(exc)
        logger.error(
            "Card payment failed: %s code=%s amount=%s",
            type(exc).__name__,
            getattr(exc, "code", None),
            value,
            extra={
                "error_type": type(exc).__name__,
                "error_code": getattr(exc, "code", None),
                "amount": str(value),
            },
        )

        if isinstance(exc, stripe.CardError):
            return PaymentDeclined(
                reason=getattr(exc, "user_message", None) or PaymentErrorCategory.CARD_DECLINED.user_message,
                status=getattr(exc, "code", None) or "card_declined",
                provider=PROVIDER,
            )
        if isinstance(exc, stripe.RateLimitError):
            category = PaymentErrorCategory.RATE_LIMITED
        elif isinstance(exc, stripe.InvalidRequestError):
            category = PaymentErrorCategory.INVALID_PAYMENT_DETAILS
        elif isinstance(exc, (stripe.AuthenticationError, stripe.PermissionError)):
            category = PaymentErrorCategory.AUTHENTICATION_MISCONFIGURED
        elif isinstance(exc, (stripe.APIConnectionError, stripe.APIError)):
            category = PaymentErrorCategory.GATEWAY_UNAVAILABLE
        else:
            category = PaymentErrorCategory.UNKNOWN

        return PaymentGatewayError(category=category, detail=detail, provider=PROVIDER)


def _intent_details(intent) -> dict[str, Any]:
    return {
        "paymentIntentId": getattr(intent, "id", "") or "",
        "paymentMethod": str(getattr(intent, "payment_method", "") or ""),
    }
