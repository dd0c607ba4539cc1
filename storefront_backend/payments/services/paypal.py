# payments/services/paypal.py

"""
REDIRECT-WALLET GATEWAY (PayPal Orders v2, plain REST over urllib)

Operations:
- create_redirect_order(amount, currency) -> RedirectOrder | PaymentGatewayError
- capture_redirect_order(order_id, expected_amount=...) -> PaymentResult
- charge(payment_details, amount, currency) -> PaymentResult
    payment_details carries the approved order id (orderId / paypalOrderId)

Capture rules:
- the approved order is fetched first; if its amount differs from the order
  total nothing is captured (InvalidPaymentDetails)
- only a COMPLETED capture is a success

HTTP -> category:
- 401/403            AuthenticationMisconfigured
- 404 / 400 / 422    InvalidPaymentDetails (422 INSTRUMENT_DECLINED -> declined)
- 429                RateLimited
- 5xx, URLError, timeout, dropped connection   GatewayUnavailable
"""

from __future__ import annotations

import base64
import hashlib
import http.client
import json
import logging
import time
import uuid
from decimal import Decimal, InvalidOperation
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode
from urllib.request import Request, urlopen

from payments.services import config
from payments.services.money import parse_charge_amount
from payments.services.result import (
    PaymentDeclined,
    PaymentErrorCategory,
    PaymentGatewayError,
    PaymentResult,
    PaymentSuccess,
    RedirectOrder,
)

logger = logging.getLogger(__name__)

PROVIDER = "paypal"

PAYPAL_BASE = {
    "sandbox": "https://api-m.sandbox.paypal.com",
    "live": "https://api-m.paypal.com",
}

DECLINE_ISSUES = {"INSTRUMENT_DECLINED", "PAYER_ACTION_REQUIRED", "PAYER_CANNOT_PAY"}


class PayPalRequestError(Exception):
    def __init__(self, category: PaymentErrorCategory, detail: str, *, status_code=None, issue="", message=""):
        super().__init__(detail)
        self.category = category
        self.detail = detail
        self.status_code = status_code
        self.issue = issue
        self.message = message

    def to_result(self) -> PaymentResult:
        if self.issue in DECLINE_ISSUES:
            return PaymentDeclined(
                reason=PaymentErrorCategory.CARD_DECLINED.user_message,
                status=self.issue,
                provider=PROVIDER,
            )
        return PaymentGatewayError(
            category=self.category,
            detail=self.detail,
            message=self.message,
            provider=PROVIDER,
        )


def _safe_preview(text: str, limit: int = 800) -> str:
    text = (text or "").strip()
    if len(text) <= limit:
        return text
    return text[:limit] + " ...(truncated)"


def _parse_json(raw: str) -> dict[str, Any] | None:
    try:
        parsed = json.loads(raw or "")
    except ValueError:
        return None
    return parsed if isinstance(parsed, dict) else None


def _first_issue(payload: dict | None) -> str:
    for d in (payload or {}).get("details") or []:
        if isinstance(d, dict) and d.get("issue"):
            return str(d["issue"])
    return ""


def _category_for_status(code: int) -> PaymentErrorCategory:
    if code in (401, 403):
        return PaymentErrorCategory.AUTHENTICATION_MISCONFIGURED
    if code in (400, 404, 422):
        return PaymentErrorCategory.INVALID_PAYMENT_DETAILS
    if code == 429:
        return PaymentErrorCategory.RATE_LIMITED
    if code >= 500:
        return PaymentErrorCategory.GATEWAY_UNAVAILABLE
    return PaymentErrorCategory.UNKNOWN


def _message_for_status(code: int) -> str:
    if code == 422:
        return "This PayPal order has already been processed or is invalid."
    if code == 404:
        return "PayPal order not found. Please try again."
    return ""


def _to_decimal(value) -> Decimal | None:
    try:
        return Decimal(str(value)).quantize(Decimal("0.01"))
    except (InvalidOperation, ValueError, TypeError):
        return None


class PayPalGateway:
    provider = PROVIDER

    def __init__(
        self,
        *,
        client_id: str = "",
        client_secret: str = "",
        environment: str = "sandbox",
        currency: str = "usd",
        test_mode: bool = False,
        timeout: int = 25,
    ):
        self.client_id = (client_id or "").strip()
        self.client_secret = (client_secret or "").strip()
        self.environment = "live" if (environment or "").lower() == "live" else "sandbox"
        self.base_url = PAYPAL_BASE[self.environment]
        self.currency = (currency or "usd").upper()
        self.test_mode = bool(test_mode)
        self.timeout = timeout

        self._access_token = ""
        self._token_expires_at = 0.0

    @classmethod
    def from_settings(cls) -> "PayPalGateway":
        cfg = config.paypal_cfg()
        return cls(
            client_id=cfg.get("CLIENT_ID") or "",
            client_secret=cfg.get("CLIENT_SECRET") or "",
            environment=cfg.get("ENVIRONMENT") or "sandbox",
            currency=config.default_currency(),
            test_mode=config.test_mode_enabled(),
            timeout=config.gateway_timeout(),
        )

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    # -----------------------------
    # HTTP
    # -----------------------------

    def _send(self, req: Request) -> dict[str, Any]:
        try:
            with urlopen(req, timeout=self.timeout) as resp:
                raw = resp.read().decode("utf-8", errors="replace")
        except HTTPError as e:
            try:
                raw = e.read().decode("utf-8", errors="replace")
            except (OSError, AttributeError):
                raw = ""
            payload = _parse_json(raw)
            name = (payload or {}).get("name") or (payload or {}).get("error") or ""
            raise PayPalRequestError(
                _category_for_status(e.code),
                f"PayPal HTTPError: {e.code} {name or _safe_preview(raw)}".strip(),
                status_code=e.code,
                issue=_first_issue(payload),
                message=_message_for_status(e.code),
            ) from e
        except URLError as e:
            raise PayPalRequestError(
                PaymentErrorCategory.GATEWAY_UNAVAILABLE, f"PayPal URLError: {e.reason}"
            ) from e
        except TimeoutError as e:
            raise PayPalRequestError(
                PaymentErrorCategory.GATEWAY_UNAVAILABLE, "PayPal request timed out"
            ) from e
        except (OSError, http.client.HTTPException) as e:
            # dropped or reset connections, truncated bodies
            raise PayPalRequestError(
                PaymentErrorCategory.GATEWAY_UNAVAILABLE,
                f"PayPal connection error: {type(e).__name__}: {e}",
            ) from e

        parsed = _parse_json(raw)
        if parsed is None:
            raise PayPalRequestError(
                PaymentErrorCategory.UNKNOWN,
                f"PayPal returned non-JSON: {_safe_preview(raw)}",
            )
        return parsed

    def _get_access_token(self) -> str:
        if self._access_token and time.monotonic() < self._token_expires_at:
            return self._access_token

        basic = base64.b64encode(f"{self.client_id}:{self.client_secret}".encode("utf-8")).decode("ascii")
        req = Request(
            f"{self.base_url}/v1/oauth2/token",
            data=urlencode({"grant_type": "client_credentials"}).encode("utf-8"),
            headers={
                "Authorization": f"Basic {basic}",
                "Content-Type": "application/x-www-form-urlencoded",
                "Accept": "application/json",
            },
            method="POST",
        )
        parsed = self._send(req)

        token = (parsed.get("access_token") or "").strip()
        if not token:
            raise PayPalRequestError(
                PaymentErrorCategory.AUTHENTICATION_MISCONFIGURED, "PayPal returned no access token"
            )

        expires_in = int(parsed.get("expires_in") or 0)
        self._access_token = token
        self._token_expires_at = time.monotonic() + max(expires_in - 60, 0)
        return token

    def _request_json(
        self, method: str, path: str, *, body: dict | None = None, request_id: str = ""
    ) -> dict[str, Any]:
        headers = {
            "Authorization": f"Bearer {self._get_access_token()}",
            "Content-Type": "application/json",
            "Accept": "application/json",
            "Prefer": "return=representation",
        }
        if request_id:
            headers["PayPal-Request-Id"] = request_id

        data = None
        if body is not None:
            data = json.dumps(body, ensure_ascii=False).encode("utf-8")

        return self._send(Request(f"{self.base_url}{path}", data=data, headers=headers, method=method))

    # -----------------------------
    # Public API
    # -----------------------------

    def create_redirect_order(self, amount, currency: str | None = None):
        currency = (currency or self.currency).upper()
        value = parse_charge_amount(amount)
        if value is None:
            return PaymentGatewayError(
                category=PaymentErrorCategory.INVALID_PAYMENT_DETAILS,
                detail=f"invalid amount: {amount!r}",
                message="Invalid amount",
                provider=PROVIDER,
            )

        if not self.configured:
            if not self.test_mode:
                return PaymentGatewayError(
                    category=PaymentErrorCategory.AUTHENTICATION_MISCONFIGURED,
                    detail="PayPal credentials missing",
                    message="PayPal is not configured",
                    provider=PROVIDER,
                )
            order_id = f"test_paypal_order_{uuid.uuid4().hex[:16]}"
            logger.warning("PayPal not configured - synthesizing redirect order", extra={"paypal_order_id": order_id})
            return RedirectOrder(order_id=order_id, synthetic=True)

        body = {
            "intent": "CAPTURE",
            "purchase_units": [{"amount": {"currency_code": currency, "value": f"{value:.2f}"}}],
        }
        try:
            parsed = self._request_json("POST", "/v2/checkout/orders", body=body)
        except PayPalRequestError as exc:
            logger.error("Error creating PayPal order: %s", exc.detail, extra={"detail": exc.detail, "environment": self.environment})
            return PaymentGatewayError(
                category=exc.category,
                detail=exc.detail,
                message="Failed to create PayPal order. Please try again.",
                provider=PROVIDER,
            )

        order_id = (parsed.get("id") or "").strip()
        if not order_id:
            return PaymentGatewayError(
                category=PaymentErrorCategory.UNKNOWN,
                detail="PayPal order response carried no id",
                message="Failed to create PayPal order",
                provider=PROVIDER,
            )

        approve_url = ""
        for link in parsed.get("links") or []:
            if isinstance(link, dict) and link.get("rel") in ("approve", "payer-action"):
                approve_url = link.get("href") or ""
                break

        logger.info(
            "PayPal order created",
            extra={"paypal_order_id": order_id, "amount": str(value), "currency": currency},
        )
        return RedirectOrder(order_id=order_id, status=str(parsed.get("status") or "CREATED"), approve_url=approve_url)

    def capture_redirect_order(self, order_id: str, *, expected_amount=None, currency: str | None = None) -> PaymentResult:
        order_id = str(order_id or "").strip()
        if not order_id:
            return PaymentGatewayError(
                category=PaymentErrorCategory.INVALID_PAYMENT_DETAILS,
                detail="missing order id",
                message="PayPal order ID is required. Please complete PayPal checkout first.",
                provider=PROVIDER,
            )

        try:
            if expected_amount is not None:
                mismatch = self._verify_amount(order_id, expected_amount)
                if mismatch is not None:
                    return mismatch

            parsed = self._request_json(
                "POST",
                f"/v2/checkout/orders/{order_id}/capture",
                body={},
                request_id=f"capture-{order_id}",
            )
        except PayPalRequestError as exc:
            logger.error(
                "Error processing PayPal payment: order=%s %s",
                order_id,
                exc.detail,
                extra={"paypal_order_id": order_id, "detail": exc.detail, "environment": self.environment},
            )
            return exc.to_result()

        status = str(parsed.get("status") or "")
        if status != "COMPLETED":
            logger.warning("PayPal payment not completed: order=%s status=%s", order_id, status, extra={"paypal_order_id": order_id, "status": status})
            return PaymentDeclined(
                reason=f"PayPal payment status: {status or 'unknown'}",
                status=status,
                reference=order_id,
                provider=PROVIDER,
            )

        capture = _first_capture(parsed)
        capture_status = str(capture.get("status") or "")
        if capture_status != "COMPLETED":
            # order completed but funds still held (e.g. PENDING review)
            logger.warning(
                "PayPal capture not completed: order=%s capture=%s status=%s",
                order_id,
                capture.get("id"),
                capture_status or "missing",
                extra={"paypal_order_id": order_id, "capture_id": capture.get("id"), "status": capture_status},
            )
            return PaymentDeclined(
                reason=f"PayPal capture status: {capture_status or 'unknown'}",
                status=capture_status,
                reference=str(capture.get("id") or order_id),
                provider=PROVIDER,
            )

        captured_amount = _to_decimal(((capture.get("amount") or {}).get("value")))
        if captured_amount is None:
            captured_amount = parse_charge_amount(expected_amount) or Decimal("0.00")
        captured_currency = ((capture.get("amount") or {}).get("currency_code") or currency or self.currency).lower()

        logger.info(
            "PayPal payment captured",
            extra={
                "paypal_order_id": order_id,
                "capture_id": capture.get("id"),
                "amount": str(captured_amount),
                "currency": captured_currency,
            },
        )
        return PaymentSuccess(
            reference=str(capture.get("id") or order_id),
            amount=captured_amount,
            currency=captured_currency,
            status=status,
            provider=PROVIDER,
            details={"paypalOrderId": order_id, "captureId": capture.get("id") or ""},
        )

    def charge(
        self,
        payment_details: dict | None,
        amount,
        currency: str | None = None,
        *,
        idempotency_key: str | None = None,
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

        order_id = str(details.get("orderId") or details.get("paypalOrderId") or "").strip()

        if not self.configured:
            if not self.test_mode:
                return PaymentGatewayError(
                    category=PaymentErrorCategory.AUTHENTICATION_MISCONFIGURED,
                    detail="PayPal credentials missing",
                    message="PayPal payment processing is not configured. Please contact support.",
                    provider=PROVIDER,
                )
            seed = f"{order_id or idempotency_key or ''}|{value}|{currency}"
            reference = "test_paypal_" + hashlib.sha256(seed.encode("utf-8")).hexdigest()[:24]
            logger.warning(
                "PayPal not configured - simulating payment in sandbox mode",
                extra={"payment_reference": reference, "amount": str(value)},
            )
            return PaymentSuccess(
                reference=reference,
                amount=value,
                currency=currency,
                status="COMPLETED",
                provider=PROVIDER,
                synthetic=True,
                details={"paypalOrderId": order_id},
            )

        return self.capture_redirect_order(order_id, expected_amount=value, currency=currency)

    # -----------------------------
    # Internals
    # -----------------------------

    def _verify_amount(self, order_id: str, expected_amount) -> PaymentResult | None:
        expected = parse_charge_amount(expected_amount)
        order = self._request_json("GET", f"/v2/checkout/orders/{order_id}")

        units = order.get("purchase_units") or [{}]
        approved = _to_decimal(((units[0] or {}).get("amount") or {}).get("value"))

        if expected is None or approved != expected:
            logger.warning(
                "PayPal approved amount does not match order total: order=%s approved=%s expected=%s",
                order_id,
                approved,
                expected,
                extra={"paypal_order_id": order_id, "approved": str(approved), "expected": str(expected)},
            )
            return PaymentGatewayError(
                category=PaymentErrorCategory.INVALID_PAYMENT_DETAILS,
                detail=f"approved amount {approved} != order total {expected}",
                message="PayPal approved amount does not match the order total.",
                provider=PROVIDER,
            )
        return None


def _first_capture(parsed: dict) -> dict:
    for unit in parsed.get("purchase_units") or []:
        captures = ((unit or {}).get("payments") or {}).get("captures") or []
        if captures and isinstance(captures[0], dict):
            return captures[0]
    return {}
