# orders/services/checkout_orchestrator.py

"""
CHECKOUT ORCHESTRATOR (APPLICATION SERVICE)

Purpose:
- Turn a submitted cart into ONE durable Order:
    validate -> charge -> persist (+ discount usage) -> credit tokens -> notify

Hard rules:
- Money values are validated server-side; declared totals that drift from
  the line items are REJECTED, never silently recomputed.
- Charge before persist: a failed charge never leaves an Order row.
- Persist before credit: tokens are only granted for orders that exist.
- Order insert + discount usage increment share one DB transaction; the
  increment sits in a savepoint so its failure cannot undo the order.
- Token crediting is keyed by order number (TokenGrant.reference is unique)
  so replays/retries credit at most once.
- Notification is last and best-effort.

Failure policy:
- before capture: raise CheckoutValidationError / PaymentFailedError, no side effects
- after capture, no order row: OrderPersistenceError + CRITICAL log (manual
  reconciliation; no automatic refund)
- after persist: non-fatal step failures are recorded on the CheckoutResult

Collaborators are injected; build_checkout_orchestrator() wires the defaults.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from django.db import DatabaseError, transaction

from discounts.services.discount_ledger import DiscountLedger, compute_discount
from discounts.services.exceptions import DiscountError
from notifications.services.dispatcher import OrderConfirmationNotifier, Recipient
from orders.models import Order
from orders.services.exceptions import (
    CheckoutValidationError,
    DiscountAccountingFailure,
    NotificationFailure,
    OrderPersistenceError,
    PaymentFailedError,
    TokenCreditFailure,
)
from orders.services.order_ledger import OrderLedger
from orders.services.pipeline import CheckoutResult, CheckoutState, StepOutcome
from payments.services import config as payments_config
from payments.services.card import CardGateway
from payments.services.paypal import PayPalGateway
from products.services.catalog import products_for_items
from tokens.services.grants import compute_token_grant
from tokens.services.token_ledger import TokenLedger

logger = logging.getLogger(__name__)

TWOPLACES = Decimal("0.01")
ZERO = Decimal("0.00")

SUPPORTED_PAYMENT_METHODS = (Order.PAYMENT_CARD, Order.PAYMENT_PAYPAL)


def _money(v) -> Decimal:
    if v is None or v == "":
        return ZERO
    try:
        return Decimal(str(v)).quantize(TWOPLACES, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError, TypeError) as exc:
        raise CheckoutValidationError("Invalid amount in order") from exc


def _to_int_qty(value) -> int:
    if value is None or value == "":
        return 1
    if isinstance(value, bool):
        raise CheckoutValidationError("quantity must be a whole integer unit")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    raise CheckoutValidationError("quantity must be a whole integer unit")


# -----------------------------
# Request
# -----------------------------


@dataclass(frozen=True)
class CheckoutRequest:
    customer: dict
    items: list
    subtotal: Decimal
    discount: Decimal
    total: Decimal
    payment: dict = field(default_factory=dict)
    discount_code: str = ""
    idempotency_key: str = ""

    @property
    def payment_method(self) -> str:
        return str((self.payment or {}).get("method") or Order.PAYMENT_CARD).strip().lower()

    @property
    def effective_idempotency_key(self) -> str:
        """
        Client key, or for the wallet flow the approved wallet order id
        (an approved order can only be captured once).
        """
        key = (self.idempotency_key or "").strip()
        if key:
            return key
        if self.payment_method == Order.PAYMENT_PAYPAL:
            wallet_id = str((self.payment or {}).get("orderId") or (self.payment or {}).get("paypalOrderId") or "").strip()
            if wallet_id:
                return f"paypal:{wallet_id}"
        return ""


# -----------------------------
# Orchestrator
# -----------------------------


class CheckoutOrchestrator:
    def __init__(
        self,
        *,
        card_gateway,
        wallet_gateway,
        order_ledger: OrderLedger,
        discount_ledger: DiscountLedger,
        token_ledger: TokenLedger,
        notifier,
        currency: str = "usd",
        using: str = "default",
    ):
        self.card_gateway = card_gateway
        self.wallet_gateway = wallet_gateway
        self.order_ledger = order_ledger
        self.discount_ledger = discount_ledger
        self.token_ledger = token_ledger
        self.notifier = notifier
        self.currency = (currency or "usd").lower()
        self.using = using

    def process(self, *, user, request: CheckoutRequest) -> CheckoutResult:
        result = CheckoutResult()
        key = request.effective_idempotency_key

        existing = self.order_ledger.find_by_idempotency_key(user.pk, key)
        if existing is not None:
            return self._replay(user, existing, result)

        # Validating
        result.state = CheckoutState.VALIDATING
        try:
            discount_code = self._validate(request)
        except CheckoutValidationError as exc:
            result.state = CheckoutState.ABORTED
            result.record(StepOutcome(CheckoutState.VALIDATING, ok=False, error=exc, fatal=True))
            logger.info("Checkout rejected: %s", exc.message, extra={"user_id": str(user.pk), "reason": exc.message})
            raise
        result.record(StepOutcome(CheckoutState.VALIDATING))

        # Charging
        result.state = CheckoutState.CHARGING
        payment = self._charge(user, request, key, result)

        # Persisting (+ AccountingDiscount in the same transaction)
        result.state = CheckoutState.PERSISTING
        order, created = self._persist(user, request, payment, discount_code, key, result)
        result.order = order
        if not created:
            return self._replay(user, order, result)

        # CreditingTokens
        result.state = CheckoutState.CREDITING_TOKENS
        self._credit_tokens(user, order, result)

        # Notifying
        result.state = CheckoutState.NOTIFYING
        self._notify(order, result)

        result.state = CheckoutState.DONE
        logger.info(
            "Order processed successfully: order=%s total=%s",
            order.order_number,
            order.total,
            extra={
                "user_id": str(user.pk),
                "order_number": order.order_number,
                "total": str(order.total),
                "item_count": len(order.items),
                "tokens_added": result.tokens_added,
                "email_sent": result.email_sent,
            },
        )
        return result

    # -----------------------------
    # Steps
    # -----------------------------

    def _validate(self, request: CheckoutRequest):
        customer = request.customer or {}
        if not str(customer.get("email") or "").strip():
            raise CheckoutValidationError("Missing required order information")

        items = list(request.items or [])
        if not items:
            raise CheckoutValidationError("Order must contain at least one item")

        line_total = ZERO
        for item in items:
            qty = _to_int_qty(item.get("quantity"))
            price = _money(item.get("price"))
            if qty <= 0:
                raise CheckoutValidationError("Item quantity must be at least 1")
            if price < ZERO:
                raise CheckoutValidationError("Item price cannot be negative")
            line_total += price * qty
        line_total = line_total.quantize(TWOPLACES)

        subtotal = _money(request.subtotal)
        discount = _money(request.discount)
        total = _money(request.total)

        if subtotal != line_total:
            raise CheckoutValidationError(
                "Order subtotal does not match the order items",
                declared=str(subtotal),
                computed=str(line_total),
            )
        if discount < ZERO or discount > subtotal:
            raise CheckoutValidationError("Invalid discount amount")
        if total != subtotal - discount:
            raise CheckoutValidationError(
                "Order total does not match subtotal minus discount",
                declared=str(total),
                computed=str(subtotal - discount),
            )

        discount_code = None
        code = (request.discount_code or "").strip()
        if code:
            try:
                discount_code = self.discount_ledger.resolve_or_raise(code)
                self.discount_ledger.ensure_applicable(discount_code, [i.get("id") for i in items])
            except DiscountError as exc:
                raise CheckoutValidationError(str(exc)) from exc

            expected = compute_discount(subtotal, discount_code.percentage)
            if expected != discount:
                raise CheckoutValidationError(
                    "Discount amount does not match the discount code",
                    declared=str(discount),
                    computed=str(expected),
                )
        elif discount > ZERO:
            raise CheckoutValidationError("A discount requires a valid discount code")

        if total > ZERO:
            if not request.payment:
                raise CheckoutValidationError("Payment information is required")
            if request.payment_method not in SUPPORTED_PAYMENT_METHODS:
                raise CheckoutValidationError("Unsupported payment method")

        return discount_code

    def _charge(self, user, request: CheckoutRequest, key: str, result: CheckoutResult):
        total = _money(request.total)
        if total == ZERO:
            result.record(StepOutcome(CheckoutState.CHARGING, skipped=True))
            return None

        if request.payment_method == Order.PAYMENT_PAYPAL:
            payment = self.wallet_gateway.charge(request.payment, total, self.currency, idempotency_key=key or None)
        else:
            payment = self.card_gateway.charge(
                request.payment,
                total,
                self.currency,
                idempotency_key=f"checkout:{user.pk}:{key}" if key else None,
            )

        if not payment.ok:
            result.state = CheckoutState.ABORTED
            result.payment = payment
            error = PaymentFailedError(payment)
            result.record(StepOutcome(CheckoutState.CHARGING, ok=False, value=payment, error=error, fatal=True))
            logger.warning(
                "Payment failed, checkout aborted: user=%s method=%s category=%s",
                user.pk,
                request.payment_method,
                payment.category.value,
                extra={
                    "user_id": str(user.pk),
                    "amount": str(total),
                    "method": request.payment_method,
                    "category": payment.category.value,
                },
            )
            raise error

        result.payment = payment
        result.record(StepOutcome(CheckoutState.CHARGING, value=payment))
        logger.info(
            "Payment processed successfully: ref=%s amount=%s",
            payment.reference,
            payment.amount,
            extra={
                "user_id": str(user.pk),
                "payment_reference": payment.reference,
                "amount": str(payment.amount),
                "method": request.payment_method,
                "synthetic": payment.synthetic,
            },
        )

        if _money(payment.amount) != total:
            self._log_unrecorded_payment(user, request, payment, reason="captured amount does not match order total")
            raise OrderPersistenceError("Captured amount does not match order total")

        return payment

    def _persist(self, user, request: CheckoutRequest, payment, discount_code, key: str, result: CheckoutResult):
        payment_method = request.payment_method if payment is not None else Order.PAYMENT_FREE
        try:
            with transaction.atomic(using=self.using):
                order, created = self.order_ledger.create(
                    user=user,
                    customer=request.customer,
                    items=request.items,
                    subtotal=_money(request.subtotal),
                    discount=_money(request.discount),
                    total=_money(request.total),
                    currency=self.currency,
                    payment_method=payment_method,
                    payment=payment,
                    discount_code=discount_code,
                    idempotency_key=key,
                )
                if created:
                    result.record(StepOutcome(CheckoutState.PERSISTING, value=order.order_number))
                    result.state = CheckoutState.ACCOUNTING_DISCOUNT
                    self._account_discount(discount_code, order, result)
        except DatabaseError as exc:
            self._log_unrecorded_payment(user, request, payment, reason=str(exc))
            result.record(StepOutcome(CheckoutState.PERSISTING, ok=False, error=exc, fatal=True))
            raise OrderPersistenceError("Failed to save order") from exc

        return order, created

    def _account_discount(self, discount_code, order: Order, result: CheckoutResult) -> None:
        if discount_code is None:
            result.record(StepOutcome(CheckoutState.ACCOUNTING_DISCOUNT, skipped=True))
            return

        error = None
        try:
            with transaction.atomic(using=self.using):
                applied = self.discount_ledger.apply_usage(discount_code.pk)
        except DatabaseError as exc:
            applied, error = False, exc

        if applied:
            result.record(StepOutcome(CheckoutState.ACCOUNTING_DISCOUNT, value=discount_code.code))
            return

        failure = DiscountAccountingFailure(f"usage increment failed for {discount_code.code}")
        failure.__cause__ = error
        result.record(StepOutcome(CheckoutState.ACCOUNTING_DISCOUNT, ok=False, error=failure))
        logger.warning(
            "Discount usage not recorded: order=%s code=%s",
            order.order_number,
            discount_code.code,
            extra={
                "order_number": order.order_number,
                "discount_code": discount_code.code,
                "error": str(error) if error else "no row updated",
            },
        )

    def _credit_tokens(self, user, order: Order, result: CheckoutResult) -> None:
        products = products_for_items(order.items, using=self.using)
        tokens = compute_token_grant(order.items, products)
        if tokens <= 0:
            result.record(StepOutcome(CheckoutState.CREDITING_TOKENS, skipped=True))
            return

        error = None
        try:
            credit = self.token_ledger.credit_for_order(user.pk, order.order_number, tokens)
        except DatabaseError as exc:
            credit, error = None, exc

        if credit is not None and (credit.credited or credit.already_applied):
            result.tokens_added = tokens
            result.record(StepOutcome(CheckoutState.CREDITING_TOKENS, value=tokens))
            return

        failure = TokenCreditFailure(f"{tokens} tokens not credited for {order.order_number}")
        failure.__cause__ = error
        result.record(StepOutcome(CheckoutState.CREDITING_TOKENS, ok=False, error=failure))
        logger.error(
            "Token credit failed after order was saved: order=%s user=%s tokens=%s error=%s "
            "(reconciliation required)",
            order.order_number,
            user.pk,
            tokens,
            str(error) if error else "credit rejected",
            extra={
                "order_number": order.order_number,
                "user_id": str(user.pk),
                "tokens": tokens,
                "error": str(error) if error else "credit rejected",
                "reconciliation_required": True,
            },
        )

    def _notify(self, order: Order, result: CheckoutResult) -> None:
        recipient = Recipient(email=order.customer_email, name=order.customer_name)
        try:
            sent = self.notifier.send_order_confirmation(recipient, order)
        except Exception as exc:  # best-effort step boundary
            logger.exception(
                "Error sending order confirmation: order=%s",
                order.order_number,
                extra={"order_number": order.order_number},
            )
            failure = NotificationFailure(str(exc))
            failure.__cause__ = exc
            result.record(StepOutcome(CheckoutState.NOTIFYING, ok=False, error=failure))
            result.email_sent = False
            return

        result.email_sent = bool(sent.sent)
        if sent.sent:
            result.record(StepOutcome(CheckoutState.NOTIFYING, value=sent))
        else:
            result.record(StepOutcome(CheckoutState.NOTIFYING, ok=False, error=NotificationFailure(sent.error)))

    def _replay(self, user, order: Order, result: CheckoutResult) -> CheckoutResult:
        """
        The key already produced this order: no charge, no insert, no second
        confirmation. Token credit is re-run because it is idempotent and may
        have failed the first time.
        """
        result.order = order
        result.replayed = True
        result.state = CheckoutState.CREDITING_TOKENS
        self._credit_tokens(user, order, result)
        result.record(StepOutcome(CheckoutState.NOTIFYING, skipped=True))
        result.state = CheckoutState.DONE

        logger.info(
            "Checkout replayed for existing order",
            extra={"user_id": str(user.pk), "order_number": order.order_number},
        )
        return result

    # -----------------------------
    # Helpers
    # -----------------------------

    def _log_unrecorded_payment(self, user, request: CheckoutRequest, payment, *, reason: str) -> None:
        email = (request.customer or {}).get("email")
        if payment is None:
            logger.error(
                "Failed to save free order: user=%s email=%s error=%s",
                user.pk,
                email,
                reason,
                extra={"user_id": str(user.pk), "email": email, "error": reason},
            )
            return

        logger.critical(
            "Payment captured but order was not recorded: ref=%s provider=%s amount=%s %s "
            "email=%s user=%s error=%s (reconciliation required)",
            payment.reference,
            payment.provider,
            payment.amount,
            payment.currency,
            email,
            user.pk,
            reason,
            extra={
                "payment_reference": payment.reference,
                "provider": payment.provider,
                "email": email,
                "user_id": str(user.pk),
                "amount": str(payment.amount),
                "currency": payment.currency,
                "error": reason,
                "reconciliation_required": True,
            },
        )


def build_checkout_orchestrator(*, using: str = "default") -> CheckoutOrchestrator:
    return CheckoutOrchestrator(
        card_gateway=CardGateway.from_settings(),
        wallet_gateway=PayPalGateway.from_settings(),
        order_ledger=OrderLedger(using=using),
        discount_ledger=DiscountLedger(using=using),
        token_ledger=TokenLedger(using=using),
        notifier=OrderConfirmationNotifier.from_settings(using=using),
        currency=payments_config.default_currency(),
        using=using,
    )
