# orders/services/order_ledger.py

"""
ORDER LEDGER (APPLICATION SERVICE)

Responsibilities:
- create(): write ONE Order row (customer snapshot + JSON line items + payment)
- order numbers are generated at write time:
      ORD-<YYYYMMDDHHMMSS>-<12 hex chars of uuid4>
  backed by a UNIQUE constraint; a collision is retried with a fresh number
- reads scoped to the owning account (list / detail / purchased products)

Idempotency:
- (user, idempotency_key) is unique when the key is non-empty. A concurrent
  duplicate loses the insert race and gets the winner's row back
  (created=False), like get_or_create.
"""

from __future__ import annotations

import logging
import uuid
from decimal import Decimal
from typing import Iterable

from django.db import IntegrityError, transaction
from django.utils import timezone

from orders.models import Order
from products.services.catalog import products_by_id

logger = logging.getLogger(__name__)

ORDER_NUMBER_ATTEMPTS = 3


def generate_order_number(now=None) -> str:
    now = now or timezone.now()
    return f"ORD-{now.strftime('%Y%m%d%H%M%S')}-{uuid.uuid4().hex[:12].upper()}"


def snapshot_items(items: Iterable[dict]) -> list[dict]:
    out = []
    for item in items:
        out.append(
            {
                "id": str(item.get("id") or ""),
                "name": str(item.get("name") or ""),
                "price": str(Decimal(str(item.get("price") or "0")).quantize(Decimal("0.01"))),
                "quantity": int(item.get("quantity") or 1),
            }
        )
    return out


def snapshot_customer(customer: dict) -> dict:
    customer = customer or {}

    def _s(key, limit):
        return str(customer.get(key) or "").strip()[:limit]

    return {
        "customer_first_name": _s("firstName", 100),
        "customer_last_name": _s("lastName", 100),
        "customer_email": _s("email", 254),
        "customer_phone": _s("phone", 50),
        "customer_address": _s("address", 255),
        "customer_city": _s("city", 100),
        "customer_state": _s("state", 100),
        "customer_zip_code": _s("zipCode", 20),
        "customer_country": _s("country", 100),
    }


class OrderLedger:
    def __init__(self, *, using: str = "default"):
        self.using = using

    def _orders(self):
        return Order.objects.using(self.using)

    # -----------------------------
    # Writes
    # -----------------------------

    def create(
        self,
        *,
        user,
        customer: dict,
        items: list[dict],
        subtotal: Decimal,
        discount: Decimal,
        total: Decimal,
        currency: str,
        payment_method: str,
        payment=None,
        discount_code=None,
        idempotency_key: str = "",
    ) -> tuple[Order, bool]:
        fields = dict(
            user=user,
            items=snapshot_items(items),
            subtotal=subtotal,
            discount=discount,
            total=total,
            currency=(currency or "usd").lower()[:3],
            payment_method=payment_method,
            discount_code=discount_code,
            idempotency_key=(idempotency_key or "")[:128],
            status=Order.STATUS_COMPLETED,
            **snapshot_customer(customer),
        )
        if payment is not None:
            fields.update(
                payment_reference=payment.reference,
                payment_status=payment.status,
                payment_details=dict(payment.details or {}, provider=payment.provider),
                is_test_payment=bool(payment.synthetic),
            )

        last_error = None
        for attempt in range(1, ORDER_NUMBER_ATTEMPTS + 1):
            order_number = generate_order_number()
            try:
                with transaction.atomic(using=self.using):
                    order = self._orders().create(order_number=order_number, **fields)
            except IntegrityError as exc:
                last_error = exc
                existing = self.find_by_idempotency_key(user.pk, idempotency_key)
                if existing is not None:
                    logger.info(
                        "Order already recorded for idempotency key",
                        extra={"order_number": existing.order_number, "user_id": str(user.pk)},
                    )
                    return existing, False
                logger.warning(
                    "Order number collision, retrying",
                    extra={"order_number": order_number, "attempt": attempt},
                )
                continue

            logger.info(
                "Order saved",
                extra={
                    "order_number": order.order_number,
                    "user_id": str(user.pk),
                    "total": str(order.total),
                    "item_count": len(order.items),
                },
            )
            return order, True

        raise last_error

    # -----------------------------
    # Reads
    # -----------------------------

    def find_by_idempotency_key(self, user_id, idempotency_key: str | None) -> Order | None:
        key = (idempotency_key or "").strip()
        if not key:
            return None
        return self._orders().filter(user_id=user_id, idempotency_key=key[:128]).first()

    def get_for_user(self, user_id, order_number: str) -> Order | None:
        return self._orders().filter(user_id=user_id, order_number=order_number).first()

    def for_user(self, user_id):
        return self._orders().filter(user_id=user_id).select_related("discount_code").order_by("-created_at")

    def page(self, qs, *, limit: int = 50, offset: int = 0) -> tuple[list[Order], int]:
        return list(qs[offset : offset + limit]), qs.count()

    def list_for_user(self, user_id, *, limit: int = 50, offset: int = 0) -> tuple[list[Order], int]:
        return self.page(self.for_user(user_id), limit=limit, offset=offset)

    def purchased_products(self, user_id) -> list[dict]:
        """
        Unique catalog products across the account's orders, most recently
        first-purchased first. Each entry: {"product", "purchased_at"}.
        """
        first_purchase: dict[str, object] = {}
        for order in self._orders().filter(user_id=user_id).order_by("created_at"):
            for item in order.items or []:
                pid = str(item.get("id") or "")
                if pid and pid not in first_purchase:
                    first_purchase[pid] = order.created_at

        products = products_by_id(first_purchase.keys(), using=self.using)
        rows = [
            {"product": products[pid], "purchased_at": purchased_at}
            for pid, purchased_at in first_purchase.items()
            if pid in products
        ]
        rows.sort(key=lambda r: r["purchased_at"], reverse=True)
        return rows
