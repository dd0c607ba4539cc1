# discounts/services/discount_ledger.py

"""
DISCOUNT ACCOUNTING (APPLICATION SERVICE)

Responsibilities:
- resolve(code): case-insensitive lookup of ACTIVE codes only
- ensure_applicable(code, product_ids): product scope check against the cart
- apply_usage(code_id): bump usage_count by exactly 1
- compute_discount(subtotal, percentage): money math (round-half-even, 2dp)

Concurrency:
- apply_usage is ONE UPDATE statement using F("usage_count") + 1.
  Two checkouts using the same code at the same time both land; no lost update.

The orchestrator (not this module) reconciles compute_discount() against the
client-declared discount.
"""

from __future__ import annotations

import logging
from decimal import ROUND_HALF_EVEN, Decimal
from typing import Iterable

from django.db.models import F
from django.utils import timezone

from discounts.models import DiscountCode, normalize_code
from discounts.services.exceptions import DiscountNotApplicable, DiscountNotFound
from products.services.catalog import parse_product_id

logger = logging.getLogger(__name__)

TWOPLACES = Decimal("0.01")
HUNDRED = Decimal("100")


def compute_discount(subtotal, percentage) -> Decimal:
    amount = Decimal(str(subtotal)) * Decimal(str(percentage)) / HUNDRED
    return amount.quantize(TWOPLACES, rounding=ROUND_HALF_EVEN)


class DiscountLedger:
    def __init__(self, *, using: str = "default"):
        self.using = using

    def _codes(self):
        return DiscountCode.objects.using(self.using)

    def resolve(self, code: str | None) -> DiscountCode | None:
        normalized = normalize_code(code)
        if not normalized:
            return None
        return self._codes().filter(code=normalized, is_active=True).first()

    def resolve_or_raise(self, code: str | None) -> DiscountCode:
        discount = self.resolve(code)
        if discount is None:
            raise DiscountNotFound("Invalid discount code")
        return discount

    def ensure_applicable(self, discount: DiscountCode, product_ids: Iterable) -> None:
        """
        Scope rules:
        - none     -> never applies
        - all      -> always applies
        - selected -> at least one cart product must be in the code's product set
        """
        if discount.product_scope == DiscountCode.SCOPE_NONE:
            raise DiscountNotApplicable("This discount code is not available for any products")

        if discount.product_scope != DiscountCode.SCOPE_SELECTED:
            return

        cart_ids = {pid for pid in (parse_product_id(v) for v in product_ids) if pid is not None}
        if not cart_ids:
            raise DiscountNotApplicable("This discount code requires specific products in your cart")

        allowed = set(discount.products.using(self.using).values_list("id", flat=True))
        if not (cart_ids & allowed):
            raise DiscountNotApplicable(
                "This discount code does not apply to the products in your order"
            )

    def apply_usage(self, code_id) -> bool:
        updated = self._codes().filter(pk=code_id).update(
            usage_count=F("usage_count") + 1,
            updated_at=timezone.now(),
        )
        if not updated:
            logger.warning("Discount usage increment matched no row: %s", code_id, extra={"discount_code_id": str(code_id)})
            return False

        logger.info("Discount usage incremented", extra={"discount_code_id": str(code_id)})
        return True
