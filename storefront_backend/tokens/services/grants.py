# tokens/services/grants.py

"""
TOKEN GRANT CALCULATION

sum(product.token_quantity * line.quantity) over every line whose product is
token-granting. Lines referencing unknown products contribute nothing.
"""

from __future__ import annotations

import logging
from typing import Iterable, Mapping

logger = logging.getLogger(__name__)


def _line_quantity(item: Mapping) -> int:
    try:
        qty = int(item.get("quantity") or 1)
    except (TypeError, ValueError):
        return 0
    return max(qty, 0)


def compute_token_grant(items: Iterable[Mapping], products: Mapping) -> int:
    total = 0
    for item in items:
        product = products.get(str(item.get("id")))
        if product is None or not product.grants_tokens:
            continue

        tokens = int(product.token_quantity) * _line_quantity(item)
        logger.debug(
            "Token-granting line found",
            extra={"product_id": str(product.id), "per_unit": product.token_quantity, "tokens": tokens},
        )
        total += tokens
    return total
