# products/services/catalog.py

"""
CATALOG LOOKUP (READ-ONLY)

Order line items carry a client-supplied product id snapshot. These helpers
resolve those ids against the catalog for token crediting, discount scoping and
confirmation rendering.

Rules:
- READ-ONLY: catalog management is not part of checkout
- Inactive products are still resolved (an order may reference a product that
  was retired after purchase)
- Ids that are not valid product keys are ignored, never raised
"""

from __future__ import annotations

import uuid
from typing import Iterable

from products.models import Product


def parse_product_id(value) -> uuid.UUID | None:
    if value is None or value == "":
        return None
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value).strip())
    except (ValueError, AttributeError, TypeError):
        return None


def products_by_id(ids: Iterable, *, using: str = "default") -> dict[str, Product]:
    """
    Map str(product.id) -> Product for every resolvable id.
    """
    parsed = {pid for pid in (parse_product_id(v) for v in ids) if pid is not None}
    if not parsed:
        return {}

    rows = Product.objects.using(using).filter(id__in=parsed)
    return {str(p.id): p for p in rows}


def products_for_items(items: Iterable[dict], *, using: str = "default") -> dict[str, Product]:
    return products_by_id((item.get("id") for item in items), using=using)
