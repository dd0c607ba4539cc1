# products/models/product.py

import uuid
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models


class Product(models.Model):
    """
    Represents a sellable catalog item.

    The checkout pipeline only READS products:
    - token-granting products credit `token_quantity` tokens per unit purchased
    - live-session products carry schedule/access details for the confirmation

    Orders never reference a product row; they snapshot {id, name, price, quantity}.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    name = models.CharField(max_length=255, db_index=True)
    description = models.TextField(blank=True, default="")

    price = models.DecimalField(max_digits=10, decimal_places=2)

    is_active = models.BooleanField(default=True)

    # Token-granting subset
    provides_tokens = models.BooleanField(default=False)
    token_quantity = models.PositiveIntegerField(
        default=0,
        help_text="Tokens credited per unit purchased (only when provides_tokens is set).",
    )

    # Scheduled-access subset (live sessions)
    is_live_session = models.BooleanField(default=False)
    session_starts_at = models.DateTimeField(null=True, blank=True)
    session_join_url = models.URLField(blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["name"], name="products_pr_name_9ff0a3_idx"),
            models.Index(fields=["provides_tokens"], name="products_pr_provide_4c1e2b_idx"),
        ]

    def __str__(self):
        return f"{self.name} ({self.price})"

    def clean(self):
        if self.price is None or Decimal(self.price) < Decimal("0.00"):
            raise ValidationError("Price cannot be negative")

        if self.provides_tokens and int(self.token_quantity or 0) <= 0:
            raise ValidationError("Token products must grant at least one token per unit")

        if self.is_live_session and not self.session_starts_at:
            raise ValidationError("Live sessions need a start time")

    @property
    def grants_tokens(self) -> bool:
        return bool(self.provides_tokens) and int(self.token_quantity or 0) > 0
