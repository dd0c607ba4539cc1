# tokens/models/token_grant.py

import uuid

from django.conf import settings
from django.db import models


class TokenGrant(models.Model):
    """
    Append-only record of a credit that was applied to a TokenAccount.

    Idempotency rule:
    - reference is unique (e.g. the order number for purchase grants)
    - the grant row and the balance bump commit in the same transaction, so a
      reference that exists here has been credited exactly once
    """

    SOURCE_ORDER = "order"
    SOURCE_RECONCILIATION = "reconciliation"
    SOURCE_ADMIN = "admin"

    SOURCE_CHOICES = [
        (SOURCE_ORDER, "Order purchase"),
        (SOURCE_RECONCILIATION, "Reconciliation"),
        (SOURCE_ADMIN, "Administrative grant"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="token_grants",
    )

    reference = models.CharField(max_length=128, unique=True)
    amount = models.PositiveIntegerField()
    source = models.CharField(max_length=32, choices=SOURCE_CHOICES, default=SOURCE_ORDER)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["user", "created_at"], name="tokens_toke_user_id_8c2f1d_idx"),
        ]

    def __str__(self):
        return f"{self.reference} +{self.amount}"
