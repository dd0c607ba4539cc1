# tokens/models/token_account.py

from django.conf import settings
from django.db import models


class TokenAccount(models.Model):
    """
    One balance row per account.

    Invariant:
    - balance is never negative (DB check constraint + conditional debit)
    - balance is only mutated with F() expressions, never read-modify-write
    """

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        primary_key=True,
        related_name="token_account",
    )

    balance = models.PositiveIntegerField(default=0)

    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.CheckConstraint(
                condition=models.Q(balance__gte=0),
                name="token_balance_non_negative",
            ),
        ]

    def __str__(self):
        return f"{self.user_id}: {self.balance}"
