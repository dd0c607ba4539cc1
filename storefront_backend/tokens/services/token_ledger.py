# tokens/services/token_ledger.py

"""
TOKEN LEDGER (APPLICATION SERVICE)

Operations:
- credit(account_id, amount, reference=None)
    unconditional add; amount must be a positive integer.
    With a reference, the credit is idempotent: a TokenGrant row with a unique
    reference is written in the same transaction as the balance bump.
- debit(account_id, amount)
    conditional subtract, ONE statement:
        UPDATE ... SET balance = balance - amount WHERE balance >= amount
    Succeeds only when a row matched. No application lock needed.
- balance(account_id) -> int

Rules:
- invalid amounts are a no-op that reports failure (never raises into callers)
- the checkout pipeline only credits; spending tokens is a separate feature
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from tokens.models import TokenAccount, TokenGrant
from tokens.services.exceptions import InsufficientTokens, InvalidTokenAmount

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenCreditResult:
    credited: bool
    amount: int
    already_applied: bool = False
    reference: str = ""


def _valid_amount(amount) -> bool:
    return isinstance(amount, int) and not isinstance(amount, bool) and amount > 0


class TokenLedger:
    def __init__(self, *, using: str = "default"):
        self.using = using

    def _accounts(self):
        return TokenAccount.objects.using(self.using)

    def balance(self, account_id) -> int:
        row = self._accounts().filter(user_id=account_id).values_list("balance", flat=True).first()
        return int(row or 0)

    def credit(
        self,
        account_id,
        amount,
        *,
        reference: str | None = None,
        source: str = TokenGrant.SOURCE_ORDER,
    ) -> TokenCreditResult:
        reference = (reference or "").strip()

        if not _valid_amount(amount):
            logger.warning(
                "Token credit rejected: amount must be a positive integer",
                extra={"account_id": str(account_id), "amount": amount, "reference": reference},
            )
            return TokenCreditResult(credited=False, amount=0, reference=reference)

        with transaction.atomic(using=self.using):
            if reference:
                try:
                    with transaction.atomic(using=self.using):
                        TokenGrant.objects.using(self.using).create(
                            user_id=account_id,
                            reference=reference,
                            amount=amount,
                            source=source,
                        )
                except IntegrityError:
                    logger.info(
                        "Token credit already applied",
                        extra={"account_id": str(account_id), "reference": reference},
                    )
                    return TokenCreditResult(
                        credited=False,
                        amount=amount,
                        already_applied=True,
                        reference=reference,
                    )

            self._accounts().get_or_create(user_id=account_id)
            self._accounts().filter(user_id=account_id).update(
                balance=F("balance") + amount,
                updated_at=timezone.now(),
            )

        logger.info(
            "Tokens credited",
            extra={"account_id": str(account_id), "amount": amount, "reference": reference},
        )
        return TokenCreditResult(credited=True, amount=amount, reference=reference)

    def credit_for_order(self, account_id, order_number: str, amount) -> TokenCreditResult:
        """
        Purchase grant keyed by order number: re-running it for the same order
        (client retry, reconciliation) credits at most once.
        """
        return self.credit(account_id, amount, reference=order_number, source=TokenGrant.SOURCE_ORDER)

    def debit(self, account_id, amount) -> bool:
        if not _valid_amount(amount):
            logger.warning(
                "Token debit rejected: amount must be a positive integer",
                extra={"account_id": str(account_id), "amount": amount},
            )
            return False

        updated = self._accounts().filter(user_id=account_id, balance__gte=amount).update(
            balance=F("balance") - amount,
            updated_at=timezone.now(),
        )
        if not updated:
            logger.info(
                "Token debit refused: insufficient balance",
                extra={"account_id": str(account_id), "amount": amount},
            )
            return False

        logger.info("Tokens debited", extra={"account_id": str(account_id), "amount": amount})
        return True

    def debit_or_raise(self, account_id, amount) -> None:
        if not _valid_amount(amount):
            raise InvalidTokenAmount("Token amount must be a positive integer")
        if not self.debit(account_id, amount):
            raise InsufficientTokens("Insufficient token balance")

    def grant_for_reference(self, reference: str) -> TokenGrant | None:
        return TokenGrant.objects.using(self.using).filter(reference=reference).first()
