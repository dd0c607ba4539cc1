import threading
import time

from django.contrib.auth import get_user_model
from django.db import OperationalError, connection
from django.test import TestCase, TransactionTestCase
from rest_framework.test import APIClient

from products.models import Product
from tokens.models import TokenAccount, TokenGrant
from tokens.services.exceptions import InsufficientTokens, InvalidTokenAmount
from tokens.services.grants import compute_token_grant
from tokens.services.token_ledger import TokenLedger

User = get_user_model()


class TokenLedgerCreditTests(TestCase):
    """
    GUARANTEES:
    - credits are additive and create the account on first use
    - a referenced credit applies exactly once
    - invalid amounts are rejected without touching the balance
    """

    def setUp(self):
        self.user = User.objects.create_user(email="buyer@example.com", password="pass")
        self.ledger = TokenLedger()

    def test_credit_creates_account_and_adds(self):
        result = self.ledger.credit(self.user.id, 100)

        self.assertTrue(result.credited)
        self.assertEqual(self.ledger.balance(self.user.id), 100)

        self.ledger.credit(self.user.id, 50)
        self.assertEqual(self.ledger.balance(self.user.id), 150)

    def test_balance_of_unknown_account_is_zero(self):
        self.assertEqual(self.ledger.balance(self.user.id), 0)

    def test_referenced_credit_is_idempotent(self):
        first = self.ledger.credit(self.user.id, 200, reference="ORD-1")
        second = self.ledger.credit(self.user.id, 200, reference="ORD-1")

        self.assertTrue(first.credited)
        self.assertFalse(second.credited)
        self.assertTrue(second.already_applied)
        self.assertEqual(self.ledger.balance(self.user.id), 200)
        self.assertEqual(TokenGrant.objects.filter(reference="ORD-1").count(), 1)

    def test_invalid_amounts_are_noops(self):
        for amount in (0, -5, True, "10", 1.5, None):
            result = self.ledger.credit(self.user.id, amount)
            self.assertFalse(result.credited)

        self.assertEqual(self.ledger.balance(self.user.id), 0)
        self.assertFalse(TokenAccount.objects.filter(user=self.user).exists())


class TokenLedgerDebitTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(email="spender@example.com", password="pass")
        self.ledger = TokenLedger()
        self.ledger.credit(self.user.id, 100)

    def test_debit_within_balance_succeeds(self):
        self.assertTrue(self.ledger.debit(self.user.id, 40))
        self.assertEqual(self.ledger.balance(self.user.id), 60)

    def test_debit_exact_balance_reaches_zero(self):
        self.assertTrue(self.ledger.debit(self.user.id, 100))
        self.assertEqual(self.ledger.balance(self.user.id), 0)

    def test_debit_beyond_balance_is_refused(self):
        self.assertFalse(self.ledger.debit(self.user.id, 101))
        self.assertEqual(self.ledger.balance(self.user.id), 100)

    def test_sequential_debits_never_go_negative(self):
        self.assertTrue(self.ledger.debit(self.user.id, 70))
        self.assertFalse(self.ledger.debit(self.user.id, 70))
        self.assertEqual(self.ledger.balance(self.user.id), 30)

    def test_debit_or_raise(self):
        with self.assertRaises(InsufficientTokens):
            self.ledger.debit_or_raise(self.user.id, 500)
        with self.assertRaises(InvalidTokenAmount):
            self.ledger.debit_or_raise(self.user.id, 0)


class TokenGrantComputationTests(TestCase):
    def setUp(self):
        self.tokens = Product.objects.create(
            name="Tokens",
            price="10.00",
            provides_tokens=True,
            token_quantity=100,
        )
        self.book = Product.objects.create(name="Book", price="20.00")

    def test_grant_sums_token_products_only(self):
        items = [
            {"id": str(self.tokens.id), "quantity": 2},
            {"id": str(self.book.id), "quantity": 5},
            {"id": "not-a-product", "quantity": 1},
        ]
        products = {str(self.tokens.id): self.tokens, str(self.book.id): self.book}

        self.assertEqual(compute_token_grant(items, products), 200)

    def test_no_token_products_grants_nothing(self):
        items = [{"id": str(self.book.id), "quantity": 1}]
        self.assertEqual(compute_token_grant(items, {str(self.book.id): self.book}), 0)


class TokenBalanceApiTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.user = User.objects.create_user(email="api@example.com", password="pass")

    def test_requires_authentication(self):
        res = self.client.get("/api/tokens/balance")
        self.assertIn(res.status_code, (401, 403))

    def test_returns_balance(self):
        TokenLedger().credit(self.user.id, 300)
        self.client.force_authenticate(self.user)

        res = self.client.get("/api/tokens/balance")

        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.json(), {"success": True, "balance": 300})


def _run_concurrently(fn, workers: int) -> list:
    """
    Start `workers` threads at once against fn(); each closes its own DB
    connection. A "table is locked" attempt (SQLite shared cache) is retried.
    """
    barrier = threading.Barrier(workers)
    results, errors = [], []

    def worker():
        try:
            barrier.wait()
            for _ in range(200):
                try:
                    results.append(fn())
                    return
                except OperationalError:
                    time.sleep(0.005)
            errors.append("database stayed locked")
        except Exception as exc:  # surfaced by the assertion below
            errors.append(repr(exc))
        finally:
            connection.close()

    threads = [threading.Thread(target=worker) for _ in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    if errors:
        raise AssertionError(errors)
    return results


class TokenLedgerRaceTests(TransactionTestCase):
    """
    Parallel spends against one account: only as many succeed as the
    balance covers, and the balance never goes negative.
    """

    def setUp(self):
        self.user = User.objects.create_user(email="racer@example.com", password="pass")
        self.ledger = TokenLedger()
        self.ledger.credit(self.user.id, 100)

    def test_parallel_debits_never_overdraw(self):
        results = _run_concurrently(lambda: self.ledger.debit(self.user.id, 30), workers=10)

        self.assertEqual(len(results), 10)
        self.assertEqual(results.count(True), 3)
        self.assertEqual(self.ledger.balance(self.user.id), 10)

    def test_parallel_credits_for_one_order_apply_once(self):
        results = _run_concurrently(
            lambda: self.ledger.credit_for_order(self.user.id, "ORD-RACE-1", 50), workers=6
        )

        self.assertEqual(sum(1 for r in results if r.credited), 1)
        self.assertEqual(self.ledger.balance(self.user.id), 150)
        self.assertEqual(TokenGrant.objects.filter(reference="ORD-RACE-1").count(), 1)
