import threading
import time
import uuid
from decimal import Decimal

from django.db import OperationalError, connection
from django.test import SimpleTestCase, TestCase, TransactionTestCase
from rest_framework.test import APIClient

from discounts.models import DiscountCode
from discounts.services.discount_ledger import DiscountLedger, compute_discount
from discounts.services.exceptions import DiscountNotApplicable, DiscountNotFound
from products.models import Product


class ComputeDiscountTests(SimpleTestCase):
    def test_percentage_of_subtotal(self):
        self.assertEqual(compute_discount(Decimal("100.00"), Decimal("10")), Decimal("10.00"))

    def test_rounds_half_even_to_cents(self):
        # 0.125 -> 0.12, 0.135 -> 0.14
        self.assertEqual(compute_discount(Decimal("1.25"), Decimal("10")), Decimal("0.12"))
        self.assertEqual(compute_discount(Decimal("1.35"), Decimal("10")), Decimal("0.14"))

    def test_zero_and_full(self):
        self.assertEqual(compute_discount(Decimal("59.99"), Decimal("0")), Decimal("0.00"))
        self.assertEqual(compute_discount(Decimal("59.99"), Decimal("100")), Decimal("59.99"))


class DiscountLedgerTests(TestCase):
    """
    GUARANTEES:
    - only active codes resolve, case-insensitively
    - scope rules gate applicability
    - usage increments are atomic F() updates (stale instances do not lose counts)
    """

    def setUp(self):
        self.ledger = DiscountLedger()
        self.code = DiscountCode.objects.create(code="save10", percentage=Decimal("10.00"))
        self.product = Product.objects.create(name="Course", price=Decimal("20.00"))
        self.other = Product.objects.create(name="Ebook", price=Decimal("5.00"))

    def test_code_is_stored_normalized(self):
        self.assertEqual(self.code.code, "SAVE10")

    def test_resolve_is_case_insensitive(self):
        self.assertEqual(self.ledger.resolve("  Save10 ").pk, self.code.pk)

    def test_inactive_code_does_not_resolve(self):
        DiscountCode.objects.filter(pk=self.code.pk).update(is_active=False)

        self.assertIsNone(self.ledger.resolve("SAVE10"))
        with self.assertRaises(DiscountNotFound):
            self.ledger.resolve_or_raise("SAVE10")

    def test_blank_code_resolves_to_none(self):
        self.assertIsNone(self.ledger.resolve(""))
        self.assertIsNone(self.ledger.resolve(None))

    def test_scope_none_never_applies(self):
        self.code.product_scope = DiscountCode.SCOPE_NONE
        self.code.save()

        with self.assertRaises(DiscountNotApplicable):
            self.ledger.ensure_applicable(self.code, [str(self.product.id)])

    def test_scope_selected_requires_matching_product(self):
        self.code.product_scope = DiscountCode.SCOPE_SELECTED
        self.code.save()
        self.code.products.add(self.product)

        self.ledger.ensure_applicable(self.code, [str(self.other.id), str(self.product.id)])

        with self.assertRaises(DiscountNotApplicable):
            self.ledger.ensure_applicable(self.code, [str(self.other.id)])
        with self.assertRaises(DiscountNotApplicable):
            self.ledger.ensure_applicable(self.code, ["not-a-uuid"])

    def test_apply_usage_increments_by_one(self):
        self.assertTrue(self.ledger.apply_usage(self.code.pk))
        self.code.refresh_from_db()
        self.assertEqual(self.code.usage_count, 1)

    def test_interleaved_increments_from_stale_reads_both_land(self):
        stale_a = DiscountCode.objects.get(pk=self.code.pk)
        stale_b = DiscountCode.objects.get(pk=self.code.pk)

        self.ledger.apply_usage(stale_a.pk)
        self.ledger.apply_usage(stale_b.pk)

        self.code.refresh_from_db()
        self.assertEqual(self.code.usage_count, 2)

    def test_apply_usage_unknown_code(self):
        self.assertFalse(self.ledger.apply_usage(uuid.uuid4()))


class DiscountValidateAPITests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.url = "/api/discount-codes/validate"
        DiscountCode.objects.create(code="SAVE10", percentage=Decimal("10.00"))

    def test_valid_code(self):
        res = self.client.post(self.url, {"code": "save10"}, format="json")

        self.assertEqual(res.status_code, 200)
        self.assertTrue(res.data["valid"])
        self.assertEqual(res.data["discountCode"]["code"], "SAVE10")

    def test_unknown_code(self):
        res = self.client.post(self.url, {"code": "NOPE"}, format="json")

        self.assertEqual(res.status_code, 200)
        self.assertFalse(res.data["valid"])
        self.assertEqual(res.data["error"], "Invalid discount code")

    def test_missing_code(self):
        res = self.client.post(self.url, {}, format="json")

        self.assertEqual(res.status_code, 400)
        self.assertFalse(res.data["success"])

    def test_validation_does_not_count_usage(self):
        self.client.post(self.url, {"code": "SAVE10"}, format="json")

        self.assertEqual(DiscountCode.objects.get(code="SAVE10").usage_count, 0)


def _run_concurrently(fn, workers: int) -> list:
    """
    Start `workers` threads at once against fn(); each thread uses and closes
    its own DB connection. SQLite's shared-cache test database reports
    "table is locked" instead of waiting, so a locked attempt is retried.
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


class DiscountUsageRaceTests(TransactionTestCase):
    """
    Concurrent checkouts with the same code each count once: the
    increment is a single UPDATE, not read-modify-write.
    """

    def test_parallel_increments_all_land(self):
        code = DiscountCode.objects.create(code="RACE10", percentage=Decimal("10.00"))
        ledger = DiscountLedger()

        results = _run_concurrently(lambda: ledger.apply_usage(code.pk), workers=8)

        self.assertEqual(results, [True] * 8)
        code.refresh_from_db()
        self.assertEqual(code.usage_count, 8)
