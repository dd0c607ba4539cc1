# products/tests/test_products.py

import uuid
from decimal import Decimal
from io import StringIO

from django.core.exceptions import ValidationError
from django.core.management import call_command
from django.test import TestCase, override_settings

from discounts.models import DiscountCode
from products.models import Product
from products.services.catalog import parse_product_id, products_by_id, products_for_items


class ProductModelTests(TestCase):
    """
    Product model tests.

    GUARANTEES:
    - Pricing is sane
    - Token products grant at least one token per unit
    - Live sessions carry a start time
    """

    def test_product_creation(self):
        product = Product.objects.create(name="Course", price=Decimal("19.99"))

        self.assertEqual(product.name, "Course")
        self.assertFalse(product.grants_tokens)

    def test_negative_price_rejected(self):
        with self.assertRaises(ValidationError):
            Product(name="Broken", price=Decimal("-1.00")).full_clean()

    def test_token_product_needs_quantity(self):
        with self.assertRaises(ValidationError):
            Product(name="Tokens", price=Decimal("10.00"), provides_tokens=True, token_quantity=0).clean()

    def test_grants_tokens(self):
        product = Product(name="Tokens", price=Decimal("10.00"), provides_tokens=True, token_quantity=100)

        self.assertTrue(product.grants_tokens)

    def test_live_session_needs_start(self):
        with self.assertRaises(ValidationError):
            Product(name="Session", price=Decimal("49.00"), is_live_session=True).clean()


class CatalogLookupTests(TestCase):
    def setUp(self):
        self.product = Product.objects.create(name="Course", price=Decimal("19.99"))

    def test_parse_product_id(self):
        self.assertEqual(parse_product_id(str(self.product.id)), self.product.id)
        self.assertIsNone(parse_product_id("abc"))
        self.assertIsNone(parse_product_id(None))
        self.assertIsNone(parse_product_id(""))

    def test_unknown_and_invalid_ids_are_ignored(self):
        found = products_by_id([str(self.product.id), str(uuid.uuid4()), "garbage", None])

        self.assertEqual(list(found), [str(self.product.id)])

    def test_inactive_products_still_resolve(self):
        Product.objects.filter(pk=self.product.pk).update(is_active=False)

        found = products_for_items([{"id": str(self.product.id)}])

        self.assertIn(str(self.product.id), found)


class SeedCatalogCommandTests(TestCase):
    @override_settings(TOKENS={"DEFAULT_GRANT_PER_UNIT": 250})
    def test_seed_is_repeatable(self):
        call_command("seed_catalog", stdout=StringIO())
        call_command("seed_catalog", stdout=StringIO())

        tokens = Product.objects.get(name="Tokens")
        self.assertTrue(tokens.grants_tokens)
        self.assertEqual(tokens.token_quantity, 250)
        self.assertTrue(Product.objects.filter(is_live_session=True).exists())
        self.assertEqual(Product.objects.count(), 3)
        self.assertEqual(DiscountCode.objects.get(code="SAVE10").percentage, Decimal("10.00"))
