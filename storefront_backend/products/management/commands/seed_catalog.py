# products/management/commands/seed_catalog.py

from datetime import timedelta
from decimal import Decimal

from django.conf import settings
from django.core.management.base import BaseCommand
from django.utils import timezone

from discounts.models import DiscountCode
from products.models import Product


class Command(BaseCommand):
    help = "Seed a demo catalog (token pack, live session, plain product) and a discount code"

    def handle(self, *args, **options):
        self.stdout.write(self.style.WARNING("Seeding catalog..."))

        # -------------------------------
        # PRODUCTS
        # -------------------------------
        per_unit = int(settings.TOKENS["DEFAULT_GRANT_PER_UNIT"])

        products_data = [
            (
                "Tokens",
                Decimal("9.99"),
                {"provides_tokens": True, "token_quantity": per_unit},
            ),
            (
                "Live Strategy Session",
                Decimal("49.00"),
                {
                    "is_live_session": True,
                    "session_starts_at": timezone.now() + timedelta(days=7),
                    "session_join_url": "https://example.com/sessions/strategy",
                },
            ),
            ("Starter Template Pack", Decimal("19.99"), {}),
        ]

        for name, price, extra in products_data:
            product, created = Product.objects.get_or_create(
                name=name,
                defaults={"price": price, **extra},
            )
            label = "created" if created else "exists"
            self.stdout.write(f"  {product.name}: {label}")

        # -------------------------------
        # DISCOUNT CODES
        # -------------------------------
        code, created = DiscountCode.objects.get_or_create(
            code="SAVE10",
            defaults={"percentage": Decimal("10.00"), "product_scope": DiscountCode.SCOPE_ALL},
        )
        self.stdout.write(f"  {code.code}: {'created' if created else 'exists'}")

        self.stdout.write(self.style.SUCCESS("Catalog seeded successfully."))
