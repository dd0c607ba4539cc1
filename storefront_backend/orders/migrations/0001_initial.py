import uuid
from decimal import Decimal

import django.core.serializers.json
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ("discounts", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Order",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "order_number",
                    models.CharField(
                        editable=False,
                        help_text="System-generated order number (ORD-<timestamp>-<random>)",
                        max_length=64,
                        unique=True,
                    ),
                ),
                ("customer_first_name", models.CharField(blank=True, default="", max_length=100)),
                ("customer_last_name", models.CharField(blank=True, default="", max_length=100)),
                ("customer_email", models.EmailField(max_length=254)),
                ("customer_phone", models.CharField(blank=True, default="", max_length=50)),
                ("customer_address", models.CharField(blank=True, default="", max_length=255)),
                ("customer_city", models.CharField(blank=True, default="", max_length=100)),
                ("customer_state", models.CharField(blank=True, default="", max_length=100)),
                ("customer_zip_code", models.CharField(blank=True, default="", max_length=20)),
                ("customer_country", models.CharField(blank=True, default="", max_length=100)),
                (
                    "items",
                    models.JSONField(
                        default=list,
                        encoder=django.core.serializers.json.DjangoJSONEncoder,
                    ),
                ),
                ("subtotal", models.DecimalField(decimal_places=2, max_digits=12)),
                (
                    "discount",
                    models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12),
                ),
                ("total", models.DecimalField(decimal_places=2, max_digits=12)),
                ("currency", models.CharField(default="usd", max_length=3)),
                (
                    "payment_method",
                    models.CharField(
                        choices=[("card", "Card"), ("paypal", "PayPal"), ("free", "Free order")],
                        max_length=16,
                    ),
                ),
                ("payment_reference", models.CharField(blank=True, default="", max_length=255)),
                ("payment_status", models.CharField(blank=True, default="", max_length=64)),
                ("payment_details", models.JSONField(blank=True, default=dict)),
                ("is_test_payment", models.BooleanField(default=False)),
                ("idempotency_key", models.CharField(blank=True, default="", max_length=128)),
                (
                    "status",
                    models.CharField(
                        choices=[("completed", "Completed")],
                        default="completed",
                        max_length=32,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "discount_code",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="orders",
                        to="discounts.discountcode",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="orders",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["user", "created_at"], name="orders_orde_user_id_5b1c7e_idx"),
                    models.Index(fields=["payment_reference"], name="orders_orde_payment_a93d20_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("idempotency_key", ""), _negated=True),
                        fields=("user", "idempotency_key"),
                        name="order_unique_idempotency_key_per_user",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("subtotal__gte", 0), ("discount__gte", 0), ("total__gte", 0)),
                        name="order_amounts_non_negative",
                    ),
                ],
            },
        ),
    ]
