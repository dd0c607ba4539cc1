# orders/models/order.py

import uuid
from decimal import Decimal

from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder
from django.db import models

User = settings.AUTH_USER_MODEL


class Order(models.Model):
    """
    Authoritative record of a completed checkout.

    GUARANTEES:
    - Immutable once created (save() on an existing row raises)
    - total == subtotal - discount
    - total equals the amount captured by the gateway (0 when no gateway call)
    - Customer details and line items are a SNAPSHOT at purchase time

    Line items are stored as one JSON array:
        [{"id", "name", "price", "quantity"}, ...]   price is a 2dp string
    """

    STATUS_COMPLETED = "completed"

    STATUS_CHOICES = [
        (STATUS_COMPLETED, "Completed"),
    ]

    PAYMENT_CARD = "card"
    PAYMENT_PAYPAL = "paypal"
    PAYMENT_FREE = "free"

    PAYMENT_METHOD_CHOICES = [
        (PAYMENT_CARD, "Card"),
        (PAYMENT_PAYPAL, "PayPal"),
        (PAYMENT_FREE, "Free order"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    order_number = models.CharField(
        max_length=64,
        unique=True,
        editable=False,
        help_text="System-generated order number (ORD-<timestamp>-<random>)",
    )

    user = models.ForeignKey(
        User,
        on_delete=models.PROTECT,
        related_name="orders",
    )

    # Customer snapshot
    customer_first_name = models.CharField(max_length=100, blank=True, default="")
    customer_last_name = models.CharField(max_length=100, blank=True, default="")
    customer_email = models.EmailField()
    customer_phone = models.CharField(max_length=50, blank=True, default="")
    customer_address = models.CharField(max_length=255, blank=True, default="")
    customer_city = models.CharField(max_length=100, blank=True, default="")
    customer_state = models.CharField(max_length=100, blank=True, default="")
    customer_zip_code = models.CharField(max_length=20, blank=True, default="")
    customer_country = models.CharField(max_length=100, blank=True, default="")

    items = models.JSONField(default=list, encoder=DjangoJSONEncoder)

    subtotal = models.DecimalField(max_digits=12, decimal_places=2)
    discount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    total = models.DecimalField(max_digits=12, decimal_places=2)
    currency = models.CharField(max_length=3, default="usd")

    discount_code = models.ForeignKey(
        "discounts.DiscountCode",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="orders",
    )

    # Payment (folded from the gateway result)
    payment_method = models.CharField(max_length=16, choices=PAYMENT_METHOD_CHOICES)
    payment_reference = models.CharField(max_length=255, blank=True, default="")
    payment_status = models.CharField(max_length=64, blank=True, default="")
    payment_details = models.JSONField(default=dict, blank=True)
    is_test_payment = models.BooleanField(default=False)

    idempotency_key = models.CharField(max_length=128, blank=True, default="")

    status = models.CharField(
        max_length=32,
        choices=STATUS_CHOICES,
        default=STATUS_COMPLETED,
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["user", "created_at"], name="orders_orde_user_id_5b1c7e_idx"),
            models.Index(fields=["payment_reference"], name="orders_orde_payment_a93d20_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["user", "idempotency_key"],
                condition=~models.Q(idempotency_key=""),
                name="order_unique_idempotency_key_per_user",
            ),
            models.CheckConstraint(
                condition=models.Q(subtotal__gte=0) & models.Q(discount__gte=0) & models.Q(total__gte=0),
                name="order_amounts_non_negative",
            ),
        ]

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("Order is immutable once created.")

        subtotal = Decimal(str(self.subtotal))
        discount = Decimal(str(self.discount or 0))
        if Decimal(str(self.total)) != subtotal - discount:
            raise ValueError("Order total must equal subtotal minus discount.")

        super().save(*args, **kwargs)

    @property
    def customer_name(self) -> str:
        return f"{self.customer_first_name} {self.customer_last_name}".strip()

    def line_items(self) -> list[dict]:
        out = []
        for item in self.items or []:
            line = dict(item)
            line["price"] = Decimal(str(line.get("price") or "0"))
            out.append(line)
        return out

    def __str__(self):
        return f"{self.order_number} | {self.total}"
