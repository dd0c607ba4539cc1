# discounts/models/discount_code.py

import uuid
from decimal import Decimal

from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models


def normalize_code(value) -> str:
    return str(value or "").strip().upper()


class DiscountCode(models.Model):
    """
    Reusable percentage-off code.

    Invariants:
    - code is stored normalized (upper-case) so lookups are case-insensitive
    - usage_count never decreases; it is only ever bumped with an F() update
      (one conditional UPDATE statement, no read-modify-write in Python)
    """

    SCOPE_ALL = "all"
    SCOPE_SELECTED = "selected"
    SCOPE_NONE = "none"

    SCOPE_CHOICES = [
        (SCOPE_ALL, "All products"),
        (SCOPE_SELECTED, "Selected products"),
        (SCOPE_NONE, "No products (disabled)"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    code = models.CharField(max_length=64, unique=True)

    percentage = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0")), MaxValueValidator(Decimal("100"))],
    )

    is_active = models.BooleanField(default=True)

    usage_count = models.PositiveIntegerField(default=0, editable=False)

    product_scope = models.CharField(max_length=16, choices=SCOPE_CHOICES, default=SCOPE_ALL)
    products = models.ManyToManyField(
        "products.Product",
        blank=True,
        related_name="discount_codes",
        help_text="Only used when product_scope is 'selected'.",
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(percentage__gte=0) & models.Q(percentage__lte=100),
                name="discount_percentage_0_100",
            ),
        ]

    def save(self, *args, **kwargs):
        self.code = normalize_code(self.code)
        super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.code} ({self.percentage}%)"
