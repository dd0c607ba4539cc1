# discounts/apps.py

"""
DISCOUNTS APP CONFIG

Percentage discount codes:
- case-insensitive lookup (stored upper-case)
- product scoping (all / selected / none)
- usage counter incremented once per order, atomically at the DB
"""

from django.apps import AppConfig


class DiscountsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "discounts"
    verbose_name = "Discount Codes"
