# tokens/apps.py

"""
TOKENS APP CONFIG

Per-account integer token balance (spendable platform credits).
"""

from django.apps import AppConfig


class TokensConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "tokens"
    verbose_name = "Token Ledger"
