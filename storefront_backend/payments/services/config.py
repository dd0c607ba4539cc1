# payments/services/config.py

"""
Settings resolver for the gateways.

settings.PAYMENTS is the single source; there is no env fallback here
(django-environ already populated it in settings/base.py).
"""

from __future__ import annotations

from django.conf import settings


def payments_cfg() -> dict:
    cfg = getattr(settings, "PAYMENTS", {}) or {}
    return cfg if isinstance(cfg, dict) else {}


def default_currency() -> str:
    return (payments_cfg().get("CURRENCY") or "usd").strip().lower()


def test_mode_enabled() -> bool:
    return bool(payments_cfg().get("TEST_MODE", False))


def gateway_timeout() -> int:
    try:
        return int(payments_cfg().get("TIMEOUT") or 25)
    except (TypeError, ValueError):
        return 25


def stripe_cfg() -> dict:
    cfg = payments_cfg().get("STRIPE") or {}
    return cfg if isinstance(cfg, dict) else {}


def paypal_cfg() -> dict:
    cfg = payments_cfg().get("PAYPAL") or {}
    return cfg if isinstance(cfg, dict) else {}
