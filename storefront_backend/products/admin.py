# products/admin.py

from __future__ import annotations

from django.contrib import admin

from products.models import Product


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = (
        "name",
        "price",
        "is_active",
        "provides_tokens",
        "token_quantity",
        "is_live_session",
        "session_starts_at",
    )
    list_filter = ("is_active", "provides_tokens", "is_live_session")
    search_fields = ("name",)
    readonly_fields = ("created_at", "updated_at")
