# discounts/admin.py

from django.contrib import admin

from discounts.models import DiscountCode


@admin.register(DiscountCode)
class DiscountCodeAdmin(admin.ModelAdmin):
    list_display = ("code", "percentage", "is_active", "product_scope", "usage_count", "created_at")
    list_filter = ("is_active", "product_scope")
    search_fields = ("code",)
    readonly_fields = ("usage_count", "created_at", "updated_at")
    filter_horizontal = ("products",)
