# tokens/admin.py

from django.contrib import admin

from tokens.models import TokenAccount, TokenGrant


@admin.register(TokenAccount)
class TokenAccountAdmin(admin.ModelAdmin):
    list_display = ("user", "balance", "updated_at")
    search_fields = ("user__email",)
    readonly_fields = ("balance", "updated_at")


@admin.register(TokenGrant)
class TokenGrantAdmin(admin.ModelAdmin):
    """
    Grants are append-only: visible for audit, never edited here.
    """

    list_display = ("reference", "user", "amount", "source", "created_at")
    list_filter = ("source",)
    search_fields = ("reference", "user__email")
    readonly_fields = ("user", "reference", "amount", "source", "created_at")

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
