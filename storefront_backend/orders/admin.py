# orders/admin.py

from django.contrib import admin

from orders.models import Order


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    """
    Orders are immutable: the admin is a read-only reconciliation view.
    """

    list_display = (
        "order_number",
        "customer_email",
        "total",
        "payment_method",
        "payment_reference",
        "is_test_payment",
        "created_at",
    )
    list_filter = ("payment_method", "is_test_payment", "status")
    search_fields = ("order_number", "customer_email", "payment_reference")
    ordering = ("-created_at",)

    def get_readonly_fields(self, request, obj=None):
        return [f.name for f in self.model._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
