# orders/filters.py

import django_filters

from orders.models import Order


class OrderFilter(django_filters.FilterSet):
    """
    Query params for GET /api/orders:
    - paymentMethod=card|paypal|free
    - createdAfter / createdBefore (ISO date or datetime, inclusive)
    """

    paymentMethod = django_filters.ChoiceFilter(
        field_name="payment_method",
        choices=Order.PAYMENT_METHOD_CHOICES,
    )
    createdAfter = django_filters.IsoDateTimeFilter(field_name="created_at", lookup_expr="gte")
    createdBefore = django_filters.IsoDateTimeFilter(field_name="created_at", lookup_expr="lte")

    class Meta:
        model = Order
        fields = ["paymentMethod", "createdAfter", "createdBefore"]
