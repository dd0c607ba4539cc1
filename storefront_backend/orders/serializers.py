# orders/serializers.py

"""
Checkout input (camelCase, as the storefront sends it) and order read shapes.

Money leaves the API as JSON numbers (Decimal -> float via the DRF encoder),
matching what the storefront submits.
"""

from __future__ import annotations

from decimal import Decimal

from rest_framework import serializers

from orders.models import Order


# -----------------------------
# Input
# -----------------------------


class CustomerInputSerializer(serializers.Serializer):
    firstName = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=100)
    lastName = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=100)
    email = serializers.EmailField(required=False, allow_blank=True, allow_null=True)
    phone = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=50)
    address = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=255)
    city = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=100)
    state = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=100)
    zipCode = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=20)
    country = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=100)


class OrderItemInputSerializer(serializers.Serializer):
    id = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    name = serializers.CharField(required=False, allow_blank=True, default="")
    price = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal("0.00"))
    quantity = serializers.IntegerField(min_value=1, required=False, default=1)


class OrderSummaryInputSerializer(serializers.Serializer):
    items = OrderItemInputSerializer(many=True, required=False, default=list)
    subtotal = serializers.DecimalField(max_digits=12, decimal_places=2)
    discount = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, default=Decimal("0.00"))
    total = serializers.DecimalField(max_digits=12, decimal_places=2)


class CheckoutInputSerializer(serializers.Serializer):
    customer = CustomerInputSerializer()
    order = OrderSummaryInputSerializer()
    payment = serializers.DictField(required=False, default=dict)
    discountCode = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=64)
    idempotencyKey = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=128)


# -----------------------------
# Output
# -----------------------------


def line_items_payload(order: Order) -> list[dict]:
    return [
        {
            "id": line.get("id"),
            "name": line.get("name"),
            "price": line["price"],
            "quantity": line.get("quantity"),
        }
        for line in order.line_items()
    ]


def order_summary(order: Order) -> dict:
    """
    The checkout response's `order` object.
    """
    return {
        "id": str(order.id),
        "orderNumber": order.order_number,
        "items": line_items_payload(order),
        "subtotal": order.subtotal,
        "discount": order.discount,
        "total": order.total,
        "createdAt": order.created_at.isoformat() if order.created_at else None,
    }


class OrderReadSerializer(serializers.ModelSerializer):
    orderNumber = serializers.CharField(source="order_number", read_only=True)
    items = serializers.SerializerMethodField()
    subtotal = serializers.DecimalField(max_digits=12, decimal_places=2, coerce_to_string=False, read_only=True)
    discount = serializers.DecimalField(max_digits=12, decimal_places=2, coerce_to_string=False, read_only=True)
    total = serializers.DecimalField(max_digits=12, decimal_places=2, coerce_to_string=False, read_only=True)
    paymentMethod = serializers.CharField(source="payment_method", read_only=True)
    paymentReference = serializers.CharField(source="payment_reference", read_only=True)
    discountCode = serializers.SerializerMethodField()
    customer = serializers.SerializerMethodField()
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "orderNumber",
            "items",
            "subtotal",
            "discount",
            "total",
            "currency",
            "status",
            "paymentMethod",
            "paymentReference",
            "discountCode",
            "customer",
            "createdAt",
        ]

    def get_items(self, obj):
        return line_items_payload(obj)

    def get_discountCode(self, obj):
        return obj.discount_code.code if obj.discount_code_id else None

    def get_customer(self, obj):
        return {
            "firstName": obj.customer_first_name,
            "lastName": obj.customer_last_name,
            "email": obj.customer_email,
            "phone": obj.customer_phone,
            "address": obj.customer_address,
            "city": obj.customer_city,
            "state": obj.customer_state,
            "zipCode": obj.customer_zip_code,
            "country": obj.customer_country,
        }


class PurchasedProductSerializer(serializers.Serializer):
    id = serializers.UUIDField(source="product.id")
    name = serializers.CharField(source="product.name")
    description = serializers.CharField(source="product.description")
    price = serializers.DecimalField(source="product.price", max_digits=10, decimal_places=2, coerce_to_string=False)
    providesTokens = serializers.BooleanField(source="product.provides_tokens")
    tokenQuantity = serializers.IntegerField(source="product.token_quantity")
    isLiveSession = serializers.BooleanField(source="product.is_live_session")
    sessionStartsAt = serializers.DateTimeField(source="product.session_starts_at", allow_null=True)
    sessionJoinUrl = serializers.CharField(source="product.session_join_url")
    purchasedDate = serializers.DateTimeField(source="purchased_at")
