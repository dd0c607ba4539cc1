# discounts/serializers.py

from rest_framework import serializers


class CartItemRefSerializer(serializers.Serializer):
    id = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class DiscountValidateInputSerializer(serializers.Serializer):
    code = serializers.CharField(allow_blank=True, required=False, default="")
    cartItems = CartItemRefSerializer(many=True, required=False, default=list)
