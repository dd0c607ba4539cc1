# discounts/views.py

"""
PUBLIC DISCOUNT VALIDATION

POST /api/discount-codes/validate
- lets the storefront preview a code before checkout
- does NOT increment usage (only a completed order does)
"""

from __future__ import annotations

from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.parsers import JSONParser
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from discounts.serializers import DiscountValidateInputSerializer
from discounts.services.discount_ledger import DiscountLedger
from discounts.services.exceptions import DiscountError


class DiscountValidateView(APIView):
    permission_classes = [AllowAny]
    parser_classes = [JSONParser]

    @extend_schema(
        request=DiscountValidateInputSerializer,
        responses={
            200: OpenApiResponse(description="Validation outcome (valid true/false)"),
            400: OpenApiResponse(description="Code missing"),
        },
        tags=["Discounts"],
    )
    def post(self, request):
        s = DiscountValidateInputSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        data = s.validated_data

        code = (data.get("code") or "").strip()
        if not code:
            return Response(
                {"success": False, "error": "Discount code is required"},
                status=status.HTTP_400_BAD_REQUEST,
            )

        ledger = DiscountLedger()
        try:
            discount = ledger.resolve_or_raise(code)
            ledger.ensure_applicable(discount, [item.get("id") for item in data.get("cartItems") or []])
        except DiscountError as exc:
            return Response({"success": False, "valid": False, "error": str(exc)})

        return Response(
            {
                "success": True,
                "valid": True,
                "discountCode": {
                    "id": str(discount.id),
                    "code": discount.code,
                    "discountPercentage": discount.percentage,
                },
            }
        )
