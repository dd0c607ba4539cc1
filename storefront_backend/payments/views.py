# payments/views.py

"""
POST /api/paypal/create-order

Creates a wallet order for the redirect flow. The client approves it with
PayPal, then calls /api/orders/process with payment.method="paypal" and the
approved orderId.
"""

from __future__ import annotations

import logging

from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.parsers import JSONParser
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from payments.serializers import PayPalCreateOrderInputSerializer
from payments.services.paypal import PayPalGateway

logger = logging.getLogger(__name__)


class PayPalCreateOrderView(APIView):
    permission_classes = [IsAuthenticated]
    parser_classes = [JSONParser]
    throttle_scope = "checkout"

    @extend_schema(
        request=PayPalCreateOrderInputSerializer,
        responses={
            200: OpenApiResponse(description="{success, orderId}"),
            400: OpenApiResponse(description="Invalid amount or gateway rejection"),
        },
        tags=["Payments"],
    )
    def post(self, request):
        s = PayPalCreateOrderInputSerializer(data=request.data)
        if not s.is_valid():
            return Response(
                {"success": False, "error": "Invalid amount"},
                status=status.HTTP_400_BAD_REQUEST,
            )

        result = PayPalGateway.from_settings().create_redirect_order(s.validated_data["amount"])
        if not result.ok:
            logger.warning(
                "PayPal order creation failed: user=%s category=%s",
                request.user.id,
                result.category.value,
                extra={"user_id": str(request.user.id), "category": result.category.value},
            )
            return Response(
                {"success": False, "error": result.user_message},
                status=status.HTTP_400_BAD_REQUEST,
            )

        body = {"success": True, "orderId": result.order_id}
        if result.approve_url:
            body["approveUrl"] = result.approve_url
        return Response(body)
