# orders/views.py

"""
ORDER ENDPOINTS (session or JWT authenticated)

- POST /api/orders/process              checkout pipeline
- GET  /api/orders                      caller's orders (limit/offset + OrderFilter)
- GET  /api/orders/purchased-products   unique products the caller bought
- GET  /api/orders/<orderNumber>        one of the caller's orders
"""

from __future__ import annotations

from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.parsers import JSONParser
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from orders.filters import OrderFilter
from orders.serializers import (
    CheckoutInputSerializer,
    OrderReadSerializer,
    PurchasedProductSerializer,
    order_summary,
)
from orders.services.checkout_orchestrator import CheckoutRequest, build_checkout_orchestrator
from orders.services.exceptions import (
    CheckoutValidationError,
    OrderPersistenceError,
    PaymentFailedError,
)
from orders.services.order_ledger import OrderLedger
from payments.services.result import failure_payload

DEFAULT_LIMIT = 50
MAX_LIMIT = 200


def _int_param(request, name: str, default: int) -> int:
    raw = request.query_params.get(name)
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return default
    return value if value >= 0 else default


class OrderProcessView(APIView):
    permission_classes = [IsAuthenticated]
    parser_classes = [JSONParser]
    throttle_scope = "checkout"

    @extend_schema(
        request=CheckoutInputSerializer,
        responses={
            200: OpenApiResponse(description="{success, order, tokensAdded?, emailSent, replayed?}"),
            400: OpenApiResponse(description="Validation error or payment failure (no order written)"),
            500: OpenApiResponse(description="Payment captured but order could not be saved"),
        },
        tags=["Orders"],
    )
    def post(self, request):
        s = CheckoutInputSerializer(data=request.data)
        if not s.is_valid():
            return Response(
                {
                    "success": False,
                    "error": "Missing required order information",
                    "details": s.errors,
                },
                status=status.HTTP_400_BAD_REQUEST,
            )
        data = s.validated_data

        checkout = CheckoutRequest(
            customer=dict(data["customer"]),
            items=[dict(item) for item in data["order"].get("items") or []],
            subtotal=data["order"]["subtotal"],
            discount=data["order"].get("discount"),
            total=data["order"]["total"],
            payment=dict(data.get("payment") or {}),
            discount_code=(data.get("discountCode") or "").strip(),
            idempotency_key=(data.get("idempotencyKey") or "").strip(),
        )

        try:
            result = build_checkout_orchestrator().process(user=request.user, request=checkout)
        except CheckoutValidationError as exc:
            return Response(
                {"success": False, "error": exc.message},
                status=status.HTTP_400_BAD_REQUEST,
            )
        except PaymentFailedError as exc:
            return Response(failure_payload(exc.result), status=status.HTTP_400_BAD_REQUEST)
        except OrderPersistenceError:
            return Response(
                {
                    "success": False,
                    "error": "Your payment was received but we could not complete your order. "
                    "Please contact support.",
                },
                status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )

        body = {
            "success": True,
            "message": "Order processed successfully",
            "order": order_summary(result.order),
            "emailSent": result.email_sent,
        }
        if result.tokens_added > 0:
            body["tokensAdded"] = result.tokens_added
        if result.replayed:
            body["replayed"] = True
        return Response(body)


class OrderListView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        parameters=[
            OpenApiParameter("limit", int, required=False),
            OpenApiParameter("offset", int, required=False),
            OpenApiParameter("paymentMethod", str, required=False),
            OpenApiParameter("createdAfter", str, required=False),
            OpenApiParameter("createdBefore", str, required=False),
        ],
        responses={200: OpenApiResponse(description="{success, orders, total, limit, offset}")},
        tags=["Orders"],
    )
    def get(self, request):
        limit = min(_int_param(request, "limit", DEFAULT_LIMIT) or DEFAULT_LIMIT, MAX_LIMIT)
        offset = _int_param(request, "offset", 0)

        ledger = OrderLedger()
        filterset = OrderFilter(request.query_params, queryset=ledger.for_user(request.user.id))
        if not filterset.is_valid():
            return Response(
                {"success": False, "error": "Invalid filter", "details": filterset.errors},
                status=status.HTTP_400_BAD_REQUEST,
            )

        orders, total = ledger.page(filterset.qs, limit=limit, offset=offset)
        return Response(
            {
                "success": True,
                "orders": OrderReadSerializer(orders, many=True).data,
                "total": total,
                "limit": limit,
                "offset": offset,
            }
        )


class OrderDetailView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(responses={200: OrderReadSerializer, 404: OpenApiResponse(description="Not found")}, tags=["Orders"])
    def get(self, request, order_number: str):
        order = OrderLedger().get_for_user(request.user.id, order_number)
        if order is None:
            return Response(
                {"success": False, "error": "Order not found"},
                status=status.HTTP_404_NOT_FOUND,
            )
        return Response({"success": True, "order": OrderReadSerializer(order).data})


class PurchasedProductsView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(responses={200: OpenApiResponse(description="{success, products, count}")}, tags=["Orders"])
    def get(self, request):
        rows = OrderLedger().purchased_products(request.user.id)
        products = PurchasedProductSerializer(rows, many=True).data
        return Response({"success": True, "products": products, "count": len(products)})
