# tokens/views.py

from __future__ import annotations

from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from tokens.services.token_ledger import TokenLedger


class TokenBalanceView(APIView):
    """
    GET /api/tokens/balance

    Read-only view of the caller's token balance.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        responses={200: OpenApiResponse(description="{success, balance}")},
        tags=["Tokens"],
    )
    def get(self, request):
        balance = TokenLedger().balance(request.user.id)
        return Response({"success": True, "balance": balance})
