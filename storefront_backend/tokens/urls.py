# tokens/urls.py

from django.urls import path

from tokens.views import TokenBalanceView

app_name = "tokens"

urlpatterns = [
    path("balance", TokenBalanceView.as_view(), name="token-balance"),
]
