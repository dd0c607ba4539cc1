# payments/urls.py

from django.urls import path

from payments.views import PayPalCreateOrderView

app_name = "payments"

urlpatterns = [
    path("create-order", PayPalCreateOrderView.as_view(), name="paypal-create-order"),
]
