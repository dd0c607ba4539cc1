# discounts/urls.py

from django.urls import path

from discounts.views import DiscountValidateView

app_name = "discounts"

urlpatterns = [
    path("validate", DiscountValidateView.as_view(), name="discount-validate"),
]
