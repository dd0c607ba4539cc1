# orders/urls.py

from django.urls import path

from orders.views import OrderDetailView, OrderListView, OrderProcessView, PurchasedProductsView

app_name = "orders"

# purchased-products must precede the <order_number> catch-all
urlpatterns = [
    path("orders", OrderListView.as_view(), name="order-list"),
    path("orders/process", OrderProcessView.as_view(), name="order-process"),
    path("orders/purchased-products", PurchasedProductsView.as_view(), name="purchased-products"),
    path("orders/<str:order_number>", OrderDetailView.as_view(), name="order-detail"),
]
