from django.contrib import admin
from django.urls import path, include
from . import views as marketplace_views

urlpatterns = [
    path("health/", marketplace_views.health, name="health"),

    # ============ ORDERS APP (cart, orders, payments) ============
    # Mounted once at root so URLs are exactly /cart/..., /orders/..., /payments/...
    path("", include("orders.urls")),

    # ============ ADMIN ============
    path("admin/", admin.site.urls),
]
