from django.urls import path
from . import views

urlpatterns = [
    # ============ CART ============
    path("cart/", views.cart_detail, name="cart_detail"),
    path("cart/add/", views.add_to_cart, name="add_to_cart"),
    path("cart/items/<int:item_id>/update/", views.update_cart_item, name="update_cart_item"),
    path("cart/items/<int:item_id>/remove/", views.remove_cart_item, name="remove_cart_item"),
    path("cart/clear/", views.clear_cart, name="clear_cart"),

    # ============ ORDERS ============
    path("orders/", views.order_list, name="order_list"),
    path("orders/create/", views.create_order, name="create_order"),
    path("orders/dashboard/", views.order_dashboard, name="order_dashboard"),
    path("orders/delivery-partners/", views.delivery_partner_list, name="delivery_partners"),
    path("orders/<int:order_id>/", views.order_detail, name="order_detail"),
    path("orders/<int:order_id>/status/", views.update_order_status, name="update_order_status"),
    path("orders/<int:order_id>/cancel/", views.cancel_order, name="cancel_order"),
    path("orders/<int:order_id>/invoice/", views.order_invoice, name="order_invoice"),

    # ============ PAYMENTS ============
    path("payments/methods/", views.payment_methods, name="payment_methods"),
    path("payments/process/", views.process_payment, name="process_payment"),
    path("payments/<int:payment_id>/", views.payment_detail, name="payment_detail"),
]
