# orders/api_urls.py
from __future__ import annotations

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .api_views import CartViewSet, OrderViewSet

router = DefaultRouter()
router.register(r'cart', CartViewSet, basename='cart')
router.register(r'orders', OrderViewSet, basename='order')

urlpatterns = [
    path("", include(router.urls)),
]

# Cart endpoints (restaurant_id in the query string or body):
# GET    /api/cart/                     - Current cart with totals
# POST   /api/cart/add_item/            - Add a line (merges identical configurations)
# PATCH  /api/cart/update_item/         - Change a line's quantity (0 removes it)
# POST   /api/cart/remove_item/         - Remove a line
# POST   /api/cart/clear/               - Empty the cart
# POST   /api/cart/calculate/           - Pricing snapshot, optionally with a coupon
#
# Order endpoints:
# GET    /api/orders/                   - Order history (own orders, or the tenant's for staff)
# POST   /api/orders/                   - Place an order (Idempotency-Key header required)
# GET    /api/orders/{id}/              - Order detail with items and timeline
# POST   /api/orders/{id}/update_status/ - Move an order through the workflow (staff)
# POST   /api/orders/{id}/cancel/       - Cancel with refund
# GET    /api/orders/{id}/cancellation_eligibility/ - Refund tier preview
# PATCH  /api/orders/{id}/delivery/     - Driver and tracking details (staff)
# POST   /api/orders/{id}/payment_intent/ - Start card payment
# POST   /api/orders/bulk/              - Bulk status/cancel/assign, with dry runs (staff)
# GET    /api/orders/live/              - Active orders for a restaurant (staff)
