from __future__ import annotations

import logging

from rest_framework import permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response

from core.api import TenantScopedMixin, result_response
from core.cache_service import get_cache_client
from core.profiles import OrmRestaurantProfiles
from core.results import ValidationFailed
from coupons.services import CouponValidator
from menu.catalog import OrmMenuCatalog

from .models import Order
from .serializers import (
    BulkOperationSerializer,
    CartAddItemSerializer,
    CartCalculateSerializer,
    CartRemoveItemSerializer,
    CartScopeSerializer,
    CartUpdateItemSerializer,
    DeliveryMetadataSerializer,
    LineItemSerializer,
    OrderCancelSerializer,
    OrderCreateSerializer,
    OrderListSerializer,
    OrderSerializer,
    OrderStatusUpdateSerializer,
)
from .services.cart_store import CartKey, CartStore
from .services.lifecycle import OrderLifecycleManager

logger = logging.getLogger(__name__)

IDEMPOTENCY_HEADER = "Idempotency-Key"


class StandardResultsSetPagination(PageNumberPagination):
    """Standard pagination for API responses."""
    page_size = 20
    page_size_query_param = 'page_size'
    max_page_size = 100


def _order_data(order):
    return OrderSerializer(order).data


class CartViewSet(TenantScopedMixin, viewsets.ViewSet):
    """
    The signed-in customer's cart at one restaurant.

    Mutations accept an ``Idempotency-Key`` header; repeats of a key within
    a few minutes get the first response back.
    """

    permission_classes = [permissions.IsAuthenticated]

    def get_cart_store(self) -> CartStore:
        catalog = OrmMenuCatalog()
        profiles = OrmRestaurantProfiles()
        return CartStore(get_cache_client(), catalog, profiles, CouponValidator())

    def _cart_key(self, data) -> CartKey:
        restaurant = self.get_restaurant()
        if int(data["restaurant_id"]) != restaurant.pk:
            raise ValidationFailed("Restaurant does not match", field="restaurant_id")
        return CartKey(restaurant.tenant_id, self.request.user.pk, restaurant.pk)

    def _validated(self, serializer_class, data):
        serializer = serializer_class(data=data)
        serializer.is_valid(raise_exception=True)
        return serializer.validated_data

    @property
    def idempotency_key(self):
        return self.request.headers.get(IDEMPOTENCY_HEADER) or None

    def list(self, request):
        data = self._validated(CartScopeSerializer, request.query_params)
        return result_response(self.get_cart_store().get(self._cart_key(data)))

    @action(detail=False, methods=['post'])
    def add_item(self, request):
        data = self._validated(CartAddItemSerializer, request.data)
        result = self.get_cart_store().add_item(
            self._cart_key(data), LineItemSerializer.to_line_item(data), self.idempotency_key,
        )
        return result_response(result)

    @action(detail=False, methods=['patch'])
    def update_item(self, request):
        data = self._validated(CartUpdateItemSerializer, request.data)
        result = self.get_cart_store().update_quantity(
            self._cart_key(data), data['line_id'], data['quantity'], self.idempotency_key,
        )
        return result_response(result)

    @action(detail=False, methods=['post'])
    def remove_item(self, request):
        data = self._validated(CartRemoveItemSerializer, request.data)
        result = self.get_cart_store().remove_item(self._cart_key(data), data['line_id'], self.idempotency_key)
        return result_response(result)

    @action(detail=False, methods=['post'])
    def clear(self, request):
        data = self._validated(CartScopeSerializer, request.data)
        return result_response(self.get_cart_store().clear(self._cart_key(data), self.idempotency_key))

    @action(detail=False, methods=['post'])
    def calculate(self, request):
        data = self._validated(CartCalculateSerializer, request.data)
        result = self.get_cart_store().calculate_total(self._cart_key(data), data.get('coupon_code') or None)
        return result_response(result)


class OrderViewSet(TenantScopedMixin, viewsets.ReadOnlyModelViewSet):
    """
    Checkout, order history and the staff order workflow.

    Customers see and cancel their own orders; status changes, delivery
    details, bulk actions and the live board are staff only.
    """

    permission_classes = [permissions.IsAuthenticated]
    pagination_class = StandardResultsSetPagination
    filterset_fields = ['restaurant', 'status']
    ordering_fields = ['created_at', 'total_amount']

    staff_actions = {'update_status', 'delivery', 'bulk', 'live'}

    def get_permissions(self):
        if self.action in self.staff_actions:
            return [permissions.IsAdminUser()]
        return super().get_permissions()

    def get_manager(self) -> OrderLifecycleManager:
        return OrderLifecycleManager.default()

    def get_serializer_class(self):
        if self.action == 'list':
            return OrderListSerializer
        return OrderSerializer

    def get_queryset(self):
        queryset = Order.objects.filter(tenant_id=self.get_tenant_id())
        if not self.request.user.is_staff:
            queryset = queryset.filter(user=self.request.user)
        if self.action == 'retrieve':
            queryset = queryset.prefetch_related('items', 'timeline')
        return queryset

    @property
    def owner_id(self):
        """Restrict writes to the caller's own orders unless they are staff."""
        return None if self.request.user.is_staff else self.request.user.pk

    def create(self, request):
        key = request.headers.get(IDEMPOTENCY_HEADER) or request.data.get('idempotency_key')
        if not key:
            raise ValidationFailed("Idempotency-Key header is required", field="idempotency_key")
        serializer = OrderCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        restaurant = self.get_restaurant()
        draft = serializer.to_draft(restaurant.tenant_id, request.user.pk, key)
        result = self.get_manager().create_order(draft)
        replayed = result.ok and result.meta.get('replayed')
        return result_response(
            result,
            serializer=_order_data,
            success_status=status.HTTP_200_OK if replayed else status.HTTP_201_CREATED,
        )

    @action(detail=True, methods=['post'])
    def update_status(self, request, pk=None):
        serializer = OrderStatusUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = self.get_manager().update_status(
            self.get_tenant_id(), pk, serializer.validated_data['status'], request.user.pk,
            serializer.validated_data['notes'],
        )
        return result_response(result, serializer=_order_data)

    @action(detail=True, methods=['post'])
    def cancel(self, request, pk=None):
        serializer = OrderCancelSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = self.get_manager().cancel(
            self.get_tenant_id(), pk, request.user.pk,
            serializer.validated_data['reason'], serializer.validated_data['notes'],
            owner_id=self.owner_id,
        )
        return result_response(result, serializer=_order_data)

    @action(detail=True, methods=['get'])
    def cancellation_eligibility(self, request, pk=None):
        result = self.get_manager().check_cancellation_eligibility(self.get_tenant_id(), pk, owner_id=self.owner_id)
        return result_response(result)

    @action(detail=True, methods=['patch'])
    def delivery(self, request, pk=None):
        serializer = DeliveryMetadataSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = self.get_manager().update_delivery_metadata(
            self.get_tenant_id(), pk, serializer.validated_data, request.user.pk,
        )
        return result_response(result, serializer=_order_data)

    @action(detail=True, methods=['post'])
    def payment_intent(self, request, pk=None):
        result = self.get_manager().create_payment_intent(self.get_tenant_id(), pk, owner_id=self.owner_id)
        return result_response(result)

    @action(detail=False, methods=['post'])
    def bulk(self, request):
        serializer = BulkOperationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        result = self.get_manager().bulk_operate(
            self.get_tenant_id(), data['order_ids'], data['action'], data['params'], request.user.pk,
            dry_run=data['dry_run'],
        )
        return result_response(result)

    @action(detail=False, methods=['get'])
    def live(self, request):
        restaurant = self.get_restaurant()
        orders = self.get_manager().live_orders(restaurant.tenant_id, restaurant.pk)
        return Response({"success": True, "data": OrderListSerializer(orders, many=True).data})
