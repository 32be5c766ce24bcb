from __future__ import annotations

import logging

from django.db import IntegrityError, transaction
from rest_framework import permissions, viewsets
from rest_framework.decorators import action

from core.api import TenantScopedMixin, result_response
from core.results import ValidationFailed
from reports.audit import AuditTrail

from .api_serializers import CouponSerializer, CouponValidateSerializer
from .models import Coupon
from .services import CouponValidator

logger = logging.getLogger(__name__)


class CouponViewSet(TenantScopedMixin, viewsets.ModelViewSet):
    """Staff management of a tenant's coupons plus the customer-facing validate action."""

    serializer_class = CouponSerializer
    permission_classes = [permissions.IsAdminUser]
    filterset_fields = ['restaurant', 'is_active', 'discount_type']
    search_fields = ['code', 'description']
    ordering_fields = ['created_at', 'current_usage']

    def get_permissions(self):
        if self.action == 'validate':
            return [permissions.IsAuthenticated()]
        return super().get_permissions()

    def get_queryset(self):
        return Coupon.objects.filter(tenant_id=self.get_tenant_id()).select_related('restaurant')

    def perform_create(self, serializer):
        restaurant = self._own_restaurant(serializer.validated_data['restaurant'])
        coupon = self._save(serializer, tenant_id=restaurant.tenant_id)
        self._audit('coupon.created', coupon)

    def perform_update(self, serializer):
        if 'restaurant' in serializer.validated_data:
            self._own_restaurant(serializer.validated_data['restaurant'])
        self._audit('coupon.updated', self._save(serializer))

    def perform_destroy(self, instance):
        self._audit('coupon.deleted', instance)
        instance.delete()

    def _own_restaurant(self, restaurant):
        if restaurant.tenant_id != self.get_tenant_id():
            raise ValidationFailed("Restaurant belongs to a different tenant", field="restaurant")
        return restaurant

    def _save(self, serializer, **kwargs):
        # Concurrent writes can still trip the code uniqueness or usage constraints
        try:
            with transaction.atomic():
                return serializer.save(**kwargs)
        except IntegrityError as e:
            logger.info("Coupon save rejected by a database constraint: %s", e)
            raise ValidationFailed("Coupon conflicts with an existing coupon or its usage; reload and retry")

    def _audit(self, action_name, coupon):
        AuditTrail().record(
            coupon.tenant_id,
            self.request.user.pk,
            action_name,
            {'coupon_id': coupon.pk, 'code': coupon.code, 'restaurant_id': coupon.restaurant_id},
        )

    @action(detail=False, methods=['post'])
    def validate(self, request):
        serializer = CouponValidateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        result = CouponValidator().validate(
            self.get_tenant_id(),
            data['restaurant_id'],
            data['code'],
            data['order_value'],
            user_id=request.user.pk,
        )
        return result_response(result, serializer=lambda quote: quote.to_dict())
