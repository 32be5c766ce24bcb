from __future__ import annotations

from rest_framework import mixins, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAdminUser
from rest_framework.response import Response

from core.api import TenantScopedMixin

from . import services
from .models import AuditLog
from .serializers import AuditLogSerializer, ReportQuerySerializer


class OrderReportViewSet(TenantScopedMixin, viewsets.ViewSet):
    """
    Order analytics for one restaurant (admin-only).
    Query params: restaurant_id, date_from, date_to (YYYY-MM-DD), limit
    """
    permission_classes = [IsAdminUser]

    def _scope(self, request):
        serializer = ReportQuerySerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        restaurant = self.get_restaurant()
        scope = services.ReportScope(
            tenant_id=restaurant.tenant_id,
            restaurant_id=restaurant.pk,
            date_from=data["date_from"],
            date_to=data["date_to"],
            timezone=restaurant.timezone,
        )
        return scope, data

    @action(detail=False, methods=['get'])
    def stats(self, request):
        scope, _ = self._scope(request)
        return Response({"success": True, "data": services.order_stats(scope)})

    @action(detail=False, methods=['get'])
    def hourly(self, request):
        scope, _ = self._scope(request)
        return Response({"success": True, "data": services.hourly_breakdown(scope)})

    @action(detail=False, methods=['get'])
    def top_items(self, request):
        scope, data = self._scope(request)
        return Response({"success": True, "data": services.top_items(scope, data["limit"])})


class AuditLogViewSet(TenantScopedMixin, mixins.ListModelMixin, mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    """Read-only audit trail for the caller's tenant (admin-only)."""
    serializer_class = AuditLogSerializer
    permission_classes = [IsAdminUser]
    filterset_fields = ["action", "severity", "actor"]

    def get_queryset(self):
        return AuditLog.objects.filter(tenant_id=self.get_tenant_id()).select_related("actor")
