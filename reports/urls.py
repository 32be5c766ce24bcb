from __future__ import annotations

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import AuditLogViewSet, OrderReportViewSet

app_name = "reports"

router = DefaultRouter()
router.register(r"reports/orders", OrderReportViewSet, basename="order-reports")
router.register(r"audit-logs", AuditLogViewSet, basename="audit-logs")

urlpatterns = [
    path("", include(router.urls)),
]
