from __future__ import annotations

from rest_framework import status
from rest_framework.response import Response

from .models import Restaurant
from .results import ErrorKind, NotFound, OrderingError, Result, ValidationFailed

ERROR_STATUS = {
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.INVALID_SCHEDULE: status.HTTP_400_BAD_REQUEST,
    ErrorKind.COUPON_INVALID: status.HTTP_400_BAD_REQUEST,
    ErrorKind.NOT_CANCELLABLE: status.HTTP_400_BAD_REQUEST,
    ErrorKind.CANCELLATION_WINDOW_EXPIRED: status.HTTP_400_BAD_REQUEST,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.PRICE_MISMATCH: status.HTTP_409_CONFLICT,
    ErrorKind.PRICE_VALIDATION_FAILED: status.HTTP_409_CONFLICT,
    ErrorKind.TOTAL_MISMATCH: status.HTTP_409_CONFLICT,
    ErrorKind.INVALID_TRANSITION: status.HTTP_409_CONFLICT,
    ErrorKind.DUPLICATE_ORDER: status.HTTP_409_CONFLICT,
    ErrorKind.REFUND_FAILED: status.HTTP_502_BAD_GATEWAY,
    ErrorKind.UPSTREAM_TIMEOUT: status.HTTP_504_GATEWAY_TIMEOUT,
}


def error_response(error) -> Response:
    return Response(
        {"success": False, "error": error.to_dict()},
        status=ERROR_STATUS.get(error.kind, status.HTTP_400_BAD_REQUEST),
    )


def result_response(result: Result, serializer=None, success_status: int = status.HTTP_200_OK) -> Response:
    """Render a service ``Result`` as the standard success/error envelope."""
    if not result.ok:
        return error_response(result.error)
    data = serializer(result.value) if serializer is not None else result.value
    body = {"success": True, "data": data}
    if result.meta:
        body.update(result.meta)
    return Response(body, status=success_status)


class TenantScopedMixin:
    """
    Resolves the tenant and restaurant a request is scoped to.

    The tenant comes from the ``X-Tenant-ID`` header; the restaurant from the
    URL kwarg, the query string or the request body (in that order).
    """

    tenant_header = "X-Tenant-ID"

    def get_tenant_id(self) -> int:
        raw = self.request.headers.get(self.tenant_header) or self.request.query_params.get("tenant_id")
        try:
            return int(raw)
        except (TypeError, ValueError):
            raise ValidationFailed("Tenant is required", field="tenant_id")

    def get_restaurant(self) -> Restaurant:
        tenant_id = self.get_tenant_id()
        raw = (
            self.kwargs.get("restaurant_id")
            or self.request.query_params.get("restaurant_id")
            or (self.request.data.get("restaurant_id") if hasattr(self.request.data, "get") else None)
        )
        try:
            restaurant_id = int(raw)
        except (TypeError, ValueError):
            raise ValidationFailed("Restaurant is required", field="restaurant_id")
        restaurant = Restaurant.objects.filter(pk=restaurant_id, tenant_id=tenant_id, is_active=True).first()
        if restaurant is None:
            raise NotFound("Restaurant not found", field="restaurant_id")
        return restaurant


def _first_field(detail):
    if isinstance(detail, dict) and detail:
        name = next(iter(detail))
        return None if name == "non_field_errors" else name
    return None


def _first_message(detail) -> str:
    while isinstance(detail, (list, dict)) and detail:
        detail = detail[0] if isinstance(detail, list) else next(iter(detail.values()))
    return str(detail) if detail else "Invalid input"


def ordering_exception_handler(exc, context):
    """DRF exception handler that renders ``OrderingError`` like a failed ``Result``.

    Serializer validation errors use the same envelope with the
    ``validation_error`` code; everything else falls through to DRF.
    """
    from rest_framework.exceptions import ValidationError
    from rest_framework.views import exception_handler

    if isinstance(exc, OrderingError):
        return error_response(exc)
    if isinstance(exc, ValidationError):
        detail = exc.detail if isinstance(exc.detail, dict) else list(exc.detail)
        error = ValidationFailed(_first_message(detail), field=_first_field(detail), details={"errors": detail})
        return error_response(error)
    return exception_handler(exc, context)
