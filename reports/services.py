"""
Order reporting aggregates.

Every query is scoped to one tenant and restaurant and to an inclusive
range of dates on ``Order.created_at``, read in the restaurant's timezone.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from zoneinfo import ZoneInfo

from django.db.models import Count, Q, Sum
from django.db.models.functions import ExtractHour

from orders.models import Order, OrderItem, OrderStatus
from orders.services.pricing import q2

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReportScope:
    tenant_id: int
    restaurant_id: int
    date_from: date
    date_to: date
    timezone: str = "UTC"

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    def bounds(self):
        """Aware ``[start, end)`` covering the local dates in the restaurant's timezone."""
        start = datetime.combine(self.date_from, time.min, tzinfo=self.tzinfo)
        end = datetime.combine(self.date_to + timedelta(days=1), time.min, tzinfo=self.tzinfo)
        return start, end

    def orders(self):
        if self.date_from > self.date_to:
            raise ValueError("date_from must not be after date_to")
        start, end = self.bounds()
        return Order.objects.filter(
            tenant_id=self.tenant_id,
            restaurant_id=self.restaurant_id,
            created_at__gte=start,
            created_at__lt=end,
        )


def order_stats(scope: ReportScope) -> dict:
    """Counts per status plus revenue, average order value and cancellations.

    Revenue only counts delivered orders; the average is taken over them too.
    """
    orders = scope.orders()
    by_status = {value: 0 for value in OrderStatus.values}
    for row in orders.values("status").annotate(count=Count("id")):
        by_status[row["status"]] = row["count"]

    totals = orders.aggregate(
        revenue=Sum("total_amount", filter=Q(status=OrderStatus.DELIVERED)),
        refunds=Sum("refund_amount", filter=Q(status=OrderStatus.CANCELLED)),
    )
    total_orders = sum(by_status.values())
    delivered = by_status[OrderStatus.DELIVERED]
    cancelled = by_status[OrderStatus.CANCELLED]
    revenue = q2(totals["revenue"] or 0)

    return {
        "total_orders": total_orders,
        "by_status": by_status,
        "total_revenue": str(revenue),
        "average_order_value": str(q2(revenue / delivered) if delivered else Decimal("0.00")),
        "cancellation_rate": round(cancelled * 100 / total_orders, 2) if total_orders else 0.0,
        "total_refunds": str(q2(totals["refunds"] or 0)),
    }


def hourly_breakdown(scope: ReportScope) -> list:
    """Order count and revenue for each of the 24 hours of the day."""
    rows = (
        scope.orders()
        .exclude(status=OrderStatus.CANCELLED)
        .annotate(hour=ExtractHour("created_at", tzinfo=scope.tzinfo))
        .values("hour")
        .annotate(orders=Count("id"), revenue=Sum("total_amount"))
    )
    by_hour = {row["hour"]: row for row in rows}
    return [
        {
            "hour": hour,
            "orders": by_hour[hour]["orders"] if hour in by_hour else 0,
            "revenue": str(q2(by_hour[hour]["revenue"] or 0) if hour in by_hour else Decimal("0.00")),
        }
        for hour in range(24)
    ]


def top_items(scope: ReportScope, limit: int = 10) -> list:
    if limit < 1:
        raise ValueError("limit must be positive")
    rows = (
        OrderItem.objects
        .filter(order__in=scope.orders().exclude(status=OrderStatus.CANCELLED))
        .values("menu_item_id", "menu_item_name")
        .annotate(quantity=Sum("quantity"), revenue=Sum("total_price"))
        .order_by("-quantity", "-revenue", "menu_item_name")[:limit]
    )
    return [
        {
            "menu_item_id": row["menu_item_id"],
            "name": row["menu_item_name"],
            "quantity": row["quantity"],
            "revenue": str(q2(row["revenue"] or 0)),
        }
        for row in rows
    ]
