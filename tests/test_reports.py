from datetime import date, datetime, timezone as dt_timezone
from decimal import Decimal
from zoneinfo import ZoneInfo

import pytest

from orders.models import OrderStatus
from reports.services import ReportScope, hourly_breakdown, order_stats, top_items

from tests.factories import OrderFactory, OrderItemFactory, RestaurantFactory

NOON = datetime(2026, 3, 2, 6, 30, tzinfo=dt_timezone.utc)


@pytest.fixture
def scope(restaurant):
    day = NOON.astimezone(ZoneInfo(restaurant.timezone)).date()
    return ReportScope(restaurant.tenant_id, restaurant.pk, day, day, restaurant.timezone)


@pytest.fixture
def orders(restaurant):
    delivered_a = OrderFactory(restaurant=restaurant, status=OrderStatus.DELIVERED, total_amount=Decimal("100.00"),
                               created_at=NOON)
    delivered_b = OrderFactory(restaurant=restaurant, status=OrderStatus.DELIVERED, total_amount=Decimal("200.00"),
                               created_at=NOON)
    cancelled = OrderFactory(restaurant=restaurant, status=OrderStatus.CANCELLED, total_amount=Decimal("80.00"),
                             refund_amount=Decimal("60.00"), created_at=NOON)
    pending = OrderFactory(restaurant=restaurant, total_amount=Decimal("50.00"), created_at=NOON)
    # Outside the range and another restaurant's order
    OrderFactory(restaurant=restaurant, status=OrderStatus.DELIVERED, created_at=datetime(2026, 1, 1, tzinfo=dt_timezone.utc))
    OrderFactory(status=OrderStatus.DELIVERED, created_at=NOON)

    OrderItemFactory(order=delivered_a, menu_item_name="Dosa", quantity=3, unit_price=Decimal("30.00"))
    OrderItemFactory(order=delivered_b, menu_item_name="Dosa", quantity=1, unit_price=Decimal("30.00"))
    OrderItemFactory(order=delivered_b, menu_item_name="Idli", quantity=2, unit_price=Decimal("20.00"))
    OrderItemFactory(order=cancelled, menu_item_name="Vada", quantity=9, unit_price=Decimal("10.00"))
    OrderItemFactory(order=pending, menu_item_name="Idli", quantity=1, unit_price=Decimal("20.00"))
    return [delivered_a, delivered_b, cancelled, pending]


@pytest.mark.django_db
def test_order_stats(scope, orders):
    stats = order_stats(scope)

    assert stats["total_orders"] == 4
    assert stats["by_status"]["delivered"] == 2
    assert stats["by_status"]["cancelled"] == 1
    assert stats["by_status"]["preparing"] == 0
    assert stats["total_revenue"] == "300.00"
    assert stats["average_order_value"] == "150.00"
    assert stats["cancellation_rate"] == 25.0
    assert stats["total_refunds"] == "60.00"


@pytest.mark.django_db
def test_empty_range(restaurant):
    stats = order_stats(ReportScope(restaurant.tenant_id, restaurant.pk, date(2020, 1, 1), date(2020, 1, 2)))
    assert stats["total_orders"] == 0
    assert stats["average_order_value"] == "0.00"
    assert stats["cancellation_rate"] == 0.0


@pytest.mark.django_db
def test_hourly_breakdown_excludes_cancelled(scope, orders):
    rows = hourly_breakdown(scope)
    hour = NOON.astimezone(scope.tzinfo).hour

    assert len(rows) == 24
    assert rows[hour] == {"hour": hour, "orders": 3, "revenue": "350.00"}
    assert sum(row["orders"] for row in rows) == 3


@pytest.mark.django_db
def test_top_items(scope, orders):
    rows = top_items(scope, limit=2)

    assert [(row["name"], row["quantity"], row["revenue"]) for row in rows] == [
        ("Dosa", 4, "120.00"),
        ("Idli", 3, "60.00"),
    ]


def test_scope_and_limit_validation():
    with pytest.raises(ValueError):
        ReportScope(1, 1, date(2026, 3, 2), date(2026, 3, 1)).orders()
    with pytest.raises(ValueError):
        top_items(ReportScope(1, 1, date(2026, 3, 1), date(2026, 3, 2)), limit=0)


@pytest.mark.django_db
def test_reports_use_the_restaurant_timezone():
    restaurant = RestaurantFactory(timezone="America/New_York")
    # 21:00 on 1 March in New York, already 2 March in UTC
    OrderFactory(restaurant=restaurant, status=OrderStatus.DELIVERED, total_amount=Decimal("90.00"),
                 created_at=datetime(2026, 3, 2, 2, 0, tzinfo=dt_timezone.utc))
    local_day = ReportScope(restaurant.tenant_id, restaurant.pk, date(2026, 3, 1), date(2026, 3, 1), restaurant.timezone)
    utc_day = ReportScope(restaurant.tenant_id, restaurant.pk, date(2026, 3, 2), date(2026, 3, 2), restaurant.timezone)

    assert order_stats(local_day)["total_orders"] == 1
    assert order_stats(utc_day)["total_orders"] == 0
    assert hourly_breakdown(local_day)[21] == {"hour": 21, "orders": 1, "revenue": "90.00"}


@pytest.mark.django_db
def test_stats_endpoint_scopes_dates_in_restaurant_timezone(staff_api_client):
    restaurant = RestaurantFactory(timezone="America/New_York")
    OrderFactory(restaurant=restaurant, created_at=datetime(2026, 3, 2, 2, 0, tzinfo=dt_timezone.utc))
    url = f"/api/reports/orders/stats/?restaurant_id={restaurant.pk}&date_from=2026-03-01&date_to=2026-03-01"

    response = staff_api_client.get(url, HTTP_X_TENANT_ID=str(restaurant.tenant_id))

    assert response.status_code == 200
    assert response.json()["data"]["total_orders"] == 1
