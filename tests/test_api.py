import pytest

from coupons.models import Coupon
from orders.models import Order, OrderStatus

from tests.factories import CouponFactory, OrderFactory, RestaurantFactory, UserFactory


def tenant_header(restaurant):
    return {"HTTP_X_TENANT_ID": str(restaurant.tenant_id)}


def cart_line(restaurant, item, **overrides):
    body = {
        "restaurant_id": restaurant.pk,
        "reference_id": item.pk,
        "unit_base_price": str(item.price),
        "quantity": 2,
    }
    body.update(overrides)
    return body


# ---------------------------------------------------------------------------
# Cart
# ---------------------------------------------------------------------------

@pytest.mark.django_db
def test_cart_requires_authentication(api_client, restaurant, menu_item):
    r = api_client.post("/api/cart/add_item/", cart_line(restaurant, menu_item), format="json", **tenant_header(restaurant))
    assert r.status_code in (401, 403)


@pytest.mark.django_db
def test_cart_add_and_read(auth_api_client, restaurant, menu_item):
    r = auth_api_client.post("/api/cart/add_item/", cart_line(restaurant, menu_item), format="json",
                             **tenant_header(restaurant))
    assert r.status_code == 200, r.data
    assert r.data["success"] is True
    assert r.data["data"]["totals"]["total"] == "525.00"

    r2 = auth_api_client.get(f"/api/cart/?restaurant_id={restaurant.pk}", **tenant_header(restaurant))
    assert r2.status_code == 200
    assert len(r2.data["data"]["items"]) == 1


@pytest.mark.django_db
def test_cart_idempotency_key_replays(auth_api_client, restaurant, menu_item):
    headers = dict(tenant_header(restaurant), HTTP_IDEMPOTENCY_KEY="tap-1")

    first = auth_api_client.post("/api/cart/add_item/", cart_line(restaurant, menu_item), format="json", **headers)
    second = auth_api_client.post("/api/cart/add_item/", cart_line(restaurant, menu_item), format="json", **headers)

    assert "replayed" not in first.data
    assert second.data["replayed"] is True
    assert second.data["data"]["items"][0]["quantity"] == 2


@pytest.mark.django_db
def test_serializer_errors_use_the_error_envelope(auth_api_client, restaurant, menu_item):
    r = auth_api_client.post("/api/cart/add_item/", cart_line(restaurant, menu_item, quantity=0), format="json",
                             **tenant_header(restaurant))

    assert r.status_code == 400
    assert r.data["success"] is False
    assert r.data["error"]["code"] == "validation_error"
    assert r.data["error"]["field"] == "quantity"


@pytest.mark.django_db
def test_stale_price_is_a_conflict(auth_api_client, restaurant, menu_item):
    r = auth_api_client.post("/api/cart/add_item/", cart_line(restaurant, menu_item, unit_base_price="199.00"),
                             format="json", **tenant_header(restaurant))

    assert r.status_code == 409
    assert r.data["error"]["code"] == "price_mismatch"


@pytest.mark.django_db
def test_missing_tenant_is_rejected(auth_api_client, restaurant, menu_item):
    r = auth_api_client.post("/api/cart/add_item/", cart_line(restaurant, menu_item), format="json")

    assert r.status_code == 400
    assert r.data["error"]["field"] == "tenant_id"


@pytest.mark.django_db
def test_cart_update_remove_and_calculate(auth_api_client, restaurant, menu_item):
    headers = tenant_header(restaurant)
    added = auth_api_client.post("/api/cart/add_item/", cart_line(restaurant, menu_item), format="json", **headers)
    line_id = added.data["data"]["items"][0]["line_id"]

    updated = auth_api_client.patch("/api/cart/update_item/", {
        "restaurant_id": restaurant.pk, "line_id": line_id, "quantity": 1,
    }, format="json", **headers)
    assert updated.data["data"]["totals"]["subtotal"] == "250.00"

    calculated = auth_api_client.post("/api/cart/calculate/", {"restaurant_id": restaurant.pk}, format="json", **headers)
    assert calculated.data["data"]["item_count"] == 1

    removed = auth_api_client.post("/api/cart/remove_item/", {
        "restaurant_id": restaurant.pk, "line_id": line_id,
    }, format="json", **headers)
    assert removed.data["data"]["items"] == []


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------

def order_body(restaurant, item, total="525.00"):
    return {
        "restaurant_id": restaurant.pk,
        "items": [{"reference_id": item.pk, "unit_base_price": str(item.price), "quantity": 2}],
        "total": total,
    }


@pytest.mark.django_db
def test_create_order_and_replay(auth_api_client, restaurant, menu_item):
    headers = dict(tenant_header(restaurant), HTTP_IDEMPOTENCY_KEY="checkout-abc")

    created = auth_api_client.post("/api/orders/", order_body(restaurant, menu_item), format="json", **headers)
    replayed = auth_api_client.post("/api/orders/", order_body(restaurant, menu_item), format="json", **headers)

    assert created.status_code == 201, created.data
    assert created.data["data"]["total_amount"] == "525.00"
    assert created.data["data"]["tax_breakdown"] == {"cgst": "12.50", "sgst": "12.50", "igst": "0.00"}
    assert replayed.status_code == 200
    assert replayed.data["replayed"] is True
    assert replayed.data["data"]["id"] == created.data["data"]["id"]
    assert Order.objects.count() == 1


@pytest.mark.django_db
def test_create_order_requires_idempotency_key(auth_api_client, restaurant, menu_item):
    r = auth_api_client.post("/api/orders/", order_body(restaurant, menu_item), format="json",
                             **tenant_header(restaurant))
    assert r.status_code == 400
    assert r.data["error"]["field"] == "idempotency_key"


@pytest.mark.django_db
def test_create_order_total_mismatch(auth_api_client, restaurant, menu_item):
    headers = dict(tenant_header(restaurant), HTTP_IDEMPOTENCY_KEY="checkout-bad")
    r = auth_api_client.post("/api/orders/", order_body(restaurant, menu_item, total="530.00"), format="json", **headers)

    assert r.status_code == 409
    assert r.data["error"]["code"] == "total_mismatch"
    assert r.data["error"]["details"]["server_total"] == "525.00"


@pytest.mark.django_db
def test_customers_only_see_their_orders(auth_api_client, user, restaurant):
    mine = OrderFactory(restaurant=restaurant, user=user)
    OrderFactory(restaurant=restaurant, user=UserFactory())

    r = auth_api_client.get("/api/orders/", **tenant_header(restaurant))

    assert r.status_code == 200
    assert [row["id"] for row in r.data["results"]] == [mine.pk]


@pytest.mark.django_db
def test_customer_cancels_own_order(auth_api_client, user, restaurant):
    order = OrderFactory(restaurant=restaurant, user=user)

    eligibility = auth_api_client.get(f"/api/orders/{order.pk}/cancellation_eligibility/", **tenant_header(restaurant))
    r = auth_api_client.post(f"/api/orders/{order.pk}/cancel/", {"reason": "Changed my mind"}, format="json",
                             **tenant_header(restaurant))

    assert eligibility.data["data"]["refund_percentage"] == 100
    assert r.status_code == 200, r.data
    assert r.data["data"]["status"] == OrderStatus.CANCELLED
    assert r.data["data"]["cancellation"]["refund_amount"] == "525.00"


@pytest.mark.django_db
def test_customer_cannot_cancel_someone_elses_order(auth_api_client, restaurant):
    order = OrderFactory(restaurant=restaurant, user=UserFactory())
    r = auth_api_client.post(f"/api/orders/{order.pk}/cancel/", {"reason": "Nope"}, format="json",
                             **tenant_header(restaurant))
    assert r.status_code == 404


@pytest.mark.django_db
def test_status_updates_are_staff_only(auth_api_client, staff_api_client, user, restaurant):
    order = OrderFactory(restaurant=restaurant, user=user)
    url = f"/api/orders/{order.pk}/update_status/"

    denied = auth_api_client.post(url, {"status": "confirmed"}, format="json", **tenant_header(restaurant))
    allowed = staff_api_client.post(url, {"status": "confirmed"}, format="json", **tenant_header(restaurant))
    invalid = staff_api_client.post(url, {"status": "delivered"}, format="json", **tenant_header(restaurant))

    assert denied.status_code == 403
    assert allowed.status_code == 200
    assert allowed.data["data"]["timeline"][0]["status"] == "confirmed"
    assert invalid.status_code == 409
    assert invalid.data["error"]["code"] == "invalid_transition"


@pytest.mark.django_db
def test_live_board_and_bulk(staff_api_client, restaurant):
    pending = OrderFactory(restaurant=restaurant)
    OrderFactory(restaurant=restaurant, status=OrderStatus.DELIVERED)
    headers = tenant_header(restaurant)

    live = staff_api_client.get(f"/api/orders/live/?restaurant_id={restaurant.pk}", **headers)
    bulk = staff_api_client.post("/api/orders/bulk/", {
        "order_ids": [pending.pk],
        "action": "status_update",
        "params": {"status": "confirmed"},
        "dry_run": True,
    }, format="json", **headers)

    assert [row["id"] for row in live.data["data"]] == [pending.pk]
    assert bulk.data["data"]["processed"] == 1
    assert bulk.data["data"]["dry_run"] is True


@pytest.mark.django_db
def test_delivery_details(staff_api_client, restaurant):
    order = OrderFactory(restaurant=restaurant, status=OrderStatus.OUT_FOR_DELIVERY)

    r = staff_api_client.patch(f"/api/orders/{order.pk}/delivery/", {"tracking_notes": "Near the gate"},
                               format="json", **tenant_header(restaurant))

    assert r.status_code == 200
    assert r.data["data"]["delivery_metadata"]["tracking_notes"] == "Near the gate"


# ---------------------------------------------------------------------------
# Menu and reports
# ---------------------------------------------------------------------------

@pytest.mark.django_db
def test_menu_items_conditional_get(api_client, restaurant, menu_item):
    url = f"/api/restaurants/{restaurant.pk}/menu/items/"

    first = api_client.get(url, **tenant_header(restaurant))
    second = api_client.get(url, HTTP_IF_NONE_MATCH=first["ETag"], **tenant_header(restaurant))

    assert first.status_code == 200
    assert first.data["data"][0]["name"] == "Paneer Tikka"
    assert second.status_code == 304
    assert second["ETag"] == first["ETag"]


@pytest.mark.django_db
def test_menu_for_unknown_restaurant(api_client, restaurant):
    r = api_client.get(f"/api/restaurants/{restaurant.pk}/menu/categories/", HTTP_X_TENANT_ID="999999")
    assert r.status_code == 404


@pytest.mark.django_db
def test_order_stats_report(staff_api_client, auth_api_client, restaurant):
    OrderFactory(restaurant=restaurant, status=OrderStatus.DELIVERED)
    url = f"/api/reports/orders/stats/?restaurant_id={restaurant.pk}&date_from=2000-01-01&date_to=2100-01-01"

    r = staff_api_client.get(url, **tenant_header(restaurant))
    denied = auth_api_client.get(url, **tenant_header(restaurant))

    assert r.status_code == 200
    assert r.data["data"]["total_orders"] == 1
    assert r.data["data"]["total_revenue"] == "525.00"
    assert denied.status_code == 403


@pytest.mark.django_db
def test_report_rejects_inverted_range(staff_api_client, restaurant):
    url = f"/api/reports/orders/stats/?restaurant_id={restaurant.pk}&date_from=2026-03-02&date_to=2026-03-01"
    r = staff_api_client.get(url, **tenant_header(restaurant))
    assert r.status_code == 400
    assert r.data["error"]["field"] == "date_from"


# ---------------------------------------------------------------------------
# Coupon management
# ---------------------------------------------------------------------------

def coupon_body(restaurant, **overrides):
    body = {
        "restaurant": restaurant.pk,
        "code": "save10",
        "discount_type": "percentage",
        "discount_value": "10.00",
    }
    body.update(overrides)
    return body


@pytest.mark.django_db
def test_coupon_codes_are_unique_per_restaurant_ignoring_case(staff_api_client, restaurant):
    first = staff_api_client.post("/api/coupons/", coupon_body(restaurant), format="json", **tenant_header(restaurant))
    second = staff_api_client.post("/api/coupons/", coupon_body(restaurant, code="SAVE10"), format="json",
                                   **tenant_header(restaurant))

    assert first.status_code == 201
    assert first.data["code"] == "SAVE10"
    assert second.status_code == 400
    assert second.data["success"] is False
    assert second.data["error"]["code"] == "validation_error"
    assert second.data["error"]["field"] == "code"
    assert Coupon.objects.filter(restaurant=restaurant).count() == 1


@pytest.mark.django_db
def test_same_coupon_code_allowed_at_another_restaurant(staff_api_client, restaurant):
    other = RestaurantFactory(tenant=restaurant.tenant)
    CouponFactory(restaurant=restaurant, code="SAVE10")

    r = staff_api_client.post("/api/coupons/", coupon_body(other), format="json", **tenant_header(restaurant))

    assert r.status_code == 201


@pytest.mark.django_db
def test_coupon_update_keeps_its_own_code(staff_api_client, restaurant):
    coupon = CouponFactory(restaurant=restaurant, code="SAVE10")

    r = staff_api_client.patch(f"/api/coupons/{coupon.pk}/", {"code": "save10", "description": "Ten off"},
                               format="json", **tenant_header(restaurant))

    assert r.status_code == 200
    assert r.data["description"] == "Ten off"


@pytest.mark.django_db
def test_coupon_usage_limit_cannot_drop_below_redemptions(staff_api_client, restaurant):
    coupon = CouponFactory(restaurant=restaurant, max_usage=10, current_usage=4)

    r = staff_api_client.patch(f"/api/coupons/{coupon.pk}/", {"max_usage": 3}, format="json",
                               **tenant_header(restaurant))

    assert r.status_code == 400
    assert r.data["error"]["field"] == "max_usage"
    coupon.refresh_from_db()
    assert coupon.max_usage == 10
