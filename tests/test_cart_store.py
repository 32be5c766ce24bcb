from dataclasses import replace
from decimal import Decimal

import pytest

from core.results import ErrorKind
from orders.services.cart_store import CartKey, CartStore
from orders.services.pricing import LineItem, ModifierSelection
from core.profiles import OrmRestaurantProfiles
from menu.catalog import OrmMenuCatalog

from tests.factories import (
    CouponFactory,
    MenuItemFactory,
    ModifierFactory,
    ModifierGroupFactory,
    RestaurantFactory,
)
from tests.fakes import UnavailableCache


def make_line(item, quantity=1, price=None, modifiers=()):
    return LineItem(
        reference_id=item.pk,
        unit_base_price=Decimal(price) if price is not None else item.price,
        quantity=quantity,
        modifiers=tuple(modifiers),
    )


def selection(option, price=None):
    return ModifierSelection(
        group_id=option.modifier_group_id,
        modifier_id=option.pk,
        price_delta=Decimal(price) if price is not None else option.price,
    )


@pytest.fixture
def toppings(menu_item):
    group = ModifierGroupFactory(menu_item=menu_item, name="Toppings")
    cheese = ModifierFactory(modifier_group=group, name="Cheese", price=Decimal("30.00"))
    olives = ModifierFactory(modifier_group=group, name="Olives", price=Decimal("20.00"))
    return cheese, olives


@pytest.mark.django_db
def test_add_item_prices_from_menu_and_returns_totals(cart_store, cart_key, menu_item):
    result = cart_store.add_item(cart_key, make_line(menu_item, quantity=2))

    assert result.ok, result.error
    cart = result.value
    assert len(cart["items"]) == 1
    assert cart["items"][0]["name"] == "Paneer Tikka"
    assert cart["items"][0]["computed_total_price"] == "500.00"
    # 500.00 + 5% tax, free delivery above 200
    assert cart["totals"]["total"] == "525.00"
    assert cart["totals"]["delivery_fee"] == "0.00"


@pytest.mark.django_db
def test_identical_configuration_merges_regardless_of_modifier_order(cart_store, cart_key, menu_item, toppings):
    cheese, olives = toppings
    first = cart_store.add_item(cart_key, make_line(menu_item, 1, modifiers=[selection(cheese), selection(olives)]))
    second = cart_store.add_item(cart_key, make_line(menu_item, 2, modifiers=[selection(olives), selection(cheese)]))

    assert first.ok and second.ok
    items = second.value["items"]
    assert len(items) == 1
    assert items[0]["quantity"] == 3
    assert items[0]["line_id"] == first.value["items"][0]["line_id"]
    assert items[0]["computed_unit_price"] == "300.00"


@pytest.mark.django_db
def test_different_modifiers_make_separate_lines(cart_store, cart_key, menu_item, toppings):
    cheese, olives = toppings
    cart_store.add_item(cart_key, make_line(menu_item, 1, modifiers=[selection(cheese)]))
    result = cart_store.add_item(cart_key, make_line(menu_item, 1, modifiers=[selection(olives)]))

    assert [line["computed_unit_price"] for line in result.value["items"]] == ["280.00", "270.00"]


@pytest.mark.django_db
def test_stale_price_is_rejected(cart_store, cart_key, menu_item):
    result = cart_store.add_item(cart_key, make_line(menu_item, price="240.00"))

    assert result.kind == ErrorKind.PRICE_MISMATCH
    assert result.error.details["current"] == "250.00"
    assert cart_store.get(cart_key).value["items"] == []


@pytest.mark.django_db
def test_price_within_tolerance_is_accepted_at_menu_price(cart_store, cart_key, menu_item):
    result = cart_store.add_item(cart_key, make_line(menu_item, price="249.99"))

    assert result.ok
    assert result.value["items"][0]["unit_base_price"] == "250.00"


@pytest.mark.django_db
def test_stale_modifier_price_is_rejected(cart_store, cart_key, menu_item, toppings):
    cheese, _ = toppings
    result = cart_store.add_item(cart_key, make_line(menu_item, modifiers=[selection(cheese, price="25.00")]))
    assert result.kind == ErrorKind.PRICE_MISMATCH


@pytest.mark.django_db
def test_unavailable_and_unknown_items(cart_store, cart_key, menu_item):
    menu_item.is_available = False
    menu_item.save()
    assert cart_store.add_item(cart_key, make_line(menu_item)).kind == ErrorKind.VALIDATION

    missing = LineItem(reference_id=999999, unit_base_price=Decimal("1.00"), quantity=1)
    assert cart_store.add_item(cart_key, missing).kind == ErrorKind.NOT_FOUND


@pytest.mark.django_db
def test_item_from_another_restaurant_is_not_found(cart_store, cart_key, restaurant):
    other = RestaurantFactory(tenant=restaurant.tenant)
    foreign = MenuItemFactory(restaurant=other)
    assert cart_store.add_item(cart_key, make_line(foreign)).kind == ErrorKind.NOT_FOUND


@pytest.mark.django_db
def test_switching_restaurant_starts_an_empty_cart(cart_store, cart_key, menu_item, restaurant):
    cart_store.add_item(cart_key, make_line(menu_item, 2))
    other = RestaurantFactory(tenant=restaurant.tenant)
    other_key = CartKey(cart_key.tenant_id, cart_key.user_id, other.pk)

    result = cart_store.get(other_key)

    assert result.ok
    assert result.value["restaurant_id"] == other.pk
    assert result.value["items"] == []


@pytest.mark.django_db
def test_carts_are_isolated_per_tenant(cart_store, cart_key, menu_item, user):
    cart_store.add_item(cart_key, make_line(menu_item))
    other = RestaurantFactory()
    result = cart_store.get(CartKey(other.tenant_id, user.pk, other.pk))
    assert result.value["items"] == []


@pytest.mark.django_db
def test_idempotent_add_is_replayed(cart_store, cart_key, menu_item):
    first = cart_store.add_item(cart_key, make_line(menu_item), idempotency_key="add-1")
    second = cart_store.add_item(cart_key, make_line(menu_item), idempotency_key="add-1")

    assert second.ok
    assert second.meta == {"replayed": True}
    assert second.value == first.value
    assert cart_store.get(cart_key).value["items"][0]["quantity"] == 1


@pytest.mark.django_db
def test_failed_add_is_replayed_as_failure(cart_store, cart_key, menu_item):
    first = cart_store.add_item(cart_key, make_line(menu_item, price="240.00"), idempotency_key="add-2")
    menu_item.price = Decimal("240.00")
    menu_item.save()
    second = cart_store.add_item(cart_key, make_line(menu_item, price="240.00"), idempotency_key="add-2")

    assert first.kind == ErrorKind.PRICE_MISMATCH
    assert second.kind == ErrorKind.PRICE_MISMATCH
    assert second.error.message == first.error.message


@pytest.mark.django_db
def test_update_quantity_and_zero_removes(cart_store, cart_key, menu_item):
    line_id = cart_store.add_item(cart_key, make_line(menu_item)).value["items"][0]["line_id"]

    updated = cart_store.update_quantity(cart_key, line_id, 4)
    assert updated.value["items"][0]["quantity"] == 4

    removed = cart_store.update_quantity(cart_key, line_id, 0)
    assert removed.ok
    assert removed.value["items"] == []


@pytest.mark.django_db
def test_quantity_bounds(cart_store, cart_key, menu_item):
    line_id = cart_store.add_item(cart_key, make_line(menu_item, 30)).value["items"][0]["line_id"]

    merged = cart_store.add_item(cart_key, make_line(menu_item, 30))
    assert merged.kind == ErrorKind.VALIDATION
    assert cart_store.get(cart_key).value["items"][0]["quantity"] == 30

    assert cart_store.update_quantity(cart_key, line_id, 51).kind == ErrorKind.VALIDATION
    assert cart_store.update_quantity(cart_key, line_id, -1).kind == ErrorKind.VALIDATION
    assert cart_store.add_item(cart_key, make_line(menu_item, 0)).kind == ErrorKind.VALIDATION


@pytest.mark.django_db
def test_special_instructions_length_is_limited(cart_store, cart_key, menu_item):
    line = replace(make_line(menu_item), special_instructions="x" * 501)
    result = cart_store.add_item(cart_key, line)
    assert result.kind == ErrorKind.VALIDATION
    assert result.error.field == "special_instructions"


@pytest.mark.django_db
def test_remove_and_clear(cart_store, cart_key, menu_item):
    line_id = cart_store.add_item(cart_key, make_line(menu_item)).value["items"][0]["line_id"]

    assert cart_store.remove_item(cart_key, "missing").kind == ErrorKind.NOT_FOUND
    assert cart_store.remove_item(cart_key, line_id).value["items"] == []

    cart_store.add_item(cart_key, make_line(menu_item))
    cleared = cart_store.clear(cart_key)
    assert cleared.ok
    assert cleared.value["items"] == []
    assert cart_store.get(cart_key).value["items"] == []


@pytest.mark.django_db
def test_calculate_total_with_coupon(cart_store, cart_key, menu_item, restaurant):
    CouponFactory(restaurant=restaurant, code="TENOFF", discount_value=Decimal("10.00"))
    cart_store.add_item(cart_key, make_line(menu_item, 2))

    result = cart_store.calculate_total(cart_key, coupon_code="tenoff")

    assert result.ok, result.error
    assert result.value["coupon"]["code"] == "TENOFF"
    assert result.value["totals"]["discount"] == "50.00"
    assert result.value["totals"]["total"] == "475.00"
    assert result.value["item_count"] == 2


@pytest.mark.django_db
def test_calculate_total_with_invalid_coupon(cart_store, cart_key, menu_item, restaurant):
    CouponFactory(restaurant=restaurant, code="BIGSPEND", min_order_value=Decimal("1000.00"))
    cart_store.add_item(cart_key, make_line(menu_item, 2))

    assert cart_store.calculate_total(cart_key, coupon_code="BIGSPEND").kind == ErrorKind.COUPON_INVALID
    assert cart_store.calculate_total(cart_key, coupon_code="NOPE").kind == ErrorKind.NOT_FOUND


@pytest.mark.django_db
def test_cache_outage_is_reported_as_upstream_timeout(cart_key, menu_item, coupon_validator):
    store = CartStore(UnavailableCache(), OrmMenuCatalog(), OrmRestaurantProfiles(), coupon_validator)

    assert store.get(cart_key).kind == ErrorKind.UPSTREAM_TIMEOUT
    assert store.add_item(cart_key, make_line(menu_item)).kind == ErrorKind.UPSTREAM_TIMEOUT
