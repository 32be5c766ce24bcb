import os
from datetime import datetime, timezone as dt_timezone

import pytest
from django.core.cache import cache
from rest_framework.test import APIClient

from core.profiles import OrmRestaurantProfiles
from coupons.services import CouponValidator
from menu.catalog import OrmMenuCatalog
from orders.services.cart_store import CartKey, CartStore
from orders.services.lifecycle import OrderLifecycleManager

from tests.factories import (
    MenuItemFactory,
    RestaurantFactory,
    StaffUserFactory,
    UserFactory,
)
from tests.fakes import FakeAudit, FakeGateway, FakeNotifier, InMemoryCache


os.environ.setdefault("ENVIRONMENT", "test")

# Monday, inside the default 09:00-22:00 opening hours
FROZEN_NOW = datetime(2026, 3, 2, 10, 0, tzinfo=dt_timezone.utc)


@pytest.fixture(autouse=True)
def _clear_cache():
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def api_client() -> APIClient:
    """Unauthenticated DRF APIClient."""
    return APIClient(enforce_csrf_checks=False)


@pytest.fixture
def user(db):
    return UserFactory(username="testuser")


@pytest.fixture
def staff_user(db):
    return StaffUserFactory(username="staffer")


@pytest.fixture
def auth_api_client(api_client: APIClient, user):
    """APIClient authenticated as ``user`` via force_authenticate."""
    api_client.force_authenticate(user=user)
    return api_client


@pytest.fixture
def staff_api_client(staff_user):
    client = APIClient(enforce_csrf_checks=False)
    client.force_authenticate(user=staff_user)
    return client


@pytest.fixture
def now():
    return FROZEN_NOW


@pytest.fixture
def clock(now):
    return lambda: now


@pytest.fixture
def restaurant(db):
    return RestaurantFactory()


@pytest.fixture
def tenant(restaurant):
    return restaurant.tenant


@pytest.fixture
def menu_item(restaurant):
    return MenuItemFactory(restaurant=restaurant, name="Paneer Tikka")


@pytest.fixture
def memory_cache():
    return InMemoryCache()


@pytest.fixture
def fake_gateway():
    return FakeGateway()


@pytest.fixture
def fake_notifier():
    return FakeNotifier()


@pytest.fixture
def fake_audit():
    return FakeAudit()


@pytest.fixture
def coupon_validator(clock):
    return CouponValidator(clock=clock)


@pytest.fixture
def cart_store(memory_cache, coupon_validator, clock):
    return CartStore(memory_cache, OrmMenuCatalog(), OrmRestaurantProfiles(), coupon_validator, clock=clock)


@pytest.fixture
def cart_key(restaurant, user):
    return CartKey(restaurant.tenant_id, user.pk, restaurant.pk)


@pytest.fixture
def manager(cart_store, coupon_validator, fake_gateway, fake_notifier, fake_audit, clock):
    return OrderLifecycleManager(
        catalog=OrmMenuCatalog(),
        profiles=OrmRestaurantProfiles(),
        coupons=coupon_validator,
        cart_store=cart_store,
        gateway=fake_gateway,
        notifier=fake_notifier,
        audit=fake_audit,
        clock=clock,
    )
