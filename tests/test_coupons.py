import threading
from datetime import timedelta
from decimal import Decimal

import pytest
from django.db import OperationalError, connection, connections

from core.results import ErrorKind
from coupons import signals as coupon_signals
from coupons.models import Coupon, CouponRedemption
from coupons.services import CouponValidator

from tests.factories import CouponFactory, OrderFactory, RestaurantFactory, UserFactory


@pytest.mark.django_db
def test_code_is_stored_upper_case(restaurant):
    coupon = CouponFactory(restaurant=restaurant, code="  welcome10 ")
    assert coupon.code == "WELCOME10"


@pytest.mark.django_db
def test_first_failing_check_wins(restaurant, now):
    coupon = CouponFactory(
        restaurant=restaurant,
        is_active=False,
        valid_to=now - timedelta(days=1),
        min_order_value=Decimal("200.00"),
    )
    assert coupon.validity_problem(Decimal("50"), now=now) == "Coupon is not active"

    coupon.is_active = True
    assert coupon.validity_problem(Decimal("50"), now=now) == "Coupon has expired"

    coupon.valid_to = None
    coupon.valid_from = now + timedelta(hours=1)
    assert coupon.validity_problem(Decimal("50"), now=now) == "Coupon is not yet valid"

    coupon.valid_from = None
    coupon.max_usage, coupon.current_usage = 5, 5
    assert coupon.validity_problem(Decimal("50"), now=now) == "Coupon usage limit reached"

    coupon.max_usage = None
    assert coupon.validity_problem(Decimal("50"), now=now) == "Minimum order value of ₹200.00 required"
    assert coupon.validity_problem(Decimal("200.00"), now=now) is None


@pytest.mark.parametrize("discount_type, value, order_value, expected", [
    (Coupon.TYPE_PERCENTAGE, "10.00", "500.00", "50.00"),
    (Coupon.TYPE_PERCENTAGE, "12.50", "199.99", "25.00"),
    (Coupon.TYPE_FIXED, "75.00", "500.00", "75.00"),
    (Coupon.TYPE_FIXED, "75.00", "60.00", "60.00"),
])
def test_discount_math(discount_type, value, order_value, expected):
    coupon = Coupon(discount_type=discount_type, discount_value=Decimal(value))
    assert coupon.calculate_discount(Decimal(order_value)) == Decimal(expected)


@pytest.mark.django_db
def test_validate_returns_quote(coupon_validator, restaurant, user):
    CouponFactory(restaurant=restaurant, code="FLAT50", discount_type=Coupon.TYPE_FIXED, discount_value=Decimal("50"))

    result = coupon_validator.validate(restaurant.tenant_id, restaurant.pk, "flat50", Decimal("300"), user.pk)

    assert result.ok
    assert result.value.discount == Decimal("50.00")
    assert result.value.to_dict()["valid"] is True


@pytest.mark.django_db
def test_validate_is_scoped_to_restaurant(coupon_validator, restaurant):
    coupon = CouponFactory(code="LOCAL")
    result = coupon_validator.validate(restaurant.tenant_id, restaurant.pk, "LOCAL", Decimal("300"))
    assert result.kind == ErrorKind.NOT_FOUND
    assert coupon_validator.validate(coupon.tenant_id, coupon.restaurant_id, "LOCAL", Decimal("300")).ok


@pytest.mark.django_db
def test_redeem_respects_max_usage(coupon_validator, restaurant):
    coupon = CouponFactory(restaurant=restaurant, max_usage=1)

    assert coupon_validator.redeem(coupon.pk).value == 1
    second = coupon_validator.redeem(coupon.pk)

    assert second.kind == ErrorKind.COUPON_INVALID
    coupon.refresh_from_db()
    assert coupon.current_usage == 1


@pytest.mark.django_db
def test_per_user_cap(coupon_validator, restaurant, user):
    coupon = CouponFactory(restaurant=restaurant, per_user_usage_cap=1)
    coupon_validator.redeem(coupon.pk, user.pk, "ORD-1", Decimal("10.00"))

    assert CouponRedemption.objects.filter(coupon=coupon, user=user).count() == 1
    mine = coupon_validator.validate(restaurant.tenant_id, restaurant.pk, coupon.code, Decimal("100"), user.pk)
    theirs = coupon_validator.validate(restaurant.tenant_id, restaurant.pk, coupon.code, Decimal("100"), UserFactory().pk)

    assert mine.kind == ErrorKind.COUPON_INVALID
    assert theirs.ok


@pytest.mark.django_db
def test_new_users_only(coupon_validator, restaurant, user):
    coupon = CouponFactory(restaurant=restaurant, new_users_only=True)
    assert coupon_validator.validate(restaurant.tenant_id, restaurant.pk, coupon.code, Decimal("100"), user.pk).ok

    OrderFactory(restaurant=restaurant, user=user)
    result = coupon_validator.validate(restaurant.tenant_id, restaurant.pk, coupon.code, Decimal("100"), user.pk)
    assert result.kind == ErrorKind.COUPON_INVALID
    assert result.error.message == "Coupon is only valid for new customers"


@pytest.mark.django_db
def test_calculate_discount_is_zero_for_invalid_coupon(coupon_validator, restaurant):
    coupon = CouponFactory(restaurant=restaurant, min_order_value=Decimal("500"))
    assert coupon_validator.calculate_discount(coupon, Decimal("100")) == Decimal("0.00")
    assert coupon_validator.calculate_discount(coupon, Decimal("500")) == Decimal("50.00")


@pytest.mark.django_db(transaction=True)
def test_competing_redemptions_sell_the_last_use_once():
    coupon = CouponFactory(max_usage=1)
    validator = CouponValidator()
    contenders = 4
    barrier = threading.Barrier(contenders)
    outcomes = []

    def redeem():
        try:
            barrier.wait()
            result = validator.redeem(coupon.pk)
            outcomes.append("redeemed" if result.ok else result.kind)
        except OperationalError:
            # SQLite rejects a second writer instead of queueing it
            outcomes.append("locked")
        finally:
            connections.close_all()

    threads = [threading.Thread(target=redeem) for _ in range(contenders)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    coupon.refresh_from_db()
    assert coupon.current_usage == 1
    assert len(outcomes) == contenders
    assert outcomes.count("redeemed") <= 1
    assert set(outcomes) <= {"redeemed", ErrorKind.COUPON_INVALID, "locked"}
    if connection.vendor != "sqlite":
        assert outcomes.count("redeemed") == 1
        assert outcomes.count(ErrorKind.COUPON_INVALID) == contenders - 1


@pytest.mark.django_db
def test_redeem_refuses_once_another_checkout_took_the_last_use(coupon_validator, restaurant):
    coupon = CouponFactory(restaurant=restaurant, max_usage=1)
    # This checkout validated before the other one redeemed
    assert coupon_validator.validate(restaurant.tenant_id, restaurant.pk, coupon.code, Decimal("100")).ok
    Coupon.objects.filter(pk=coupon.pk).update(current_usage=1)

    result = coupon_validator.redeem(coupon.pk)

    assert result.kind == ErrorKind.COUPON_INVALID
    coupon.refresh_from_db()
    assert coupon.current_usage == 1


@pytest.mark.django_db
def test_moving_a_coupon_invalidates_both_restaurants(restaurant, monkeypatch, django_capture_on_commit_callbacks):
    coupon = CouponFactory(restaurant=restaurant)
    new_home = RestaurantFactory(tenant=restaurant.tenant)
    invalidated = []
    monkeypatch.setattr(
        coupon_signals,
        "invalidate_or_schedule_retry",
        lambda tenant_id, restaurant_id, include_calculations=False: invalidated.append(
            (tenant_id, restaurant_id, include_calculations)
        ),
    )

    with django_capture_on_commit_callbacks(execute=True):
        coupon.restaurant = new_home
        coupon.save()

    assert sorted(invalidated) == sorted([
        (restaurant.tenant_id, restaurant.pk, True),
        (restaurant.tenant_id, new_home.pk, True),
    ])


@pytest.mark.django_db
def test_editing_a_coupon_invalidates_its_restaurant_once(restaurant, monkeypatch, django_capture_on_commit_callbacks):
    coupon = CouponFactory(restaurant=restaurant)
    invalidated = []
    monkeypatch.setattr(
        coupon_signals,
        "invalidate_or_schedule_retry",
        lambda tenant_id, restaurant_id, include_calculations=False: invalidated.append(restaurant_id),
    )

    with django_capture_on_commit_callbacks(execute=True):
        coupon.discount_value = Decimal("15.00")
        coupon.save()

    assert invalidated == [restaurant.pk]
