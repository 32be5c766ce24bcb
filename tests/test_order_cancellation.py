from datetime import timedelta
from decimal import Decimal

import pytest

from core.results import ErrorKind
from orders.models import OrderStatus

from tests.factories import OrderFactory, UserFactory
from tests.fakes import FakeGateway


def placed(now, minutes_ago, status=OrderStatus.PENDING, **kwargs):
    kwargs.setdefault("payment_reference", "pi_paid")
    return OrderFactory(created_at=now - timedelta(minutes=minutes_ago), status=status, **kwargs)


@pytest.mark.django_db
@pytest.mark.parametrize("minutes_ago, status, percentage, refund", [
    (10, OrderStatus.PENDING, 100, "525.00"),
    (15, OrderStatus.PREPARING, 100, "525.00"),
    (20, OrderStatus.CONFIRMED, 75, "393.75"),
    (30, OrderStatus.CONFIRMED, 75, "393.75"),
])
def test_refund_tiers(manager, fake_gateway, now, minutes_ago, status, percentage, refund):
    order = placed(now, minutes_ago, status)

    result = manager.cancel(order.tenant_id, order.pk, order.user_id, "Changed my mind")

    assert result.ok, result.error
    order.refresh_from_db()
    assert order.status == OrderStatus.CANCELLED
    assert order.refund_percentage == percentage
    assert order.refund_amount == Decimal(refund)
    assert order.refund_reference == "re_1"
    assert order.cancelled_at == now
    assert fake_gateway.refunds == [("pi_paid", Decimal(refund), "Changed my mind")]
    assert order.timeline.get().previous_status == status


@pytest.mark.django_db
@pytest.mark.parametrize("minutes_ago, status", [
    (20, OrderStatus.PENDING),
    (20, OrderStatus.PREPARING),
    (40, OrderStatus.CONFIRMED),
])
def test_window_expired(manager, fake_gateway, now, minutes_ago, status):
    order = placed(now, minutes_ago, status)

    result = manager.cancel(order.tenant_id, order.pk, order.user_id, "Too slow")

    assert result.kind == ErrorKind.CANCELLATION_WINDOW_EXPIRED
    order.refresh_from_db()
    assert order.status == status
    assert fake_gateway.refunds == []


@pytest.mark.django_db
@pytest.mark.parametrize("status", [OrderStatus.DELIVERED, OrderStatus.CANCELLED])
def test_terminal_orders_are_not_cancellable(manager, now, status):
    order = placed(now, 1, status)
    assert manager.cancel(order.tenant_id, order.pk, order.user_id, "Nope").kind == ErrorKind.NOT_CANCELLABLE


@pytest.mark.django_db
def test_refund_failure_leaves_order_untouched(manager, now):
    manager.gateway = FakeGateway(fail_refunds=True)
    order = placed(now, 5)

    result = manager.cancel(order.tenant_id, order.pk, order.user_id, "Changed my mind")

    assert result.kind == ErrorKind.REFUND_FAILED
    order.refresh_from_db()
    assert order.status == OrderStatus.PENDING
    assert order.refund_amount == Decimal("0.00")
    assert not order.timeline.exists()


@pytest.mark.django_db
def test_unpaid_order_cancels_without_gateway_call(manager, fake_gateway, now):
    order = placed(now, 5, payment_reference="")

    result = manager.cancel(order.tenant_id, order.pk, order.user_id, "Ordered twice")

    assert result.ok
    assert result.value.refund_reference == ""
    assert fake_gateway.refunds == []


@pytest.mark.django_db
@pytest.mark.parametrize("reason", ["", "   ", "x" * 501])
def test_reason_is_required_and_bounded(manager, now, reason):
    order = placed(now, 5)
    result = manager.cancel(order.tenant_id, order.pk, order.user_id, reason)
    assert result.kind == ErrorKind.VALIDATION
    assert result.error.field == "reason"


@pytest.mark.django_db
def test_customers_cannot_cancel_other_orders(manager, now):
    order = placed(now, 5)
    stranger = UserFactory()

    result = manager.cancel(order.tenant_id, order.pk, stranger.pk, "Mine now", owner_id=stranger.pk)

    assert result.kind == ErrorKind.NOT_FOUND


@pytest.mark.django_db
def test_cancel_announces_after_commit(manager, fake_notifier, fake_audit, now, django_capture_on_commit_callbacks):
    order = placed(now, 5)

    with django_capture_on_commit_callbacks(execute=True):
        manager.cancel(order.tenant_id, order.pk, order.user_id, "Changed my mind")

    assert fake_notifier.status_changes == [(order.pk, OrderStatus.CANCELLED, order.user_id)]
    assert fake_audit.entries[0]["action"] == "order.cancelled"
    assert fake_audit.entries[0]["details"]["refund_percentage"] == 100


@pytest.mark.django_db
def test_eligibility(manager, now):
    eligible = placed(now, 20, OrderStatus.CONFIRMED)
    expired = placed(now, 40, OrderStatus.CONFIRMED)

    yes = manager.check_cancellation_eligibility(eligible.tenant_id, eligible.pk).value
    no = manager.check_cancellation_eligibility(expired.tenant_id, expired.pk).value

    assert yes["can_cancel"] is True
    assert yes["refund_percentage"] == 75
    assert yes["estimated_refund"] == "393.75"
    assert yes["minutes_since_creation"] == 20.0
    assert no["can_cancel"] is False
    assert no["reason"] == "Cancellation window has expired"
    assert no["refund_percentage"] == 0
