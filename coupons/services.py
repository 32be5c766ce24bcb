from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Optional

from django.apps import apps
from django.db import transaction
from django.db.models import F, Q
from django.utils import timezone

from core.results import CouponInvalid, NotFound, Result, returns_result
from orders.services.pricing import ZERO

from .models import Coupon, CouponRedemption

logger = logging.getLogger(__name__)


def normalize_code(code: Optional[str]) -> str:
    return (code or "").strip().upper()


@dataclass(frozen=True)
class CouponQuote:
    coupon_id: int
    code: str
    discount_type: str
    discount_value: Decimal
    discount: Decimal

    def to_dict(self) -> dict:
        return {
            "valid": True,
            "coupon_id": self.coupon_id,
            "code": self.code,
            "discount_type": self.discount_type,
            "discount_value": str(self.discount_value),
            "discount": str(self.discount),
        }


class CouponValidator:
    """
    Coupon checks and redemption for one tenant/restaurant namespace.

    ``validate`` and ``calculate_discount`` are read-only; ``redeem`` is the
    only path that changes ``current_usage`` and does so with a conditional
    UPDATE so two checkouts racing for the last use cannot both win.
    """

    def __init__(self, clock: Callable = timezone.now):
        self.clock = clock

    def get(self, tenant_id, restaurant_id, code) -> Optional[Coupon]:
        code = normalize_code(code)
        if not code:
            return None
        return Coupon.objects.filter(tenant_id=tenant_id, restaurant_id=restaurant_id, code=code).first()

    def problem_for(self, coupon: Coupon, order_value, user_id=None) -> Optional[str]:
        reason = coupon.validity_problem(order_value, now=self.clock())
        if reason or user_id is None:
            return reason
        if coupon.per_user_usage_cap is not None:
            used = CouponRedemption.objects.filter(coupon=coupon, user_id=user_id).count()
            if used >= coupon.per_user_usage_cap:
                return "You have already used this coupon the maximum number of times"
        if coupon.new_users_only and self._has_previous_orders(coupon.tenant_id, user_id):
            return "Coupon is only valid for new customers"
        return None

    def _has_previous_orders(self, tenant_id, user_id) -> bool:
        Order = apps.get_model("orders", "Order")
        return Order.objects.filter(tenant_id=tenant_id, user_id=user_id).exclude(status="cancelled").exists()

    def quote(self, tenant_id, restaurant_id, code, order_value, user_id=None) -> CouponQuote:
        """Discount a valid coupon grants on ``order_value``; raises ``CouponInvalid``."""
        coupon = self.get(tenant_id, restaurant_id, code)
        if coupon is None:
            raise NotFound("Coupon not found", field="coupon_code")
        reason = self.problem_for(coupon, order_value, user_id)
        if reason:
            raise CouponInvalid(reason, field="coupon_code", details={"code": coupon.code})
        return CouponQuote(
            coupon_id=coupon.pk,
            code=coupon.code,
            discount_type=coupon.discount_type,
            discount_value=coupon.discount_value,
            discount=coupon.calculate_discount(order_value),
        )

    @returns_result
    def validate(self, tenant_id, restaurant_id, code, order_value, user_id=None) -> Result:
        return self.quote(tenant_id, restaurant_id, code, order_value, user_id)

    def calculate_discount(self, coupon: Coupon, order_value, user_id=None) -> Decimal:
        if self.problem_for(coupon, order_value, user_id):
            return ZERO
        return coupon.calculate_discount(order_value)

    def redeem_or_raise(self, coupon_id, user_id=None, order_reference="", discount=ZERO) -> None:
        with transaction.atomic():
            updated = (
                Coupon.objects
                .filter(pk=coupon_id, is_active=True)
                .filter(Q(max_usage__isnull=True) | Q(current_usage__lt=F("max_usage")))
                .update(current_usage=F("current_usage") + 1, updated_at=timezone.now())
            )
            if updated != 1:
                logger.info("Coupon %s redemption refused: usage limit reached", coupon_id)
                raise CouponInvalid("Coupon usage limit reached", field="coupon_code")
            if user_id is not None:
                CouponRedemption.objects.create(
                    coupon_id=coupon_id,
                    user_id=user_id,
                    order_reference=order_reference,
                    discount_amount=discount,
                )

    @returns_result
    def redeem(self, coupon_id, user_id=None, order_reference="", discount=ZERO) -> Result:
        self.redeem_or_raise(coupon_id, user_id, order_reference, discount)
        return Coupon.objects.values_list("current_usage", flat=True).get(pk=coupon_id)
