from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, time
from decimal import Decimal
from typing import Optional
from zoneinfo import ZoneInfo

from .models import WEEKDAYS, Restaurant


def _parse_hhmm(value: str) -> time:
    hours, minutes = str(value).split(":")
    return time(int(hours), int(minutes))


@dataclass(frozen=True)
class RestaurantProfile:
    """Pricing and scheduling facts about a restaurant, detached from the ORM."""

    tenant_id: int
    restaurant_id: int
    name: str
    tax_rate: Decimal
    delivery_fee_threshold: Decimal
    delivery_fee_amount: Decimal
    tax_split: str = Restaurant.TAX_SPLIT_INTRASTATE
    timezone: str = "UTC"
    operating_hours: dict = field(default_factory=dict)

    def hours_for(self, when: datetime) -> Optional[dict]:
        local = when.astimezone(ZoneInfo(self.timezone))
        return self.operating_hours.get(WEEKDAYS[local.weekday()])

    def is_open_at(self, when: datetime) -> bool:
        """True when ``when`` falls inside that weekday's open window.

        A close earlier than open means the window runs past midnight.
        """
        entry = self.hours_for(when)
        if not entry or not entry.get("is_open", True):
            return False
        if not entry.get("open") or not entry.get("close"):
            return False
        opens = _parse_hhmm(entry["open"])
        closes = _parse_hhmm(entry["close"])
        local_time = when.astimezone(ZoneInfo(self.timezone)).time().replace(second=0, microsecond=0)
        if opens <= closes:
            return opens <= local_time <= closes
        return local_time >= opens or local_time <= closes


class OrmRestaurantProfiles:
    """Restaurant profile lookup backed by the ``Restaurant`` model."""

    def get_profile(self, tenant_id, restaurant_id) -> Optional[RestaurantProfile]:
        restaurant = (
            Restaurant.objects
            .filter(pk=restaurant_id, tenant_id=tenant_id, is_active=True)
            .first()
        )
        if restaurant is None:
            return None
        return RestaurantProfile(
            tenant_id=restaurant.tenant_id,
            restaurant_id=restaurant.pk,
            name=restaurant.name,
            tax_rate=restaurant.tax_rate,
            delivery_fee_threshold=restaurant.delivery_fee_threshold,
            delivery_fee_amount=restaurant.delivery_fee,
            tax_split=restaurant.tax_split,
            timezone=restaurant.timezone,
            operating_hours=dict(restaurant.operating_hours or {}),
        )

    def get_operating_hours(self, tenant_id, restaurant_id) -> dict:
        profile = self.get_profile(tenant_id, restaurant_id)
        return profile.operating_hours if profile else {}

    def get_tax_rate(self, tenant_id, restaurant_id) -> Decimal:
        profile = self.get_profile(tenant_id, restaurant_id)
        return profile.tax_rate if profile else Decimal("0")

    def get_delivery_fee_threshold(self, tenant_id, restaurant_id) -> Decimal:
        profile = self.get_profile(tenant_id, restaurant_id)
        return profile.delivery_fee_threshold if profile else Decimal("0")

    def get_delivery_fee_amount(self, tenant_id, restaurant_id) -> Decimal:
        profile = self.get_profile(tenant_id, restaurant_id)
        return profile.delivery_fee_amount if profile else Decimal("0")
