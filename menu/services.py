from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from django.db.models import Count, Q

from core.cache_config import menu_key
from core.cache_service import content_etag, get_cache_client
from core.conf import ordering_setting
from core.results import UpstreamTimeout

from .models import MenuCategory, MenuItem

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Listing:
    etag: str
    data: Any = None
    not_modified: bool = False


def etag_matches(if_none_match: Optional[str], etag: str) -> bool:
    if not if_none_match:
        return False
    candidates = [tag.strip() for tag in if_none_match.split(",")]
    weak = etag[2:] if etag.startswith("W/") else etag
    return "*" in candidates or etag in candidates or weak in candidates or f"W/{weak}" in candidates


def serialize_category(category: MenuCategory, item_count: int) -> dict:
    return {
        "id": category.pk,
        "name": category.name,
        "description": category.description,
        "sort_order": category.sort_order,
        "item_count": item_count,
    }


def serialize_item(item: MenuItem) -> dict:
    return {
        "id": item.pk,
        "name": item.name,
        "description": item.description,
        "price": str(item.price),
        "is_available": item.is_available,
        "category_id": item.category_id,
        "modifier_groups": [
            {
                "id": group.pk,
                "name": group.name,
                "is_required": group.is_required,
                "min_selections": group.min_selections,
                "max_selections": group.max_selections,
                "modifiers": [
                    {
                        "id": option.pk,
                        "name": option.name,
                        "price": str(option.price),
                        "is_available": option.is_available,
                    }
                    for option in group.modifiers.all()
                ],
            }
            for group in item.modifier_groups.all()
        ],
    }


class MenuListingService:
    """
    Cached menu read models with content-hash ETags.

    The cached entry stores both the body and its ETag, so a conditional
    request that matches is answered without touching the database or
    re-serialising anything.
    """

    def __init__(self, cache=None, timeout: Optional[int] = None):
        self.cache = cache or get_cache_client()
        self.timeout = timeout or ordering_setting("MENU_LISTING_TTL_SECONDS")

    def categories(self, tenant_id, restaurant_id, if_none_match: Optional[str] = None) -> Listing:
        key = menu_key(tenant_id, restaurant_id, "categories")
        return self._cached(key, if_none_match, lambda: self._build_categories(tenant_id, restaurant_id))

    def items(self, tenant_id, restaurant_id, category_id=None, if_none_match: Optional[str] = None) -> Listing:
        if category_id is not None:
            key = menu_key(tenant_id, restaurant_id, "category", category_id, "items")
        else:
            key = menu_key(tenant_id, restaurant_id, "items")
        return self._cached(key, if_none_match, lambda: self._build_items(tenant_id, restaurant_id, category_id))

    def _cached(self, key: str, if_none_match: Optional[str], build: Callable[[], Any]) -> Listing:
        entry = None
        try:
            entry = self.cache.get(key)
        except UpstreamTimeout:
            logger.warning("Serving %s uncached; cache unavailable", key)

        if entry is None:
            data = build()
            entry = {"etag": content_etag(data), "data": data}
            try:
                self.cache.set(key, entry, self.timeout)
            except UpstreamTimeout:
                logger.warning("Could not cache %s", key)

        if etag_matches(if_none_match, entry["etag"]):
            return Listing(etag=entry["etag"], not_modified=True)
        return Listing(etag=entry["etag"], data=entry["data"])

    def _build_categories(self, tenant_id, restaurant_id) -> list:
        categories = (
            MenuCategory.objects
            .filter(restaurant_id=restaurant_id, restaurant__tenant_id=tenant_id, is_active=True)
            .annotate(available_items=Count("items", filter=Q(items__is_available=True)))
            .order_by("sort_order", "name")
        )
        return [serialize_category(category, category.available_items) for category in categories]

    def _build_items(self, tenant_id, restaurant_id, category_id=None) -> list:
        items = (
            MenuItem.objects
            .filter(restaurant_id=restaurant_id, restaurant__tenant_id=tenant_id)
            .select_related("category")
            .prefetch_related("modifier_groups__modifiers")
            .order_by("sort_order", "name")
        )
        if category_id is not None:
            items = items.filter(category_id=category_id)
        return [serialize_item(item) for item in items]
