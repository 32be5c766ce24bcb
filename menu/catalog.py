from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Optional

from django.db import DatabaseError

from core.results import UpstreamTimeout

from .models import MenuItem

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CatalogModifier:
    group_id: int
    modifier_id: int
    name: str
    price: Decimal
    available: bool = True


@dataclass(frozen=True)
class CatalogItem:
    item_id: int
    name: str
    base_price: Decimal
    available: bool
    # (group_id, modifier_id) -> option
    modifiers: Dict[tuple, CatalogModifier] = field(default_factory=dict)

    def modifier(self, group_id, modifier_id) -> Optional[CatalogModifier]:
        try:
            return self.modifiers.get((int(group_id), int(modifier_id)))
        except (TypeError, ValueError):
            return None


class OrmMenuCatalog:
    """Live menu lookups used to re-validate client-submitted prices."""

    def get_item(self, tenant_id, restaurant_id, item_id) -> Optional[CatalogItem]:
        try:
            item = (
                MenuItem.objects
                .filter(pk=item_id, restaurant_id=restaurant_id, restaurant__tenant_id=tenant_id)
                .prefetch_related("modifier_groups__modifiers")
                .first()
            )
        except (TypeError, ValueError):
            return None
        except DatabaseError as e:
            logger.warning("Menu lookup failed for item %s: %s", item_id, e)
            raise UpstreamTimeout("Menu service is unavailable") from e
        if item is None:
            return None

        modifiers = {}
        for group in item.modifier_groups.all():
            for option in group.modifiers.all():
                modifiers[(group.pk, option.pk)] = CatalogModifier(
                    group_id=group.pk,
                    modifier_id=option.pk,
                    name=option.name,
                    price=option.price,
                    available=option.is_available,
                )
        return CatalogItem(
            item_id=item.pk,
            name=item.name,
            base_price=item.price,
            available=item.is_available,
            modifiers=modifiers,
        )
