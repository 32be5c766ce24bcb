from __future__ import annotations

import logging

from django.core.exceptions import ObjectDoesNotExist
from django.db import transaction
from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from .invalidation import invalidate_or_schedule_retry
from .models import MenuCategory, MenuItem, Modifier, ModifierGroup

logger = logging.getLogger(__name__)


def _restaurant_of(instance):
    if isinstance(instance, (MenuCategory, MenuItem)):
        return instance.restaurant
    if isinstance(instance, ModifierGroup):
        return instance.menu_item.restaurant
    return instance.modifier_group.menu_item.restaurant


@receiver(post_save, sender=MenuCategory)
@receiver(post_delete, sender=MenuCategory)
@receiver(post_save, sender=MenuItem)
@receiver(post_delete, sender=MenuItem)
@receiver(post_save, sender=ModifierGroup)
@receiver(post_delete, sender=ModifierGroup)
@receiver(post_save, sender=Modifier)
@receiver(post_delete, sender=Modifier)
def invalidate_menu_namespace(sender, instance, **kwargs):
    try:
        restaurant = _restaurant_of(instance)
    except ObjectDoesNotExist:
        # Parent already gone in a cascade; its own signal covers the namespace
        return
    tenant_id, restaurant_id = restaurant.tenant_id, restaurant.pk
    transaction.on_commit(lambda: invalidate_or_schedule_retry(tenant_id, restaurant_id))
