from __future__ import annotations

from django.db import transaction
from django.db.models.signals import post_delete, post_save, pre_save
from django.dispatch import receiver

from menu.invalidation import invalidate_or_schedule_retry

from .models import Coupon


@receiver(pre_save, sender=Coupon)
def remember_previous_restaurant(sender, instance: Coupon, **kwargs):
    instance._previous_restaurant_id = None
    if instance.pk is not None:
        instance._previous_restaurant_id = (
            Coupon.objects.filter(pk=instance.pk).values_list("restaurant_id", flat=True).first()
        )


@receiver(post_save, sender=Coupon)
@receiver(post_delete, sender=Coupon)
def invalidate_coupon_dependents(sender, instance: Coupon, **kwargs):
    # Redemptions only bump current_usage through a queryset update, which sends no signal
    tenant_id = instance.tenant_id
    restaurant_ids = {instance.restaurant_id, getattr(instance, "_previous_restaurant_id", None)}
    restaurant_ids.discard(None)
    for restaurant_id in sorted(restaurant_ids):
        transaction.on_commit(
            lambda restaurant_id=restaurant_id: invalidate_or_schedule_retry(
                tenant_id, restaurant_id, include_calculations=True,
            )
        )
