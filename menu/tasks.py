from __future__ import annotations

import logging

from celery import shared_task

from core.results import UpstreamTimeout

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    autoretry_for=(UpstreamTimeout,),
    retry_backoff=True,
    retry_kwargs={"max_retries": 3},
)
def retry_namespace_invalidation(self, tenant_id: int, restaurant_id: int, include_calculations: bool = False):
    """Re-run a prefix invalidation that failed on the write path."""
    from .invalidation import invalidate_restaurant_namespace

    removed = invalidate_restaurant_namespace(tenant_id, restaurant_id, include_calculations)
    logger.info(
        "Retried cache invalidation for tenant=%s restaurant=%s (attempt %s, %s keys)",
        tenant_id, restaurant_id, self.request.retries + 1, removed,
    )
    return removed
