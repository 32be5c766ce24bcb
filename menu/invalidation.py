from __future__ import annotations

import logging

from core.cache_config import INVALIDATION_PATTERNS
from core.cache_service import get_cache_client
from core.results import UpstreamTimeout

logger = logging.getLogger(__name__)


def namespace_patterns(tenant_id, restaurant_id, include_calculations: bool = False) -> list[str]:
    patterns = [INVALIDATION_PATTERNS['MENU'].format(tenant=tenant_id, restaurant=restaurant_id)]
    if include_calculations:
        patterns.append(
            INVALIDATION_PATTERNS['CART_CALCULATION'].format(tenant=tenant_id, restaurant=restaurant_id)
        )
    return patterns


def invalidate_restaurant_namespace(tenant_id, restaurant_id, include_calculations: bool = False, cache=None) -> int:
    """
    Drop every cached read model under a restaurant's namespace.

    Raises ``UpstreamTimeout`` when the cache cannot be reached; use
    ``invalidate_or_schedule_retry`` from write paths.
    """
    cache = cache or get_cache_client()
    removed = 0
    for pattern in namespace_patterns(tenant_id, restaurant_id, include_calculations):
        removed += cache.invalidate_pattern(pattern)
    logger.debug("Invalidated %s cache keys for tenant=%s restaurant=%s", removed, tenant_id, restaurant_id)
    return removed


def invalidate_or_schedule_retry(tenant_id, restaurant_id, include_calculations: bool = False, cache=None) -> bool:
    """Invalidate now; on failure log and queue a background retry. Never raises."""
    try:
        invalidate_restaurant_namespace(tenant_id, restaurant_id, include_calculations, cache=cache)
        return True
    except UpstreamTimeout:
        logger.warning(
            "Cache invalidation missed for tenant=%s restaurant=%s; scheduling retry",
            tenant_id, restaurant_id,
        )
    from .tasks import retry_namespace_invalidation
    try:
        retry_namespace_invalidation.delay(tenant_id, restaurant_id, include_calculations)
    except Exception:
        logger.exception("Could not enqueue cache invalidation retry for restaurant %s", restaurant_id)
    return False
