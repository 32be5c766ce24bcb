from __future__ import annotations

import fnmatch
import hashlib
import json
import logging
from typing import Any, Optional

from django.core.cache import caches
from django.core.serializers.json import DjangoJSONEncoder

from .cache_config import CACHE_TIMEOUTS
from .results import UpstreamTimeout

logger = logging.getLogger(__name__)


def content_etag(payload: Any) -> str:
    """Quoted ETag for a JSON-serialisable body."""
    body = json.dumps(payload, sort_keys=True, cls=DjangoJSONEncoder)
    return '"%s"' % hashlib.md5(body.encode()).hexdigest()


class DjangoCacheClient:
    """
    Cache client over a Django cache alias.

    Components receive an instance instead of importing a module-level cache,
    so tests can pass an in-memory fake with the same four methods. Backend
    failures are raised as ``UpstreamTimeout``; callers decide whether a cache
    outage is fatal for them.
    """

    def __init__(self, alias: str = "default", default_timeout: int = CACHE_TIMEOUTS['DEFAULT']):
        self.alias = alias
        self.default_timeout = default_timeout

    @property
    def _cache(self):
        return caches[self.alias]

    def get(self, key: str, default=None) -> Any:
        try:
            return self._cache.get(key, default)
        except Exception as e:
            logger.warning("Cache get failed for key %s: %s", key, e)
            raise UpstreamTimeout("Cache is unavailable") from e

    def set(self, key: str, value: Any, timeout: Optional[int] = None) -> None:
        try:
            self._cache.set(key, value, self.default_timeout if timeout is None else timeout)
        except Exception as e:
            logger.warning("Cache set failed for key %s: %s", key, e)
            raise UpstreamTimeout("Cache is unavailable") from e

    def delete(self, key: str) -> None:
        try:
            self._cache.delete(key)
        except Exception as e:
            logger.warning("Cache delete failed for key %s: %s", key, e)
            raise UpstreamTimeout("Cache is unavailable") from e

    def invalidate_pattern(self, pattern: str) -> int:
        """Delete every key matching a glob pattern; returns the number removed."""
        backend = self._cache
        try:
            delete_pattern = getattr(backend, "delete_pattern", None)
            if delete_pattern is not None:
                return int(delete_pattern(pattern) or 0)
            store = getattr(backend, "_cache", None)
            if not isinstance(store, dict):
                # Dummy and file backends cannot enumerate keys
                logger.debug("Pattern deletion not supported for cache alias %s: %s", self.alias, pattern)
                return 0
            prefix = backend.make_key("")
            keys = [raw[len(prefix):] for raw in list(store) if fnmatch.fnmatchcase(raw, prefix + pattern)]
            backend.delete_many(keys)
            return len(keys)
        except Exception as e:
            logger.warning("Cache pattern delete failed for pattern %s: %s", pattern, e)
            raise UpstreamTimeout("Cache is unavailable") from e


def get_cache_client(alias: str = "default") -> DjangoCacheClient:
    return DjangoCacheClient(alias)
