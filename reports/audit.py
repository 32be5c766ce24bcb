from __future__ import annotations

import json
import logging
from typing import Optional

from django.core.serializers.json import DjangoJSONEncoder
from django.db import DatabaseError

from core.middleware.request_id import get_request_id

from .models import AuditLog

logger = logging.getLogger(__name__)


class AuditTrail:
    """Fire-and-forget audit writer; a failed write is logged, never raised."""

    encoder = DjangoJSONEncoder

    def record(self, tenant_id, actor_id, action: str, details: Optional[dict] = None, severity: str = 'LOW') -> Optional[AuditLog]:
        try:
            return AuditLog.objects.create(
                tenant_id=tenant_id,
                actor_id=actor_id,
                action=action,
                severity=severity,
                details=self._jsonable(details or {}),
                request_id=get_request_id() or "",
            )
        except DatabaseError as e:
            logger.error("Audit write failed for %s by %s: %s", action, actor_id, e)
            return None

    def _jsonable(self, details: dict) -> dict:
        # Decimals and datetimes are stored as strings
        return json.loads(json.dumps(details, cls=self.encoder))
