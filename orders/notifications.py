from __future__ import annotations

import logging

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer

logger = logging.getLogger(__name__)


def restaurant_group(restaurant_id) -> str:
    return f"orders_{restaurant_id}"


class ChannelsOrderNotifier:
    """
    Pushes order events to the restaurant's live feed over the channel layer.
    Events carry ids and status only; clients re-fetch details over REST.
    """

    def __init__(self, layer=None):
        self._layer = layer

    @property
    def layer(self):
        return self._layer or get_channel_layer()

    def _send(self, restaurant_id, event: dict) -> None:
        try:
            layer = self.layer
            if layer is None:
                logger.debug("No channel layer configured; dropping %s", event.get("event"))
                return
            async_to_sync(layer.group_send)(
                restaurant_group(restaurant_id),
                {"type": "order_event", "data": event},
            )
        except Exception as e:
            logger.warning("Live feed notification %s failed: %s", event.get("event"), e)

    def notify_new_order(self, restaurant_id, order) -> None:
        self._send(restaurant_id, {
            "event": "order_created",
            "order_id": order.pk,
            "order_number": order.order_number,
            "status": order.status,
            "total_amount": str(order.total_amount),
            "scheduled_for": order.scheduled_for.isoformat() if order.scheduled_for else None,
            "created_at": order.created_at.isoformat(),
        })

    def notify_status_change(self, order_id, status, actor_id, restaurant_id=None) -> None:
        self._send(restaurant_id, {
            "event": "order_status_changed",
            "order_id": order_id,
            "status": status,
            "actor_id": actor_id,
        })
