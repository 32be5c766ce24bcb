from __future__ import annotations

from channels.generic.websocket import AsyncJsonWebsocketConsumer

from .notifications import restaurant_group


class OrdersConsumer(AsyncJsonWebsocketConsumer):
    """
    Live order feed for one restaurant, staff only. No PII is broadcast;
    the frontend re-fetches details via REST on notifications.
    """

    async def connect(self):
        user = self.scope.get("user")
        if user is None or not user.is_authenticated or not user.is_staff:
            await self.close(code=4403)
            return
        self.group = restaurant_group(self.scope["url_route"]["kwargs"]["restaurant_id"])
        await self.channel_layer.group_add(self.group, self.channel_name)
        await self.accept()

    async def disconnect(self, close_code):
        group = getattr(self, "group", None)
        if group:
            await self.channel_layer.group_discard(group, self.channel_name)

    async def order_event(self, event):
        # event = {"type": "order_event", "data": {...}}
        await self.send_json(event.get("data", {}))
