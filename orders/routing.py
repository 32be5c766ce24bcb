from django.urls import path

from .consumers import OrdersConsumer

websocket_urlpatterns = [
    path("ws/orders/<int:restaurant_id>/", OrdersConsumer.as_asgi()),
]
