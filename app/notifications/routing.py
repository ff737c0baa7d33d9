"""
WebSocket URL routing for notifications.

URL Patterns:
    ws/notifications/ - Notification stream for one socket token

Authentication:
    The AuthorizedToken is passed as query parameter: ?token=<token>
"""

from django.urls import path

from notifications import consumers

websocket_urlpatterns = [
    path(
        "ws/notifications/",
        consumers.NotificationConsumer.as_asgi(),
    ),
]
