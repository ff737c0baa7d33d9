"""
WebSocket consumer for realtime notifications.

Consumers:
    NotificationConsumer: Streams notification payloads to one authorized
        socket token

Authentication:
    Clients connect with an AuthorizedToken: ws/notifications/?token=<token>.
    Revoked and expired tokens are rejected.

Channel Groups:
    Each token has a group named by transports.token_group_name(token).
    RealtimeBroadcaster sends "notification.message" events to it, so every
    connection opened with the token receives them.

Message Types (to client):
    - notification: {"type": "notification", "notification": {id, body,
      count, link, showtime}}
    - pong: Reply to {"type": "ping"}
    - error: Error response
"""

from __future__ import annotations

import logging
from urllib.parse import parse_qs

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncJsonWebsocketConsumer

from authentication.models import AuthorizedToken
from notifications.transports import token_group_name

logger = logging.getLogger(__name__)


class NotificationConsumer(AsyncJsonWebsocketConsumer):
    """
    WebSocket consumer for notification delivery.

    Attributes:
        token: Socket token the connection authenticated with
        group_name: Channel layer group of the token
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.token: str | None = None
        self.group_name: str | None = None

    async def connect(self):
        """
        Handle WebSocket connection.

        Closes with 4001 when no token is given and 4003 when the token is
        unknown, revoked or expired.
        """
        query = parse_qs(self.scope.get("query_string", b"").decode())
        token = (query.get("token") or [""])[0]

        if not token:
            logger.warning("Rejected notification socket without token")
            await self.close(code=4001)
            return

        if not await self._is_token_active(token):
            logger.warning("Rejected notification socket with inactive token")
            await self.close(code=4003)
            return

        self.token = token
        self.group_name = token_group_name(token)
        await self.channel_layer.group_add(self.group_name, self.channel_name)
        await self.accept()
        logger.debug(f"Notification socket connected to {self.group_name}")

    async def disconnect(self, close_code):
        if self.group_name:
            await self.channel_layer.group_discard(self.group_name, self.channel_name)

    async def receive_json(self, content):
        if content.get("type") == "ping":
            await self.send_json({"type": "pong"})
            return
        await self.send_json(
            {
                "type": "error",
                "message": f"Unknown message type: {content.get('type')}",
            }
        )

    async def notification_message(self, event):
        """
        Handle notification.message events from channel layer.

        Sends the notification payload to the WebSocket client.
        """
        await self.send_json(
            {
                "type": "notification",
                "notification": event["payload"],
            }
        )

    @database_sync_to_async
    def _is_token_active(self, token: str) -> bool:
        return AuthorizedToken.objects.active().filter(token=token).exists()
