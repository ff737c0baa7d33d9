"""
Tests for the notification WebSocket consumer.

Each test drives the consumer through channels' WebsocketCommunicator
inside one coroutine run with async_to_sync.

Test Classes:
    TestConnect: Token authentication on connect
    TestMessages: ping/pong and broadcast delivery
"""

from datetime import timedelta

import pytest
from asgiref.sync import async_to_sync, sync_to_async
from channels.testing import WebsocketCommunicator
from django.utils import timezone

from authentication.tests.factories import AuthorizedTokenFactory
from notifications.consumers import NotificationConsumer
from notifications.transports import RealtimeBroadcaster

pytestmark = pytest.mark.django_db(transaction=True)


def communicator_for(token=None):
    path = "/ws/notifications/" if token is None else f"/ws/notifications/?token={token}"
    return WebsocketCommunicator(NotificationConsumer.as_asgi(), path)


def connect_result(token=None):
    async def _run():
        communicator = communicator_for(token)
        connected, code = await communicator.connect()
        if connected:
            await communicator.disconnect()
        return connected, code

    return async_to_sync(_run)()


class TestConnect:
    """Tests for connection authentication."""

    def test_missing_token_rejected(self):
        assert connect_result() == (False, 4001)

    def test_unknown_token_rejected(self):
        assert connect_result("no-such-token") == (False, 4003)

    def test_revoked_token_rejected(self, user):
        token = AuthorizedTokenFactory(user=user, revoked_at=timezone.now())

        assert connect_result(token.token) == (False, 4003)

    def test_expired_token_rejected(self, user):
        token = AuthorizedTokenFactory(user=user, expires_at=timezone.now() - timedelta(seconds=1))

        assert connect_result(token.token) == (False, 4003)

    def test_active_token_accepted(self, socket_token):
        connected, _ = connect_result(socket_token.token)

        assert connected is True


class TestMessages:
    """Tests for messages exchanged with a connected client."""

    def test_ping_pong(self, socket_token):
        async def _run():
            communicator = communicator_for(socket_token.token)
            await communicator.connect()
            await communicator.send_json_to({"type": "ping"})
            response = await communicator.receive_json_from(timeout=1)
            await communicator.disconnect()
            return response

        assert async_to_sync(_run)() == {"type": "pong"}

    def test_unknown_message_type(self, socket_token):
        async def _run():
            communicator = communicator_for(socket_token.token)
            await communicator.connect()
            await communicator.send_json_to({"type": "subscribe"})
            response = await communicator.receive_json_from(timeout=1)
            await communicator.disconnect()
            return response

        response = async_to_sync(_run)()

        assert response["type"] == "error"
        assert "subscribe" in response["message"]

    def test_broadcast_reaches_token_connection(self, socket_token):
        payload = {"id": 1, "body": "Hello", "count": 2, "link": "https://x.test/1", "showtime": None}

        async def _run():
            communicator = communicator_for(socket_token.token)
            await communicator.connect()
            await sync_to_async(RealtimeBroadcaster().broadcast)(socket_token.token, payload)
            response = await communicator.receive_json_from(timeout=1)
            await communicator.disconnect()
            return response

        assert async_to_sync(_run)() == {"type": "notification", "notification": payload}

    def test_broadcast_to_other_token_not_received(self, user, socket_token):
        other = AuthorizedTokenFactory(user=user)

        async def _run():
            communicator = communicator_for(socket_token.token)
            await communicator.connect()
            await sync_to_async(RealtimeBroadcaster().broadcast)(other.token, {"id": 1})
            nothing = await communicator.receive_nothing(timeout=0.2)
            await communicator.disconnect()
            return nothing

        assert async_to_sync(_run)() is True
