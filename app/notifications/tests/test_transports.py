"""
Unit tests for the push gateway and the realtime broadcaster.

PushGateway requests are served by httpx.MockTransport.
"""

import json

import httpx
import pytest

from notifications.exceptions import TransportError
from notifications.transports import PushGateway, RealtimeBroadcaster, token_group_name


def gateway_returning(handler, **kwargs):
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return PushGateway(endpoint="https://push.test/send", server_key="key-1", client=client, **kwargs)


def push(gateway):
    return gateway.push_single("device-1", title="Hi", body="Body", payload={"id": 7})


class TestPushGateway:
    """Tests for PushGateway.push_single()."""

    def test_sends_message(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={"success": 1, "results": [{"message_id": "m-1"}]})

        result = push(gateway_returning(handler))

        assert str(result) == "message_id=m-1"
        request = requests[0]
        assert request.headers["Authorization"] == "key=key-1"
        assert json.loads(request.content) == {
            "to": "device-1",
            "notification": {"title": "Hi", "body": "Body"},
            "data": {"id": 7},
        }

    def test_rejected_target_is_permanent(self):
        gateway = gateway_returning(
            lambda request: httpx.Response(
                200, json={"success": 0, "failure": 1, "results": [{"error": "NotRegistered"}]}
            )
        )

        with pytest.raises(TransportError) as exc_info:
            push(gateway)

        assert exc_info.value.retryable is False
        assert exc_info.value.error_code == "PUSH_REJECTED"

    def test_unavailable_target_is_retryable(self):
        gateway = gateway_returning(
            lambda request: httpx.Response(200, json={"success": 0, "results": [{"error": "Unavailable"}]})
        )

        with pytest.raises(TransportError) as exc_info:
            push(gateway)

        assert exc_info.value.retryable is True

    @pytest.mark.parametrize(
        "status_code,retryable",
        [(503, True), (429, True), (401, False)],
    )
    def test_http_errors(self, status_code, retryable):
        gateway = gateway_returning(lambda request: httpx.Response(status_code))

        with pytest.raises(TransportError) as exc_info:
            push(gateway)

        assert exc_info.value.retryable is retryable

    def test_connection_error_is_retryable(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(TransportError) as exc_info:
            push(gateway_returning(handler))

        assert exc_info.value.retryable is True

    def test_missing_server_key(self, notifications_settings):
        notifications_settings(PUSH_SERVER_KEY="")

        with pytest.raises(TransportError) as exc_info:
            push(PushGateway())

        assert exc_info.value.error_code == "PUSH_NOT_CONFIGURED"
        assert exc_info.value.retryable is False


class TestRealtimeBroadcaster:
    """Tests for RealtimeBroadcaster."""

    def test_group_name(self):
        assert token_group_name("abc-1") == "notifications.token.abc-1"

    def test_sends_notification_event(self, mocker):
        layer = mocker.Mock()
        layer.group_send = mocker.AsyncMock()

        RealtimeBroadcaster(channel_layer=layer).broadcast("abc-1", {"id": 1})

        layer.group_send.assert_awaited_once_with(
            "notifications.token.abc-1",
            {"type": "notification.message", "payload": {"id": 1}},
        )

    def test_layer_failure_raises_transport_error(self, mocker):
        layer = mocker.Mock()
        layer.group_send = mocker.AsyncMock(side_effect=RuntimeError("down"))

        with pytest.raises(TransportError) as exc_info:
            RealtimeBroadcaster(channel_layer=layer).broadcast("abc-1", {"id": 1})

        assert exc_info.value.error_code == "BROADCAST_FAILED"
