"""
Transport adapters used by the delivery channels.

Transports:
    RealtimeBroadcaster: Sends a payload to one socket token's channel group
        through the Django Channels layer
    PushGateway: Sends a single-target push message through the FCM HTTP
        endpoint with httpx

Both raise TransportError on failure. `retryable` separates transient
errors (timeouts, connection errors, 5xx, 429) from permanent ones
(unregistered device token, missing configuration).

Usage:
    from notifications.transports import PushGateway, RealtimeBroadcaster

    RealtimeBroadcaster().broadcast(token, {"id": 1, "body": "...", "count": 3})
    PushGateway().push_single(device_token, title="...", body="...", payload={"id": 1})
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import httpx
from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer

from notifications.conf import notification_settings
from notifications.exceptions import TransportError

if TYPE_CHECKING:
    from channels.layers import BaseChannelLayer

logger = logging.getLogger(__name__)

# Consumer handler for broadcast events (NotificationConsumer.notification_message)
NOTIFICATION_EVENT_TYPE = "notification.message"

# FCM per-target errors that will not succeed on retry
PERMANENT_PUSH_ERRORS = frozenset(
    {
        "NotRegistered",
        "InvalidRegistration",
        "MismatchSenderId",
        "InvalidPackageName",
        "MessageTooBig",
        "InvalidDataKey",
    }
)


def token_group_name(token: str) -> str:
    """
    Channel group of one authorized token.

    Channels group names allow only ASCII alphanumerics, hyphens,
    underscores and periods.
    """
    return f"notifications.token.{token}"


class RealtimeBroadcaster:
    """Broadcasts notification payloads over the channel layer."""

    def __init__(self, channel_layer: BaseChannelLayer | None = None):
        self._channel_layer = channel_layer

    @property
    def channel_layer(self) -> BaseChannelLayer | None:
        return self._channel_layer or get_channel_layer()

    def broadcast(self, token: str, payload: dict[str, Any]) -> None:
        """
        Send `payload` to every connection subscribed with `token`.

        Raises:
            TransportError: No channel layer configured, or the layer failed
        """
        layer = self.channel_layer
        if layer is None:
            raise TransportError(
                "No channel layer configured",
                error_code="NO_CHANNEL_LAYER",
                retryable=False,
            )
        try:
            async_to_sync(layer.group_send)(
                token_group_name(token),
                {"type": NOTIFICATION_EVENT_TYPE, "payload": payload},
            )
        except Exception as e:
            raise TransportError(
                f"Channel layer broadcast failed: {e}",
                error_code="BROADCAST_FAILED",
            ) from e


@dataclass
class PushResult:
    """Outcome of an accepted push request."""

    message_id: str | None
    response: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return f"message_id={self.message_id}" if self.message_id else "accepted"


class PushGateway:
    """
    Single-target push over the FCM legacy HTTP endpoint.

    Endpoint, server key and timeout default to NOTIFICATIONS settings
    PUSH_ENDPOINT, PUSH_SERVER_KEY and PUSH_TIMEOUT_SECONDS.
    """

    def __init__(
        self,
        endpoint: str | None = None,
        server_key: str | None = None,
        timeout: float | None = None,
        client: httpx.Client | None = None,
    ):
        self.endpoint = endpoint or notification_settings.PUSH_ENDPOINT
        self.server_key = (
            server_key if server_key is not None else notification_settings.PUSH_SERVER_KEY
        )
        self.timeout = timeout or notification_settings.PUSH_TIMEOUT_SECONDS
        self._client = client

    def push_single(
        self,
        token: str,
        *,
        title: str,
        body: str,
        payload: dict[str, Any] | None = None,
    ) -> PushResult:
        """
        Send one push message to one device token.

        Raises:
            TransportError: Gateway not configured, request failed, or the
                gateway rejected the target
        """
        if not self.server_key:
            raise TransportError(
                "Push gateway server key is not configured",
                error_code="PUSH_NOT_CONFIGURED",
                retryable=False,
            )

        message = {
            "to": token,
            "notification": {"title": title, "body": body[:4096]},
            "data": payload or {},
        }
        headers = {
            "Authorization": f"key={self.server_key}",
            "Content-Type": "application/json",
        }

        try:
            response = self._post(message, headers)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            raise TransportError(
                f"Push gateway returned HTTP {status_code}",
                error_code="PUSH_HTTP_ERROR",
                details={"status_code": status_code},
                retryable=status_code >= 500 or status_code == 429,
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(
                f"Push gateway request failed: {e}",
                error_code="PUSH_REQUEST_FAILED",
            ) from e
        except ValueError as e:
            raise TransportError(
                "Push gateway returned invalid JSON",
                error_code="PUSH_BAD_RESPONSE",
            ) from e

        results = data.get("results") or [{}]
        if data.get("success", 0) > 0:
            return PushResult(message_id=results[0].get("message_id"), response=data)

        error = results[0].get("error") or "Unknown"
        raise TransportError(
            f"Push gateway rejected target: {error}",
            error_code="PUSH_REJECTED",
            details={"error": error},
            retryable=error not in PERMANENT_PUSH_ERRORS,
        )

    def _post(self, message: dict[str, Any], headers: dict[str, str]) -> httpx.Response:
        if self._client is not None:
            return self._client.post(self.endpoint, json=message, headers=headers)
        with httpx.Client(timeout=self.timeout) as client:
            return client.post(self.endpoint, json=message, headers=headers)
