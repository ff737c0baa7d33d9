"""
Delivery channels and the dispatch pipeline.

A channel delivers one notification one way and reports a DeliveryOutcome.
DeliveryPipeline runs its channels in order; each channel is isolated, so
an exception in one becomes a failed outcome and never reaches the others
or the caller. Resolving the shared DeliveryContext is isolated the same
way: when it raises, every channel reports a failed outcome.

NotificationSending rows are written one at a time after the transport
call, each in its own transaction, so a row recording a delivery that
already happened is never rolled back by a later error.

Channels:
    SocketChannel: Broadcast to every active socket token of the receiver,
        one NotificationSending(way=websocket) row per token
    EmailChannel: Enqueue send_notification_email when email is enabled;
        writes no NotificationSending row
    PushChannel: Send to the receiver's push token through PushGateway,
        one NotificationSending(way=push) row

Configuration:
    NOTIFICATIONS["CHANNELS"] lists channel class paths in order.
    NOTIFICATIONS["RECEIVER_CHANNELS"] overrides the list per receiver
    type: {"authentication.user": ["notifications.channels.SocketChannel"]}

Usage:
    pipeline = DeliveryPipeline.for_notification(notification)
    outcomes = pipeline.run(notification)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from django.utils import timezone
from django.utils.module_loading import import_string

from notifications import counters
from notifications.conf import notification_settings
from notifications.content import ContentResolver, ResolvedContent
from notifications.exceptions import TransportError
from notifications.models import NotificationSending, SendingWay
from notifications.preferences import NotificationSettingService
from notifications.registry import ReceiverAdapter, receiver_registry
from notifications.transports import PushGateway, RealtimeBroadcaster

if TYPE_CHECKING:
    from collections.abc import Iterable

    from django.db.models import Model

    from notifications.models import Notification

logger = logging.getLogger(__name__)


class DeliveryStatus(str, Enum):
    """Result of one channel attempt."""

    SENT = "sent"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class DeliveryOutcome:
    """
    What one channel did with one notification.

    Attributes:
        channel: Channel name
        status: sent, skipped or failed
        retryable: For failures, whether a later dispatch may succeed
        detail: Human-readable summary for logs and failure_reason
    """

    channel: str
    status: DeliveryStatus
    retryable: bool = False
    detail: str = ""

    @classmethod
    def sent(cls, channel: str, detail: str = "") -> DeliveryOutcome:
        return cls(channel=channel, status=DeliveryStatus.SENT, detail=detail)

    @classmethod
    def skipped(cls, channel: str, detail: str = "") -> DeliveryOutcome:
        return cls(channel=channel, status=DeliveryStatus.SKIPPED, detail=detail)

    @classmethod
    def failed(cls, channel: str, detail: str = "", retryable: bool = False) -> DeliveryOutcome:
        return cls(
            channel=channel,
            status=DeliveryStatus.FAILED,
            retryable=retryable,
            detail=detail,
        )

    @property
    def attempted(self) -> bool:
        return self.status != DeliveryStatus.SKIPPED

    def __str__(self) -> str:
        suffix = f" ({self.detail})" if self.detail else ""
        return f"{self.channel}:{self.status.value}{suffix}"


@dataclass(frozen=True)
class DeliveryContext:
    """Per-dispatch data shared by every channel."""

    content: ResolvedContent
    receiver: Model | None
    adapter: ReceiverAdapter
    unread_count: int
    showtime: bool | None

    @classmethod
    def build(cls, notification: Notification) -> DeliveryContext:
        receiver = notification.receiver
        unread = 0
        if receiver is not None:
            unread = counters.read(counters.key_for(receiver, counters.ALL))
        return cls(
            content=ContentResolver().resolve(notification),
            receiver=receiver,
            adapter=receiver_registry.adapter_for(receiver),
            unread_count=unread,
            showtime=NotificationSettingService.showtime_for(receiver),
        )


class DeliveryChannel:
    """Base class of delivery channels."""

    name: str = ""

    def attempt(self, notification: Notification, context: DeliveryContext) -> DeliveryOutcome:
        raise NotImplementedError

    def record(self, notification: Notification, way: str, sent_to: str, sent_result: str) -> None:
        """Upsert the attempt row for one destination."""
        NotificationSending.objects.update_or_create(
            notification=notification,
            way=way,
            sent_to=sent_to,
            defaults={"sent_result": sent_result, "sent_at": timezone.now()},
        )


class SocketChannel(DeliveryChannel):
    """Realtime delivery to each live socket token of the receiver."""

    name = SendingWay.WEBSOCKET.value

    def __init__(self, broadcaster: RealtimeBroadcaster | None = None):
        self.broadcaster = broadcaster or RealtimeBroadcaster()

    def payload(self, notification: Notification, context: DeliveryContext) -> dict[str, Any]:
        return {
            "id": notification.pk,
            "body": context.content.body,
            "count": context.unread_count,
            "link": context.content.link,
            "showtime": context.showtime,
        }

    def attempt(self, notification: Notification, context: DeliveryContext) -> DeliveryOutcome:
        if context.receiver is None:
            return DeliveryOutcome.skipped(self.name, "receiver not found")

        tokens = context.adapter.socket_tokens(context.receiver)
        if not tokens:
            return DeliveryOutcome.skipped(self.name, "no active socket tokens")

        payload = self.payload(notification, context)
        errors: list[TransportError] = []
        for token in tokens:
            try:
                self.broadcaster.broadcast(token, payload)
                sent_result = "ok"
            except TransportError as e:
                logger.warning(
                    f"Socket broadcast failed for notification {notification.pk}: {e}"
                )
                sent_result = str(e)
                errors.append(e)
            self.record(notification, SendingWay.WEBSOCKET, token, sent_result)

        delivered = len(tokens) - len(errors)
        if delivered:
            return DeliveryOutcome.sent(self.name, f"{delivered}/{len(tokens)} tokens")
        return DeliveryOutcome.failed(
            self.name,
            detail="; ".join(str(e) for e in errors),
            retryable=any(e.retryable for e in errors),
        )


class EmailChannel(DeliveryChannel):
    """
    Queues the notification email.

    The category's configured mailer is called with the notifiable id;
    otherwise the default mailer is called with the notification id.
    """

    name = SendingWay.EMAIL.value

    def mail_args(self, notification: Notification, context: DeliveryContext) -> list[Any]:
        config = context.content.config
        if config.mailer and notification.notifiable_id is not None:
            return [config.mailer, config.mailer_method, notification.notifiable_id]
        return [notification_settings.DEFAULT_MAILER, "notify", notification.pk]

    def attempt(self, notification: Notification, context: DeliveryContext) -> DeliveryOutcome:
        if context.receiver is None:
            return DeliveryOutcome.skipped(self.name, "receiver not found")
        if not NotificationSettingService.email_enabled(notification):
            return DeliveryOutcome.skipped(self.name, "email disabled")

        from notifications.tasks import send_notification_email

        args = self.mail_args(notification, context)
        try:
            if notification.sending_at:
                send_notification_email.apply_async(args=args, eta=notification.sending_at)
            else:
                send_notification_email.delay(*args)
        except Exception as e:
            raise TransportError(
                f"Could not enqueue notification email: {e}",
                error_code="EMAIL_ENQUEUE_FAILED",
            ) from e

        return DeliveryOutcome.sent(self.name, f"queued {args[0]}.{args[1]}")


class PushChannel(DeliveryChannel):
    """Single-target mobile push to the receiver's push token."""

    name = SendingWay.PUSH.value

    def __init__(self, gateway: PushGateway | None = None):
        self.gateway = gateway or PushGateway()

    def attempt(self, notification: Notification, context: DeliveryContext) -> DeliveryOutcome:
        if context.receiver is None:
            return DeliveryOutcome.skipped(self.name, "receiver not found")

        token = context.adapter.push_token(context.receiver)
        if not token:
            return DeliveryOutcome.skipped(self.name, "no push token")

        try:
            result = self.gateway.push_single(
                token,
                title=context.content.title,
                body=context.content.body,
                payload={"id": notification.pk, "link": context.content.link},
            )
            sent_result = str(result)
            outcome = DeliveryOutcome.sent(self.name, sent_result)
        except TransportError as e:
            logger.warning(f"Push failed for notification {notification.pk}: {e}")
            sent_result = str(e)
            outcome = DeliveryOutcome.failed(self.name, str(e), retryable=e.retryable)

        self.record(notification, SendingWay.PUSH, token, sent_result)
        return outcome


class DeliveryPipeline:
    """Ordered, independently isolated delivery channels."""

    def __init__(self, channels: Iterable[DeliveryChannel]):
        self.channels = list(channels)

    @classmethod
    def channel_paths(cls, receiver_type: str | None) -> list[str]:
        overrides = notification_settings.RECEIVER_CHANNELS or {}
        if receiver_type and receiver_type in overrides:
            return list(overrides[receiver_type])
        return list(notification_settings.CHANNELS)

    @classmethod
    def for_receiver_type(cls, receiver_type: str | None) -> DeliveryPipeline:
        return cls(import_string(path)() for path in cls.channel_paths(receiver_type))

    @classmethod
    def for_notification(cls, notification: Notification) -> DeliveryPipeline:
        model = notification.receiver_content_type.model_class()
        return cls.for_receiver_type(counters.receiver_label(model) if model is not None else None)

    @staticmethod
    def channel_name(channel: DeliveryChannel) -> str:
        return channel.name or type(channel).__name__

    def run(
        self,
        notification: Notification,
        context: DeliveryContext | None = None,
    ) -> list[DeliveryOutcome]:
        """Attempt every channel; never raises for channel or content errors."""
        if context is None:
            try:
                context = DeliveryContext.build(notification)
            except Exception as e:
                logger.exception(
                    f"Could not resolve delivery content for notification {notification.pk}"
                )
                detail = f"{type(e).__name__}: {e}"
                return [DeliveryOutcome.failed(self.channel_name(c), detail) for c in self.channels]

        outcomes: list[DeliveryOutcome] = []
        for channel in self.channels:
            name = self.channel_name(channel)
            try:
                outcome = channel.attempt(notification, context)
            except TransportError as e:
                logger.warning(f"Channel {name} failed for notification {notification.pk}: {e}")
                outcome = DeliveryOutcome.failed(name, str(e), retryable=e.retryable)
            except Exception as e:
                logger.exception(
                    f"Unexpected error in channel {name} for notification {notification.pk}"
                )
                outcome = DeliveryOutcome.failed(name, f"{type(e).__name__}: {e}")
            outcomes.append(outcome)
        logger.info(
            f"Dispatched notification {notification.pk}: "
            f"{', '.join(str(o) for o in outcomes) or 'no channels'}"
        )
        return outcomes
