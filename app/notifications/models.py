"""
Notification system models.

This module defines the persistent state of the notification engine:
- Notification: One notification for one receiver (aggregate root)
- NotificationSending: One delivery attempt record per (notification, way,
  destination)
- NotificationSetting: Per-receiver (or per receiver type) delivery
  preferences consulted by the channels

Design Decisions:
    - Receiver, sender, notifiable and linked entities are GenericForeignKeys
      so any model can send, receive or be the subject of a notification
    - Object ids are stored as strings (supports UUID and integer PKs)
    - Dispatch state is a django-fsm field; read state is read_at alone
    - NotificationSending is unique per destination so at-least-once
      dispatch leaves exactly one row per socket token

Usage:
    from notifications.services import NotificationService

    result = NotificationService.create_notification(
        receiver=user,
        notifiable=order,
        code="shipped",
    )
    notification = result.data
"""

from __future__ import annotations

from datetime import timedelta

from django.contrib.contenttypes.fields import GenericForeignKey
from django.contrib.contenttypes.models import ContentType
from django.db import models
from django.utils import timezone
from django_fsm import FSMField, transition

from core.models import BaseModel
from notifications.conf import notification_settings

# =============================================================================
# Enums
# =============================================================================


class NotificationState(models.TextChoices):
    """
    Dispatch lifecycle of a notification.

    State Flow:
        CREATED -> DISPATCHING -> DISPATCHED
        CREATED -> DEFERRED -> DISPATCHING (at sending_at)
        DEFERRED -> CANCELLED
        DISPATCHING -> CREATED (transient failure, retried)
        DISPATCHING -> DISPATCHING (lease expired, run reclaimed)
        any pending state -> FAILED (scheduling error or retries exhausted)
    """

    CREATED = "created", "Created"
    DEFERRED = "deferred", "Deferred"
    DISPATCHING = "dispatching", "Dispatching"
    DISPATCHED = "dispatched", "Dispatched"
    FAILED = "failed", "Failed"
    CANCELLED = "cancelled", "Cancelled"


class SendingWay(models.TextChoices):
    """Delivery ways recorded in NotificationSending."""

    EMAIL = "email", "Email"
    WEBSOCKET = "websocket", "WebSocket"
    PUSH = "push", "Push Notification"


# =============================================================================
# QuerySets
# =============================================================================


class NotificationQuerySet(models.QuerySet):
    """QuerySet for Notification."""

    def for_receiver(self, receiver) -> NotificationQuerySet:
        content_type = ContentType.objects.get_for_model(receiver)
        return self.filter(
            receiver_content_type=content_type,
            receiver_id=str(receiver.pk),
        )

    def unread(self) -> NotificationQuerySet:
        return self.filter(read_at__isnull=True)

    def read(self) -> NotificationQuerySet:
        return self.filter(read_at__isnull=False)

    def stalled(self) -> NotificationQuerySet:
        """Rows stuck in DISPATCHING past the dispatch lease."""
        cutoff = timezone.now() - timedelta(seconds=notification_settings.DISPATCH_LEASE_SECONDS)
        return self.filter(state=NotificationState.DISPATCHING).filter(
            models.Q(dispatch_started_at__lte=cutoff) | models.Q(dispatch_started_at__isnull=True)
        )


# =============================================================================
# Models
# =============================================================================


def _not_running(notification) -> bool:
    return notification.state != NotificationState.DISPATCHING or notification.is_stalled


class Notification(BaseModel):
    """
    A notification addressed to one receiver.

    Fields:
        receiver: Entity receiving the notification (required)
        sender: Entity that caused it (optional)
        notifiable: Subject of the notification, e.g. an order (optional)
        linked: Entity the notification links to (optional)
        code: Event code within the notifiable type (e.g. "shipped")
        title/body/link: Stored overrides; blank means derived on read
        cc_emails: Literal extra cc addresses for the email channel
        official: Counts toward the "official" unread counter
        verbose: Include a snapshot of the notifiable when serialized
        read_at: When the receiver read it (null = unread)
        sent_at: First dispatch run that delivered on some channel
            (never overwritten)
        sending_at: Deferred delivery time (null = immediately)
        state: Dispatch lifecycle state (FSM)
        dispatch_started_at: Start of the latest dispatch run; a run older
            than NOTIFICATIONS["DISPATCH_LEASE_SECONDS"] can be reclaimed
        scheduled_task_id: Celery task id of a deferred dispatch
        failure_reason: Last dispatch or scheduling error
        dispatch_attempts: Number of dispatch runs

    Note:
        Rows are ordered newest first by id. Read-state changes must go
        through NotificationService so the unread counters follow.
    """

    receiver_content_type = models.ForeignKey(
        ContentType,
        on_delete=models.CASCADE,
        related_name="+",
        help_text="Content type of the receiver",
    )
    receiver_id = models.CharField(
        max_length=64,
        help_text="ID of the receiver (supports UUID and integer PKs)",
    )
    receiver = GenericForeignKey("receiver_content_type", "receiver_id")

    sender_content_type = models.ForeignKey(
        ContentType,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        help_text="Content type of the sender",
    )
    sender_id = models.CharField(
        max_length=64,
        null=True,
        blank=True,
        help_text="ID of the sender",
    )
    sender = GenericForeignKey("sender_content_type", "sender_id")

    notifiable_content_type = models.ForeignKey(
        ContentType,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        help_text="Content type of the notifiable entity",
    )
    notifiable_id = models.CharField(
        max_length=64,
        null=True,
        blank=True,
        help_text="ID of the notifiable entity",
    )
    notifiable = GenericForeignKey("notifiable_content_type", "notifiable_id")

    linked_content_type = models.ForeignKey(
        ContentType,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        help_text="Content type of the linked entity",
    )
    linked_id = models.CharField(
        max_length=64,
        null=True,
        blank=True,
        help_text="ID of the linked entity",
    )
    linked = GenericForeignKey("linked_content_type", "linked_id")

    code = models.CharField(
        max_length=100,
        default="default",
        help_text="Event code within the notifiable type",
    )
    title = models.CharField(
        max_length=500,
        blank=True,
        default="",
        help_text="Stored title (blank = derived from translations)",
    )
    body = models.TextField(
        blank=True,
        default="",
        help_text="Stored body (blank = derived from translations)",
    )
    link = models.CharField(
        max_length=2048,
        blank=True,
        default="",
        help_text="Stored link (blank = derived from linked entity)",
    )
    cc_emails = models.JSONField(
        default=list,
        blank=True,
        help_text="Extra cc addresses for the email channel",
    )
    official = models.BooleanField(
        default=False,
        db_index=True,
        help_text="Official notifications have their own unread counter",
    )
    verbose = models.BooleanField(
        default=False,
        help_text="Expose a snapshot of the notifiable when serialized",
    )

    read_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the receiver read this notification",
    )
    sent_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When dispatch first delivered on a channel",
    )
    sending_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Deferred delivery time (null = immediately)",
    )

    state = FSMField(
        default=NotificationState.CREATED,
        choices=NotificationState.choices,
        db_index=True,
        help_text="Dispatch state (managed by FSM)",
    )
    scheduled_task_id = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Celery task id of the deferred dispatch",
    )
    failure_reason = models.TextField(
        blank=True,
        default="",
        help_text="Last dispatch or scheduling error",
    )
    dispatch_attempts = models.PositiveIntegerField(
        default=0,
        help_text="Number of dispatch runs",
    )
    dispatch_started_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the latest dispatch run started",
    )

    objects = NotificationQuerySet.as_manager()

    class Meta:
        db_table = "notifications_notification"
        ordering = ["-id"]
        indexes = [
            models.Index(
                fields=["receiver_content_type", "receiver_id", "read_at"],
                name="notif_receiver_read_idx",
            ),
            models.Index(
                fields=["notifiable_content_type", "notifiable_id"],
                name="notif_notifiable_idx",
            ),
            models.Index(
                fields=["state", "sending_at"],
                name="notif_state_sending_idx",
            ),
        ]

    def __str__(self) -> str:
        read_status = "read" if self.is_read else "unread"
        return (
            f"Notification({self.code}) -> "
            f"{self.receiver_content_type_id}:{self.receiver_id} [{read_status}]"
        )

    @property
    def is_read(self) -> bool:
        return self.read_at is not None

    @property
    def dispatch_lease_expired(self) -> bool:
        """True when the latest dispatch run is older than the lease."""
        if self.dispatch_started_at is None:
            return True
        lease = timedelta(seconds=notification_settings.DISPATCH_LEASE_SECONDS)
        return self.dispatch_started_at + lease <= timezone.now()

    @property
    def is_stalled(self) -> bool:
        """Stuck in DISPATCHING after its run was lost (e.g. a worker crash)."""
        return self.state == NotificationState.DISPATCHING and self.dispatch_lease_expired

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=state,
        source=NotificationState.CREATED,
        target=NotificationState.DEFERRED,
    )
    def defer(self, task_id: str = ""):
        """Wait for sending_at; task_id is the scheduled Celery task."""
        self.scheduled_task_id = task_id or ""

    @transition(
        field=state,
        source=[
            NotificationState.CREATED,
            NotificationState.DEFERRED,
            NotificationState.DISPATCHING,
        ],
        target=NotificationState.DISPATCHING,
        conditions=[_not_running],
    )
    def start_dispatch(self):
        """Begin a run; a DISPATCHING row is only taken over once stalled."""
        self.dispatch_attempts += 1
        self.dispatch_started_at = timezone.now()

    @transition(
        field=state,
        source=NotificationState.DISPATCHING,
        target=NotificationState.DISPATCHED,
    )
    def complete_dispatch(self, delivered: bool = True):
        """
        Dispatch finished.

        sent_at is stamped by the first run that delivered on at least
        one channel; a run where every channel skipped or failed leaves
        it untouched.
        """
        if delivered and self.sent_at is None:
            self.sent_at = timezone.now()
        self.failure_reason = ""

    @transition(
        field=state,
        source=NotificationState.DISPATCHING,
        target=NotificationState.CREATED,
    )
    def requeue(self, reason: str = ""):
        """Return to CREATED after a retryable failure."""
        self.failure_reason = reason

    @transition(
        field=state,
        source=[
            NotificationState.CREATED,
            NotificationState.DEFERRED,
            NotificationState.DISPATCHING,
        ],
        target=NotificationState.FAILED,
    )
    def fail(self, reason: str = ""):
        self.failure_reason = reason

    @transition(
        field=state,
        source=NotificationState.DEFERRED,
        target=NotificationState.CANCELLED,
    )
    def cancel(self):
        """Withdraw a deferred notification before it is dispatched."""


class NotificationSending(BaseModel):
    """
    Record of one delivery attempt to one destination.

    Fields:
        notification: The notification being delivered
        way: Delivery way (email, websocket, push)
        sent_to: Destination (socket token, push token, address)
        sent_result: Transport result or error text
        sent_at: When the attempt was made

    Note:
        (notification, way, sent_to) is unique; channels use update_or_create
        so a repeated dispatch does not duplicate rows.
    """

    notification = models.ForeignKey(
        Notification,
        on_delete=models.CASCADE,
        related_name="sendings",
    )
    way = models.CharField(
        max_length=20,
        choices=SendingWay.choices,
        help_text="Delivery way",
    )
    sent_to = models.CharField(
        max_length=255,
        help_text="Destination of this attempt",
    )
    sent_result = models.TextField(
        blank=True,
        default="",
        help_text="Transport result or error",
    )
    sent_at = models.DateTimeField(
        default=timezone.now,
        help_text="When the attempt was made",
    )

    class Meta:
        db_table = "notifications_notification_sending"
        verbose_name = "notification sending"
        verbose_name_plural = "notification sendings"
        ordering = ["-id"]
        constraints = [
            models.UniqueConstraint(
                fields=["notification", "way", "sent_to"],
                name="unique_notification_way_destination",
            ),
        ]

    def __str__(self) -> str:
        return f"Sending({self.notification_id}, {self.way}, {self.sent_to})"


class NotificationSetting(BaseModel):
    """
    Delivery preferences of a receiver.

    A row with receiver_id set applies to that receiver; a row with
    receiver_id null is the default for every receiver of that type.
    The exact receiver row wins over the type default.

    Fields:
        showtime: Clients should display the time of socket notifications
        accept_email: True/False choice, or null to use the global default
    """

    receiver_content_type = models.ForeignKey(
        ContentType,
        on_delete=models.CASCADE,
        related_name="+",
        help_text="Receiver type this setting applies to",
    )
    receiver_id = models.CharField(
        max_length=64,
        null=True,
        blank=True,
        help_text="Receiver id (null = default for the whole type)",
    )
    receiver = GenericForeignKey("receiver_content_type", "receiver_id")

    showtime = models.BooleanField(
        default=False,
        help_text="Display the time of realtime notifications",
    )
    accept_email = models.BooleanField(
        null=True,
        blank=True,
        default=None,
        help_text="Email preference (null = use global default)",
    )

    class Meta:
        db_table = "notifications_notification_setting"
        verbose_name = "notification setting"
        verbose_name_plural = "notification settings"
        constraints = [
            models.UniqueConstraint(
                fields=["receiver_content_type", "receiver_id"],
                name="unique_notification_setting_receiver",
            ),
            models.UniqueConstraint(
                fields=["receiver_content_type"],
                condition=models.Q(receiver_id__isnull=True),
                name="unique_notification_setting_type_default",
            ),
        ]

    def __str__(self) -> str:
        target = self.receiver_id or "*"
        return f"Setting({self.receiver_content_type_id}:{target})"
