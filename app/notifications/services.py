"""
Notification service layer.

This module provides the business logic of the notification engine,
encapsulating creation, dispatch and read-state management.

Services:
    NotificationService: Notification lifecycle, read state and queries

Design Principles:
    - Services are stateless (use class methods)
    - Expected failures return ServiceResult.failure()
    - Counters follow every read-state change when its transaction
      commits, in commit order; reconcile repairs drift
    - Dispatch runs in Celery and is idempotent under at-least-once delivery

Lifecycle:
    create_notification()
        -> transaction commits
        -> unread counters incremented (and reconciled if configured)
        -> dispatch task enqueued now, or deferred to sending_at
    dispatch()  (from notifications.tasks.dispatch_notification)
        -> row locked, state guarded, channels run in order
        -> dispatched (sent_at stamped once a channel delivered), or
           requeued for retry when every attempt failed with a retryable
           error or the pipeline raised
    redispatch_stalled_notifications  (Celery beat)
        -> re-enqueues rows whose dispatch run outlived its lease

Usage:
    from notifications.services import NotificationService

    result = NotificationService.create_notification(
        receiver=user,
        notifiable=order,
        code="shipped",
    )
    if result.success:
        notification = result.data

    NotificationService.mark_as_read(notification)
    NotificationService.unread_count_details(user)
    # {"all": 0, "shop.order": 0, "official": 0}
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING

from celery import current_app
from django.db import transaction
from django.utils import timezone

from core.services import BaseService, ServiceResult
from notifications import counters
from notifications.channels import DeliveryOutcome, DeliveryPipeline, DeliveryStatus
from notifications.conf import notification_settings
from notifications.exceptions import NotificationValidationError, SchedulingError
from notifications.models import Notification, NotificationState
from notifications.registry import category_label, notifiable_registry

if TYPE_CHECKING:
    from django.db.models import Model, QuerySet

DEFAULT_CODE = "default"

PENDING_STATES = (NotificationState.CREATED, NotificationState.DEFERRED)


@dataclass(frozen=True)
class DispatchReport:
    """
    What one dispatch run did.

    Attributes:
        notification_id: Primary key of the notification
        action: One of the DispatchReport action constants
        outcomes: Channel outcomes (empty unless channels ran)
        detail: Reason for skips, retries and failures
    """

    DISPATCHED = "dispatched"
    RETRY = "retry"
    REDEFERRED = "redeferred"
    SKIPPED = "skipped"
    MISSING = "missing"

    notification_id: int
    action: str
    outcomes: tuple[DeliveryOutcome, ...] = field(default_factory=tuple)
    detail: str = ""

    @property
    def should_retry(self) -> bool:
        return self.action == self.RETRY


class NotificationService(BaseService):
    """
    Service for notification operations.

    Methods:
        create_notification: Validate, persist and schedule a notification
        schedule: Enqueue dispatch now or at sending_at
        dispatch: Run the delivery pipeline for one notification
        fail_dispatch: Give up on a notification after retries
        cancel_scheduled: Cancel a deferred notification
        mark_as_read / mark_as_unread: Idempotent read-state changes
        mark_all_as_read: Bulk read for one receiver
        unread_count_details / list_unread / list_read: Queries
        reconcile: Rebuild a receiver's counters from the database
    """

    # =========================================================================
    # Creation
    # =========================================================================

    @classmethod
    def create_notification(
        cls,
        receiver: Model,
        notifiable: Model | None = None,
        code: str = DEFAULT_CODE,
        *,
        sender: Model | None = None,
        linked: Model | None = None,
        official: bool = False,
        verbose: bool = False,
        sending_at: datetime | None = None,
        title: str = "",
        body: str = "",
        link: str = "",
        cc_emails: list[str] | None = None,
    ) -> ServiceResult[Notification]:
        """
        Create a notification for a receiver.

        Nothing is persisted when validation fails. After the surrounding
        transaction commits the unread counters are incremented, reconciled
        when NOTIFICATIONS["RECONCILE_ON_CREATE"] is set, and dispatch is
        scheduled.

        Args:
            receiver: Entity receiving the notification (required, saved)
            notifiable: Subject entity (e.g. an order)
            code: Event code; must be registered for registered notifiable
                types ("default" is always accepted)
            sender: Entity that caused the notification
            linked: Entity used for the derived link
            official: Count toward the official unread counter
            verbose: Expose a notifiable snapshot when serialized
            sending_at: Deliver at this time instead of immediately
            title/body/link: Stored overrides of the derived content
            cc_emails: Extra cc addresses for the email channel

        Returns:
            ServiceResult with the created Notification

        Error codes:
            RECEIVER_REQUIRED: No receiver, or receiver not saved
            INVALID_CODE: Blank code
            UNKNOWN_CODE: Code not registered for the notifiable type
            INVALID_CC_EMAILS: cc_emails is not a list of strings
        """
        try:
            cls._validate(receiver, notifiable, code, cc_emails)
        except NotificationValidationError as e:
            cls.get_logger().warning(f"Rejected notification: {e}")
            return ServiceResult.from_exception(e)

        notification = Notification(
            receiver=receiver,
            notifiable=notifiable,
            sender=sender,
            linked=linked,
            code=code,
            official=official,
            verbose=verbose,
            sending_at=sending_at,
            title=title or "",
            body=body or "",
            link=link or "",
            cc_emails=list(cc_emails or []),
        )
        with cls.atomic():
            notification.save()
            transaction.on_commit(lambda: cls._after_create(notification))

        cls.get_logger().info(
            f"Created notification {notification.pk} ({code}) for "
            f"{notification.receiver_content_type.app_label}."
            f"{notification.receiver_content_type.model}:{notification.receiver_id}"
        )
        return ServiceResult.success(notification)

    @classmethod
    def _validate(
        cls,
        receiver: Model | None,
        notifiable: Model | None,
        code: str,
        cc_emails: list[str] | None,
    ) -> None:
        if receiver is None or receiver.pk is None:
            raise NotificationValidationError(
                "A saved receiver is required",
                error_code="RECEIVER_REQUIRED",
                details={"receiver": ["This field is required."]},
            )
        if not code:
            raise NotificationValidationError(
                "Notification code must not be blank",
                error_code="INVALID_CODE",
                details={"code": ["This field may not be blank."]},
            )
        if (
            notifiable is not None
            and code != DEFAULT_CODE
            and notifiable_registry.is_registered(notifiable)
            and not notifiable_registry.is_known_code(notifiable, code)
        ):
            label = category_label(notifiable)
            raise NotificationValidationError(
                f"Unknown notification code {code!r} for {label}",
                error_code="UNKNOWN_CODE",
                details={"code": [f"Expected one of: {', '.join(notifiable_registry.codes(notifiable))}"]},
            )
        if cc_emails is not None and (
            not isinstance(cc_emails, (list, tuple))
            or not all(isinstance(email, str) for email in cc_emails)
        ):
            raise NotificationValidationError(
                "cc_emails must be a list of email addresses",
                error_code="INVALID_CC_EMAILS",
                details={"cc_emails": ["Expected a list of strings."]},
            )

    @classmethod
    def _after_create(cls, notification: Notification) -> None:
        counters.increment_for(notification)
        if notification_settings.RECONCILE_ON_CREATE:
            receiver = notification.receiver
            if receiver is not None:
                counters.reconcile(receiver)
        cls.schedule(notification)

    # =========================================================================
    # Scheduling and dispatch
    # =========================================================================

    @classmethod
    def schedule(cls, notification: Notification) -> None:
        """
        Enqueue dispatch of a created notification.

        A future sending_at enqueues with an ETA and moves the notification
        to DEFERRED with the task id stored; otherwise dispatch is enqueued
        immediately. An enqueue failure marks the notification FAILED.
        """
        from notifications import tasks

        try:
            if notification.sending_at and notification.sending_at > timezone.now():
                async_result = tasks.dispatch_notification.apply_async(
                    args=[notification.pk],
                    eta=notification.sending_at,
                )
                notification.defer(task_id=async_result.id or "")
                notification.save(update_fields=["state", "scheduled_task_id", "updated_at"])
                cls.get_logger().info(
                    f"Deferred notification {notification.pk} until "
                    f"{notification.sending_at.isoformat()}"
                )
            else:
                tasks.dispatch_notification.delay(notification.pk)
        except Exception as e:
            error = SchedulingError(
                f"Could not schedule notification {notification.pk}: {e}",
                details={"notification_id": notification.pk},
            )
            cls.get_logger().exception(str(error))
            Notification.objects.filter(pk=notification.pk).update(
                state=NotificationState.FAILED,
                failure_reason=str(error),
                updated_at=timezone.now(),
            )
            notification.refresh_from_db(fields=["state", "failure_reason"])

    @classmethod
    def dispatch(cls, notification_id: int) -> DispatchReport:
        """
        Run the delivery pipeline for one notification.

        Safe to call more than once: only CREATED and DEFERRED rows are
        picked up, under a row lock. A row whose sending_at is still in the
        future is re-deferred instead of delivered. A row left in
        DISPATCHING by a lost run is taken over once its lease expires.
        The row never stays DISPATCHING when the pipeline raises: it is
        requeued for retry.

        Returns:
            DispatchReport; `should_retry` is True when every attempted
            channel failed and at least one failure was retryable, or when
            the pipeline itself raised
        """
        from notifications import tasks

        with cls.atomic():
            notification = (
                Notification.objects.select_for_update()
                .filter(pk=notification_id)
                .first()
            )
            if notification is None:
                cls.get_logger().warning(f"Notification {notification_id} not found for dispatch")
                return DispatchReport(notification_id, DispatchReport.MISSING)

            if notification.is_stalled:
                cls.get_logger().warning(
                    f"Reclaiming notification {notification_id} stalled in dispatching "
                    f"since {notification.dispatch_started_at}"
                )
            elif notification.state not in PENDING_STATES:
                cls.get_logger().info(
                    f"Skipping dispatch of notification {notification_id} in state {notification.state}"
                )
                return DispatchReport(
                    notification_id,
                    DispatchReport.SKIPPED,
                    detail=f"state {notification.state}",
                )
            elif notification.sending_at and notification.sending_at > timezone.now():
                async_result = tasks.dispatch_notification.apply_async(
                    args=[notification.pk],
                    eta=notification.sending_at,
                )
                if notification.state == NotificationState.CREATED:
                    notification.defer(task_id=async_result.id or "")
                else:
                    notification.scheduled_task_id = async_result.id or ""
                notification.save(update_fields=["state", "scheduled_task_id", "updated_at"])
                return DispatchReport(
                    notification_id,
                    DispatchReport.REDEFERRED,
                    detail=f"sending_at {notification.sending_at.isoformat()}",
                )

            notification.start_dispatch()
            notification.save(
                update_fields=["state", "dispatch_attempts", "dispatch_started_at", "updated_at"]
            )

        try:
            outcomes = DeliveryPipeline.for_notification(notification).run(notification)
        except Exception as e:
            reason = f"{type(e).__name__}: {e}"
            cls.get_logger().exception(f"Dispatch of notification {notification_id} aborted, will retry")
            with cls.atomic():
                notification.requeue(reason=reason)
                notification.save(update_fields=["state", "failure_reason", "updated_at"])
            return DispatchReport(notification_id, DispatchReport.RETRY, detail=reason)

        attempted = [o for o in outcomes if o.attempted]
        failed = [o for o in attempted if o.status == DeliveryStatus.FAILED]
        delivered = any(o.status == DeliveryStatus.SENT for o in outcomes)
        reason = "; ".join(str(o) for o in failed)

        with cls.atomic():
            if attempted and len(failed) == len(attempted) and any(o.retryable for o in failed):
                notification.requeue(reason=reason)
                notification.save(update_fields=["state", "failure_reason", "updated_at"])
                cls.get_logger().warning(
                    f"Every channel failed for notification {notification_id}, will retry: {reason}"
                )
                return DispatchReport(
                    notification_id,
                    DispatchReport.RETRY,
                    outcomes=tuple(outcomes),
                    detail=reason,
                )

            notification.complete_dispatch(delivered=delivered)
            if failed:
                notification.failure_reason = reason
            notification.save(update_fields=["state", "sent_at", "failure_reason", "updated_at"])

        return DispatchReport(
            notification_id,
            DispatchReport.DISPATCHED,
            outcomes=tuple(outcomes),
            detail=reason,
        )

    @classmethod
    def fail_dispatch(cls, notification_id: int, reason: str) -> bool:
        """Mark a pending notification FAILED. Returns False if it was not pending."""
        with cls.atomic():
            notification = (
                Notification.objects.select_for_update()
                .filter(pk=notification_id, state__in=PENDING_STATES)
                .first()
            )
            if notification is None:
                return False
            notification.fail(reason=reason)
            notification.save(update_fields=["state", "failure_reason", "updated_at"])

        cls.get_logger().error(f"Notification {notification_id} failed: {reason}")
        return True

    @classmethod
    def cancel_scheduled(cls, notification: Notification) -> ServiceResult[Notification]:
        """
        Cancel a deferred notification and revoke its Celery task.

        A dispatch that is already running is not interrupted; only
        DEFERRED notifications can be cancelled.

        Error codes:
            NOT_DEFERRED: Notification is not waiting for sending_at
        """
        with cls.atomic():
            locked = Notification.objects.select_for_update().get(pk=notification.pk)
            if locked.state != NotificationState.DEFERRED:
                return ServiceResult.failure(
                    f"Notification {notification.pk} is not deferred (state {locked.state})",
                    error_code="NOT_DEFERRED",
                )
            task_id = locked.scheduled_task_id
            locked.cancel()
            locked.save(update_fields=["state", "updated_at"])

        if task_id:
            try:
                current_app.control.revoke(task_id)
            except Exception:
                # The dispatch task skips cancelled rows
                cls.get_logger().exception(f"Could not revoke task {task_id}")

        notification.refresh_from_db()
        cls.get_logger().info(f"Cancelled deferred notification {notification.pk}")
        return ServiceResult.success(notification)

    # =========================================================================
    # Read state
    # =========================================================================

    @classmethod
    def mark_as_read(cls, notification: Notification) -> ServiceResult[Notification]:
        """
        Mark a notification as read.

        Idempotent: the conditional update wins for exactly one caller and
        only that caller decrements the unread counters. The decrement runs
        when the surrounding transaction commits, after any on-commit
        increment of a notification created in the same transaction.
        """
        now = timezone.now()
        updated = Notification.objects.filter(
            pk=notification.pk,
            read_at__isnull=True,
        ).update(read_at=now, updated_at=now)

        if updated:
            notification.read_at = now
            transaction.on_commit(lambda: counters.decrement_for(notification))
            cls.get_logger().debug(f"Marked notification {notification.pk} as read")
        else:
            notification.refresh_from_db(fields=["read_at"])

        return ServiceResult.success(notification)

    @classmethod
    def mark_as_unread(cls, notification: Notification) -> ServiceResult[Notification]:
        """Mark a notification as unread. Idempotent like mark_as_read."""
        updated = Notification.objects.filter(
            pk=notification.pk,
            read_at__isnull=False,
        ).update(read_at=None, updated_at=timezone.now())

        if updated:
            notification.read_at = None
            transaction.on_commit(lambda: counters.increment_for(notification))
            cls.get_logger().debug(f"Marked notification {notification.pk} as unread")
        else:
            notification.refresh_from_db(fields=["read_at"])

        return ServiceResult.success(notification)

    @classmethod
    def mark_all_as_read(cls, receiver: Model) -> ServiceResult[int]:
        """
        Mark every unread notification of a receiver as read.

        Returns:
            ServiceResult with the number of notifications updated
        """
        now = timezone.now()
        count = (
            Notification.objects.for_receiver(receiver)
            .unread()
            .update(read_at=now, updated_at=now)
        )
        transaction.on_commit(lambda: counters.reconcile(receiver))

        cls.get_logger().info(f"Marked {count} notifications as read for {counters.key_for(receiver, counters.ALL)}")
        return ServiceResult.success(count)

    # =========================================================================
    # Queries
    # =========================================================================

    @classmethod
    def unread_count_details(cls, receiver: Model) -> dict[str, int]:
        return counters.unread_count_details(receiver)

    @classmethod
    def list_unread(cls, receiver: Model) -> QuerySet[Notification]:
        return Notification.objects.for_receiver(receiver).unread().order_by("-id")

    @classmethod
    def list_read(cls, receiver: Model) -> QuerySet[Notification]:
        return Notification.objects.for_receiver(receiver).read().order_by("-id")

    @classmethod
    def reconcile(cls, receiver: Model) -> dict[str, int]:
        """Overwrite the receiver's counters with a database recount."""
        return counters.reconcile(receiver)
