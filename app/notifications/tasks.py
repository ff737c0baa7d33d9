"""
Celery tasks for notification dispatch.

Tasks:
    dispatch_notification: Run the delivery pipeline for one notification
    send_notification_email: Call a mailer method for one object id
    reconcile_unread_counts: Rebuild one receiver's unread counters
    reconcile_all_unread_counts: Periodic sweep (see CELERY_BEAT_SCHEDULE)
    redispatch_stalled_notifications: Periodic sweep re-enqueueing dispatch
        runs lost mid-pipeline

Design:
    - Tasks receive primary keys, never model instances
    - dispatch_notification is idempotent: NotificationService.dispatch
      only picks up CREATED and DEFERRED rows under a row lock
    - Retryable delivery failures retry with exponential backoff up to
      NOTIFICATIONS["DISPATCH_MAX_RETRIES"], then the notification is FAILED
    - A run that dies mid-pipeline leaves the row in DISPATCHING; once
      NOTIFICATIONS["DISPATCH_LEASE_SECONDS"] pass it is dispatched again

Usage:
    from notifications.tasks import dispatch_notification

    # Called automatically by NotificationService.create_notification()
    # Or manually:
    dispatch_notification.delay(notification_id)
"""

from __future__ import annotations

import logging

from celery import shared_task
from django.apps import apps
from django.contrib.contenttypes.models import ContentType
from django.utils.module_loading import import_string

from notifications import counters
from notifications.conf import notification_settings
from notifications.models import Notification

logger = logging.getLogger(__name__)


@shared_task(bind=True)
def dispatch_notification(self, notification_id: int) -> str:
    """
    Deliver one notification through its channel pipeline.

    Flow:
        1. NotificationService.dispatch() locks the row and runs channels
        2. When every attempted channel failed with a retryable error the
           notification is back in CREATED and this task retries
        3. After DISPATCH_MAX_RETRIES retries the notification is marked FAILED

    Args:
        notification_id: Primary key of the Notification

    Returns:
        The DispatchReport action ("dispatched", "skipped", ...)

    Raises:
        celery.exceptions.Retry: Delivery will be retried
    """
    from notifications.services import NotificationService

    report = NotificationService.dispatch(notification_id)
    if not report.should_retry:
        return report.action

    max_retries = notification_settings.DISPATCH_MAX_RETRIES
    if self.request.retries >= max_retries:
        NotificationService.fail_dispatch(
            notification_id,
            f"Retries exhausted after {self.request.retries + 1} attempts: {report.detail}",
        )
        return "failed"

    countdown = notification_settings.DISPATCH_RETRY_BACKOFF * (2**self.request.retries)
    logger.info(
        f"Retrying dispatch of notification {notification_id} in {countdown}s "
        f"(attempt {self.request.retries + 1}/{max_retries})"
    )
    raise self.retry(countdown=countdown, max_retries=max_retries)


@shared_task(
    bind=True,
    autoretry_for=(ConnectionError, TimeoutError),
    retry_backoff=True,
    retry_kwargs={"max_retries": 3},
)
def send_notification_email(self, mailer_path: str, method: str, object_id: int | str) -> bool:
    """
    Send a notification email through a mailer.

    Args:
        mailer_path: Dotted path of the mailer class
        method: Mailer method taking the object id
        object_id: Notification id (default mailer) or notifiable id

    Returns:
        True if the mailer handed a message to the email backend
    """
    mailer = import_string(mailer_path)()
    handler = getattr(mailer, method)

    logger.info(f"Sending notification email via {mailer_path}.{method}({object_id})")
    sent = bool(handler(object_id))
    if not sent:
        logger.info(f"Mailer {mailer_path}.{method} sent nothing for {object_id}")
    return sent


@shared_task
def reconcile_unread_counts(receiver_type: str, receiver_id: str) -> dict[str, int]:
    """
    Rebuild the unread counters of one receiver.

    Args:
        receiver_type: Receiver model label ("authentication.user")
        receiver_id: Receiver primary key

    Returns:
        The recounted {scope: count} mapping, empty if the receiver is gone
    """
    model = apps.get_model(receiver_type)
    receiver = model._default_manager.filter(pk=receiver_id).first()
    if receiver is None:
        logger.warning(f"Receiver {receiver_type}:{receiver_id} not found for reconcile")
        return {}
    return counters.reconcile(receiver)


@shared_task
def reconcile_all_unread_counts() -> int:
    """
    Rebuild the unread counters of every receiver that has notifications.

    Scheduled by CELERY_BEAT_SCHEDULE["reconcile-unread-counters"].

    Returns:
        Number of receivers reconciled
    """
    pairs = (
        Notification.objects.order_by()
        .values_list("receiver_content_type", "receiver_id")
        .distinct()
    )

    reconciled = 0
    for content_type_id, receiver_id in pairs.iterator():
        content_type = ContentType.objects.get_for_id(content_type_id)
        model = content_type.model_class()
        if model is None:
            continue
        receiver = model._default_manager.filter(pk=receiver_id).first()
        if receiver is None:
            continue
        counters.reconcile(receiver)
        reconciled += 1

    logger.info(f"Reconciled unread counters for {reconciled} receivers")
    return reconciled


@shared_task
def redispatch_stalled_notifications() -> int:
    """
    Re-enqueue dispatch of notifications whose run outlived its lease.

    Scheduled by CELERY_BEAT_SCHEDULE["redispatch-stalled-notifications"].
    NotificationService.dispatch takes over the stalled row under its lock,
    so a run that finishes meanwhile makes the re-enqueued task a no-op.

    Returns:
        Number of notifications re-enqueued
    """
    stalled = Notification.objects.stalled().order_by("id").values_list("pk", flat=True)

    enqueued = 0
    for notification_id in stalled.iterator():
        dispatch_notification.delay(notification_id)
        enqueued += 1

    if enqueued:
        logger.warning(f"Re-enqueued {enqueued} stalled notification dispatches")
    return enqueued
