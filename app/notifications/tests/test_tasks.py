"""
Tests for notification Celery tasks.

Tasks are called directly (synchronously); enqueueing is mocked by the
autouse dispatch_task fixture.
"""

from datetime import timedelta

import pytest
from celery.exceptions import Retry
from django.core.cache import cache
from django.utils import timezone
from freezegun import freeze_time

from notifications import counters
from notifications.exceptions import TransportError
from notifications.models import NotificationState
from notifications.tasks import (
    dispatch_notification,
    reconcile_all_unread_counts,
    reconcile_unread_counts,
    redispatch_stalled_notifications,
    send_notification_email,
)
from notifications.tests.factories import NotificationFactory


class TestDispatchNotification:
    """Tests for dispatch_notification task."""

    def test_returns_report_action(self, user, socket_token):
        notification = NotificationFactory(receiver=user)

        assert dispatch_notification(notification.pk) == "dispatched"

        notification.refresh_from_db()
        assert notification.state == NotificationState.DISPATCHED

    def test_missing_notification(self, db):
        assert dispatch_notification(999999) == "missing"

    def test_already_dispatched_is_skipped(self, user):
        notification = NotificationFactory(receiver=user, state=NotificationState.DISPATCHED)

        assert dispatch_notification(notification.pk) == "skipped"

    def test_retryable_failure_retries(self, push_user, mocker):
        mocker.patch(
            "notifications.transports.PushGateway.push_single",
            side_effect=TransportError("HTTP 503", retryable=True),
        )
        notification = NotificationFactory(receiver=push_user)

        with pytest.raises(Retry):
            dispatch_notification(notification.pk)

        notification.refresh_from_db()
        assert notification.state == NotificationState.CREATED

    def test_retries_exhausted_marks_failed(self, push_user, mocker, notifications_settings):
        notifications_settings(DISPATCH_MAX_RETRIES=0)
        mocker.patch(
            "notifications.transports.PushGateway.push_single",
            side_effect=TransportError("HTTP 503", retryable=True),
        )
        notification = NotificationFactory(receiver=push_user)

        assert dispatch_notification(notification.pk) == "failed"

        notification.refresh_from_db()
        assert notification.state == NotificationState.FAILED
        assert "Retries exhausted" in notification.failure_reason


class TestSendNotificationEmail:
    """Tests for send_notification_email task."""

    def test_default_mailer(self, user, mailoutbox):
        notification = NotificationFactory(
            receiver=user,
            title="Welcome",
            body="Thanks for joining",
            cc_emails=["ops@example.com"],
        )

        sent = send_notification_email(
            "notifications.mailers.NotificationMailer", "notify", notification.pk
        )

        assert sent is True
        assert len(mailoutbox) == 1
        message = mailoutbox[0]
        assert message.subject == "Welcome"
        assert message.to == [user.email]
        assert message.cc == ["ops@example.com"]
        assert "Thanks for joining" in message.body

    def test_missing_notification_sends_nothing(self, db, mailoutbox):
        sent = send_notification_email("notifications.mailers.NotificationMailer", "notify", 999999)

        assert sent is False
        assert mailoutbox == []

    def test_category_mailer(self, order, mailoutbox):
        sent = send_notification_email(
            "notifications.tests.testapp.mailers.OrderMailer", "shipped", str(order.pk)
        )

        assert sent is True
        assert mailoutbox[0].subject == "Order #42 shipped"
        assert mailoutbox[0].to == ["buyer@example.com"]


class TestReconcileTasks:
    """Tests for the counter reconcile tasks."""

    def test_reconcile_one_receiver(self, user):
        NotificationFactory.create_batch(2, receiver=user)
        cache.set(counters.key_for(user, counters.ALL).cache_key, 5, timeout=None)

        result = reconcile_unread_counts("authentication.user", str(user.pk))

        assert result["all"] == 2
        assert counters.read(counters.key_for(user, counters.ALL)) == 2

    def test_reconcile_missing_receiver(self, db):
        assert reconcile_unread_counts("authentication.user", "999999") == {}

    def test_reconcile_all(self, user, other_user):
        NotificationFactory(receiver=user)
        NotificationFactory.create_batch(2, receiver=other_user)
        cache.set(counters.key_for(user, counters.ALL).cache_key, 9, timeout=None)

        assert reconcile_all_unread_counts() == 2

        assert counters.read(counters.key_for(user, counters.ALL)) == 1
        assert counters.read(counters.key_for(other_user, counters.ALL)) == 2


class TestRedispatchStalledNotifications:
    """Tests for the stalled dispatch sweep."""

    def test_enqueues_only_stalled_rows(self, user, dispatch_task):
        stalled = NotificationFactory(
            receiver=user,
            state=NotificationState.DISPATCHING,
            dispatch_started_at=timezone.now() - timedelta(hours=1),
        )
        NotificationFactory(
            receiver=user,
            state=NotificationState.DISPATCHING,
            dispatch_started_at=timezone.now(),
        )
        NotificationFactory(receiver=user)

        assert redispatch_stalled_notifications() == 1

        dispatch_task.delay.assert_called_once_with(stalled.pk)

    def test_crashed_run_is_dispatched_again_by_the_sweep(self, user, dispatch_task):
        notification = NotificationFactory(receiver=user)
        notification.start_dispatch()
        notification.save()

        with freeze_time(timezone.now() + timedelta(hours=1)):
            redispatch_stalled_notifications()
            (notification_id,) = dispatch_task.delay.call_args.args
            assert dispatch_notification(notification_id) == "dispatched"

        notification.refresh_from_db()
        assert notification.state == NotificationState.DISPATCHED
        assert notification.dispatch_attempts == 2

    def test_nothing_stalled(self, db):
        assert redispatch_stalled_notifications() == 0
