"""
Test configuration and fixtures for notification tests.

This module provides:
- Celery task mocks (autouse): dispatch is never enqueued for real
- Receiver fixtures (users with socket tokens and push tokens)
- Notifiable fixtures from the test app (Order, Comment)
- API client helpers for authenticated requests
- Fake transports for the delivery channels

Usage:
    def test_example(user, order, dispatch_task):
        NotificationService.create_notification(receiver=user, notifiable=order, code="shipped")
        dispatch_task.delay.assert_called_once()
"""

from types import SimpleNamespace

import pytest
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from authentication.tests.factories import AuthorizedTokenFactory, UserFactory
from notifications.tests.factories import CommentFactory, OrderFactory
from notifications.tests.fakes import FakeBroadcaster, FakePushGateway


# =============================================================================
# Celery Mocks
# =============================================================================


@pytest.fixture(autouse=True)
def dispatch_task(mocker):
    """
    Mock enqueueing of the notification Celery tasks.

    Returns a namespace with the dispatch `delay` and `apply_async` mocks
    and the email task's `delay` and `apply_async` mocks.
    """
    delay = mocker.patch("notifications.tasks.dispatch_notification.delay")
    apply_async = mocker.patch("notifications.tasks.dispatch_notification.apply_async")
    apply_async.return_value = SimpleNamespace(id="dispatch-task-id")
    email_delay = mocker.patch("notifications.tasks.send_notification_email.delay")
    email_apply_async = mocker.patch("notifications.tasks.send_notification_email.apply_async")
    return SimpleNamespace(
        delay=delay,
        apply_async=apply_async,
        email_delay=email_delay,
        email_apply_async=email_apply_async,
    )


@pytest.fixture
def notifications_settings(settings):
    """
    Override keys of settings.NOTIFICATIONS for one test.

    Usage:
        def test_example(notifications_settings):
            notifications_settings(RECONCILE_ON_CREATE=True)
    """

    def _override(**overrides):
        settings.NOTIFICATIONS = {**settings.NOTIFICATIONS, **overrides}
        return settings.NOTIFICATIONS

    return _override


@pytest.fixture
def commit(django_capture_on_commit_callbacks):
    """
    Call a function and run the on-commit callbacks it registered.

    Counter updates of read-state changes happen on commit, which the
    test transaction never reaches on its own.

    Usage:
        def test_example(commit, notification):
            commit(NotificationService.mark_as_read, notification)
    """

    def _commit(func, *args, **kwargs):
        with django_capture_on_commit_callbacks(execute=True):
            return func(*args, **kwargs)

    return _commit


# =============================================================================
# Receiver Fixtures
# =============================================================================


@pytest.fixture
def user(db):
    """A user receiving notifications, without socket or push tokens."""
    return UserFactory()


@pytest.fixture
def other_user(db):
    """Another user for multi-receiver tests."""
    return UserFactory()


@pytest.fixture
def socket_token(user):
    """An active socket token of `user`."""
    return AuthorizedTokenFactory(user=user)


@pytest.fixture
def push_user(user):
    """`user` with a push token on their profile."""
    user.profile.push_token = "device-token-1"
    user.profile.save(update_fields=["push_token", "updated_at"])
    return user


# =============================================================================
# Notifiable Fixtures
# =============================================================================


@pytest.fixture
def order(db):
    """Order #42 to Lyon (registered notifiable with code "shipped")."""
    return OrderFactory(number=42, city="Lyon", customer_email="buyer@example.com")


@pytest.fixture
def comment(db):
    """A Comment (unregistered notifiable)."""
    return CommentFactory(text="Looks great, thanks for the update")


# =============================================================================
# Transport Fakes
# =============================================================================


@pytest.fixture
def broadcaster():
    return FakeBroadcaster()


@pytest.fixture
def push_gateway():
    return FakePushGateway()


# =============================================================================
# API Client Fixtures
# =============================================================================


@pytest.fixture
def api_client():
    """Unauthenticated API client."""
    return APIClient()


@pytest.fixture
def authenticated_client(user):
    """API client authenticated with JWT token for the default user fixture."""
    client = APIClient()
    refresh = RefreshToken.for_user(user)
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {refresh.access_token}")
    return client


@pytest.fixture
def authenticated_client_factory(db):
    """
    Factory to create authenticated clients for any user.

    Usage:
        def test_example(authenticated_client_factory, other_user):
            client = authenticated_client_factory(other_user)
    """

    def _make_client(user):
        client = APIClient()
        refresh = RefreshToken.for_user(user)
        client.credentials(HTTP_AUTHORIZATION=f"Bearer {refresh.access_token}")
        return client

    return _make_client
