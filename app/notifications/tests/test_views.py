"""
API tests for notification endpoints.

Tests verify HTTP behavior, serialization, authentication, and permissions.

Test Classes:
    TestNotificationList: Tests for GET /api/v1/notifications/
    TestNotificationDetail: Tests for GET /api/v1/notifications/{id}/
    TestUnreadCount: Tests for GET /api/v1/notifications/unread-count/
    TestMarkRead: Tests for POST /api/v1/notifications/{id}/read/ and /unread/
    TestMarkAllRead: Tests for POST /api/v1/notifications/read-all/
"""

from django.urls import reverse
from django.utils import timezone
from rest_framework import status

from notifications import counters
from notifications.tests.factories import NotificationFactory


class TestNotificationList:
    """
    Tests for GET /api/v1/notifications/.

    Verifies:
    - Returns the user's notifications, newest first
    - Excludes other receivers' notifications
    - Filtering by read state
    - Authentication requirement
    """

    def test_requires_authentication(self, db, api_client):
        response = api_client.get(reverse("notifications:notification-list"))

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_returns_own_notifications_newest_first(self, authenticated_client, user, other_user):
        older = NotificationFactory(receiver=user)
        newer = NotificationFactory(receiver=user)
        NotificationFactory(receiver=other_user)

        response = authenticated_client.get(reverse("notifications:notification-list"))

        assert response.status_code == status.HTTP_200_OK
        assert response.data["count"] == 2
        assert [item["id"] for item in response.data["results"]] == [newer.id, older.id]

    def test_filter_unread(self, authenticated_client, user):
        unread = NotificationFactory(receiver=user)
        NotificationFactory(receiver=user, read_at=timezone.now())

        response = authenticated_client.get(
            reverse("notifications:notification-list"), {"state": "unread"}
        )

        assert [item["id"] for item in response.data["results"]] == [unread.id]

    def test_filter_read(self, authenticated_client, user):
        NotificationFactory(receiver=user)
        read = NotificationFactory(receiver=user, read_at=timezone.now())

        response = authenticated_client.get(
            reverse("notifications:notification-list"), {"state": "read"}
        )

        assert [item["id"] for item in response.data["results"]] == [read.id]
        assert response.data["results"][0]["is_read"] is True

    def test_invalid_state_filter(self, authenticated_client):
        response = authenticated_client.get(
            reverse("notifications:notification-list"), {"state": "archived"}
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "state" in response.data

    def test_resolved_content(self, authenticated_client, user, order):
        notification = NotificationFactory(receiver=user, notifiable=order, code="shipped")

        response = authenticated_client.get(reverse("notifications:notification-list"))

        item = response.data["results"][0]
        assert item["id"] == notification.id
        assert item["code"] == "shipped"
        assert item["category"] == "testapp.order"
        assert item["title"] == "Order #42 shipped"
        assert item["body"] == "Your order #42 is on its way to Lyon"
        assert item["is_read"] is False
        assert item["attributes"] is None


class TestNotificationDetail:
    """Tests for GET /api/v1/notifications/{id}/."""

    def test_get_own_notification(self, authenticated_client, user):
        notification = NotificationFactory(receiver=user, title="Hello", link="https://x.test/a")

        response = authenticated_client.get(
            reverse("notifications:notification-detail", args=[notification.id])
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data["title"] == "Hello"
        assert response.data["link"] == "https://x.test/a"
        assert response.data["category"] is None

    def test_other_receivers_notification_not_found(self, authenticated_client, other_user):
        notification = NotificationFactory(receiver=other_user)

        response = authenticated_client.get(
            reverse("notifications:notification-detail", args=[notification.id])
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_verbose_attributes(self, authenticated_client, user, order):
        notification = NotificationFactory(
            receiver=user, notifiable=order, code="shipped", verbose=True
        )

        response = authenticated_client.get(
            reverse("notifications:notification-detail", args=[notification.id])
        )

        assert response.data["attributes"] == {"number": 42, "city": "Lyon", "shipped_at": None}


class TestUnreadCount:
    """Tests for GET /api/v1/notifications/unread-count/."""

    def test_returns_counters(self, authenticated_client, user, order):
        notification = NotificationFactory(receiver=user, notifiable=order, code="shipped")
        counters.increment_for(notification)

        response = authenticated_client.get(reverse("notifications:notification-unread-count"))

        assert response.status_code == status.HTTP_200_OK
        assert response.data == {
            "unread_count": 1,
            "details": {"all": 1, "testapp.order": 1, "official": 0},
        }

    def test_requires_authentication(self, db, api_client):
        response = api_client.get(reverse("notifications:notification-unread-count"))

        assert response.status_code == status.HTTP_401_UNAUTHORIZED


class TestMarkRead:
    """Tests for POST /api/v1/notifications/{id}/read/ and /unread/."""

    def test_mark_read(self, authenticated_client, user, commit):
        notification = NotificationFactory(receiver=user)
        counters.increment_for(notification)

        response = commit(
            authenticated_client.post,
            reverse("notifications:notification-read", args=[notification.id]),
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data["is_read"] is True
        assert response.data["read_at"] is not None
        assert counters.read(counters.key_for(user, counters.ALL)) == 0

    def test_mark_read_is_idempotent(self, authenticated_client, user, commit):
        notification = NotificationFactory(receiver=user)
        NotificationFactory(receiver=user)
        counters.reconcile(user)
        url = reverse("notifications:notification-read", args=[notification.id])

        commit(authenticated_client.post, url)
        response = commit(authenticated_client.post, url)

        assert response.status_code == status.HTTP_200_OK
        assert counters.read(counters.key_for(user, counters.ALL)) == 1

    def test_mark_unread(self, authenticated_client, user, commit):
        notification = NotificationFactory(receiver=user, read_at=timezone.now())

        response = commit(
            authenticated_client.post,
            reverse("notifications:notification-unread", args=[notification.id]),
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data["is_read"] is False
        assert counters.read(counters.key_for(user, counters.ALL)) == 1

    def test_cannot_mark_other_receivers_notification(self, authenticated_client, other_user):
        notification = NotificationFactory(receiver=other_user)

        response = authenticated_client.post(
            reverse("notifications:notification-read", args=[notification.id])
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND
        notification.refresh_from_db()
        assert notification.read_at is None


class TestMarkAllRead:
    """Tests for POST /api/v1/notifications/read-all/."""

    def test_marks_all_own_notifications(self, authenticated_client, user, other_user, commit):
        NotificationFactory.create_batch(3, receiver=user)
        NotificationFactory(receiver=user, read_at=timezone.now())
        others = NotificationFactory(receiver=other_user)

        response = commit(authenticated_client.post, reverse("notifications:notification-read-all"))

        assert response.status_code == status.HTTP_200_OK
        assert response.data == {"marked_count": 3}
        assert counters.unread_count_details(user)["all"] == 0
        others.refresh_from_db()
        assert others.read_at is None

    def test_nothing_to_mark(self, authenticated_client):
        response = authenticated_client.post(reverse("notifications:notification-read-all"))

        assert response.data == {"marked_count": 0}
