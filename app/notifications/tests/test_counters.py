"""
Unit tests for the unread counters.

Test Classes:
    TestCounterKeys: Key format and the counters a notification feeds
    TestCounterPrimitives: increment / decrement / read / write
    TestReconcile: Database recount and drift reporting
    TestConcurrentUpdates: Racing increments, decrements and reconcile
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor

from django.core.cache import cache
from django.utils import timezone

from notifications import counters
from notifications.counters import CounterKey
from notifications.models import Notification
from notifications.tests.factories import CommentFactory, NotificationFactory


class TestCounterKeys:
    """Tests for counter identities."""

    def test_cache_key_format(self):
        key = CounterKey("authentication.user", "7", counters.ALL)

        assert key.cache_key == "notif_unread:authentication.user:7:all"

    def test_key_for_receiver(self, user):
        key = counters.key_for(user, counters.OFFICIAL)

        assert key == CounterKey("authentication.user", str(user.pk), "official")

    def test_plain_notification_feeds_all_only(self, user):
        notification = NotificationFactory(receiver=user)

        assert [k.scope for k in counters.keys_for(notification)] == ["all"]

    def test_notifiable_and_official_scopes(self, user, order):
        notification = NotificationFactory(receiver=user, notifiable=order, code="shipped", official=True)

        assert [k.scope for k in counters.keys_for(notification)] == [
            "all",
            "testapp.order",
            "official",
        ]

    def test_notification_keys_match_receiver_keys(self, user, order):
        notification = NotificationFactory(receiver=user, notifiable=order, code="shipped", official=True)

        assert counters.keys_for(notification) == [
            counters.key_for(user, counters.ALL),
            counters.key_for(user, "testapp.order"),
            counters.key_for(user, counters.OFFICIAL),
        ]

    def test_receiver_label_uses_concrete_model(self, user):
        assert counters.receiver_label(type(user)) == "authentication.user"
        assert counters.receiver_identity(user) == ("authentication.user", str(user.pk))


class TestCounterPrimitives:
    """Tests for atomic counter updates."""

    def test_increment_from_missing(self):
        key = CounterKey("authentication.user", "1", counters.ALL)

        assert counters.increment(key) == 1
        assert counters.increment(key) == 2
        assert counters.read(key) == 2

    def test_decrement_clamps_at_zero(self):
        key = CounterKey("authentication.user", "1", counters.ALL)
        counters.increment(key)

        assert counters.decrement(key) == 0
        assert counters.decrement(key) == 0
        assert counters.read(key) == 0

    def test_read_missing_is_zero(self):
        assert counters.read(CounterKey("authentication.user", "404", counters.ALL)) == 0

    def test_read_cache_error_is_zero(self, mocker):
        mocker.patch("notifications.counters.cache.get", side_effect=ConnectionError("down"))

        assert counters.read(CounterKey("authentication.user", "1", counters.ALL)) == 0

    def test_increment_cache_error_returns_none(self, mocker):
        mocker.patch("notifications.counters.cache.add", side_effect=ConnectionError("down"))

        assert counters.increment(CounterKey("authentication.user", "1", counters.ALL)) is None

    def test_write_overwrites(self):
        key = CounterKey("authentication.user", "1", counters.ALL)
        counters.increment(key)

        assert counters.write(key, 5) is True
        assert counters.read(key) == 5

    def test_increment_for_and_decrement_for(self, user, order):
        notification = NotificationFactory(receiver=user, notifiable=order, code="shipped")

        counters.increment_for(notification)
        assert counters.unread_count_details(user) == {
            "all": 1,
            "testapp.order": 1,
            "official": 0,
        }

        counters.decrement_for(notification)
        assert counters.unread_count_details(user)["all"] == 0


class TestReconcile:
    """Tests for reconcile() and count_unread()."""

    def test_count_unread_by_scope(self, user, order):
        NotificationFactory(receiver=user, notifiable=order, code="shipped")
        NotificationFactory(receiver=user, notifiable=CommentFactory(), official=True)
        NotificationFactory(receiver=user, read_at=timezone.now())

        counts = counters.count_unread(user)

        assert counts["all"] == 2
        assert counts["testapp.order"] == 1
        assert counts["testapp.comment"] == 1
        assert counts["official"] == 1

    def test_reconcile_overwrites_cached_values(self, user):
        NotificationFactory.create_batch(3, receiver=user)
        cache.set(counters.key_for(user, counters.ALL).cache_key, 17, timeout=None)

        counts = counters.reconcile(user)

        assert counts["all"] == 3
        assert counters.read(counters.key_for(user, counters.ALL)) == 3

    def test_reconcile_equals_unread_rows(self, user, other_user, order):
        NotificationFactory.create_batch(2, receiver=user, notifiable=order, code="shipped")
        NotificationFactory(receiver=user, read_at=timezone.now())
        NotificationFactory(receiver=other_user)

        counters.reconcile(user)

        assert counters.unread_count_details(user) == {
            "all": 2,
            "testapp.order": 2,
            "official": 0,
        }

    def test_registered_categories_reset_to_zero(self, user):
        cache.set(counters.key_for(user, "testapp.order").cache_key, 4, timeout=None)

        counters.reconcile(user)

        assert counters.read(counters.key_for(user, "testapp.order")) == 0

    def test_drift_is_logged(self, user, caplog):
        NotificationFactory(receiver=user)
        cache.set(counters.key_for(user, counters.ALL).cache_key, 9, timeout=None)

        with caplog.at_level(logging.WARNING, logger="notifications.counters"):
            counters.reconcile(user)

        assert "drifted: cached=9 actual=1" in caplog.text

    def test_no_drift_no_warning(self, user, caplog):
        NotificationFactory(receiver=user)
        counters.increment(counters.key_for(user, counters.ALL))

        with caplog.at_level(logging.WARNING, logger="notifications.counters"):
            counters.reconcile(user)

        assert "drifted" not in caplog.text


class TestConcurrentUpdates:
    """Counter updates racing each other and reconcile."""

    def test_concurrent_creates_increment_all_by_two(self, user):
        notifications = [Notification(receiver=user), Notification(receiver=user)]
        barrier = threading.Barrier(len(notifications))

        def increment_on_create(notification):
            barrier.wait()
            counters.increment_for(notification)

        threads = [threading.Thread(target=increment_on_create, args=(n,)) for n in notifications]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert counters.read(counters.key_for(user, counters.ALL)) == 2

    def test_many_concurrent_increments_all_land(self):
        key = CounterKey("authentication.user", "1", counters.ALL)
        workers = 8
        per_worker = 25
        barrier = threading.Barrier(workers)

        def increment_many():
            barrier.wait()
            for _ in range(per_worker):
                counters.increment(key)

        with ThreadPoolExecutor(max_workers=workers) as pool:
            for future in [pool.submit(increment_many) for _ in range(workers)]:
                future.result()

        assert counters.read(key) == workers * per_worker

    def test_concurrent_increment_and_decrement_balance(self):
        key = CounterKey("authentication.user", "1", counters.ALL)
        counters.write(key, 50)
        barrier = threading.Barrier(2)

        def repeat(operation):
            barrier.wait()
            for _ in range(50):
                operation(key)

        with ThreadPoolExecutor(max_workers=2) as pool:
            futures = [pool.submit(repeat, counters.increment), pool.submit(repeat, counters.decrement)]
            for future in futures:
                future.result()

        assert counters.read(key) == 50

    def test_increment_between_recount_and_write_is_overwritten(self, user, mocker):
        NotificationFactory(receiver=user)
        key = counters.key_for(user, counters.ALL)
        counters.write(key, 1)
        recount = counters.count_unread
        raced = []

        def recount_then_increment(receiver):
            counts = recount(receiver)
            raced.append(counters.increment(key))
            return counts

        mocker.patch("notifications.counters.count_unread", side_effect=recount_then_increment)

        counters.reconcile(user)

        # Last writer wins: reconcile writes its recount over the increment
        assert raced == [2]
        assert counters.read(key) == 1

    def test_increment_after_reconcile_write_is_kept(self, user):
        NotificationFactory(receiver=user)
        key = counters.key_for(user, counters.ALL)

        counters.reconcile(user)
        counters.increment(key)

        assert counters.read(key) == 2
