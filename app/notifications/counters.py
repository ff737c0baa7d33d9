"""
Unread notification counters.

Counters live in the Django cache (django-redis in production) so the inbox
badge is a single cache read. Each receiver has one counter per scope:

    ALL        - every unread notification
    <label>    - unread notifications of one notifiable category ("shop.order")
    OFFICIAL   - unread official notifications

Writes:
    increment/decrement use atomic cache incr/decr; decrement clamps at 0.
    reconcile() recounts from the database and overwrites every counter.
    It is the only read-then-write path and is last-writer-wins against
    concurrent increments and decrements.

Reads never raise: a missing key or a cache error reads as 0.

Usage:
    from notifications import counters

    counters.increment(counters.CounterKey("authentication.user", "7", counters.ALL))
    counters.unread_count_details(user)
    # {"all": 3, "shop.order": 2, "official": 1}
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from typing import TYPE_CHECKING

from django.contrib.contenttypes.models import ContentType
from django.core.cache import cache
from django.db.models import Count

from notifications.conf import notification_settings
from notifications.exceptions import CacheInconsistencyError
from notifications.registry import category_label, notifiable_registry

if TYPE_CHECKING:
    from django.db.models import Model

    from notifications.models import Notification

logger = logging.getLogger(__name__)

ALL = "all"
OFFICIAL = "official"

KEY_PREFIX = "notif_unread"


@dataclass(frozen=True)
class CounterKey:
    """Identity of one unread counter."""

    receiver_type: str
    receiver_id: str
    scope: str

    @property
    def cache_key(self) -> str:
        return f"{KEY_PREFIX}:{self.receiver_type}:{self.receiver_id}:{self.scope}"

    def __str__(self) -> str:
        return self.cache_key


def receiver_label(model: type[Model]) -> str:
    """Counter namespace of a receiver model: its concrete model label."""
    return model._meta.concrete_model._meta.label_lower


def receiver_identity(receiver: Model) -> tuple[str, str]:
    """(receiver_type, receiver_id) of a receiver instance."""
    return receiver_label(type(receiver)), str(receiver.pk)


def key_for(receiver: Model, scope: str) -> CounterKey:
    receiver_type, receiver_id = receiver_identity(receiver)
    return CounterKey(receiver_type, receiver_id, scope)


def keys_for(notification: Notification) -> list[CounterKey]:
    """
    Counters one unread notification contributes to.

    The receiver type comes from receiver_label, like key_for, so both
    address the same cache keys. A receiver whose model is gone has none.
    """
    model = notification.receiver_content_type.model_class()
    if model is None:
        return []
    receiver_type = receiver_label(model)
    receiver_id = str(notification.receiver_id)
    scopes = [ALL]
    if notification.notifiable_content_type_id:
        notifiable_model = notification.notifiable_content_type.model_class()
        if notifiable_model is not None:
            scopes.append(category_label(notifiable_model))
    if notification.official:
        scopes.append(OFFICIAL)
    return [CounterKey(receiver_type, receiver_id, scope) for scope in scopes]


# =============================================================================
# Primitive operations
# =============================================================================


def increment(key: CounterKey) -> int | None:
    """Atomically add one. Returns the new value, or None on cache error."""
    try:
        cache.add(key.cache_key, 0, timeout=None)
        return cache.incr(key.cache_key)
    except ValueError:
        # Key evicted between add and incr
        cache.set(key.cache_key, 1, timeout=None)
        return 1
    except Exception:
        logger.exception(f"Failed to increment unread counter {key}")
        return None


def decrement(key: CounterKey) -> int | None:
    """
    Atomically subtract one, clamping at zero.

    A negative result is corrected by atomically adding back the deficit.
    """
    try:
        cache.add(key.cache_key, 0, timeout=None)
        value = cache.decr(key.cache_key)
        if value < 0:
            value = cache.incr(key.cache_key, -value)
        return value
    except ValueError:
        cache.set(key.cache_key, 0, timeout=None)
        return 0
    except Exception:
        logger.exception(f"Failed to decrement unread counter {key}")
        return None


def read(key: CounterKey) -> int:
    """Current value; 0 when absent or on cache error."""
    try:
        value = cache.get(key.cache_key)
    except Exception:
        logger.exception(f"Failed to read unread counter {key}")
        return 0
    try:
        return max(int(value or 0), 0)
    except (TypeError, ValueError):
        logger.warning(f"Unread counter {key} holds non-integer {value!r}")
        return 0


def write(key: CounterKey, value: int) -> bool:
    """Overwrite a counter. Returns False (and logs) on cache error."""
    try:
        cache.set(key.cache_key, int(value), timeout=None)
        return True
    except Exception:
        logger.exception(f"Failed to write unread counter {key}")
        return False


def increment_for(notification: Notification) -> None:
    for key in keys_for(notification):
        increment(key)


def decrement_for(notification: Notification) -> None:
    for key in keys_for(notification):
        decrement(key)


# =============================================================================
# Receiver-level operations
# =============================================================================


def count_unread(receiver: Model) -> dict[str, int]:
    """
    Recount unread notifications of a receiver from the database.

    Returns {scope: count} with ALL, OFFICIAL, every registered notifiable
    category and every category present in the rows.
    """
    from notifications.models import Notification

    unread = Notification.objects.for_receiver(receiver).unread()
    counts: dict[str, int] = {ALL: unread.count()}

    per_category: Counter[str] = Counter({label: 0 for label in notifiable_registry.labels()})
    rows = (
        unread.exclude(notifiable_content_type__isnull=True)
        .values("notifiable_content_type")
        .annotate(total=Count("id"))
    )
    for row in rows:
        model = ContentType.objects.get_for_id(row["notifiable_content_type"]).model_class()
        if model is None:
            continue
        per_category[category_label(model)] += row["total"]
    counts.update(per_category)

    counts[OFFICIAL] = unread.filter(official=True).count()
    return counts


def reconcile(receiver: Model) -> dict[str, int]:
    """
    Overwrite every counter of a receiver with the database recount.

    Drift beyond NOTIFICATIONS["DRIFT_THRESHOLD"] is logged as a
    CacheInconsistencyError before correction. Each write is independent;
    a failed write is logged and the remaining counters still update.
    """
    counts = count_unread(receiver)
    threshold = notification_settings.DRIFT_THRESHOLD
    for scope, actual in counts.items():
        key = key_for(receiver, scope)
        cached = read(key)
        if abs(cached - actual) > threshold:
            error = CacheInconsistencyError(key.cache_key, cached, actual)
            logger.warning(str(error), extra={"details": error.details})
        write(key, actual)
    logger.debug(f"Reconciled unread counters for {key_for(receiver, ALL)}: {counts}")
    return counts


def unread_count_details(receiver: Model) -> dict[str, int]:
    """
    Cached counters of a receiver.

    {"all": n, "<label>": n for each registered category, "official": n}
    """
    details = {ALL: read(key_for(receiver, ALL))}
    for label in notifiable_registry.labels():
        details[label] = read(key_for(receiver, label))
    details[OFFICIAL] = read(key_for(receiver, OFFICIAL))
    return details
