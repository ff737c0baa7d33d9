"""
Celery configuration for the notification service.

Celery carries every notification side effect that must not block the
request that created the notification:
- Immediate and deferred (ETA) dispatch of notifications to their channels
- Queued notification emails
- The periodic unread-counter reconcile sweep (see CELERY_BEAT_SCHEDULE)

Redis is both the message broker and result backend. Tasks are
auto-discovered from all installed Django apps.

Usage:
    from notifications.tasks import dispatch_notification

    dispatch_notification.delay(notification.id)
    dispatch_notification.apply_async(args=[notification.id], eta=sending_at)

For more information, see:
https://docs.celeryq.dev/en/stable/django/first-steps-with-django.html
"""

import os

from celery import Celery

# Set the default Django settings module for the Celery worker
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("config")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

app.autodiscover_tasks()
