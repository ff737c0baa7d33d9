"""
Notification engine settings.

All engine settings live in the NOTIFICATIONS dict in Django settings.
Keys left out fall back to DEFAULTS. Values are read on every access so
override_settings works in tests.

Usage:
    from notifications.conf import notification_settings

    if notification_settings.RECONCILE_ON_CREATE:
        ...
"""

from __future__ import annotations

from typing import Any

from django.conf import settings

DEFAULTS: dict[str, Any] = {
    "LINK_HOST": "http://localhost:8000",
    "DEFAULT_SEND_EMAIL": False,
    "TRANSLATION_SCOPE": "notifications",
    "TRANSLATION_CATALOG": "notifications.content.SettingsTranslationCatalog",
    "TRANSLATIONS": {},
    "CHANNELS": [
        "notifications.channels.SocketChannel",
        "notifications.channels.EmailChannel",
        "notifications.channels.PushChannel",
    ],
    "RECEIVER_CHANNELS": {},
    "DEFAULT_MAILER": "notifications.mailers.NotificationMailer",
    "RECONCILE_ON_CREATE": False,
    "DRIFT_THRESHOLD": 0,
    "DISPATCH_MAX_RETRIES": 3,
    "DISPATCH_RETRY_BACKOFF": 30,
    "DISPATCH_LEASE_SECONDS": 900,
    "PUSH_ENDPOINT": "https://fcm.googleapis.com/fcm/send",
    "PUSH_SERVER_KEY": "",
    "PUSH_TIMEOUT_SECONDS": 10,
}


class NotificationSettings:
    """Attribute access to NOTIFICATIONS with DEFAULTS filled in."""

    def __getattr__(self, name: str) -> Any:
        if name not in DEFAULTS:
            raise AttributeError(f"Invalid notification setting: {name!r}")
        user_settings = getattr(settings, "NOTIFICATIONS", None) or {}
        return user_settings.get(name, DEFAULTS[name])


notification_settings = NotificationSettings()
