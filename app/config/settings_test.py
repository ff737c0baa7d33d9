"""
Test settings.

Imports the regular settings and replaces every external service with an
in-process equivalent so the suite runs without Postgres, Redis or SMTP.
Selected by pytest through DJANGO_SETTINGS_MODULE in pyproject.toml.
"""

import os

os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("ENV_FILE", "/nonexistent/.env.test")

from config.settings import *  # noqa: E402,F401,F403
from config.settings import INSTALLED_APPS, LOGGING, NOTIFICATIONS  # noqa: E402

DEBUG = False

INSTALLED_APPS = [*INSTALLED_APPS, "notifications.tests.testapp"]

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "notifications-tests",
    }
}

CHANNEL_LAYERS = {
    "default": {
        "BACKEND": "channels.layers.InMemoryChannelLayer",
    },
}

EMAIL_BACKEND = "django.core.mail.backends.locmem.EmailBackend"

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

CELERY_BROKER_URL = "memory://"
CELERY_RESULT_BACKEND = "cache+memory://"

# Let pytest caplog see notification logs
LOGGING = {
    **LOGGING,
    "loggers": {
        **LOGGING["loggers"],
        "notifications": {"handlers": [], "level": "DEBUG", "propagate": True},
    },
}

SECURE_SSL_REDIRECT = False
SESSION_COOKIE_SECURE = False
CSRF_COOKIE_SECURE = False

NOTIFICATIONS = {
    **NOTIFICATIONS,
    "LINK_HOST": "https://app.example.com",
    "DEFAULT_SEND_EMAIL": False,
    "RECONCILE_ON_CREATE": False,
    "DRIFT_THRESHOLD": 0,
    "PUSH_SERVER_KEY": "test-server-key",
    "TRANSLATIONS": {
        "en-us": {
            "notifications.notify.testapp.order.shipped.title": "Order #{number} shipped",
            "notifications.notify.testapp.order.shipped.body": (
                "Your order #{number} is on its way to {city}"
            ),
        },
    },
}
