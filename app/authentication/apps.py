"""
Django app configuration for authentication.
"""

from django.apps import AppConfig


class AuthenticationConfig(AppConfig):
    """Configuration for the authentication application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "authentication"
    verbose_name = "Authentication"

    def ready(self):
        """
        Connect signals and expose User as a notification receiver.

        The receiver adapter tells the notification engine where a user's
        timezone, socket tokens, push token and email address live.
        """
        from authentication import signals  # noqa: F401
        from authentication.models import User
        from authentication.receivers import UserReceiverAdapter
        from notifications.registry import receiver_registry

        receiver_registry.register(User, UserReceiverAdapter())
