"""Django app configuration for notifications."""

from django.apps import AppConfig


class NotificationsConfig(AppConfig):
    """
    Configuration for the notifications app.

    Apps that send notifications register their notifiable models in their
    own ready() with notifications.registry.notifiable_registry; receiver
    models register a ReceiverAdapter with receiver_registry.
    """

    default_auto_field = "django.db.models.BigAutoField"
    name = "notifications"
    verbose_name = "Notifications"
