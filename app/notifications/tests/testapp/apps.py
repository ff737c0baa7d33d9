from django.apps import AppConfig


class NotificationTestAppConfig(AppConfig):
    """
    Test-only app with notifiable models.

    Order is registered with the notifiable registry; Comment is left
    unregistered so the fallbacks for unknown types are exercised.
    """

    default_auto_field = "django.db.models.BigAutoField"
    name = "notifications.tests.testapp"
    label = "testapp"

    def ready(self):
        from notifications.registry import NotifyConfig, notifiable_registry
        from notifications.tests.testapp.models import Order

        notifiable_registry.register(
            Order,
            {
                "shipped": NotifyConfig(
                    mailer="notifications.tests.testapp.mailers.OrderMailer",
                    mailer_method="shipped",
                    cc_emails=("warehouse@example.com", Order.contact_emails),
                    only=("number", "city", "shipped_at"),
                ),
                "delayed": {
                    "only": ["number"],
                    "tr_values": {"number": "N/A", "reason": "weather"},
                },
            },
        )
