"""
Django admin configuration for notification models.

Registers all notification models with the admin site:
- Notification
- NotificationSending
- NotificationSetting
"""

from django.contrib import admin

from notifications.models import (
    Notification,
    NotificationSending,
    NotificationSetting,
)


class NotificationSendingInline(admin.TabularInline):
    """Delivery attempts shown on the notification page."""

    model = NotificationSending
    extra = 0
    can_delete = False
    readonly_fields = ["way", "sent_to", "sent_result", "sent_at"]


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    """
    Admin configuration for Notification.

    Provides read-only view of notifications for debugging and support.
    Dispatch state is managed by the FSM and never edited here.
    """

    list_display = [
        "id",
        "code",
        "receiver_content_type",
        "receiver_id",
        "notifiable_content_type",
        "state",
        "official",
        "read_at",
        "sent_at",
        "created_at",
    ]
    list_filter = ["state", "official", "code", "receiver_content_type"]
    search_fields = ["receiver_id", "notifiable_id", "title", "body"]
    ordering = ["-id"]
    inlines = [NotificationSendingInline]
    readonly_fields = [
        "receiver_content_type",
        "receiver_id",
        "sender_content_type",
        "sender_id",
        "notifiable_content_type",
        "notifiable_id",
        "linked_content_type",
        "linked_id",
        "code",
        "title",
        "body",
        "link",
        "cc_emails",
        "official",
        "verbose",
        "read_at",
        "sent_at",
        "sending_at",
        "state",
        "scheduled_task_id",
        "failure_reason",
        "dispatch_attempts",
        "dispatch_started_at",
        "created_at",
        "updated_at",
    ]
    fieldsets = (
        (
            "Parties",
            {
                "fields": (
                    ("receiver_content_type", "receiver_id"),
                    ("sender_content_type", "sender_id"),
                    ("notifiable_content_type", "notifiable_id"),
                    ("linked_content_type", "linked_id"),
                ),
            },
        ),
        (
            "Content",
            {
                "fields": ("code", "title", "body", "link", "cc_emails", "official", "verbose"),
            },
        ),
        (
            "Dispatch",
            {
                "fields": (
                    "state",
                    "sending_at",
                    "sent_at",
                    "read_at",
                    "scheduled_task_id",
                    "dispatch_attempts",
                    "dispatch_started_at",
                    "failure_reason",
                ),
            },
        ),
        (
            "Timestamps",
            {
                "fields": ("created_at", "updated_at"),
                "classes": ("collapse",),
            },
        ),
    )

    def has_add_permission(self, request):
        return False


@admin.register(NotificationSending)
class NotificationSendingAdmin(admin.ModelAdmin):
    """Admin configuration for NotificationSending."""

    list_display = ["id", "notification", "way", "sent_to", "sent_result", "sent_at"]
    list_filter = ["way"]
    search_fields = ["sent_to", "sent_result"]
    raw_id_fields = ["notification"]
    ordering = ["-id"]


@admin.register(NotificationSetting)
class NotificationSettingAdmin(admin.ModelAdmin):
    """
    Admin configuration for NotificationSetting.

    Leave receiver id empty to set the default for every receiver of the type.
    """

    list_display = [
        "receiver_content_type",
        "receiver_id",
        "showtime",
        "accept_email",
        "updated_at",
    ]
    list_filter = ["receiver_content_type", "showtime", "accept_email"]
    search_fields = ["receiver_id"]
