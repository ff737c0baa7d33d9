"""
Serializers for notification API.

This module provides DRF serializers for the notification endpoints.

Serializers:
    NotificationSerializer: Read-only notification with resolved content
    UnreadCountSerializer: Response for unread count endpoint
    MarkAllReadResponseSerializer: Response for mark all read endpoint

Usage:
    from notifications.serializers import NotificationSerializer

    serializer = NotificationSerializer(notification)
    data = serializer.data
"""

from __future__ import annotations

from typing import Any

from rest_framework import serializers

from notifications.content import ContentResolver
from notifications.models import Notification


class NotificationSerializer(serializers.ModelSerializer):
    """
    Serializer for Notification model.

    Title, body and link are resolved through ContentResolver, so stored
    overrides win and blank fields are derived from translations and the
    linked entity. `attributes` holds the notifiable snapshot for verbose
    notifications and is null otherwise.

    Usage:
        serializer = NotificationSerializer(notification)
        serializer = NotificationSerializer(notifications, many=True)
    """

    title = serializers.SerializerMethodField()
    body = serializers.SerializerMethodField()
    link = serializers.SerializerMethodField()
    category = serializers.SerializerMethodField()
    is_read = serializers.BooleanField(read_only=True)
    attributes = serializers.SerializerMethodField()

    class Meta:
        model = Notification
        fields = [
            "id",
            "code",
            "category",
            "title",
            "body",
            "link",
            "official",
            "is_read",
            "read_at",
            "sent_at",
            "sending_at",
            "attributes",
            "created_at",
        ]
        read_only_fields = fields

    @property
    def resolver(self) -> ContentResolver:
        if "resolver" not in self.context:
            self.context["resolver"] = ContentResolver()
        return self.context["resolver"]

    def get_title(self, obj: Notification) -> str:
        return self.resolver.title(obj)

    def get_body(self, obj: Notification) -> str:
        return self.resolver.body(obj)

    def get_link(self, obj: Notification) -> str:
        return self.resolver.link(obj)

    def get_category(self, obj: Notification) -> str | None:
        """Notifiable type label ("shop.order"), or None without a notifiable."""
        content_type = obj.notifiable_content_type
        if content_type is None:
            return None
        return f"{content_type.app_label}.{content_type.model}"

    def get_attributes(self, obj: Notification) -> dict[str, Any] | None:
        if not obj.verbose:
            return None
        return self.resolver.verbose_attributes(obj)


class UnreadCountSerializer(serializers.Serializer):
    """
    Response serializer for unread count endpoint.

    Fields:
        unread_count: Unread notifications in total
        details: Counter per scope ("all", category labels, "official")
    """

    unread_count = serializers.IntegerField()
    details = serializers.DictField(child=serializers.IntegerField())


class MarkAllReadResponseSerializer(serializers.Serializer):
    """
    Response serializer for mark all read endpoint.

    Fields:
        marked_count: Integer count of notifications marked as read
    """

    marked_count = serializers.IntegerField()
