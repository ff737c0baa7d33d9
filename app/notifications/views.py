"""
Views for notification API.

This module provides the ViewSet for the authenticated user's inbox.

ViewSets:
    NotificationViewSet: ReadOnlyModelViewSet with custom actions for read status

Endpoints:
    GET /api/v1/notifications/ - List notifications (newest first, ?state=unread|read)
    GET /api/v1/notifications/{id}/ - Get notification detail
    GET /api/v1/notifications/unread-count/ - Get unread counters
    POST /api/v1/notifications/{id}/read/ - Mark single notification as read
    POST /api/v1/notifications/{id}/unread/ - Mark single notification as unread
    POST /api/v1/notifications/read-all/ - Mark all notifications as read

Usage:
    # In urls.py
    from rest_framework.routers import DefaultRouter
    from notifications.views import NotificationViewSet

    router = DefaultRouter()
    router.register(r"", NotificationViewSet, basename="notification")
"""

from __future__ import annotations

from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from drf_spectacular.utils import (
    extend_schema,
    extend_schema_view,
    OpenApiParameter,
    OpenApiResponse,
)

from notifications import counters
from notifications.models import Notification
from notifications.serializers import (
    MarkAllReadResponseSerializer,
    NotificationSerializer,
    UnreadCountSerializer,
)
from notifications.services import NotificationService

STATE_FILTERS = ("unread", "read")


@extend_schema_view(
    list=extend_schema(
        operation_id="list_notifications",
        summary="List notifications",
        description=(
            "Get paginated list of notifications for the authenticated user, "
            "newest first. Supports filtering by read state."
        ),
        parameters=[
            OpenApiParameter(
                name="state",
                type=str,
                location=OpenApiParameter.QUERY,
                description="Filter by read state",
                enum=list(STATE_FILTERS),
                required=False,
            ),
        ],
        tags=["Notifications - Inbox"],
    ),
    retrieve=extend_schema(
        operation_id="get_notification",
        summary="Get notification",
        description="Get details of a specific notification.",
        tags=["Notifications - Inbox"],
    ),
)
class NotificationViewSet(viewsets.ReadOnlyModelViewSet):
    """
    ViewSet for notification operations.

    Provides:
    - list: GET / - List user's notifications with filtering
    - retrieve: GET /{id}/ - Get notification detail
    - unread_count: GET /unread-count/ - Get badge counters
    - read: POST /{id}/read/ - Mark single as read
    - unread: POST /{id}/unread/ - Mark single as unread
    - read_all: POST /read-all/ - Mark all as read

    Permissions:
    - All endpoints require authentication
    - Users can only access notifications they receive
    """

    permission_classes = [IsAuthenticated]
    serializer_class = NotificationSerializer

    def get_queryset(self):
        """
        Notifications received by the current user, newest first.

        Supports query parameters:
        - state: "unread" or "read"
        """
        queryset = (
            Notification.objects.for_receiver(self.request.user)
            .select_related("notifiable_content_type", "linked_content_type")
            .order_by("-id")
        )

        state = self.request.query_params.get("state")
        if state is None:
            return queryset
        if state not in STATE_FILTERS:
            raise ValidationError({"state": [f"Expected one of: {', '.join(STATE_FILTERS)}"]})
        return queryset.unread() if state == "unread" else queryset.read()

    @extend_schema(
        operation_id="get_unread_notification_count",
        summary="Get unread notification count",
        description=(
            "Get the unread counters for badge display: the total, one per "
            "notifiable category and the official count."
        ),
        responses={200: UnreadCountSerializer},
        tags=["Notifications - Inbox"],
    )
    @action(detail=False, methods=["get"], url_path="unread-count")
    def unread_count(self, request):
        """
        Get unread counters from the cache.

        Returns:
            {"unread_count": <int>, "details": {"all": <int>, ...}}
        """
        details = NotificationService.unread_count_details(request.user)
        serializer = UnreadCountSerializer(
            {"unread_count": details[counters.ALL], "details": details}
        )
        return Response(serializer.data)

    @extend_schema(
        operation_id="mark_notification_read",
        summary="Mark notification as read",
        description=(
            "Mark a single notification as read. "
            "This operation is idempotent - already-read notifications return success."
        ),
        request=None,
        responses={
            200: NotificationSerializer,
            404: OpenApiResponse(description="Notification not found"),
        },
        tags=["Notifications - Inbox"],
    )
    @action(detail=True, methods=["post"])
    def read(self, request, pk=None):
        """
        Mark single notification as read.

        Returns 404 if the notification doesn't exist or belongs to another
        receiver.
        """
        result = NotificationService.mark_as_read(self.get_object())
        serializer = self.get_serializer(result.data)
        return Response(serializer.data)

    @extend_schema(
        operation_id="mark_notification_unread",
        summary="Mark notification as unread",
        description=(
            "Mark a single notification as unread. "
            "This operation is idempotent - already-unread notifications return success."
        ),
        request=None,
        responses={
            200: NotificationSerializer,
            404: OpenApiResponse(description="Notification not found"),
        },
        tags=["Notifications - Inbox"],
    )
    @action(detail=True, methods=["post"])
    def unread(self, request, pk=None):
        """Mark single notification as unread."""
        result = NotificationService.mark_as_unread(self.get_object())
        serializer = self.get_serializer(result.data)
        return Response(serializer.data)

    @extend_schema(
        operation_id="mark_all_notifications_read",
        summary="Mark all notifications as read",
        description="Mark all unread notifications for the authenticated user as read.",
        request=None,
        responses={200: MarkAllReadResponseSerializer},
        tags=["Notifications - Inbox"],
    )
    @action(detail=False, methods=["post"], url_path="read-all")
    def read_all(self, request):
        """
        Mark all user's notifications as read.

        Returns:
            {"marked_count": <int>}
        """
        result = NotificationService.mark_all_as_read(request.user)

        serializer = MarkAllReadResponseSerializer({"marked_count": result.data})
        return Response(serializer.data)
