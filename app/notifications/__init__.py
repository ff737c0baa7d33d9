"""
Notifications app: per-receiver notifications dispatched over realtime
sockets, email and mobile push.

This app provides:
- Notification model addressed to any receiver model (GenericForeignKey)
- NotificationService for creation, dispatch and read state
- Unread counters in the Django cache, reconciled from the database
- Celery tasks for dispatch, email and counter reconciliation
- REST API and a WebSocket consumer for the receiver's inbox

Usage:
    from notifications.services import NotificationService

    # Create a notification
    result = NotificationService.create_notification(
        receiver=user,
        notifiable=order,
        code="shipped",
    )

    if result.success:
        notification = result.data
"""
