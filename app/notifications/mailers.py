"""
Notification mailers.

A mailer is a class whose methods take one object id and send one email.
EmailChannel enqueues send_notification_email with a mailer path, a method
name and an id; the task instantiates the mailer and calls the method.

    - Default: NotificationMailer.notify(notification_id)
    - Per category: NotifyConfig(mailer="shop.mailers.OrderMailer",
      mailer_method="shipped") is called with the notifiable id

Usage:
    class OrderMailer(BaseMailer):
        def shipped(self, order_id):
            order = Order.objects.get(pk=order_id)
            return self.send(
                to=[order.customer_email],
                subject=f"Order {order.number} shipped",
                context={"order": order},
            )
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.template.loader import render_to_string

from notifications.content import ContentResolver
from notifications.registry import receiver_registry

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)


class BaseMailer:
    """Renders HTML and plain text templates and sends one message."""

    template_name = "notifications/email/notification"

    def send(
        self,
        to: Sequence[str],
        subject: str,
        context: dict[str, Any],
        cc: Sequence[str] | None = None,
        template_name: str | None = None,
    ) -> bool:
        """
        Send one email rendered from `{template_name}.txt` and `.html`.

        Returns:
            True if a message was handed to the email backend

        Raises:
            Exceptions from the email backend, so the task can retry.
        """
        recipients = [address for address in to if address]
        if not recipients:
            logger.info(f"Email '{subject}' has no recipient, not sent")
            return False

        template_name = template_name or self.template_name
        text_content = render_to_string(f"{template_name}.txt", context)
        html_content = render_to_string(f"{template_name}.html", context)

        email = EmailMultiAlternatives(
            subject=subject,
            body=text_content,
            from_email=settings.DEFAULT_FROM_EMAIL,
            to=recipients,
            cc=[address for address in cc or [] if address],
        )
        email.attach_alternative(html_content, "text/html")
        email.send(fail_silently=False)

        logger.info(f"Email sent to {recipients}: {subject}")
        return True


class NotificationMailer(BaseMailer):
    """Default mailer: sends the notification's own title, body and link."""

    def notify(self, notification_id: int) -> bool:
        from notifications.models import Notification

        try:
            notification = Notification.objects.get(pk=notification_id)
        except Notification.DoesNotExist:
            logger.warning(f"Notification {notification_id} not found, email not sent")
            return False

        receiver = notification.receiver
        if receiver is None:
            logger.warning(f"Notification {notification_id} has no receiver, email not sent")
            return False

        address = receiver_registry.adapter_for(receiver).email(receiver)
        content = ContentResolver().resolve(notification)

        return self.send(
            to=[address] if address else [],
            subject=content.title,
            cc=content.cc_emails,
            context={
                "notification": notification,
                "receiver": receiver,
                "title": content.title,
                "body": content.body,
                "link": content.link,
            },
        )
