"""
Notification setting lookup.

Receivers control two delivery preferences through NotificationSetting:
    - showtime: clients should display the time of socket notifications
    - accept_email: True / False, or null to use the global default
      NOTIFICATIONS["DEFAULT_SEND_EMAIL"]

Resolution:
    1. The row for the exact receiver
    2. The row for the receiver's type (receiver_id null)
    3. No setting

Usage:
    from notifications.preferences import NotificationSettingService

    setting = NotificationSettingService.get_setting(user)
    if NotificationSettingService.email_enabled(notification):
        ...

    # Default for every user
    NotificationSettingService.set_setting(User, accept_email=False)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from django.contrib.contenttypes.models import ContentType
from django.db.models import Model

from core.services import BaseService, ServiceResult
from notifications.conf import notification_settings
from notifications.models import NotificationSetting

if TYPE_CHECKING:
    from notifications.models import Notification

UNSET: Any = object()


@dataclass(frozen=True)
class ResolvedSetting:
    """
    Effective setting of one receiver.

    Attributes:
        showtime: Display time flag of the matched row
        accept_email: Email choice of the matched row (None = unset)
        receiver_specific: True when the receiver's own row matched,
            False when the receiver type default matched
    """

    showtime: bool
    accept_email: bool | None
    receiver_specific: bool


class NotificationSettingService(BaseService):
    """Read and write NotificationSetting rows."""

    @classmethod
    def get_setting(cls, receiver: Model | None) -> ResolvedSetting | None:
        """
        Effective setting of a receiver, or None when no row applies.

        The receiver's own row wins over its type default.
        """
        if receiver is None:
            return None

        content_type = ContentType.objects.get_for_model(receiver)
        row = NotificationSetting.objects.filter(
            receiver_content_type=content_type,
            receiver_id=str(receiver.pk),
        ).first()
        if row is None:
            row = NotificationSetting.objects.filter(
                receiver_content_type=content_type,
                receiver_id__isnull=True,
            ).first()
        if row is None:
            return None
        return ResolvedSetting(
            showtime=row.showtime,
            accept_email=row.accept_email,
            receiver_specific=row.receiver_id is not None,
        )

    @classmethod
    def set_setting(
        cls,
        target: Model | type[Model],
        showtime: bool = UNSET,
        accept_email: bool | None = UNSET,
    ) -> ServiceResult[NotificationSetting]:
        """
        Create or update a setting.

        Args:
            target: A receiver instance, or a receiver model class to set
                the default for every receiver of that type
            showtime: New showtime flag (left unchanged when omitted)
            accept_email: True/False/None (left unchanged when omitted)
        """
        if isinstance(target, type):
            content_type = ContentType.objects.get_for_model(target)
            receiver_id = None
        else:
            content_type = ContentType.objects.get_for_model(target)
            receiver_id = str(target.pk)

        defaults: dict[str, Any] = {}
        if showtime is not UNSET:
            defaults["showtime"] = bool(showtime)
        if accept_email is not UNSET:
            defaults["accept_email"] = accept_email

        with cls.atomic():
            setting, created = NotificationSetting.objects.update_or_create(
                receiver_content_type=content_type,
                receiver_id=receiver_id,
                defaults=defaults,
            )

        target_label = receiver_id or "*"
        cls.get_logger().info(
            f"{'Created' if created else 'Updated'} notification setting "
            f"{content_type.app_label}.{content_type.model}:{target_label} {defaults}"
        )
        return ServiceResult.success(setting)

    @classmethod
    def showtime_for(cls, receiver: Model | None) -> bool | None:
        """Showtime flag of the receiver, or None without a setting."""
        setting = cls.get_setting(receiver)
        return setting.showtime if setting else None

    @classmethod
    def email_enabled(cls, notification: Notification) -> bool:
        """
        Whether the email channel should run for a notification.

        Explicit accept -> True, explicit decline -> False, unset or no
        setting -> NOTIFICATIONS["DEFAULT_SEND_EMAIL"].
        """
        setting = cls.get_setting(notification.receiver)
        if setting is not None and setting.accept_email is not None:
            return setting.accept_email
        return bool(notification_settings.DEFAULT_SEND_EMAIL)
