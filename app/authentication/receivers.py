"""
Notification receiver adapter for User.

Registered with notifications.registry.receiver_registry in
AuthenticationConfig.ready().
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from notifications.registry import ReceiverAdapter

if TYPE_CHECKING:
    from authentication.models import User


class UserReceiverAdapter(ReceiverAdapter):
    """
    Resolves delivery capabilities of a User.

    Timezone and push token live on Profile; socket destinations are the
    user's active AuthorizedTokens.
    """

    def _profile(self, user: User):
        from authentication.models import Profile

        try:
            return user.profile
        except Profile.DoesNotExist:
            return None

    def timezone(self, user: User) -> str | None:
        profile = self._profile(user)
        return profile.timezone if profile else None

    def socket_tokens(self, user: User) -> list[str]:
        return list(
            user.authorized_tokens.active()
            .order_by("created_at", "id")
            .values_list("token", flat=True)
        )

    def push_token(self, user: User) -> str | None:
        profile = self._profile(user)
        return (profile.push_token or None) if profile else None

    def email(self, user: User) -> str | None:
        return user.email or None
