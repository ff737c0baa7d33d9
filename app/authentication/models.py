"""
Authentication models.

This module defines the account models that act as notification receivers:
- User: Custom user model with email-based authentication
- Profile: Per-user display and delivery preferences (timezone, push token)
- AuthorizedToken: Live session tokens; each active token is a socket
  destination for realtime notifications

Related files:
    - managers.py: Custom user manager for email-based creation
    - receivers.py: Adapter exposing these models to the notification engine
    - signals.py: Auto-create profile on user creation
"""

import secrets

from django.conf import settings
from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin
from django.db import models
from django.utils import timezone

from authentication.managers import UserManager
from core.models import BaseModel


class User(AbstractBaseUser, PermissionsMixin):
    """
    Custom User model using email as the primary identifier.

    Fields:
        email: Primary identifier, unique, used for login and mail delivery
        is_active: Whether the user account is active
        is_staff: Whether the user can access Django admin
        date_joined: When the user account was created
        updated_at: When the user record was last modified

    Usage:
        user = User.objects.create_user(
            email='user@example.com',
            password='securepassword'
        )
    """

    email = models.EmailField(
        unique=True,
        db_index=True,
        max_length=254,
        help_text="User's email address (primary identifier)",
    )
    is_active = models.BooleanField(
        default=True,
        help_text="Whether this user account is active. Deselect instead of deleting.",
    )
    is_staff = models.BooleanField(
        default=False,
        help_text="Whether the user can access the admin site.",
    )
    date_joined = models.DateTimeField(
        auto_now_add=True,
        help_text="When the user account was created",
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="When the user record was last modified",
    )

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = []

    objects = UserManager()

    class Meta:
        verbose_name = "user"
        verbose_name_plural = "users"
        ordering = ["-date_joined"]

    def __str__(self):
        return self.email

    def get_full_name(self):
        """Full name from the profile, falling back to the email."""
        try:
            return self.profile.full_name or self.email
        except Profile.DoesNotExist:
            return self.email

    def get_short_name(self):
        try:
            return self.profile.first_name or self.email.split("@")[0]
        except Profile.DoesNotExist:
            return self.email.split("@")[0]


class Profile(BaseModel):
    """
    Extended user profile data.

    Fields:
        user: OneToOne link to User (also serves as primary key)
        first_name: User's first name
        last_name: User's last name
        timezone: IANA timezone used to render notification snapshots
        push_token: Device registration token for mobile push; blank when the
            user has no registered device

    Note:
        Profile is automatically created via signals when a User is created.
    """

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="profile",
        primary_key=True,
        help_text="User this profile belongs to",
    )
    first_name = models.CharField(
        max_length=150,
        blank=True,
        help_text="User's first name",
    )
    last_name = models.CharField(
        max_length=150,
        blank=True,
        help_text="User's last name",
    )
    timezone = models.CharField(
        max_length=50,
        default="UTC",
        help_text="User's preferred timezone (e.g., 'America/New_York')",
    )
    push_token = models.CharField(
        max_length=255,
        blank=True,
        help_text="Push gateway registration token of the user's device",
    )

    class Meta:
        db_table = "authentication_profile"
        verbose_name = "profile"
        verbose_name_plural = "profiles"

    def __str__(self):
        return self.full_name or str(self.user)

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()


def generate_token():
    return secrets.token_urlsafe(32)


class AuthorizedTokenQuerySet(models.QuerySet):
    """QuerySet for AuthorizedToken."""

    def active(self):
        """Tokens that are neither revoked nor expired."""
        now = timezone.now()
        return self.filter(revoked_at__isnull=True).filter(
            models.Q(expires_at__isnull=True) | models.Q(expires_at__gt=now)
        )


class AuthorizedToken(BaseModel):
    """
    A live session token of a user.

    A websocket connects with one of these tokens and joins that token's
    channel group; realtime notifications are broadcast to every active
    token of the receiver.

    Fields:
        user: Owner of the session
        token: Opaque random value presented by the client
        expires_at: Optional expiry; null never expires
        revoked_at: Set when the session is logged out
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="authorized_tokens",
        help_text="User this session token belongs to",
    )
    token = models.CharField(
        max_length=64,
        unique=True,
        default=generate_token,
        help_text="Opaque session token presented by websocket clients",
    )
    expires_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When this token stops being accepted (null = never)",
    )
    revoked_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When this token was revoked",
    )

    objects = AuthorizedTokenQuerySet.as_manager()

    class Meta:
        db_table = "authentication_authorized_token"
        verbose_name = "authorized token"
        verbose_name_plural = "authorized tokens"
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.user} ({self.token[:8]}...)"

    @property
    def is_active(self):
        if self.revoked_at is not None:
            return False
        return self.expires_at is None or self.expires_at > timezone.now()

    def revoke(self):
        """Revoke the token so it no longer receives socket notifications."""
        if self.revoked_at is None:
            self.revoked_at = timezone.now()
            self.save(update_fields=["revoked_at", "updated_at"])
