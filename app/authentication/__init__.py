"""
Authentication application.

Accounts that receive notifications.

Key components:
    - User model: Custom email-based user authentication
    - Profile model: Timezone and push token of the user
    - AuthorizedToken model: Live session tokens used as socket destinations
    - UserReceiverAdapter: Exposes the above to the notification engine

Usage:
    from authentication.models import User, Profile, AuthorizedToken
"""
