"""
Test configuration and fixtures for authentication tests.
"""

import pytest

from authentication.tests.factories import AuthorizedTokenFactory, UserFactory


@pytest.fixture
def user(db):
    """A basic active user with its auto-created profile."""
    return UserFactory()


@pytest.fixture
def active_token(user):
    return AuthorizedTokenFactory(user=user)
