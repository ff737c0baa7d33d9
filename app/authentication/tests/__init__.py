"""
Tests for the authentication app.

- test_models.py: UserManager, Profile creation, AuthorizedToken and the
  notification receiver adapter of User
"""
