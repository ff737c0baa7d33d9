"""
Notification engine exceptions.

Exception Hierarchy:
    core.exceptions.ValidationError
    └── NotificationValidationError - Bad create request, nothing persisted
    core.exceptions.ExternalServiceError
    ├── TransportError - Socket, push or mail transport failure
    └── SchedulingError - Dispatch could not be enqueued
    core.exceptions.BaseApplicationError
    └── CacheInconsistencyError - Unread counter drifted from the database

Usage:
    try:
        gateway.push_single(token, title=title, body=body, payload=payload)
    except TransportError as e:
        if e.retryable:
            ...
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import BaseApplicationError, ExternalServiceError, ValidationError

if TYPE_CHECKING:
    from typing import Any


class NotificationValidationError(ValidationError):
    """Raised synchronously by create when the request is invalid."""

    default_error_code: str = "INVALID_NOTIFICATION"


class TransportError(ExternalServiceError):
    """
    Raised by transports when delivery fails.

    Attributes:
        retryable: True when the failure is transient (timeouts, 5xx) and a
            later dispatch may succeed; False for permanent failures such as
            an unregistered device token
    """

    default_error_code: str = "TRANSPORT_ERROR"

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
        retryable: bool = True,
    ):
        super().__init__(message, error_code=error_code, details=details)
        self.retryable = retryable


class SchedulingError(ExternalServiceError):
    """Raised when a dispatch job could not be enqueued."""

    default_error_code: str = "SCHEDULING_ERROR"


class CacheInconsistencyError(BaseApplicationError):
    """
    Unread counter differs from the database by more than the threshold.

    Reconcile builds and logs this, then corrects the counter. It is not
    raised to callers.
    """

    default_error_code: str = "CACHE_INCONSISTENCY"

    def __init__(self, key: str, cached: int, actual: int):
        super().__init__(
            f"Unread counter {key} drifted: cached={cached} actual={actual}",
            details={"key": key, "cached": cached, "actual": actual},
        )
        self.key = key
        self.cached = cached
        self.actual = actual
