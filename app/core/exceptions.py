"""
Application exception hierarchy.

Exception Hierarchy:
    BaseApplicationError (base)
    ├── ValidationError - Input rejected by the service layer
    └── ExternalServiceError - A broker, cache or gateway call failed

Every error carries a machine-readable `error_code` and a `details` dict;
ServiceResult.from_exception() turns one into a failed result.

Usage:
    from core.exceptions import ValidationError

    raise ValidationError(
        "Unknown notification code",
        error_code="UNKNOWN_CODE",
        details={"code": ["'refunded' is not registered for shop.order"]},
    )
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Base exception for all application-specific errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code, defaults to `default_error_code`
        details: Field errors or other context
    """

    default_error_code: str = "APPLICATION_ERROR"

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, error_code={self.error_code!r})"


class ValidationError(BaseApplicationError):
    """Input rejected by a service before anything is persisted."""

    default_error_code: str = "VALIDATION_ERROR"


class ExternalServiceError(BaseApplicationError):
    """
    A call to an external system failed.

    Log the original error; clients only see the message and code.
    """

    default_error_code: str = "EXTERNAL_SERVICE_ERROR"
