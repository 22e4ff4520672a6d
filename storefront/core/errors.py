"""
Error taxonomy shared by all services.

Every service raises subclasses of these errors. The API layer maps
``status_code`` onto the HTTP response, so services never deal with
HTTP concepts directly.
"""

from typing import Any


class StorefrontError(Exception):
    """Base exception for storefront errors."""

    status_code: int = 500

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context


class ValidationFailedError(StorefrontError):
    """Raised when request data is missing or malformed."""

    status_code = 400


class BusinessRuleError(StorefrontError):
    """Raised when a request is well formed but breaks a business rule."""

    status_code = 400


class AuthenticationError(StorefrontError):
    """Raised when the caller could not be identified."""

    status_code = 401


class AuthorizationError(StorefrontError):
    """Raised when the caller may not act on the resource."""

    status_code = 403


class NotFoundError(StorefrontError):
    """Raised when a referenced entity does not exist."""

    status_code = 404
