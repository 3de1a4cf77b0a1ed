"""Typed failures raised by the auth core.

The transport layer (api.errors) is the only place these become HTTP
responses; nothing in services/ knows about status lines or cookies beyond
the `status` hint carried here.
"""
from __future__ import annotations


class AuthServiceError(Exception):
    """Base exception for all auth-core failures."""

    code = "AUTH_ERROR"
    status = 400
    default_message = "Request failed"

    def __init__(self, message: str | None = None, details: dict | None = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class ValidationError(AuthServiceError):
    """Malformed input; message is safe to show verbatim."""

    code = "VALIDATION_ERROR"
    status = 422
    default_message = "Invalid input"


class AuthenticationError(AuthServiceError):
    code = "UNAUTHORIZED"
    status = 401
    default_message = "Authentication failed"


class InvalidCredentialsError(AuthenticationError):
    """Unknown email, OAuth-only account and wrong password all look like this."""

    code = "INVALID_CREDENTIALS"
    default_message = "Invalid email or password"


class InvalidTokenError(AuthenticationError):
    code = "INVALID_TOKEN"
    default_message = "Invalid token"


class TokenExpiredError(AuthenticationError):
    code = "TOKEN_EXPIRED"
    default_message = "Token expired"


class ReauthenticationRequired(AuthenticationError):
    """Refresh session unknown, expired, or already rotated."""

    code = "REAUTHENTICATION_REQUIRED"
    default_message = "Session expired, please log in again"


class CsrfError(AuthenticationError):
    code = "CSRF_FAILED"
    status = 403
    default_message = "CSRF token missing or invalid"


class AuthorizationError(AuthServiceError):
    code = "FORBIDDEN"
    status = 403
    default_message = "Insufficient permissions"


class NotFoundError(AuthServiceError):
    """Internal only; callers fold it into a generic answer."""

    code = "NOT_FOUND"
    status = 404
    default_message = "Resource not found"


class ConflictError(AuthServiceError):
    code = "CONFLICT"
    status = 409
    default_message = "Email already registered"


class ExternalServiceError(AuthServiceError):
    code = "EXTERNAL_SERVICE_ERROR"
    status = 502
    default_message = "An upstream service failed, please try again later"


class ServiceUnavailableError(AuthServiceError):
    code = "SERVICE_UNAVAILABLE"
    status = 503
    default_message = "The service is under maintenance"
