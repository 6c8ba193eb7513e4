"""
Domain exceptions - Semantic error types for registration.

This module defines domain-specific exceptions that communicate
business rule violations without leaking infrastructure details.
Each exception carries a machine-readable ``kind`` that the API layer
maps to an HTTP status.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class FieldError:
    """A single failing field in a registration payload."""

    field: str
    message: str


class RegistrationError(Exception):
    """Base class for registration domain errors."""

    kind = "registration_error"
    default_message = "Registration failed"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)


class ValidationFailed(RegistrationError):
    """One or more payload fields failed validation."""

    kind = "validation_error"
    default_message = "Validation failed"

    def __init__(self, errors: list[FieldError], message: str | None = None) -> None:
        super().__init__(message)
        self.errors = errors


class WeakPassword(RegistrationError):
    """Password does not satisfy the strength policy."""

    kind = "weak_password"
    default_message = "Password is too weak"

    def __init__(self, hints: list[str], message: str | None = None) -> None:
        super().__init__(message)
        self.hints = hints


class CaptchaRejected(RegistrationError):
    """CAPTCHA token missing or rejected by the verifier."""

    kind = "captcha_failed"
    default_message = "CAPTCHA verification failed"


class CsrfRejected(RegistrationError):
    """CSRF token missing, expired, or not issued to this client."""

    kind = "forbidden"
    default_message = "Invalid CSRF token"


class RateLimited(RegistrationError):
    """Too many requests from one client within the window."""

    kind = "rate_limited"
    default_message = "Too many requests. Please try again later."


class AccountLocked(RegistrationError):
    """Too many failed attempts for one client and email."""

    kind = "too_many_failed_attempts"
    default_message = "Too many failed attempts. Please try again later."


class DuplicateEmail(RegistrationError):
    """Email is already registered."""

    kind = "duplicate_email"
    default_message = "Email already registered"


class AuthTokenInvalid(RegistrationError):
    """Bearer token presented with the request could not be verified."""

    kind = "auth_token_invalid"
    default_message = "Invalid or expired session token"


class InvalidOrExpiredToken(RegistrationError):
    """Verification token or 2FA code invalid, expired, or tampered with."""

    kind = "invalid_or_expired_token"
    default_message = "Invalid or expired token"


class InfrastructureUnavailable(RegistrationError):
    """Cache, database, or external service unreachable."""

    kind = "infrastructure_error"
    default_message = "Service temporarily unavailable"
