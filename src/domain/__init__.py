"""
Domain layer - Pure business logic with zero framework imports.

This package contains the core business logic for account registration:
payload validation, the registration pipeline, anti-abuse guards and email
verification. It defines its own port interfaces for infrastructure
abstraction, ensuring true hexagonal architecture decoupling.
"""

from .accounts import (
    Account,
    AccountInput,
    AccountType,
    BusinessAccountInput,
    IndividualAccountInput,
    NewAccount,
)
from .exceptions import (
    AccountLocked,
    AuthTokenInvalid,
    CaptchaRejected,
    CsrfRejected,
    DuplicateEmail,
    FieldError,
    InfrastructureUnavailable,
    InvalidOrExpiredToken,
    RateLimited,
    RegistrationError,
    ValidationFailed,
    WeakPassword,
)
from .guards import CsrfGuard, FailedAttemptTracker, RequestThrottle, TwoFactorEnrollment
from .ports import (
    AccountRepository,
    CaptchaVerifier,
    EmailSender,
    OneTimePasswords,
    TokenSigner,
    TokenStore,
    VerifyResult,
)
from .registration import RegistrationRequest, RegistrationResult, RegistrationService
from .validation import check_password_strength, validate_registration
from .verification import EmailVerificationService

__all__ = [
    "Account",
    "AccountInput",
    "AccountLocked",
    "AccountRepository",
    "AccountType",
    "AuthTokenInvalid",
    "BusinessAccountInput",
    "CaptchaRejected",
    "CaptchaVerifier",
    "CsrfGuard",
    "CsrfRejected",
    "DuplicateEmail",
    "EmailSender",
    "EmailVerificationService",
    "FailedAttemptTracker",
    "FieldError",
    "IndividualAccountInput",
    "InfrastructureUnavailable",
    "InvalidOrExpiredToken",
    "NewAccount",
    "OneTimePasswords",
    "RateLimited",
    "RegistrationError",
    "RegistrationRequest",
    "RegistrationResult",
    "RegistrationService",
    "RequestThrottle",
    "TokenSigner",
    "TokenStore",
    "TwoFactorEnrollment",
    "ValidationFailed",
    "VerifyResult",
    "WeakPassword",
    "check_password_strength",
    "validate_registration",
]
