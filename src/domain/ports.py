"""
Port interfaces - Protocol definitions for infrastructure abstraction.

This module defines the interfaces (ports) that the domain requires
from infrastructure. Adapters implement these protocols.
"""

from enum import Enum
from typing import Any, Protocol

from .accounts import Account, NewAccount


class VerifyResult(Enum):
    """
    Result of a successful email verification.

    Failures are never reported through this enum: every failure raises
    the single generic InvalidOrExpiredToken so callers cannot tell which
    check failed.
    """

    VERIFIED = "verified"
    ALREADY_VERIFIED = "already_verified"


class AccountRepository(Protocol):
    """Port interface for account persistence."""

    def create_account(self, account: NewAccount) -> Account:
        """
        Insert a new account with email_verified=False.

        Raises:
            DuplicateEmail: If the email is already registered. This must be
                enforced by the store itself, not only by a prior lookup.
            InfrastructureUnavailable: If the store cannot be reached.
        """
        ...

    def find_by_email(self, email: str) -> Account | None:
        """Look up an account by email, case-insensitively."""
        ...

    def get_account(self, account_id: str) -> Account | None:
        """Look up an account by id."""
        ...

    def mark_email_verified(
        self, account_id: str, two_factor_secret: str | None = None
    ) -> bool:
        """
        Flip email_verified to true, optionally confirming a 2FA secret.

        Returns:
            True if the flag changed, False if the account was already
            verified or does not exist.
        """
        ...


class TokenStore(Protocol):
    """
    Port interface for the ephemeral key-value store.

    Every write carries an expiry. Implementations raise
    InfrastructureUnavailable when the backing cache is unreachable.
    """

    def put(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store a value that expires after ttl_seconds."""
        ...

    def get(self, key: str) -> str | None:
        """Return the stored value, or None if absent or expired."""
        ...

    def incr_with_expiry(self, key: str, ttl_seconds: int) -> int:
        """Atomically increment a counter, starting its expiry on first use."""
        ...

    def delete(self, key: str) -> None:
        """Remove a key if present."""
        ...


class EmailSender(Protocol):
    """Port interface for email delivery."""

    def send_verification_link(self, email: str, link: str) -> None:
        """
        Send an email verification link.

        Args:
            email: Recipient email address
            link: Absolute URL carrying the signed verification token
        """
        ...


class CaptchaVerifier(Protocol):
    """Port interface for CAPTCHA challenge-response verification."""

    def verify(self, token: str, remote_ip: str | None = None) -> bool:
        """Return True when the third party accepts the token."""
        ...


class TokenSigner(Protocol):
    """Port interface for signed, time-boxed tokens."""

    def issue_access_token(self, account_id: str, email: str) -> tuple[str, int]:
        """Return (token, expires_in_seconds) for immediate client use."""
        ...

    def issue_refresh_token(self, account_id: str) -> tuple[str, int]:
        """Return (token, expires_in_seconds) for obtaining new access tokens."""
        ...

    def decode_access_token(self, token: str) -> dict[str, Any]:
        """
        Decode an access token.

        Raises:
            AuthTokenInvalid: If the token is invalid, expired, or not an access token.
        """
        ...

    def issue_verification_token(self, account_id: str, email: str) -> str:
        """Return a signed token encoding account id and email."""
        ...

    def decode_verification_token(self, token: str) -> tuple[str, str]:
        """
        Decode a verification token into (account_id, email).

        Raises:
            InvalidOrExpiredToken: If the token is invalid, expired, or tampered with.
        """
        ...


class OneTimePasswords(Protocol):
    """Port interface for time-based one-time passwords."""

    def generate_secret(self) -> str:
        """Return a new base32 shared secret."""
        ...

    def provisioning_uri(self, secret: str, account_name: str) -> str:
        """Return an otpauth:// URI for authenticator apps."""
        ...

    def verify(self, secret: str, code: str) -> bool:
        """Return True when code is valid for secret right now."""
        ...
