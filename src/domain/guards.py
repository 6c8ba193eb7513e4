"""
Anti-abuse guards backed by the ephemeral token store.

Key layout (purpose tag first, then subject):
- csrf:<ip>                         CSRF token bound to the requester IP
- rate-limit:<ip>                   registration attempts in the current window
- failed-attempts:<ip>:<email>      rejected registrations for one email
- 2fa:<account id>                  TOTP secret pending confirmation

All guards fail closed: a store outage surfaces as InfrastructureUnavailable
from the store itself and is never interpreted as "allowed".
"""

import logging
import secrets
from dataclasses import dataclass

from .exceptions import AccountLocked, CsrfRejected, RateLimited
from .ports import OneTimePasswords, TokenStore

logger = logging.getLogger(__name__)


@dataclass
class CsrfGuard:
    """Issues and checks per-IP CSRF tokens (reusable until expiry)."""

    store: TokenStore
    ttl_seconds: int = 300

    def issue(self, client_ip: str) -> str:
        token = secrets.token_urlsafe(32)
        self.store.put(self._key(client_ip), token, self.ttl_seconds)
        return token

    def validate(self, client_ip: str, token: str | None) -> None:
        """
        Raises:
            CsrfRejected: If the token is missing, expired, or issued to another IP.
        """
        if not token:
            logger.warning("CSRF token missing ip=%s", client_ip)
            raise CsrfRejected()
        stored = self.store.get(self._key(client_ip))
        if stored is None or not secrets.compare_digest(stored.encode(), token.encode()):
            logger.warning("CSRF token rejected ip=%s", client_ip)
            raise CsrfRejected()

    @staticmethod
    def _key(client_ip: str) -> str:
        return f"csrf:{client_ip}"


@dataclass
class RequestThrottle:
    """Fixed-threshold request counter per client IP."""

    store: TokenStore
    max_requests: int = 5
    window_seconds: int = 300

    def hit(self, client_ip: str) -> int:
        """
        Count one request and return the running total for the window.

        Raises:
            RateLimited: If the total exceeds max_requests.
        """
        count = self.store.incr_with_expiry(f"rate-limit:{client_ip}", self.window_seconds)
        if count > self.max_requests:
            logger.warning("Rate limit exceeded ip=%s count=%d", client_ip, count)
            raise RateLimited()
        return count


@dataclass
class FailedAttemptTracker:
    """Locks out an (IP, email) pair after repeated rejected registrations."""

    store: TokenStore
    max_failures: int = 5
    lockout_seconds: int = 900

    def ensure_allowed(self, client_ip: str, email: str) -> None:
        """
        Raises:
            AccountLocked: If the pair has reached max_failures.
        """
        value = self.store.get(self._key(client_ip, email))
        if value is not None and int(value) >= self.max_failures:
            logger.warning("Locked out after failed attempts ip=%s", client_ip)
            raise AccountLocked()

    def record_failure(self, client_ip: str, email: str) -> int:
        return self.store.incr_with_expiry(self._key(client_ip, email), self.lockout_seconds)

    def clear(self, client_ip: str, email: str) -> None:
        self.store.delete(self._key(client_ip, email))

    @staticmethod
    def _key(client_ip: str, email: str) -> str:
        return f"failed-attempts:{client_ip}:{email}"


@dataclass
class TwoFactorEnrollment:
    """Holds freshly generated TOTP secrets until the account confirms them."""

    store: TokenStore
    otp: OneTimePasswords
    ttl_seconds: int = 86400

    def begin(self, account_id: str, account_name: str) -> tuple[str, str]:
        """Generate and park a secret; return (secret, otpauth URI)."""
        secret = self.otp.generate_secret()
        self.store.put(self._key(account_id), secret, self.ttl_seconds)
        return secret, self.otp.provisioning_uri(secret, account_name)

    def pending_secret(self, account_id: str) -> str | None:
        return self.store.get(self._key(account_id))

    def discard(self, account_id: str) -> None:
        self.store.delete(self._key(account_id))

    @staticmethod
    def _key(account_id: str) -> str:
        return f"2fa:{account_id}"
