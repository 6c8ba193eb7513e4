"""
Registration domain service - the registration request pipeline.

This module contains the core business logic for account creation. One
request passes through a strictly ordered chain of stages and stops at the
first stage that rejects it.

Pipeline
========

1. Rate limit         per-IP counter, RateLimited past the threshold
2. CSRF               token bound to the requester IP, CsrfRejected
                      (an optional bearer session token must also be valid)
3. CAPTCHA            opaque verifier, CaptchaRejected
4. Validation         every failing field at once, ValidationFailed
                      (guarded by the per IP+email failed-attempt lockout)
5. Password strength  WeakPassword with remediation hints
6. Uniqueness         DuplicateEmail
7. Hash + persist     bcrypt, new opaque id, email_verified=False
                      (2FA is only switched on once a secret is confirmed)
8. Side effects       2FA secret, verification email, access/refresh tokens

Side effects run after the account is committed. A failure there is logged
and reported in RegistrationResult.warnings; the account is kept.

The pipeline is not idempotent: resubmitting after stage 7 yields
DuplicateEmail, which the storage-level uniqueness constraint guarantees
even for concurrent submissions.
"""

import logging
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date
from typing import Any
from urllib.parse import urlencode

import bcrypt

from .accounts import AccountInput, NewAccount
from .exceptions import (
    CaptchaRejected,
    DuplicateEmail,
    InfrastructureUnavailable,
    ValidationFailed,
    WeakPassword,
)
from .guards import CsrfGuard, FailedAttemptTracker, RequestThrottle, TwoFactorEnrollment
from .ports import AccountRepository, CaptchaVerifier, EmailSender, TokenSigner
from .validation import check_password_strength, validate_registration

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegistrationRequest:
    """Everything the pipeline needs from one incoming HTTP request."""

    client_ip: str
    payload: Mapping[str, Any] = field(repr=False)
    csrf_token: str | None = field(default=None, repr=False)
    captcha_token: str | None = field(default=None, repr=False)
    enable_two_factor: bool = False
    session_token: str | None = field(default=None, repr=False)


@dataclass
class RegistrationResult:
    """Outcome of a successful registration."""

    account_id: str
    access_token: str | None = None
    refresh_token: str | None = None
    two_factor_secret: str | None = None
    two_factor_uri: str | None = None
    warnings: list[str] = field(default_factory=list)


@dataclass
class RegistrationService:
    """
    Domain service for account registration.

    All collaborators are injected; the service holds no connection state
    of its own and is safe to build per request.
    """

    repository: AccountRepository
    email_sender: EmailSender
    captcha_verifier: CaptchaVerifier
    token_signer: TokenSigner
    csrf_guard: CsrfGuard
    throttle: RequestThrottle
    failed_attempts: FailedAttemptTracker
    two_factor: TwoFactorEnrollment
    verification_url: str = "http://localhost:8000/users/verify-email"
    bcrypt_cost: int = 10

    def issue_csrf_token(self, client_ip: str) -> str:
        """Issue a CSRF token for the requester IP."""
        return self.csrf_guard.issue(client_ip)

    def check_email_available(self, email: str, client_ip: str) -> bool:
        """
        Return True when no account uses this email (case-insensitive).

        Lookups share the per-IP request counter with registration so the
        endpoint cannot be used to enumerate accounts unthrottled.
        """
        self.throttle.hit(client_ip)
        return self.repository.find_by_email(self._normalize_email(email)) is None

    def register(self, request: RegistrationRequest, today: date | None = None) -> RegistrationResult:
        """
        Run the registration pipeline for one request.

        Args:
            request: Client IP, raw payload and anti-abuse tokens
            today: Reference date for age checks (defaults to date.today())

        Returns:
            RegistrationResult with the new account id and issued tokens

        Raises:
            RegistrationError: The subclass identifies the rejecting stage
        """
        ip = request.client_ip

        self.throttle.hit(ip)

        self.csrf_guard.validate(ip, request.csrf_token)
        if request.session_token:
            self.token_signer.decode_access_token(request.session_token)

        if not request.captcha_token:
            logger.warning("CAPTCHA token missing ip=%s", ip)
            raise CaptchaRejected()
        if not self.captcha_verifier.verify(request.captcha_token, ip):
            logger.warning("CAPTCHA rejected ip=%s", ip)
            raise CaptchaRejected()

        attempt_email = self._normalize_email(str(request.payload.get("email") or ""))
        self.failed_attempts.ensure_allowed(ip, attempt_email)

        try:
            details = self._validate(request.payload, today)
            self._check_strength(details)
            if self.repository.find_by_email(details.email) is not None:
                raise DuplicateEmail()
            account = self.repository.create_account(
                NewAccount(
                    account_id=self._generate_account_id(),
                    password_hash=self._hash_password(details.password),
                    details=details,
                )
            )
        except (ValidationFailed, WeakPassword, DuplicateEmail) as exc:
            logger.info("Registration rejected ip=%s kind=%s", ip, exc.kind)
            self._record_failure(ip, attempt_email)
            raise

        logger.info("Account created account_id=%s ip=%s", account.account_id, ip)
        result = RegistrationResult(account_id=account.account_id)
        self._clear_failures(ip, attempt_email, result)
        self._run_side_effects(account.account_id, account.email, request, result)
        return result

    def _validate(self, payload: Mapping[str, Any], today: date | None) -> AccountInput:
        outcome = validate_registration(payload, today)
        if isinstance(outcome, list):
            raise ValidationFailed(outcome)
        return outcome

    def _check_strength(self, details: AccountInput) -> None:
        strength = check_password_strength(
            details.password,
            user_inputs=(details.email.split("@", 1)[0], details.first_name, details.last_name),
        )
        if not strength.is_strong:
            raise WeakPassword(strength.hints)

    def _record_failure(self, ip: str, email: str) -> None:
        try:
            self.failed_attempts.record_failure(ip, email)
        except InfrastructureUnavailable:
            logger.exception("Could not record failed attempt ip=%s", ip)

    def _clear_failures(self, ip: str, email: str, result: RegistrationResult) -> None:
        try:
            self.failed_attempts.clear(ip, email)
        except InfrastructureUnavailable:
            logger.exception("Could not clear failed attempts ip=%s", ip)
            result.warnings.append("Failed-attempt counter could not be reset")

    def _run_side_effects(
        self,
        account_id: str,
        email: str,
        request: RegistrationRequest,
        result: RegistrationResult,
    ) -> None:
        if request.enable_two_factor:
            try:
                result.two_factor_secret, result.two_factor_uri = self.two_factor.begin(
                    account_id, email
                )
            except InfrastructureUnavailable:
                logger.exception("2FA provisioning failed account_id=%s", account_id)
                result.warnings.append("Two-factor setup could not be started")

        try:
            token = self.token_signer.issue_verification_token(account_id, email)
            link = f"{self.verification_url}?{urlencode({'token': token})}"
            self.email_sender.send_verification_link(email, link)
        except InfrastructureUnavailable:
            logger.exception("Verification email failed account_id=%s", account_id)
            result.warnings.append("Verification email could not be sent")

        result.access_token, _ = self.token_signer.issue_access_token(account_id, email)
        result.refresh_token, _ = self.token_signer.issue_refresh_token(account_id)

    def _normalize_email(self, email: str) -> str:
        """
        Normalize email address for consistent storage and lookup.

        Applies: strip whitespace + lowercase
        """
        return email.strip().lower()

    def _generate_account_id(self) -> str:
        """Generate a new opaque account identifier."""
        return str(uuid.uuid4())

    def _hash_password(self, password: str) -> str:
        """Hash password using bcrypt with the configured cost factor."""
        return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=self.bcrypt_cost)).decode()
