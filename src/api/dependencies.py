"""
FastAPI dependencies - Dependency injection factories.

This module provides Depends() factories for injecting
domain services and infrastructure adapters into routes.
Connection handles (database pool, Redis client, HTTP client) are created
by the application lifespan and read from app.state; nothing here opens
a connection at import time.
"""

import httpx
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from psycopg_pool import ConnectionPool
from redis import Redis

from src.adapters.cache.redis_store import RedisTokenStore
from src.adapters.captcha.recaptcha import RecaptchaVerifier
from src.adapters.otp.totp import TotpGenerator
from src.adapters.repository.postgres import PostgresAccountRepository
from src.adapters.smtp.console import ConsoleEmailSender
from src.adapters.tokens.jwt_signer import JwtTokenSigner
from src.config.settings import Settings, get_settings
from src.domain.guards import CsrfGuard, FailedAttemptTracker, RequestThrottle, TwoFactorEnrollment
from src.domain.ports import (
    AccountRepository,
    CaptchaVerifier,
    EmailSender,
    OneTimePasswords,
    TokenSigner,
    TokenStore,
)
from src.domain.registration import RegistrationService
from src.domain.verification import EmailVerificationService

# Module-level singleton - ConsoleEmailSender is stateless
_email_sender = ConsoleEmailSender()


def resolve_client_ip(request: Request, trusted_proxies: list[str]) -> str:
    """
    Resolve the requester IP.

    Order: first X-Forwarded-For entry, X-Real-IP, then the socket peer.
    The forwarding headers are client-controlled, so they are only honoured
    when the socket peer is listed in ``trusted_proxies`` (or the list
    holds "*"). Trusting every peer lets a direct client pick its own IP
    and walk around every per-IP limit.
    """
    peer = request.client.host if request.client is not None else None
    if "*" in trusted_proxies or (peer is not None and peer in trusted_proxies):
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            first = forwarded.split(",")[0].strip()
            if first:
                return first
        real_ip = request.headers.get("x-real-ip")
        if real_ip and real_ip.strip():
            return real_ip.strip()
    return peer or "unknown"


def get_client_ip(request: Request, settings: Settings = Depends(get_settings)) -> str:
    """Resolve the requester IP and remember it for error logging."""
    client_ip = resolve_client_ip(request, settings.trusted_proxies)
    request.state.client_ip = client_ip
    return client_ip


def get_pool(request: Request) -> ConnectionPool:
    """
    Get connection pool from app state.

    The pool is created during app lifespan startup and stored in app.state.
    """
    return request.app.state.pool


def get_redis(request: Request) -> Redis:
    """Get the Redis client created during app lifespan startup."""
    return request.app.state.redis


def get_http_client(request: Request) -> httpx.Client:
    """Get the outbound HTTP client created during app lifespan startup."""
    return request.app.state.http_client


def get_repository(pool: ConnectionPool = Depends(get_pool)) -> AccountRepository:
    """Create repository with connection pool from app state."""
    return PostgresAccountRepository(pool)


def get_token_store(client: Redis = Depends(get_redis)) -> TokenStore:
    """Wrap the shared Redis client in the token store adapter."""
    return RedisTokenStore(client)


def get_email_sender() -> EmailSender:
    """Get console email sender (singleton)."""
    return _email_sender


def get_captcha_verifier(
    client: httpx.Client = Depends(get_http_client),
    settings: Settings = Depends(get_settings),
) -> CaptchaVerifier:
    """Create the reCAPTCHA verifier on the shared HTTP client."""
    return RecaptchaVerifier(
        client,
        secret=settings.recaptcha_secret,
        verify_url=settings.recaptcha_verify_url,
        min_score=settings.recaptcha_min_score,
    )


def get_token_signer(settings: Settings = Depends(get_settings)) -> TokenSigner:
    """Create the JWT signer from settings."""
    return JwtTokenSigner(
        secret=settings.jwt_secret,
        issuer=settings.jwt_issuer,
        access_ttl_seconds=settings.access_token_ttl_seconds,
        refresh_ttl_seconds=settings.refresh_token_ttl_seconds,
        verification_ttl_seconds=settings.verification_token_ttl_seconds,
    )


def get_one_time_passwords(settings: Settings = Depends(get_settings)) -> OneTimePasswords:
    """Create the TOTP generator from settings."""
    return TotpGenerator(issuer=settings.two_factor_issuer)


def get_two_factor_enrollment(
    store: TokenStore = Depends(get_token_store),
    otp: OneTimePasswords = Depends(get_one_time_passwords),
    settings: Settings = Depends(get_settings),
) -> TwoFactorEnrollment:
    """Create the pending-2FA holder over the token store."""
    return TwoFactorEnrollment(store, otp, ttl_seconds=settings.two_factor_ttl_seconds)


def get_registration_service(
    repository: AccountRepository = Depends(get_repository),
    store: TokenStore = Depends(get_token_store),
    email_sender: EmailSender = Depends(get_email_sender),
    captcha_verifier: CaptchaVerifier = Depends(get_captcha_verifier),
    token_signer: TokenSigner = Depends(get_token_signer),
    two_factor: TwoFactorEnrollment = Depends(get_two_factor_enrollment),
    settings: Settings = Depends(get_settings),
) -> RegistrationService:
    """
    Create registration service with injected dependencies.

    Wires the repository, token store guards and outbound collaborators
    into the domain pipeline.
    """
    return RegistrationService(
        repository=repository,
        email_sender=email_sender,
        captcha_verifier=captcha_verifier,
        token_signer=token_signer,
        csrf_guard=CsrfGuard(store, ttl_seconds=settings.csrf_ttl_seconds),
        throttle=RequestThrottle(
            store,
            max_requests=settings.rate_limit_max_requests,
            window_seconds=settings.rate_limit_window_seconds,
        ),
        failed_attempts=FailedAttemptTracker(
            store,
            max_failures=settings.failed_attempts_limit,
            lockout_seconds=settings.lockout_seconds,
        ),
        two_factor=two_factor,
        verification_url=f"{settings.public_base_url.rstrip('/')}/users/verify-email",
        bcrypt_cost=settings.bcrypt_cost,
    )


def get_verification_service(
    repository: AccountRepository = Depends(get_repository),
    token_signer: TokenSigner = Depends(get_token_signer),
    otp: OneTimePasswords = Depends(get_one_time_passwords),
    two_factor: TwoFactorEnrollment = Depends(get_two_factor_enrollment),
) -> EmailVerificationService:
    """Create the email verification service with injected dependencies."""
    return EmailVerificationService(
        repository=repository,
        token_signer=token_signer,
        otp=otp,
        two_factor=two_factor,
    )


# Bearer tokens are optional on registration (session continuity only)
http_bearer = HTTPBearer(auto_error=False)


def get_session_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(http_bearer),
) -> str | None:
    """Extract an optional bearer token from the Authorization header."""
    if credentials is None:
        return None
    return credentials.credentials
