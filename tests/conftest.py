"""
Shared test fixtures and configuration.

This module provides pytest fixtures for:
- In-memory fakes for the account repository, CAPTCHA verifier and email sender
- A fakeredis-backed token store
- Domain services wired exactly as the API wires them
- A FastAPI test client with infrastructure dependencies overridden
"""

import threading
from dataclasses import replace
from datetime import datetime, timezone

import fakeredis
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.adapters.cache.redis_store import RedisTokenStore
from src.adapters.otp.totp import TotpGenerator
from src.adapters.tokens.jwt_signer import JwtTokenSigner
from src.api.dependencies import (
    get_captcha_verifier,
    get_email_sender,
    get_registration_service,
    get_repository,
    get_token_store,
    get_two_factor_enrollment,
    get_verification_service,
)
from src.api.errors import register_exception_handlers
from src.api.routes import router
from src.config.settings import Settings, get_settings
from src.domain.accounts import Account, NewAccount
from src.domain.exceptions import DuplicateEmail
from src.domain.registration import RegistrationService
from src.domain.verification import EmailVerificationService

VALID_CAPTCHA = "valid-captcha"


class InMemoryAccountRepository:
    """Dict-backed repository enforcing email uniqueness under a lock."""

    def __init__(self) -> None:
        self._accounts: dict[str, Account] = {}
        self._lock = threading.Lock()

    def create_account(self, account: NewAccount) -> Account:
        with self._lock:
            email = account.email.lower()
            if any(existing.email == email for existing in self._accounts.values()):
                raise DuplicateEmail()
            now = datetime.now(timezone.utc)
            fields = account.details.record_fields()
            fields["email"] = email
            record = Account(
                account_id=account.account_id,
                password_hash=account.password_hash,
                created_at=now,
                updated_at=now,
                **fields,
            )
            self._accounts[record.account_id] = record
            return replace(record)

    def find_by_email(self, email: str) -> Account | None:
        email = email.strip().lower()
        with self._lock:
            for account in self._accounts.values():
                if account.email == email:
                    return replace(account)
        return None

    def get_account(self, account_id: str) -> Account | None:
        with self._lock:
            account = self._accounts.get(account_id)
            return replace(account) if account else None

    def mark_email_verified(self, account_id: str, two_factor_secret: str | None = None) -> bool:
        with self._lock:
            account = self._accounts.get(account_id)
            if account is None or account.email_verified:
                return False
            account.email_verified = True
            if two_factor_secret is not None:
                account.two_factor_secret = two_factor_secret
            account.two_factor_enabled = account.two_factor_secret is not None
            account.updated_at = datetime.now(timezone.utc)
            return True

    def count(self) -> int:
        with self._lock:
            return len(self._accounts)


class StubCaptchaVerifier:
    """Accepts only VALID_CAPTCHA and records every call."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, str | None]] = []

    def verify(self, token: str, remote_ip: str | None = None) -> bool:
        self.calls.append((token, remote_ip))
        return token == VALID_CAPTCHA


class RecordingEmailSender:
    """Collects verification links instead of sending them."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str]] = []

    def send_verification_link(self, email: str, link: str) -> None:
        self.sent.append((email, link))


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from the environment and any .env file."""
    return Settings(
        _env_file=None,
        jwt_secret="test-secret",
        jwt_issuer="test.registration",
        public_base_url="http://testserver",
    )


@pytest.fixture
def redis_client() -> fakeredis.FakeRedis:
    """Fresh in-memory Redis server per test."""
    return fakeredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True)


@pytest.fixture
def token_store(redis_client: fakeredis.FakeRedis) -> RedisTokenStore:
    return RedisTokenStore(redis_client)


@pytest.fixture
def repository() -> InMemoryAccountRepository:
    return InMemoryAccountRepository()


@pytest.fixture
def captcha_verifier() -> StubCaptchaVerifier:
    return StubCaptchaVerifier()


@pytest.fixture
def email_sender() -> RecordingEmailSender:
    return RecordingEmailSender()


@pytest.fixture
def token_signer(settings: Settings) -> JwtTokenSigner:
    return JwtTokenSigner(secret=settings.jwt_secret, issuer=settings.jwt_issuer)


@pytest.fixture
def otp(settings: Settings) -> TotpGenerator:
    return TotpGenerator(issuer=settings.two_factor_issuer)


@pytest.fixture
def registration_service(
    repository: InMemoryAccountRepository,
    token_store: RedisTokenStore,
    email_sender: RecordingEmailSender,
    captcha_verifier: StubCaptchaVerifier,
    token_signer: JwtTokenSigner,
    otp: TotpGenerator,
    settings: Settings,
) -> RegistrationService:
    """Registration service wired the same way as the API dependency."""
    return get_registration_service(
        repository=repository,
        store=token_store,
        email_sender=email_sender,
        captcha_verifier=captcha_verifier,
        token_signer=token_signer,
        two_factor=get_two_factor_enrollment(token_store, otp, settings),
        settings=settings,
    )


@pytest.fixture
def verification_service(
    repository: InMemoryAccountRepository,
    token_store: RedisTokenStore,
    token_signer: JwtTokenSigner,
    otp: TotpGenerator,
    settings: Settings,
) -> EmailVerificationService:
    return get_verification_service(
        repository=repository,
        token_signer=token_signer,
        otp=otp,
        two_factor=get_two_factor_enrollment(token_store, otp, settings),
    )


@pytest.fixture
def app(
    repository: InMemoryAccountRepository,
    token_store: RedisTokenStore,
    email_sender: RecordingEmailSender,
    captcha_verifier: StubCaptchaVerifier,
    settings: Settings,
) -> FastAPI:
    """Test application with infrastructure replaced by fakes."""
    test_app = FastAPI()
    register_exception_handlers(test_app)
    test_app.include_router(router)

    test_app.dependency_overrides[get_settings] = lambda: settings
    test_app.dependency_overrides[get_repository] = lambda: repository
    test_app.dependency_overrides[get_token_store] = lambda: token_store
    test_app.dependency_overrides[get_email_sender] = lambda: email_sender
    test_app.dependency_overrides[get_captcha_verifier] = lambda: captcha_verifier
    return test_app


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    """Create test client for the application."""
    return TestClient(app)


@pytest.fixture
def individual_payload() -> dict:
    """A registration body for a valid individual account."""
    return {
        "email": "jane.doe@example.com",
        "firstName": "Jane",
        "lastName": "Doe",
        "password": "Passw0rd!",
        "confirmPassword": "Passw0rd!",
        "accountType": "individual",
        "phoneNumber": "07123456789",
        "dateOfBirth": "1990-05-17",
    }


@pytest.fixture
def business_payload() -> dict:
    """A registration body for a valid business account."""
    return {
        "email": "farm@greenacres.co.uk",
        "firstName": "Tom",
        "lastName": "Green",
        "password": "Harv3st!Time",
        "confirmPassword": "Harv3st!Time",
        "accountType": "business",
        "businessName": "Green Acres Farm",
        "registrationNumber": "12345678",
        "businessDocument": "uploads/green-acres.pdf",
    }
