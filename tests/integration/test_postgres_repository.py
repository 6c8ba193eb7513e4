"""
Integration tests for PostgresAccountRepository.

Tests repository operations against a real PostgreSQL database.
Requires PostgreSQL to be running (via docker-compose).
"""

import uuid
from concurrent.futures import ThreadPoolExecutor
from datetime import date

import psycopg
import pytest
from psycopg_pool import ConnectionPool

from src.adapters.repository.postgres import PostgresAccountRepository, connection_kwargs
from src.config.settings import get_settings
from src.domain.accounts import AccountType, BusinessAccountInput, IndividualAccountInput, NewAccount
from src.domain.exceptions import DuplicateEmail, InfrastructureUnavailable

pytestmark = pytest.mark.integration


def individual_account(email: str = "jane@example.com") -> NewAccount:
    return NewAccount(
        account_id=str(uuid.uuid4()),
        password_hash="$2b$10$hashedpasswordvalue",
        details=IndividualAccountInput(
            email=email,
            first_name="Jane",
            last_name="Doe",
            password="Passw0rd!",
            phone_number="07123456789",
            date_of_birth=date(1990, 5, 17),
        ),
    )


def business_account(email: str = "farm@greenacres.co.uk") -> NewAccount:
    return NewAccount(
        account_id=str(uuid.uuid4()),
        password_hash="$2b$10$hashedpasswordvalue",
        details=BusinessAccountInput(
            email=email,
            first_name="Tom",
            last_name="Green",
            password="Harv3st!Time",
            business_name="Green Acres Farm",
            registration_number="12345678",
        ),
    )


class TestCreateAccount:
    """Tests for create_account method."""

    def test_returns_persisted_row(self, repository: PostgresAccountRepository) -> None:
        new = individual_account()
        account = repository.create_account(new)

        assert account.account_id == new.account_id
        assert account.account_type == AccountType.INDIVIDUAL
        assert account.date_of_birth == date(1990, 5, 17)
        assert account.email_verified is False
        assert account.two_factor_enabled is False
        assert account.created_at is not None

    def test_business_row_has_no_personal_fields(self, repository: PostgresAccountRepository) -> None:
        account = repository.create_account(business_account())

        assert account.business_name == "Green Acres Farm"
        assert account.business_document_url is None
        assert account.phone_number is None
        assert account.date_of_birth is None

    def test_duplicate_email_raises(self, repository: PostgresAccountRepository) -> None:
        repository.create_account(individual_account())
        with pytest.raises(DuplicateEmail):
            repository.create_account(individual_account())

    def test_email_stored_lowercase(self, repository: PostgresAccountRepository) -> None:
        account = repository.create_account(individual_account(email="Jane@Example.COM"))
        assert account.email == "jane@example.com"

    def test_concurrent_creates_exactly_one(
        self, repository: PostgresAccountRepository
    ) -> None:
        def attempt(_: int) -> bool:
            try:
                repository.create_account(individual_account(email="race@example.com"))
                return True
            except DuplicateEmail:
                return False

        with ThreadPoolExecutor(max_workers=5) as executor:
            results = list(executor.map(attempt, range(5)))

        assert results.count(True) == 1
        assert results.count(False) == 4

    def test_branch_constraint_enforced(self, pool: ConnectionPool) -> None:
        with pytest.raises(psycopg.errors.CheckViolation):
            with pool.connection() as conn:
                conn.execute(
                    "INSERT INTO accounts (id, email, first_name, last_name, password_hash, "
                    "account_type) VALUES (%s, %s, 'A', 'B', 'h', 'individual')",
                    (str(uuid.uuid4()), "nophone@example.com"),
                )


class TestLookups:
    """Tests for find_by_email and get_account."""

    def test_find_by_email_case_insensitive(self, repository: PostgresAccountRepository) -> None:
        created = repository.create_account(individual_account())
        found = repository.find_by_email("  JANE@example.com ")
        assert found is not None
        assert found.account_id == created.account_id

    def test_find_missing_returns_none(self, repository: PostgresAccountRepository) -> None:
        assert repository.find_by_email("nobody@example.com") is None

    def test_get_account(self, repository: PostgresAccountRepository) -> None:
        created = repository.create_account(business_account())
        assert repository.get_account(created.account_id).email == "farm@greenacres.co.uk"

    def test_get_unknown_id(self, repository: PostgresAccountRepository) -> None:
        assert repository.get_account(str(uuid.uuid4())) is None

    def test_get_malformed_id(self, repository: PostgresAccountRepository) -> None:
        assert repository.get_account("not-a-uuid") is None


class TestMarkEmailVerified:
    """Tests for mark_email_verified method."""

    def test_flips_once(self, repository: PostgresAccountRepository) -> None:
        created = repository.create_account(individual_account())

        assert repository.mark_email_verified(created.account_id) is True
        assert repository.mark_email_verified(created.account_id) is False
        assert repository.get_account(created.account_id).email_verified is True

    def test_confirms_two_factor_secret(self, repository: PostgresAccountRepository) -> None:
        created = repository.create_account(individual_account())
        assert created.two_factor_enabled is False

        repository.mark_email_verified(created.account_id, "JBSWY3DPEHPK3PXP")

        account = repository.get_account(created.account_id)
        assert account.two_factor_enabled is True
        assert account.two_factor_secret == "JBSWY3DPEHPK3PXP"
        assert account.updated_at >= account.created_at

    def test_without_secret_leaves_two_factor_off(self, repository: PostgresAccountRepository) -> None:
        created = repository.create_account(individual_account())

        repository.mark_email_verified(created.account_id)

        account = repository.get_account(created.account_id)
        assert account.email_verified is True
        assert account.two_factor_enabled is False
        assert account.two_factor_secret is None

    def test_concurrent_verification_changes_once(
        self, repository: PostgresAccountRepository
    ) -> None:
        created = repository.create_account(individual_account())

        with ThreadPoolExecutor(max_workers=5) as executor:
            results = list(
                executor.map(lambda _: repository.mark_email_verified(created.account_id), range(5))
            )

        assert results.count(True) == 1


class TestStatementTimeout:
    """Every connection carries a server-side statement timeout."""

    def test_slow_statement_cancelled(self) -> None:
        settings = get_settings()
        slow_pool = ConnectionPool(
            conninfo=settings.database_url,
            kwargs=connection_kwargs(0.2),
            min_size=1,
            max_size=1,
            open=False,
        )
        slow_pool.open(wait=True, timeout=settings.external_timeout_seconds)
        try:
            repository = PostgresAccountRepository(slow_pool)
            with pytest.raises(InfrastructureUnavailable):
                with repository._connection() as conn:
                    conn.execute("SELECT pg_sleep(2)")
        finally:
            slow_pool.close()
