"""
PostgreSQL repository adapter - Implements AccountRepository protocol.

This module provides the PostgreSQL implementation of the domain's
repository port using psycopg3 with raw SQL.

Uniqueness Design:
------------------
The registration pipeline looks an email up before inserting it, but two
concurrent submissions can both pass that lookup. The UNIQUE constraint on
accounts.email is what actually arbitrates: the first INSERT to commit wins,
the second fails with UniqueViolation and is reported as DuplicateEmail.
Emails are stored lower-cased so the constraint is case-insensitive.

Connection failures, pool timeouts and statements cancelled by
statement_timeout are reported as InfrastructureUnavailable; no psycopg
exception leaves this module.
"""

import logging
import math
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import psycopg
from psycopg import errors
from psycopg_pool import ConnectionPool, PoolTimeout

from src.domain.accounts import Account, AccountType, NewAccount
from src.domain.exceptions import DuplicateEmail, InfrastructureUnavailable

logger = logging.getLogger(__name__)


def connection_kwargs(timeout_seconds: float) -> dict[str, str | int]:
    """
    Build psycopg connect arguments that bound every database call.

    connect_timeout caps the TCP connect and authentication (libpq only
    accepts whole seconds); statement_timeout makes the server cancel any
    statement that runs longer, which surfaces as QueryCanceled.
    """
    return {
        "connect_timeout": max(1, math.ceil(timeout_seconds)),
        "options": f"-c statement_timeout={int(timeout_seconds * 1000)}",
    }


_ACCOUNT_COLUMNS = """
    id, email, first_name, last_name, password_hash, account_type,
    business_name, registration_number, business_document_url,
    phone_number, date_of_birth, email_verified,
    two_factor_secret, two_factor_enabled, created_at, updated_at
"""


class PostgresAccountRepository:
    """
    Implements AccountRepository protocol via psycopg3.

    Uses structural subtyping - no explicit inheritance from Protocol.
    All SQL uses parameterized queries for security.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        """
        Initialize repository with connection pool.

        Args:
            pool: psycopg3 ConnectionPool for database connections
        """
        self._pool = pool

    def create_account(self, account: NewAccount) -> Account:
        """
        Insert a new account row with email_verified and two_factor_enabled FALSE.

        Raises:
            DuplicateEmail: If the UNIQUE constraint on email rejects the row
        """
        fields = account.details.record_fields()
        sql = f"""
            INSERT INTO accounts (
                id, email, first_name, last_name, password_hash, account_type,
                business_name, registration_number, business_document_url,
                phone_number, date_of_birth, email_verified, two_factor_enabled
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, FALSE, FALSE)
            RETURNING {_ACCOUNT_COLUMNS}
        """
        params = (
            account.account_id,
            account.email.lower(),
            fields["first_name"],
            fields["last_name"],
            account.password_hash,
            account.details.account_type.value,
            fields["business_name"],
            fields["registration_number"],
            fields["business_document_url"],
            fields["phone_number"],
            fields["date_of_birth"],
        )

        try:
            with self._connection() as conn, conn.cursor() as cursor:
                cursor.execute(sql, params)
                row = cursor.fetchone()
                conn.commit()
        except errors.UniqueViolation:
            raise DuplicateEmail() from None
        return self._map_row(row)

    def find_by_email(self, email: str) -> Account | None:
        """Fetch an account by normalized email or return None."""
        sql = f"SELECT {_ACCOUNT_COLUMNS} FROM accounts WHERE email = %s"
        with self._connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, (email.strip().lower(),))
            row = cursor.fetchone()
        return self._map_row(row) if row else None

    def get_account(self, account_id: str) -> Account | None:
        """Fetch an account by id or return None."""
        sql = f"SELECT {_ACCOUNT_COLUMNS} FROM accounts WHERE id = %s"
        try:
            with self._connection() as conn, conn.cursor() as cursor:
                cursor.execute(sql, (account_id,))
                row = cursor.fetchone()
        except errors.InvalidTextRepresentation:
            # Not a UUID, so it cannot name an account.
            return None
        return self._map_row(row) if row else None

    def mark_email_verified(self, account_id: str, two_factor_secret: str | None = None) -> bool:
        """
        Flip email_verified, confirming a pending 2FA secret in the same update.

        two_factor_enabled ends up true exactly when the row holds a secret.

        The WHERE clause only matches unverified rows, so concurrent
        verifications of one account change it exactly once.

        Returns:
            True if this call changed the row
        """
        sql = """
            UPDATE accounts
            SET email_verified = TRUE,
                two_factor_secret = COALESCE(%s, two_factor_secret),
                two_factor_enabled = COALESCE(%s, two_factor_secret) IS NOT NULL,
                updated_at = NOW()
            WHERE id = %s AND email_verified = FALSE
        """
        with self._connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, (two_factor_secret, two_factor_secret, account_id))
            conn.commit()
            return cursor.rowcount == 1

    @contextmanager
    def _connection(self) -> Iterator[psycopg.Connection]:
        try:
            with self._pool.connection() as conn:
                yield conn
        except (errors.QueryCanceled, psycopg.OperationalError, PoolTimeout) as exc:
            logger.error("Database unavailable: %s", exc)
            raise InfrastructureUnavailable("Account store unavailable") from exc

    def _map_row(self, row: tuple) -> Account:
        """Convert a raw database tuple into the domain Account dataclass."""
        return Account(
            account_id=str(row[0]),
            email=row[1],
            first_name=row[2],
            last_name=row[3],
            password_hash=row[4],
            account_type=AccountType(row[5]),
            business_name=row[6],
            registration_number=row[7],
            business_document_url=row[8],
            phone_number=row[9],
            date_of_birth=row[10],
            email_verified=row[11],
            two_factor_secret=row[12],
            two_factor_enabled=row[13],
            created_at=row[14],
            updated_at=row[15],
        )


def run_migrations(pool: ConnectionPool) -> None:
    """
    Execute all SQL migration files from the migrations directory.

    Migrations are executed in sorted order (alphabetically by filename).
    Each migration should be idempotent (use IF NOT EXISTS, etc.).

    Args:
        pool: psycopg3 ConnectionPool instance
    """
    # Structure: src/adapters/repository/postgres.py -> migrations/
    migrations_dir = Path(__file__).parent.parent.parent.parent / "migrations"

    if not migrations_dir.exists():
        logger.warning("Migrations directory not found: %s", migrations_dir)
        return

    sql_files = sorted(migrations_dir.glob("*.sql"))

    if not sql_files:
        logger.info("No migration files found")
        return

    logger.info("Running %d migration(s)", len(sql_files))

    for sql_file in sql_files:
        logger.info("Executing migration: %s", sql_file.name)
        try:
            sql_content = sql_file.read_text()

            with pool.connection() as conn:
                conn.execute(sql_content)

            logger.info("Migration complete: %s", sql_file.name)
        except Exception as e:
            logger.error("Migration failed: %s - %s", sql_file.name, e)
            raise RuntimeError(f"Database migration failed: {sql_file.name}") from e
