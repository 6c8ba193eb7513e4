"""
Shared fixtures for integration tests.

Runs against the PostgreSQL database named by DATABASE_URL (see
docker-compose). The whole module is skipped when it cannot be reached.
"""

from collections.abc import Generator

import pytest
from psycopg_pool import ConnectionPool, PoolTimeout

from src.adapters.repository.postgres import (
    PostgresAccountRepository,
    connection_kwargs,
    run_migrations,
)
from src.config.settings import get_settings


@pytest.fixture(scope="module")
def pool() -> Generator[ConnectionPool, None, None]:
    """Create connection pool for integration tests."""
    settings = get_settings()
    pool = ConnectionPool(
        conninfo=settings.database_url,
        kwargs=connection_kwargs(settings.external_timeout_seconds),
        min_size=1,
        max_size=10,
        timeout=settings.external_timeout_seconds,
        open=False,
    )
    try:
        pool.open(wait=True, timeout=settings.external_timeout_seconds)
    except PoolTimeout:
        pool.close()
        pytest.skip("PostgreSQL is not reachable")
    run_migrations(pool)
    yield pool
    pool.close()


@pytest.fixture
def repository(pool: ConnectionPool) -> PostgresAccountRepository:
    """Create repository instance for each test."""
    return PostgresAccountRepository(pool)


@pytest.fixture(autouse=True)
def clean_database(pool: ConnectionPool) -> Generator[None, None, None]:
    """Clean accounts table before each test."""
    with pool.connection() as conn:
        conn.execute("DELETE FROM accounts")
        conn.commit()
    yield
