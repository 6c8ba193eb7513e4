"""
Shared fixtures for adversarial tests.

Provides a PostgreSQL pool for the race condition tests. Brute force tests
only need the fakeredis store from the top-level conftest and run without
a database.
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
    """Create connection pool for adversarial tests."""
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
def pg_repository(pool: ConnectionPool) -> Generator[PostgresAccountRepository, None, None]:
    """Repository over a freshly emptied accounts table."""
    with pool.connection() as conn:
        conn.execute("DELETE FROM accounts")
        conn.commit()
    yield PostgresAccountRepository(pool)
