"""
FastAPI application factory and configuration.

This module creates the FastAPI application instance,
configures exception handlers, and lifespan events.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from psycopg_pool import ConnectionPool
from redis import Redis

from src.adapters.cache.redis_store import RedisTokenStore
from src.adapters.repository.postgres import connection_kwargs, run_migrations
from src.api.errors import register_exception_handlers
from src.api.routes import router
from src.config.settings import get_settings

logger = logging.getLogger(__name__)

# OpenAPI tags for documentation grouping
tags_metadata = [
    {
        "name": "registration",
        "description": "Account registration and email verification for customers and farmers",
    },
]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    FastAPI lifespan context manager.

    Manages application startup and shutdown:
    - Creates database connection pool, Redis client and HTTP client on startup
    - Runs migrations on startup
    - Closes all three on shutdown
    """
    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper())

    logger.info("Starting application...")
    logger.info("Connecting to database...")

    # Create connection pool with explicit sizing; every connection carries
    # connect and statement timeouts
    pool = ConnectionPool(
        conninfo=settings.database_url,
        kwargs=connection_kwargs(settings.external_timeout_seconds),
        min_size=settings.pool_min_size,
        max_size=settings.pool_max_size,
        timeout=settings.external_timeout_seconds,
        open=True,
    )

    # Run migrations
    logger.info("Running database migrations...")
    run_migrations(pool)

    logger.info("Connecting to token store...")
    redis_client = Redis.from_url(
        settings.redis_url,
        decode_responses=True,
        socket_timeout=settings.external_timeout_seconds,
        socket_connect_timeout=settings.external_timeout_seconds,
    )
    http_client = httpx.Client(timeout=settings.external_timeout_seconds)

    # Store handles in app state for dependency injection
    app.state.pool = pool
    app.state.redis = redis_client
    app.state.http_client = http_client

    logger.info("Application startup complete")

    yield

    # Shutdown
    logger.info("Shutting down application...")
    http_client.close()
    redis_client.close()
    pool.close()
    logger.info("Connections closed")


app = FastAPI(
    title="harvesthub-registration",
    description="Account registration API - customer and farmer sign-up with CSRF, "
    "rate limiting, CAPTCHA and email verification",
    version="0.1.0",
    openapi_tags=tags_metadata,
    lifespan=lifespan,
)

register_exception_handlers(app)
app.include_router(router)


@app.get("/health")
def health_check(request: Request) -> dict[str, str]:
    """
    Health check endpoint with database and token store validation.

    Returns 200 OK if application, database and Redis are healthy.
    Raises exception if either connection fails.
    """
    pool = request.app.state.pool
    with pool.connection() as conn:
        conn.execute("SELECT 1")

    RedisTokenStore(request.app.state.redis).ping()

    return {"status": "healthy"}
