"""
FastAPI application factory and configuration.

This module creates the FastAPI application instance,
configures routers and lifespan events.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from psycopg_pool import ConnectionPool

from src.adapters.directory import HttpIdentityDirectory, NullIdentityDirectory
from src.adapters.repository.postgres import run_migrations
from src.api.dependencies import Repositories
from src.api.v1 import router as v1_router
from src.config.settings import get_settings

logger = logging.getLogger(__name__)

# OpenAPI tags for documentation grouping
tags_metadata = [
    {
        "name": "v1",
        "description": "Event registration API v1 - Qualify, verify by one-time code, and register",
    },
    {
        "name": "admin",
        "description": "Operator endpoints - Events, qualified lists and attendee lifecycle",
    },
]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    FastAPI lifespan context manager.

    Manages application startup and shutdown:
    - Creates database connection pool and runs migrations (postgres backend)
    - Wires the repository bundle and identity directory into app state
    - Closes the pool and directory client on shutdown
    """
    settings = get_settings()

    logger.info("Starting application...")
    pool = None
    if settings.repository_backend == "memory":
        logger.warning("Using in-memory repositories; data is lost on restart")
        app.state.repositories = Repositories.in_memory()
    else:
        logger.info("Connecting to database...")

        # Create connection pool with explicit sizing
        pool = ConnectionPool(
            conninfo=settings.database_url,
            min_size=settings.pool_min_size,
            max_size=settings.pool_max_size,
        )

        logger.info("Running database migrations...")
        run_migrations(pool)
        app.state.repositories = Repositories.postgres(pool)

    # Store pool in app state for the health check
    app.state.pool = pool

    if settings.identity_directory_url:
        logger.info("Identity directory enabled at %s", settings.identity_directory_url)
        app.state.directory = HttpIdentityDirectory(
            settings.identity_directory_url, timeout=settings.identity_directory_timeout
        )
    else:
        app.state.directory = NullIdentityDirectory()

    logger.info("Application startup complete")

    yield

    # Shutdown
    logger.info("Shutting down application...")
    if isinstance(app.state.directory, HttpIdentityDirectory):
        app.state.directory.close()
    if pool is not None:
        pool.close()
        logger.info("Database connection pool closed")


app = FastAPI(
    title="eventgate",
    description="Event registration API - Qualification, one-time-code verification and "
    "idempotent registration submissions",
    version="0.1.0",
    openapi_tags=tags_metadata,
    lifespan=lifespan,
)

# Include v1 API routes
app.include_router(v1_router, prefix="/v1")


@app.get("/health")
def health_check(request: Request) -> dict[str, str]:
    """
    Health check endpoint with database validation.

    Returns 200 OK if application and database are healthy.
    Raises exception if database connection fails.
    """
    pool = request.app.state.pool
    if pool is not None:
        with pool.connection() as conn:
            conn.execute("SELECT 1")

    return {"status": "healthy"}
