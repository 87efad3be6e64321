"""
FastAPI application factory and configuration.

This module creates the FastAPI application instance,
configures middleware, exception handlers, and lifespan events.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from psycopg_pool import ConnectionPool

from src.adapters.repository.memory import (
    InMemoryClaimRequestRepository,
    InMemoryCompanyDirectory,
    InMemoryOtpChallengeRepository,
)
from src.adapters.repository.postgres import (
    PostgresClaimRequestRepository,
    PostgresCompanyDirectory,
    PostgresOtpChallengeRepository,
    run_migrations,
)
from src.api.v1 import admin_router
from src.api.v1 import router as v1_router
from src.config.settings import Settings, get_settings

logger = logging.getLogger(__name__)

# OpenAPI tags for documentation grouping
tags_metadata = [
    {
        "name": "v1",
        "description": "Company claim verification API v1 - Claim a listing and verify ownership",
    },
    {
        "name": "admin",
        "description": "Review surface - list claims awaiting ownership assignment",
    },
]


def _use_postgres(app: FastAPI, settings: Settings) -> ConnectionPool:
    # Create connection pool with explicit sizing
    pool = ConnectionPool(
        conninfo=settings.database_url,
        min_size=settings.pool_min_size,
        max_size=settings.pool_max_size,
    )

    logger.info("Running database migrations...")
    run_migrations(pool)

    app.state.pool = pool
    app.state.claim_repository = PostgresClaimRequestRepository(pool)
    app.state.challenge_repository = PostgresOtpChallengeRepository(pool)
    app.state.company_directory = PostgresCompanyDirectory(pool)
    return pool


def _use_memory(app: FastAPI, settings: Settings) -> None:
    companies = InMemoryCompanyDirectory()
    if settings.company_seed_file:
        companies = InMemoryCompanyDirectory.from_json(settings.company_seed_file)

    app.state.pool = None
    app.state.claim_repository = InMemoryClaimRequestRepository()
    app.state.challenge_repository = InMemoryOtpChallengeRepository()
    app.state.company_directory = companies


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    FastAPI lifespan context manager.

    Manages application startup and shutdown:
    - Creates database connection pool on startup (postgres backend)
    - Runs migrations on startup
    - Wires repositories into app.state
    - Closes connection pool on shutdown
    """
    settings = get_settings()
    logging.basicConfig(level=settings.log_level)

    logger.info("Starting application...")

    pool = None
    if settings.storage_backend == "memory":
        logger.warning("Using in-memory storage; claims are lost on restart")
        _use_memory(app, settings)
    else:
        logger.info("Connecting to database...")
        pool = _use_postgres(app, settings)

    logger.info("Application startup complete")

    yield

    # Shutdown
    logger.info("Shutting down application...")
    if pool is not None:
        pool.close()
        logger.info("Database connection pool closed")


app = FastAPI(
    title="claimverify",
    description="Company ownership claim verification - domain path or emailed one-time code",
    version="0.1.0",
    openapi_tags=tags_metadata,
    lifespan=lifespan,
)

# Include v1 API routes
app.include_router(v1_router, prefix="/v1")
app.include_router(admin_router, prefix="/v1")


@app.get("/health")
async def health_check(request: Request) -> dict[str, str]:
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


def run() -> None:
    """Serve the app with uvicorn on the configured host and port."""
    settings = get_settings()
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    run()
