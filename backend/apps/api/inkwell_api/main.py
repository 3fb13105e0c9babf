"""
Inkwell API - FastAPI application entry point.

This module initializes the FastAPI application and configures
middleware, routers, and lifecycle events.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from arq import create_pool
from arq.connections import ArqRedis, RedisSettings
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from inkwell_core import get_logger, init_logging

from .config import settings
from .routers import interactions, stats, sync

logger = get_logger(__name__)

# Global Redis connection pool for caching and follow events
redis_pool: ArqRedis | None = None


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifecycle manager.

    Handles startup and shutdown events for the application.

    Args:
        app: The FastAPI application instance.

    Yields:
        None during application runtime.
    """
    # Startup: Initialize resources
    from inkwell_database.session import close_database, init_database

    global redis_pool

    init_logging(settings.log_level)
    logger.info("Starting Inkwell API", extra={"version": settings.version})
    init_database(settings.database_url, echo=settings.debug)

    redis_settings = RedisSettings.from_dsn(settings.redis_url)
    redis_pool = await create_pool(redis_settings)
    logger.info("Redis pool initialized")

    yield

    # Shutdown: Cleanup resources
    if redis_pool:
        await redis_pool.close()
        redis_pool = None
        logger.info("Redis pool closed")
    await close_database()
    logger.info("Shutting down Inkwell API")


def create_app() -> FastAPI:
    """
    Build the FastAPI application.

    Returns:
        Configured application instance.
    """
    application = FastAPI(
        title="Inkwell API",
        description="Inkwell - story interaction and ranking API",
        version=settings.version,
        lifespan=lifespan,
        docs_url="/api/docs" if settings.debug else None,
        redoc_url="/api/redoc" if settings.debug else None,
    )

    # Configure CORS middleware
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Register API routers
    application.include_router(
        interactions.router, prefix="/api/interactions", tags=["Interactions"]
    )
    application.include_router(stats.router, prefix="/api/stats", tags=["Stats"])
    application.include_router(sync.router, prefix="/api/sync", tags=["Sync"])

    @application.get("/api/health")
    async def health_check() -> dict[str, str]:
        """
        Health check endpoint.

        Returns:
            Dictionary containing service status and version.
        """
        return {"status": "healthy", "version": settings.version}

    return application


app = create_app()
