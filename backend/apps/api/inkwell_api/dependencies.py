"""
FastAPI dependencies.

Provides dependency injection for database sessions, request identity,
and services.
"""

from typing import Annotated

from arq.connections import ArqRedis
from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from inkwell_core.auth import JWTConfig, verify_token
from inkwell_core.config import InteractionSettings, interaction_settings
from inkwell_core.exceptions import (
    InteractionError,
    InteractionValidationError,
    StorageUnavailableError,
)
from inkwell_core.services import (
    ArqFollowEventSink,
    InteractionService,
    StatsCache,
    StatsService,
    SyncService,
)
from inkwell_core.services.actor_resolver import coerce_id
from inkwell_database.session import get_session

from .config import settings

# Bearer tokens are optional: anonymous clients send X-Anonymous-Id instead
security = HTTPBearer(auto_error=False)


def get_jwt_config() -> JWTConfig:
    """
    Get JWT configuration.

    Returns:
        JWT configuration instance.
    """
    return JWTConfig(
        secret_key=settings.secret_key,
        algorithm=settings.jwt_algorithm,
        access_token_expire_minutes=settings.jwt_access_token_expire_minutes,
    )


async def get_redis_pool() -> ArqRedis | None:
    """Get the application Redis pool, None before startup."""
    from . import main

    return main.redis_pool


def get_interaction_settings() -> InteractionSettings:
    """Get interaction engine settings."""
    return interaction_settings


async def get_current_user_id(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    jwt_config: Annotated[JWTConfig, Depends(get_jwt_config)],
) -> int:
    """
    Get the current user ID from an optional bearer token.

    Args:
        credentials: HTTP bearer credentials, if any.
        jwt_config: JWT configuration.

    Returns:
        User ID, or 0 for anonymous requests and invalid tokens.
    """
    if credentials is None:
        return 0

    token_data = verify_token(credentials.credentials, jwt_config)
    if not token_data or token_data.type != "access":
        return 0
    return coerce_id(token_data.sub)


async def require_user_id(
    user_id: Annotated[int, Depends(get_current_user_id)],
) -> int:
    """
    Require an authenticated user.

    Raises:
        HTTPException: If the request is anonymous.
    """
    if user_id <= 0:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user_id


async def get_anonymous_token(
    x_anonymous_id: Annotated[str | None, Header()] = None,
) -> str | None:
    """Get the anonymous client token header."""
    return x_anonymous_id


def http_error(error: InteractionError) -> HTTPException:
    """
    Map an interaction engine error to an HTTP error.

    Args:
        error: Raised engine error.

    Returns:
        HTTPException carrying the error code and message.
    """
    if isinstance(error, InteractionValidationError):
        code = (
            status.HTTP_404_NOT_FOUND
            if error.code == "item_not_found"
            else status.HTTP_400_BAD_REQUEST
        )
    elif isinstance(error, StorageUnavailableError):
        code = status.HTTP_503_SERVICE_UNAVAILABLE
    else:
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    return HTTPException(status_code=code, detail={"code": error.code, "message": error.message})


# Service dependencies
def get_stats_cache(
    redis: Annotated[ArqRedis | None, Depends(get_redis_pool)],
    engine_settings: Annotated[InteractionSettings, Depends(get_interaction_settings)],
) -> StatsCache:
    """Get stats cache instance."""
    return StatsCache(
        redis,
        ttl=engine_settings.stats_cache_ttl,
        sync_flag_ttl=engine_settings.sync_flag_ttl,
    )


def get_interaction_service(
    session: Annotated[AsyncSession, Depends(get_session)],
    redis: Annotated[ArqRedis | None, Depends(get_redis_pool)],
    cache: Annotated[StatsCache, Depends(get_stats_cache)],
    engine_settings: Annotated[InteractionSettings, Depends(get_interaction_settings)],
) -> InteractionService:
    """Get interaction service instance."""
    return InteractionService(
        session,
        engine_settings,
        cache=cache,
        events=ArqFollowEventSink(redis),
    )


def get_stats_service(
    session: Annotated[AsyncSession, Depends(get_session)],
    cache: Annotated[StatsCache, Depends(get_stats_cache)],
) -> StatsService:
    """Get stats service instance."""
    return StatsService(session, cache=cache)


def get_sync_service(
    session: Annotated[AsyncSession, Depends(get_session)],
    interaction_service: Annotated[InteractionService, Depends(get_interaction_service)],
    cache: Annotated[StatsCache, Depends(get_stats_cache)],
) -> SyncService:
    """Get sync service instance."""
    return SyncService(session, interactions=interaction_service, cache=cache)
