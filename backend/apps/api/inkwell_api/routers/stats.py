"""
Stats router.

Provides read-only endpoints for item stats and story rankings.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from inkwell_core.schemas import (
    BatchStatsRequest,
    ItemStats,
    MostFollowedItem,
    MostViewedItem,
    StoryStats,
    TopRatedItem,
)
from inkwell_core.services import StatsService

from ..dependencies import get_stats_service

router = APIRouter()

Service = Annotated[StatsService, Depends(get_stats_service)]


@router.get("/items/{item_id}")
async def get_item_stats(item_id: int, service: Service) -> ItemStats:
    """
    Get all-time stats for a story or chapter.

    Args:
        item_id: Story or chapter identifier.
        service: Stats service.

    Returns:
        Views, likes, dislikes and rating summary.
    """
    return await service.get_item_stats(item_id)


@router.post("/items/batch")
async def batch_get_stats(data: BatchStatsRequest, service: Service) -> dict[int, ItemStats]:
    """Get stats for several items at once."""
    return await service.batch_get_stats(data.ids)


@router.get("/stories/{story_id}")
async def get_story_stats(story_id: int, service: Service) -> StoryStats:
    """Get all-time stats for a story, including followers."""
    return await service.get_story_stats(story_id)


@router.get("/rankings/top-rated")
async def top_rated(
    service: Service,
    limit: int = Query(10, ge=1, le=100),
    min_ratings: int = Query(5, ge=0),
    period: str = "total",
) -> list[TopRatedItem]:
    """
    Get the best-rated published stories.

    Args:
        service: Stats service.
        limit: Maximum entries (max 100).
        min_ratings: Minimum ratings within the period.
        period: total, week or month.

    Returns:
        Ranked stories.
    """
    return await service.get_top_rated(limit=limit, min_ratings=min_ratings, period=period)


@router.get("/rankings/most-viewed")
async def most_viewed(
    service: Service,
    limit: int = Query(10, ge=1, le=100),
    period: str = "total",
) -> list[MostViewedItem]:
    """Get the most viewed published stories."""
    return await service.get_most_viewed(limit=limit, period=period)


@router.get("/rankings/trending")
async def trending(
    service: Service,
    limit: int = Query(10, ge=1, le=100),
    period: str = "week",
) -> list[int]:
    """Get trending story IDs."""
    return await service.get_trending(limit=limit, period=period)


@router.get("/rankings/most-followed")
async def most_followed(
    service: Service,
    limit: int = Query(10, ge=1, le=100),
) -> list[MostFollowedItem]:
    """Get the most followed published stories."""
    return await service.get_most_followed(limit=limit)


@router.get("/rankings/recently-rated")
async def recently_rated(
    service: Service,
    limit: int = Query(10, ge=1, le=100),
) -> list[int]:
    """Get IDs of published stories ordered by their latest rating."""
    return await service.get_recently_rated(limit=limit)
