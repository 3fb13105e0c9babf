"""
Pydantic schemas for API requests and responses.
"""

from .interaction import ActorState, FollowResult, InteractionResult, RatingRequest, ViewResult
from .stats import (
    BatchStatsRequest,
    ItemStats,
    MostFollowedItem,
    MostViewedItem,
    Period,
    StoryStats,
    TopRatedItem,
)
from .sync import (
    LocalEntry,
    SyncRequest,
    SyncResult,
    SyncStatusResponse,
    build_local_key,
    parse_local_key,
)

__all__ = [
    # Interactions
    "InteractionResult",
    "ViewResult",
    "FollowResult",
    "ActorState",
    "RatingRequest",
    # Stats
    "Period",
    "ItemStats",
    "StoryStats",
    "BatchStatsRequest",
    "TopRatedItem",
    "MostViewedItem",
    "MostFollowedItem",
    # Sync
    "LocalEntry",
    "SyncRequest",
    "SyncResult",
    "SyncStatusResponse",
    "build_local_key",
    "parse_local_key",
]
