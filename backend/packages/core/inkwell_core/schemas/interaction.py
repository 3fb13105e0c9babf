"""
Interaction schemas.

Request and response models for interaction write operations.
"""

from pydantic import BaseModel, Field

from .stats import ItemStats


class InteractionResult(BaseModel):
    """Result of a like/dislike/rating/read write."""

    changed: bool
    stats: ItemStats | None = None


class ViewResult(BaseModel):
    """Result of recording a view."""

    skipped: bool


class FollowResult(BaseModel):
    """Result of a follow write."""

    changed: bool
    is_followed: bool


class ActorState(BaseModel):
    """What the current actor has done to one item."""

    liked: bool = False
    disliked: bool = False
    rating: float | None = None
    read: bool = False
    followed: bool = False


class RatingRequest(BaseModel):
    """Submit a rating."""

    rating: float = Field(..., description="Half-star rating between 0.5 and 5.0")
