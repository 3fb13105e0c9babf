"""
Stats schemas.

Read models built from rollup rows.
"""

from enum import Enum

from pydantic import BaseModel, Field


class Period(str, Enum):
    """Rollup window."""

    TOTAL = "total"
    WEEK = "week"
    MONTH = "month"

    @classmethod
    def normalize(cls, value: "str | Period | None") -> "Period":
        """Parse a period name, falling back to TOTAL for unknown values."""
        if isinstance(value, Period):
            return value
        try:
            return cls(str(value or "").strip().lower())
        except ValueError:
            return cls.TOTAL


class ItemStats(BaseModel):
    """All-time counters for one story or chapter."""

    views: int = 0
    likes: int = 0
    dislikes: int = 0
    rating_avg: float = 0.0
    rating_count: int = 0


class StoryStats(ItemStats):
    """Story counters, including follows."""

    follow_count: int = 0


class BatchStatsRequest(BaseModel):
    """Fetch stats for several items in one request."""

    ids: list[int] = Field(default_factory=list, max_length=500)


class TopRatedItem(BaseModel):
    """Top-rated ranking entry."""

    story_id: int
    rating: float
    count: int


class MostViewedItem(BaseModel):
    """Most-viewed ranking entry."""

    story_id: int
    views: int


class MostFollowedItem(BaseModel):
    """Most-followed ranking entry."""

    story_id: int
    follow_count: int
