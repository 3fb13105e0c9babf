"""
Login sync schemas.

The client keeps a snapshot of interactions made while offline or logged
out, keyed ``story_<id>_chapter_<id>``; it is merged at login.
"""

import re
from typing import Any

from pydantic import BaseModel, Field, model_validator

from inkwell_core.ratings import normalize_rating

_LOCAL_KEY_RE = re.compile(r"^story_(\d+)_chapter_(\d+)$")


def build_local_key(story_id: int, chapter_id: int) -> str:
    """Build a snapshot key."""
    return f"story_{abs(int(story_id))}_chapter_{abs(int(chapter_id))}"


def parse_local_key(key: str) -> tuple[int, int] | None:
    """
    Parse a snapshot key.

    Args:
        key: Raw key from the client.

    Returns:
        (story_id, chapter_id), or None if the key is malformed.
    """
    match = _LOCAL_KEY_RE.match(str(key).strip())
    if not match:
        return None
    return int(match.group(1)), int(match.group(2))


class LocalEntry(BaseModel):
    """
    Interaction state for one story/chapter pair.

    Construction is lenient: truthy values become True flags, invalid
    ratings are dropped and negative timestamps are made positive.
    """

    like: bool = False
    dislike: bool = False
    read: bool = False
    view: bool = False
    follow: bool = False
    rating: float | None = None
    timestamp: int = Field(default=0, ge=0, description="Last local mutation, ms since epoch")

    @model_validator(mode="before")
    @classmethod
    def _sanitize(cls, data: Any) -> Any:
        if isinstance(data, LocalEntry):
            return data.model_dump()
        if not isinstance(data, dict):
            return {}

        clean: dict[str, Any] = {}
        for flag in ("like", "dislike", "read", "view", "follow"):
            clean[flag] = bool(data.get(flag))

        rating = data.get("rating")
        clean["rating"] = normalize_rating(rating) if rating is not None else None

        try:
            clean["timestamp"] = abs(int(data.get("timestamp") or 0))
        except (TypeError, ValueError):
            clean["timestamp"] = 0

        return clean


class SyncRequest(BaseModel):
    """Login sync payload."""

    local: dict[str, Any] = Field(default_factory=dict)
    anonymous_id: str | None = None


class SyncResult(BaseModel):
    """Merged snapshot after login sync."""

    merged: dict[str, LocalEntry] = Field(default_factory=dict)


class SyncStatusResponse(BaseModel):
    """Whether the client should push its local snapshot."""

    needs_sync: bool
