"""
ItemRollup model definition.

Denormalized per-item counters used by listing and ranking reads.
"""

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, Float, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin


class ItemRollup(Base, TimestampMixin):
    """
    Rolling counters for a chapter or a story.

    Week and month columns are only meaningful while their stamp equals
    the current period stamp; a stale stamp is reseeded by the next write.

    Attributes:
        item_id: Story or chapter identifier.
        item_kind: 'story' or 'chapter'.
        parent_id: Owning story for chapter rows.
        rating_version: Incremented on every rating rollup write, used for
            compare-and-swap updates.
        rating_updated_at: Last time a rating was added or changed.
        follow_count: Story follows (chapter follows credit the story row).
    """

    __tablename__ = "item_rollups"

    item_id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    item_kind: Mapped[str] = mapped_column(String(16), nullable=False)
    parent_id: Mapped[int | None] = mapped_column(BigInteger)

    # Views
    views_total: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    views_week: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    views_month: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    views_week_stamp: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    views_month_stamp: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    trending_week: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    trending_month: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Likes / dislikes
    likes_total: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    likes_week: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    likes_month: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    likes_week_stamp: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    likes_month_stamp: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    dislikes_total: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Ratings
    rating_sum_total: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    rating_count_total: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    rating_avg_total: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    rating_sum_week: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    rating_count_week: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    rating_avg_week: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    rating_week_stamp: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    rating_sum_month: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    rating_count_month: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    rating_avg_month: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    rating_month_stamp: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    rating_version: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    rating_updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Story-level follows
    follow_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    __table_args__ = (
        Index("ix_item_rollups_kind_views", "item_kind", "views_total"),
        Index("ix_item_rollups_parent", "parent_id"),
        Index("ix_item_rollups_kind_rated", "item_kind", "rating_updated_at"),
    )
