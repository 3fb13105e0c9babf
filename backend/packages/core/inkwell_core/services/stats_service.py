"""
Stats service.

Read-only queries over rollup rows: per-item stats and story rankings.
Raw interaction rows are never aggregated here. Every read degrades to
zero-value defaults when storage is missing or failing.
"""

from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import case, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from inkwell_core import get_logger
from inkwell_core.schemas import (
    ItemStats,
    MostFollowedItem,
    MostViewedItem,
    Period,
    StoryStats,
    TopRatedItem,
)
from inkwell_database.models import ContentItem, ContentKind, ContentStatus, ItemRollup

from .periods import period_stamps
from .stats_cache import StatsCache
from .storage import TableRegistry, table_registry

logger = get_logger(__name__)

ROLLUP_TABLE = ItemRollup.__tablename__
MAX_RANKING_LIMIT = 100


def _current(column: Any, stamp_column: Any, stamp: int) -> Any:
    """Column value if its bucket belongs to the current period, else 0."""
    return case((stamp_column == stamp, column), else_=0)


def _clamp_limit(limit: int) -> int:
    return max(1, min(int(limit), MAX_RANKING_LIMIT))


def _item_stats(row: ItemRollup | None) -> ItemStats:
    if row is None:
        return ItemStats()
    return ItemStats(
        views=row.views_total,
        likes=row.likes_total,
        dislikes=row.dislikes_total,
        rating_avg=round(float(row.rating_avg_total), 2),
        rating_count=row.rating_count_total,
    )


class StatsService:
    """Stats and ranking reads."""

    def __init__(
        self,
        session: AsyncSession,
        cache: StatsCache | None = None,
        tables: TableRegistry | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """
        Initialize stats service.

        Args:
            session: Database session.
            cache: Optional stats cache.
            tables: Table existence registry.
            clock: Returns the current time; defaults to UTC now.
        """
        self.session = session
        self.cache = cache
        self.tables = tables or table_registry
        self._clock = clock or (lambda: datetime.now(UTC))

    async def _available(self) -> bool:
        try:
            return await self.tables.exists(self.session, ROLLUP_TABLE)
        except SQLAlchemyError:
            logger.warning("Could not check rollup table", exc_info=True)
            return False

    async def _fetch_rows(self, item_ids: list[int]) -> dict[int, ItemRollup]:
        if not item_ids or not await self._available():
            return {}
        try:
            result = await self.session.execute(
                select(ItemRollup)
                .where(ItemRollup.item_id.in_(item_ids))
                .execution_options(populate_existing=True)
            )
        except SQLAlchemyError:
            logger.warning("Rollup read failed", extra={"count": len(item_ids)}, exc_info=True)
            return {}
        return {row.item_id: row for row in result.scalars().all()}

    async def _fetch_ranking(self, stmt) -> list[Any]:
        if not await self._available():
            return []
        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError:
            logger.warning("Ranking read failed", exc_info=True)
            return []
        return list(result.all())

    async def get_item_stats(self, item_id: int) -> ItemStats:
        """
        Get all-time stats for one story or chapter.

        Args:
            item_id: Story or chapter ID.

        Returns:
            Stats, zeros when no rollup row exists.
        """
        if self.cache:
            cached = await self.cache.get_item_stats(item_id)
            if cached is not None:
                return cached

        rows = await self._fetch_rows([item_id])
        stats = _item_stats(rows.get(item_id))

        if self.cache and item_id in rows:
            await self.cache.set_item_stats(item_id, stats)
        return stats

    async def batch_get_stats(self, item_ids: list[int]) -> dict[int, ItemStats]:
        """
        Get stats for several items with a single query.

        Args:
            item_ids: Story or chapter IDs.

        Returns:
            Mapping with an entry for every requested positive ID.
        """
        ids = list(dict.fromkeys(int(i) for i in item_ids if int(i) > 0))
        rows = await self._fetch_rows(ids)
        return {item_id: _item_stats(rows.get(item_id)) for item_id in ids}

    async def get_story_stats(self, story_id: int) -> StoryStats:
        """
        Get all-time stats for a story, including follows.

        Args:
            story_id: Story ID.

        Returns:
            Story stats, zeros when no rollup row exists.
        """
        if self.cache:
            cached = await self.cache.get_story_stats(story_id)
            if cached is not None:
                return cached

        rows = await self._fetch_rows([story_id])
        row = rows.get(story_id)
        stats = StoryStats(
            **_item_stats(row).model_dump(),
            follow_count=row.follow_count if row is not None else 0,
        )

        if self.cache and row is not None:
            await self.cache.set_story_stats(story_id, stats)
        return stats

    def _published_stories(self, *columns: Any):
        return (
            select(ItemRollup.item_id, *columns)
            .join(ContentItem, ContentItem.id == ItemRollup.item_id)
            .where(
                ItemRollup.item_kind == ContentKind.STORY.value,
                ContentItem.kind == ContentKind.STORY.value,
                ContentItem.status == ContentStatus.PUBLISHED.value,
            )
        )

    def _view_column(self, period: Period) -> Any:
        stamps = period_stamps(self._clock())
        if period == Period.WEEK:
            return _current(ItemRollup.views_week, ItemRollup.views_week_stamp, stamps.week)
        if period == Period.MONTH:
            return _current(ItemRollup.views_month, ItemRollup.views_month_stamp, stamps.month)
        return ItemRollup.views_total

    async def get_top_rated(
        self,
        limit: int = 10,
        min_ratings: int = 5,
        period: str | Period = Period.TOTAL,
    ) -> list[TopRatedItem]:
        """
        Rank published stories by average rating.

        Args:
            limit: Maximum entries.
            min_ratings: Minimum number of ratings in the window.
            period: total, week or month.

        Returns:
            Entries ordered by average rating, then total views.
        """
        period = Period.normalize(period)
        stamps = period_stamps(self._clock())
        if period == Period.WEEK:
            avg = _current(ItemRollup.rating_avg_week, ItemRollup.rating_week_stamp, stamps.week)
            count = _current(
                ItemRollup.rating_count_week, ItemRollup.rating_week_stamp, stamps.week
            )
        elif period == Period.MONTH:
            avg = _current(ItemRollup.rating_avg_month, ItemRollup.rating_month_stamp, stamps.month)
            count = _current(
                ItemRollup.rating_count_month, ItemRollup.rating_month_stamp, stamps.month
            )
        else:
            avg = ItemRollup.rating_avg_total
            count = ItemRollup.rating_count_total

        stmt = (
            self._published_stories(avg.label("rating"), count.label("count"))
            .where(count >= max(0, int(min_ratings)))
            .order_by(avg.desc(), ItemRollup.views_total.desc(), ItemRollup.item_id)
            .limit(_clamp_limit(limit))
        )
        rows = await self._fetch_ranking(stmt)
        return [
            TopRatedItem(story_id=row.item_id, rating=round(float(row.rating), 2), count=row.count)
            for row in rows
        ]

    async def get_most_viewed(
        self, limit: int = 10, period: str | Period = Period.TOTAL
    ) -> list[MostViewedItem]:
        """
        Rank published stories by views.

        Args:
            limit: Maximum entries.
            period: total, week or month.

        Returns:
            Entries ordered by windowed views, then total views.
        """
        views = self._view_column(Period.normalize(period))
        stmt = (
            self._published_stories(views.label("views"))
            .order_by(views.desc(), ItemRollup.views_total.desc(), ItemRollup.item_id)
            .limit(_clamp_limit(limit))
        )
        rows = await self._fetch_ranking(stmt)
        return [MostViewedItem(story_id=row.item_id, views=row.views) for row in rows]

    async def get_trending(self, limit: int = 10, period: str | Period = Period.WEEK) -> list[int]:
        """
        Rank published stories by trending score.

        The score is the raw view count of the window; there is no
        all-time trending column, so ``total`` ranks by total views.

        Args:
            limit: Maximum entries.
            period: week, month or total.

        Returns:
            Story IDs, best first.
        """
        period = Period.normalize(period)
        stamps = period_stamps(self._clock())
        if period == Period.WEEK:
            score = _current(ItemRollup.trending_week, ItemRollup.views_week_stamp, stamps.week)
        elif period == Period.MONTH:
            score = _current(ItemRollup.trending_month, ItemRollup.views_month_stamp, stamps.month)
        else:
            score = ItemRollup.views_total

        stmt = (
            self._published_stories()
            .order_by(score.desc(), ItemRollup.views_total.desc(), ItemRollup.item_id)
            .limit(_clamp_limit(limit))
        )
        rows = await self._fetch_ranking(stmt)
        return [row.item_id for row in rows]

    async def get_most_followed(self, limit: int = 10) -> list[MostFollowedItem]:
        """
        Rank published stories by follower count.

        Args:
            limit: Maximum entries.

        Returns:
            Stories with at least one follower, most followed first.
        """
        stmt = (
            self._published_stories(ItemRollup.follow_count)
            .where(ItemRollup.follow_count > 0)
            .order_by(
                ItemRollup.follow_count.desc(), ItemRollup.views_total.desc(), ItemRollup.item_id
            )
            .limit(_clamp_limit(limit))
        )
        rows = await self._fetch_ranking(stmt)
        return [
            MostFollowedItem(story_id=row.item_id, follow_count=row.follow_count) for row in rows
        ]

    async def get_recently_rated(self, limit: int = 10) -> list[int]:
        """
        Rank published stories by their latest rating activity.

        Args:
            limit: Maximum entries.

        Returns:
            Story IDs that currently hold ratings, most recently rated first.
        """
        stmt = (
            self._published_stories()
            .where(
                ItemRollup.rating_count_total > 0,
                ItemRollup.rating_updated_at.is_not(None),
            )
            .order_by(ItemRollup.rating_updated_at.desc(), ItemRollup.item_id)
            .limit(_clamp_limit(limit))
        )
        rows = await self._fetch_ranking(stmt)
        return [row.item_id for row in rows]
