"""Tests for stats and ranking reads."""

from datetime import UTC, datetime, timedelta

import pytest

from inkwell_core.schemas import ItemStats, StoryStats
from inkwell_core.services import StatsCache, StatsService, TableRegistry
from inkwell_core.services.rollup_service import RollupService
from inkwell_database.models import ContentItem, ItemRollup


async def _seed_views(session, chapter_id: int, story_id: int, count: int, now=None) -> None:
    rollups = RollupService(session, clock=(lambda: now) if now else None)
    for _ in range(count):
        await rollups.apply_view(chapter_id, story_id)
    await session.commit()


async def _rate_at(session, when, chapter_id, story_id, new, old=0.0, is_removal=False) -> None:
    rollups = RollupService(session, clock=lambda: when)
    await rollups.apply_rating(chapter_id, story_id, new, old, old == 0.0, is_removal)
    await session.commit()


class TestItemStats:
    """Test per-item stats."""

    @pytest.mark.asyncio
    async def test_defaults_to_zero(self, stats_service, content):
        assert await stats_service.get_item_stats(content.chapter_id) == ItemStats()
        assert await stats_service.get_story_stats(content.story_id) == StoryStats()

    @pytest.mark.asyncio
    async def test_batch_get_stats(self, stats_service, db_session, content):
        await _seed_views(db_session, content.chapter_id, content.story_id, 2)
        await _seed_views(db_session, content.other_chapter_id, content.other_story_id, 1)

        stats = await stats_service.batch_get_stats(
            [content.chapter_id, content.other_story_id, 999, content.chapter_id]
        )

        assert list(stats) == [content.chapter_id, content.other_story_id, 999]
        assert stats[content.chapter_id].views == 2
        assert stats[content.other_story_id].views == 1
        assert stats[999] == ItemStats()

    @pytest.mark.asyncio
    async def test_batch_get_stats_empty(self, stats_service):
        assert await stats_service.batch_get_stats([]) == {}

    @pytest.mark.asyncio
    async def test_cached_stats_are_served(self, db_session, content, test_mock_redis):
        cache = StatsCache(test_mock_redis, ttl=60)
        service = StatsService(db_session, cache=cache, tables=TableRegistry())
        await cache.set_item_stats(content.chapter_id, ItemStats(views=42))

        assert (await service.get_item_stats(content.chapter_id)).views == 42

    @pytest.mark.asyncio
    async def test_missing_table_degrades_to_defaults(self, db_session, content):
        await db_session.run_sync(lambda s: ItemRollup.__table__.drop(s.connection()))
        await db_session.commit()
        service = StatsService(db_session, tables=TableRegistry())

        assert await service.get_item_stats(content.chapter_id) == ItemStats()
        assert await service.batch_get_stats([content.chapter_id]) == {content.chapter_id: ItemStats()}
        assert await service.get_most_viewed() == []
        assert await service.get_trending() == []


class TestRankings:
    """Test ranking queries."""

    @pytest.mark.asyncio
    async def test_most_viewed_only_published_stories(self, stats_service, db_session, content):
        await _seed_views(db_session, content.chapter_id, content.story_id, 3)
        await _seed_views(db_session, content.other_chapter_id, content.other_story_id, 5)
        # Counters on a draft story are never ranked
        db_session.add(ContentItem(id=31, kind="chapter", parent_id=content.draft_story_id))
        await db_session.commit()
        await _seed_views(db_session, 31, content.draft_story_id, 9)

        ranked = await stats_service.get_most_viewed(limit=10)

        assert [(item.story_id, item.views) for item in ranked] == [
            (content.other_story_id, 5),
            (content.story_id, 3),
        ]

    @pytest.mark.asyncio
    async def test_stale_week_ranks_as_zero(self, stats_service, db_session, content):
        last_month = datetime.now(UTC) - timedelta(days=40)
        await _seed_views(db_session, content.chapter_id, content.story_id, 10, now=last_month)
        await _seed_views(db_session, content.other_chapter_id, content.other_story_id, 2)

        weekly = await stats_service.get_most_viewed(period="week")
        assert [(item.story_id, item.views) for item in weekly] == [
            (content.other_story_id, 2),
            (content.story_id, 0),
        ]
        assert await stats_service.get_trending(period="month") == [
            content.other_story_id,
            content.story_id,
        ]
        # All-time trending falls back to total views
        assert await stats_service.get_trending(period="total") == [
            content.story_id,
            content.other_story_id,
        ]

    @pytest.mark.asyncio
    async def test_unknown_period_is_total(self, stats_service, db_session, content):
        await _seed_views(db_session, content.chapter_id, content.story_id, 1)
        ranked = await stats_service.get_most_viewed(period="decade")
        assert ranked[0].views == 1

    @pytest.mark.asyncio
    async def test_top_rated_respects_min_ratings(self, interaction_service, stats_service, content):
        for user_id in (1001, 1002, 1003):
            await interaction_service.record_rating(content.chapter_id, 4.0, user_id)
        await interaction_service.record_rating(content.other_chapter_id, 5.0, 1001)

        ranked = await stats_service.get_top_rated(min_ratings=2)
        assert [(item.story_id, item.rating, item.count) for item in ranked] == [
            (content.story_id, 4.0, 3)
        ]

        ranked = await stats_service.get_top_rated(min_ratings=1, period="week")
        assert [item.story_id for item in ranked] == [content.other_story_id, content.story_id]

    @pytest.mark.asyncio
    async def test_most_followed(self, interaction_service, stats_service, content):
        await interaction_service.record_follow(content.story_id, 1001)
        await interaction_service.record_follow(content.chapter_id, 1002)
        await interaction_service.record_follow(content.other_story_id, 1001)

        ranked = await stats_service.get_most_followed()
        assert [(item.story_id, item.follow_count) for item in ranked] == [
            (content.story_id, 2),
            (content.other_story_id, 1),
        ]

    @pytest.mark.asyncio
    async def test_recently_rated(self, stats_service, db_session, content):
        start = datetime(2026, 10, 14, 12, 0, tzinfo=UTC)
        await _rate_at(db_session, start, content.other_chapter_id, content.other_story_id, 4.0)
        await _rate_at(
            db_session, start + timedelta(minutes=1), content.chapter_id, content.story_id, 3.0
        )

        assert await stats_service.get_recently_rated() == [
            content.story_id,
            content.other_story_id,
        ]

        # Changing a rating counts as new activity
        await _rate_at(
            db_session,
            start + timedelta(minutes=2),
            content.other_chapter_id,
            content.other_story_id,
            5.0,
            old=4.0,
        )
        assert await stats_service.get_recently_rated() == [
            content.other_story_id,
            content.story_id,
        ]

        # Stories whose ratings were all removed drop out
        await _rate_at(
            db_session,
            start + timedelta(minutes=3),
            content.chapter_id,
            content.story_id,
            0.0,
            old=3.0,
            is_removal=True,
        )
        assert await stats_service.get_recently_rated(limit=5) == [content.other_story_id]
