"""Tests for concurrent writes from separate sessions."""

import asyncio
import os

import pytest
import pytest_asyncio
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from inkwell_core.services import InteractionService, TableRegistry
from inkwell_database import Base
from inkwell_database.models import (
    ContentItem,
    ContentKind,
    ContentStatus,
    Interaction,
    InteractionType,
    ItemRollup,
)

STORY_ID = 1
CHAPTER_ID = 11
USER_ID = 7


def _database_url(tmp_path) -> str:
    url = os.getenv("TEST_DATABASE_URL", "")
    # Concurrent writers need connections of their own, so in-memory SQLite will not do
    if not url or ":memory:" in url:
        return f"sqlite+aiosqlite:///{tmp_path / 'concurrency.db'}"
    return url


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    """Session factory over a database shared by several connections."""
    url = _database_url(tmp_path)
    connect_args = {"timeout": 30} if url.startswith("sqlite") else {}
    engine = create_async_engine(url, connect_args=connect_args)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        session.add_all(
            [
                ContentItem(id=STORY_ID, kind=ContentKind.STORY.value, author_id=100),
                ContentItem(
                    id=CHAPTER_ID,
                    kind=ContentKind.CHAPTER.value,
                    parent_id=STORY_ID,
                    status=ContentStatus.PUBLISHED.value,
                    author_id=100,
                ),
            ]
        )
        await session.commit()

    yield factory

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


class TestConcurrentLikes:
    """Test that simultaneous duplicate likes are counted once."""

    @pytest.mark.asyncio
    async def test_double_click_creates_one_row(self, session_factory, test_settings):
        tables = TableRegistry()
        async with session_factory() as first, session_factory() as second:
            results = await asyncio.gather(
                InteractionService(first, test_settings, tables=tables).record_like(
                    CHAPTER_ID, USER_ID
                ),
                InteractionService(second, test_settings, tables=tables).record_like(
                    CHAPTER_ID, USER_ID
                ),
            )

        assert sorted(result.changed for result in results) == [False, True]

        async with session_factory() as session:
            rows = await session.scalar(
                select(func.count())
                .select_from(Interaction)
                .where(
                    Interaction.item_id == CHAPTER_ID,
                    Interaction.interaction_type == InteractionType.LIKE.value,
                )
            )
            likes = dict(
                (await session.execute(select(ItemRollup.item_id, ItemRollup.likes_total))).all()
            )

        assert rows == 1
        assert likes == {CHAPTER_ID: 1, STORY_ID: 1}
