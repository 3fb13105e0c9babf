"""Global pytest fixtures for testing."""

import contextlib
import os
from collections.abc import AsyncGenerator
from dataclasses import dataclass
from typing import Any

import dotenv
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from inkwell_core.config import InteractionSettings
from inkwell_core.services import (
    ArqFollowEventSink,
    InteractionService,
    StatsCache,
    StatsService,
    SyncService,
    TableRegistry,
)
from inkwell_database import Base
from inkwell_database.models import ContentCoauthor, ContentItem, ContentKind, ContentStatus
from inkwell_database.session import get_session

with contextlib.suppress(OSError):
    dotenv.load_dotenv()


class MockArqRedis:
    """Mock ArqRedis for testing."""

    def __init__(self):
        self.enqueued_jobs: list[tuple[str, dict[str, Any]]] = []
        self._store: dict[str, Any] = {}
        self._ttl: dict[str, int] = {}

    async def enqueue_job(self, func_name: str, *args: Any, **kwargs: Any) -> None:
        """Mock enqueue_job that records calls without actually queuing."""
        self.enqueued_jobs.append((func_name, kwargs))

    async def setex(self, key: str, ttl_seconds: int, value: Any) -> bool:
        self._store[key] = value
        self._ttl[key] = ttl_seconds
        return True

    async def exists(self, key: str) -> int:
        return 1 if key in self._store else 0

    async def get(self, key: str) -> Any:
        return self._store.get(key)

    async def delete(self, *keys: str) -> int:
        deleted = 0
        for key in keys:
            if key in self._store:
                deleted += 1
                self._store.pop(key, None)
                self._ttl.pop(key, None)
        return deleted

    async def ttl(self, key: str) -> int:
        return self._ttl.get(key, -1)

    def reset(self) -> None:
        """Reset all in-memory redis state."""
        self.enqueued_jobs.clear()
        self._store.clear()
        self._ttl.clear()

    def seed(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        """Seed redis key/value directly for tests."""
        self._store[key] = value
        if ttl_seconds is not None:
            self._ttl[key] = ttl_seconds

    def has_key(self, key: str) -> bool:
        """Return whether key exists in mock store."""
        return key in self._store


# Global mock redis instance for testing
mock_redis = MockArqRedis()

# Test database URL - in-memory SQLite unless TEST_DATABASE_URL is set
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:")

# Safety check: ensure tests only run on a test database
if ":memory:" not in TEST_DATABASE_URL and "test" not in TEST_DATABASE_URL:
    raise RuntimeError(
        f"Safety check failed: TEST_DATABASE_URL must point to a test database "
        f"(name should contain 'test'). Current: {TEST_DATABASE_URL}"
    )

TEST_SECRET = "test-anonymous-secret"


@dataclass(frozen=True)
class SeededContent:
    """IDs of the stories and chapters created by the content fixture."""

    author_id: int = 100
    coauthor_id: int = 101
    reader_id: int = 7
    other_reader_id: int = 8
    story_id: int = 1
    chapter_id: int = 11
    second_chapter_id: int = 12
    draft_chapter_id: int = 13
    other_story_id: int = 2
    other_chapter_id: int = 21
    draft_story_id: int = 3


@pytest_asyncio.fixture
async def test_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create test database engine with a fresh schema."""
    if TEST_DATABASE_URL.startswith("sqlite"):
        engine = create_async_engine(
            TEST_DATABASE_URL,
            echo=False,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_async_engine(TEST_DATABASE_URL, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    session_factory = async_sessionmaker(
        bind=test_engine, class_=AsyncSession, expire_on_commit=False
    )
    async with session_factory() as session:
        yield session


@pytest.fixture
def test_mock_redis() -> MockArqRedis:
    """Provide access to the mock redis instance for testing."""
    mock_redis.reset()
    return mock_redis


@pytest.fixture
def test_settings() -> InteractionSettings:
    """Interaction settings with a fixed anonymous secret."""
    return InteractionSettings(anonymous_secret=TEST_SECRET, stats_cache_ttl=300)


@pytest.fixture
def tables() -> TableRegistry:
    """Fresh table existence registry."""
    return TableRegistry()


@pytest_asyncio.fixture
async def content(db_session: AsyncSession) -> SeededContent:
    """Create two published stories with chapters, a draft chapter and a draft story."""
    ids = SeededContent()
    published = ContentStatus.PUBLISHED.value
    db_session.add_all(
        [
            ContentItem(id=ids.story_id, kind=ContentKind.STORY.value, author_id=ids.author_id),
            ContentItem(
                id=ids.chapter_id,
                kind=ContentKind.CHAPTER.value,
                parent_id=ids.story_id,
                status=published,
                author_id=ids.author_id,
            ),
            ContentItem(
                id=ids.second_chapter_id,
                kind=ContentKind.CHAPTER.value,
                parent_id=ids.story_id,
                status=published,
                author_id=ids.author_id,
            ),
            ContentItem(
                id=ids.draft_chapter_id,
                kind=ContentKind.CHAPTER.value,
                parent_id=ids.story_id,
                status=ContentStatus.DRAFT.value,
                author_id=ids.author_id,
            ),
            ContentItem(id=ids.other_story_id, kind=ContentKind.STORY.value, author_id=200),
            ContentItem(
                id=ids.other_chapter_id,
                kind=ContentKind.CHAPTER.value,
                parent_id=ids.other_story_id,
                status=published,
                author_id=200,
            ),
            ContentItem(
                id=ids.draft_story_id,
                kind=ContentKind.STORY.value,
                status=ContentStatus.DRAFT.value,
                author_id=200,
            ),
        ]
    )
    await db_session.flush()
    db_session.add(ContentCoauthor(story_id=ids.story_id, user_id=ids.coauthor_id))
    await db_session.commit()
    return ids


@pytest.fixture
def stats_cache(test_mock_redis: MockArqRedis, test_settings: InteractionSettings) -> StatsCache:
    """Stats cache over the mock redis."""
    return StatsCache(test_mock_redis, ttl=test_settings.stats_cache_ttl)


@pytest.fixture
def interaction_service(
    db_session: AsyncSession,
    test_settings: InteractionSettings,
    stats_cache: StatsCache,
    test_mock_redis: MockArqRedis,
    tables: TableRegistry,
) -> InteractionService:
    """Interaction service wired to the test database and mock redis."""
    return InteractionService(
        db_session,
        test_settings,
        cache=stats_cache,
        events=ArqFollowEventSink(test_mock_redis),
        tables=tables,
    )


@pytest.fixture
def stats_service(db_session: AsyncSession, tables: TableRegistry) -> StatsService:
    """Uncached stats service."""
    return StatsService(db_session, tables=tables)


@pytest.fixture
def sync_service(
    db_session: AsyncSession,
    interaction_service: InteractionService,
    stats_cache: StatsCache,
) -> SyncService:
    """Sync service sharing the interaction service."""
    return SyncService(db_session, interactions=interaction_service, cache=stats_cache)


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession, test_settings: InteractionSettings, test_mock_redis: MockArqRedis
) -> AsyncGenerator[AsyncClient, None]:
    """Create test HTTP client with database and redis overrides."""
    from inkwell_api.dependencies import get_interaction_settings, get_redis_pool
    from inkwell_api.main import app

    async def override_get_session():
        yield db_session

    async def override_get_redis_pool():
        return test_mock_redis

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_redis_pool] = override_get_redis_pool
    app.dependency_overrides[get_interaction_settings] = lambda: test_settings

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


def make_auth_headers(user_id: int) -> dict[str, str]:
    """Build bearer headers for a user."""
    from inkwell_api.config import settings
    from inkwell_core.auth import JWTConfig, create_access_token

    jwt_config = JWTConfig(
        secret_key=settings.secret_key,
        algorithm=settings.jwt_algorithm,
        access_token_expire_minutes=settings.jwt_access_token_expire_minutes,
    )
    access_token = create_access_token(user_id, jwt_config)
    return {"Authorization": f"Bearer {access_token}"}


@pytest.fixture
def auth_headers(content: SeededContent) -> dict[str, str]:
    """Generate auth headers for the seeded reader."""
    return make_auth_headers(content.reader_id)


@pytest.fixture
def auth_headers_for():
    """Factory building bearer headers for any user ID."""
    return make_auth_headers
