"""Tests for follow event sinks."""

from unittest.mock import AsyncMock

import pytest

from inkwell_core.services import ArqFollowEventSink, NullFollowEventSink
from inkwell_core.services.actor_resolver import AnonymousActor, AuthenticatedActor


class TestArqFollowEventSink:
    """Test ArqFollowEventSink."""

    @pytest.mark.asyncio
    async def test_enqueues_jobs(self, test_mock_redis):
        sink = ArqFollowEventSink(test_mock_redis)
        await sink.follow_added(11, AuthenticatedActor(7))
        await sink.follow_removed(1, AnonymousActor("abc"))

        assert test_mock_redis.enqueued_jobs == [
            ("follow_added", {"post_id": 11, "user_id": 7}),
            ("follow_removed", {"post_id": 1, "user_id": 0}),
        ]

    @pytest.mark.asyncio
    async def test_enqueue_failure_is_logged(self, caplog):
        redis_pool = AsyncMock()
        redis_pool.enqueue_job.side_effect = ConnectionError("down")

        await ArqFollowEventSink(redis_pool).follow_added(11, AuthenticatedActor(7))

        assert "Failed to queue follow event" in caplog.text

    @pytest.mark.asyncio
    async def test_without_pool(self):
        await ArqFollowEventSink(None).follow_added(11, AuthenticatedActor(7))


@pytest.mark.asyncio
async def test_null_sink_ignores_events():
    sink = NullFollowEventSink()
    assert await sink.follow_added(1, AuthenticatedActor(7)) is None
    assert await sink.follow_removed(1, AuthenticatedActor(7)) is None
