"""
Stats cache.

Best-effort Redis cache for computed stats and the per-user pending-sync
flag. Redis failures are logged and treated as cache misses; the database
stays authoritative.
"""

from typing import TypeVar

from arq.connections import ArqRedis
from pydantic import BaseModel, ValidationError

from inkwell_core import get_logger
from inkwell_core.redis_keys import RedisKeys
from inkwell_core.schemas import ItemStats, StoryStats

logger = get_logger(__name__)

StatsModel = TypeVar("StatsModel", bound=BaseModel)


class StatsCache:
    """Redis-backed stats cache and sync flag store."""

    def __init__(
        self,
        redis: ArqRedis | None,
        ttl: int = 300,
        sync_flag_ttl: int = RedisKeys.SYNC_NEEDED_TTL,
    ) -> None:
        """
        Initialize stats cache.

        Args:
            redis: Redis connection; None disables the cache.
            ttl: Stats entry lifetime in seconds (0 disables stats caching).
            sync_flag_ttl: Pending-sync flag lifetime in seconds.
        """
        self.redis = redis
        self.ttl = ttl
        self.sync_flag_ttl = sync_flag_ttl

    @property
    def enabled(self) -> bool:
        return self.redis is not None and self.ttl > 0

    async def _get_model(self, key: str, model: type[StatsModel]) -> StatsModel | None:
        if not self.enabled:
            return None
        try:
            raw = await self.redis.get(key)
        except Exception:
            logger.warning("Stats cache read failed", extra={"key": key}, exc_info=True)
            return None
        if raw is None:
            return None
        try:
            return model.model_validate_json(raw)
        except ValidationError:
            return None

    async def _set_model(self, key: str, stats: BaseModel) -> None:
        if not self.enabled:
            return
        try:
            await self.redis.setex(key, self.ttl, stats.model_dump_json())
        except Exception:
            logger.warning("Stats cache write failed", extra={"key": key}, exc_info=True)

    async def get_item_stats(self, item_id: int) -> ItemStats | None:
        """Get cached item stats."""
        return await self._get_model(RedisKeys.item_stats(item_id), ItemStats)

    async def set_item_stats(self, item_id: int, stats: ItemStats) -> None:
        """Cache item stats."""
        await self._set_model(RedisKeys.item_stats(item_id), stats)

    async def get_story_stats(self, story_id: int) -> StoryStats | None:
        """Get cached story stats."""
        return await self._get_model(RedisKeys.story_stats(story_id), StoryStats)

    async def set_story_stats(self, story_id: int, stats: StoryStats) -> None:
        """Cache story stats."""
        await self._set_model(RedisKeys.story_stats(story_id), stats)

    async def invalidate(self, *item_ids: int | None) -> None:
        """
        Drop cached stats for items.

        Args:
            item_ids: Chapter and/or story IDs; falsy IDs are ignored.
        """
        if self.redis is None:
            return
        keys: list[str] = []
        for item_id in item_ids:
            if item_id:
                keys.extend([RedisKeys.item_stats(item_id), RedisKeys.story_stats(item_id)])
        if not keys:
            return
        try:
            await self.redis.delete(*keys)
        except Exception:
            logger.warning("Stats cache invalidation failed", extra={"keys": keys}, exc_info=True)

    async def set_sync_needed(self, user_id: int) -> None:
        """Mark that a user's client should push its local snapshot."""
        if self.redis is None:
            return
        try:
            await self.redis.setex(RedisKeys.sync_needed(user_id), self.sync_flag_ttl, "1")
        except Exception:
            logger.warning("Failed to set sync flag", extra={"user_id": user_id}, exc_info=True)

    async def is_sync_needed(self, user_id: int) -> bool:
        """Check the pending-sync flag."""
        if self.redis is None:
            return False
        try:
            return bool(await self.redis.get(RedisKeys.sync_needed(user_id)))
        except Exception:
            logger.warning("Failed to read sync flag", extra={"user_id": user_id}, exc_info=True)
            return False

    async def clear_sync_needed(self, user_id: int) -> None:
        """Clear the pending-sync flag."""
        if self.redis is None:
            return
        try:
            await self.redis.delete(RedisKeys.sync_needed(user_id))
        except Exception:
            logger.warning("Failed to clear sync flag", extra={"user_id": user_id}, exc_info=True)
