"""
Follow event sinks.

Follow changes are announced fire-and-forget. The arq sink enqueues jobs
for whatever worker handles notifications; delivery failures are logged
and never fail the follow write.
"""

from typing import Protocol

from arq.connections import ArqRedis

from inkwell_core import get_logger

from .actor_resolver import Actor, AuthenticatedActor

logger = get_logger(__name__)

FOLLOW_ADDED_JOB = "follow_added"
FOLLOW_REMOVED_JOB = "follow_removed"


class FollowEventSink(Protocol):
    """Receives follow add/remove notifications."""

    async def follow_added(self, post_id: int, actor: Actor) -> None: ...

    async def follow_removed(self, post_id: int, actor: Actor) -> None: ...


class NullFollowEventSink:
    """Sink that drops every event."""

    async def follow_added(self, post_id: int, actor: Actor) -> None:
        return None

    async def follow_removed(self, post_id: int, actor: Actor) -> None:
        return None


class ArqFollowEventSink:
    """Sink enqueueing arq jobs."""

    def __init__(self, redis_pool: ArqRedis | None) -> None:
        self.redis_pool = redis_pool

    async def follow_added(self, post_id: int, actor: Actor) -> None:
        await self._enqueue(FOLLOW_ADDED_JOB, post_id, actor)

    async def follow_removed(self, post_id: int, actor: Actor) -> None:
        await self._enqueue(FOLLOW_REMOVED_JOB, post_id, actor)

    async def _enqueue(self, job_name: str, post_id: int, actor: Actor) -> None:
        if not self.redis_pool:
            return

        # Anonymous followers are reported as user 0
        user_id = actor.user_id if isinstance(actor, AuthenticatedActor) else 0
        try:
            await self.redis_pool.enqueue_job(job_name, post_id=post_id, user_id=user_id)
            logger.info(
                "Queued follow event",
                extra={"job": job_name, "post_id": post_id, "user_id": user_id},
            )
        except Exception:
            logger.exception(
                "Failed to queue follow event",
                extra={"job": job_name, "post_id": post_id},
            )
