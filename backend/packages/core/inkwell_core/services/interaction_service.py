"""
Interaction service.

Public write operations: likes, dislikes, ratings, views, reads and
follows. Each operation validates its input before any write, records the
actor's row through the interaction store and then updates the rollups.
The row write and its rollup are separate statements; they are committed
together but the rollup is not re-derived from rows afterwards.
"""

from collections.abc import Callable
from datetime import datetime
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from inkwell_core import get_logger
from inkwell_core.config import InteractionSettings, interaction_settings
from inkwell_core.exceptions import (
    InteractionValidationError,
    StorageUnavailableError,
    WriteFailedError,
)
from inkwell_core.ratings import normalize_rating
from inkwell_core.schemas import ActorState, FollowResult, InteractionResult, ViewResult
from inkwell_database.models import Interaction, InteractionType, ItemRollup

from .actor_resolver import Actor, ActorResolver, coerce_id
from .content import ContentRef, ContentRepository, SqlContentRepository
from .events import FollowEventSink, NullFollowEventSink
from .interaction_store import InteractionStore
from .rollup_service import RollupService
from .stats_cache import StatsCache
from .stats_service import StatsService
from .storage import TableRegistry, table_registry

logger = get_logger(__name__)

REQUIRED_TABLES = (Interaction.__tablename__, ItemRollup.__tablename__)

# Ratings closer than this are the same rating
RATING_EPSILON = 0.001


class InteractionService:
    """Records per-actor interactions and keeps rollups in step."""

    def __init__(
        self,
        session: AsyncSession,
        settings: InteractionSettings | None = None,
        *,
        content: ContentRepository | None = None,
        cache: StatsCache | None = None,
        events: FollowEventSink | None = None,
        tables: TableRegistry | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """
        Initialize interaction service.

        Args:
            session: Database session.
            settings: Engine settings, defaults to the environment.
            content: Story/chapter lookups.
            cache: Optional stats cache, invalidated on writes.
            events: Follow event sink.
            tables: Table existence registry.
            clock: Returns the current time; defaults to UTC now.
        """
        self.session = session
        self.settings = settings or interaction_settings
        self.resolver = ActorResolver(
            self.settings.anonymous_secret, self.settings.anonymous_token_max_length
        )
        self.content = content or SqlContentRepository(session, self.settings.coauthors_enabled)
        self.cache = cache
        self.events = events or NullFollowEventSink()
        self.tables = tables or table_registry
        self.store = InteractionStore(session, clock=clock)
        self.rollups = RollupService(
            session, clock=clock, max_retries=self.settings.rating_max_retries
        )
        self.stats = StatsService(session, cache=cache, tables=self.tables, clock=clock)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _get_post(self, item_id: Any) -> ContentRef:
        post_id = coerce_id(item_id)
        if post_id <= 0:
            raise InteractionValidationError("Invalid item ID", code="invalid_item")
        post = await self.content.get_item(post_id)
        if post is None:
            raise InteractionValidationError(f"Item {post_id} not found", code="item_not_found")
        return post

    async def _get_chapter(self, item_id: Any) -> tuple[int, int]:
        """Resolve a chapter and its owning story."""
        post = await self._get_post(item_id)
        if not post.is_chapter or not post.parent_id:
            raise InteractionValidationError(
                f"Item {post.id} is not a chapter of a story", code="invalid_item"
            )
        return post.id, post.parent_id

    async def _prepare(self) -> None:
        await self.tables.require(self.session, *REQUIRED_TABLES)

    async def _commit(self) -> None:
        try:
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.exception("Interaction commit failed")
            raise WriteFailedError("Could not save interaction", code="commit_failed") from e

    async def _finish(self, chapter_id: int, story_id: int | None) -> None:
        await self._commit()
        if self.cache:
            await self.cache.invalidate(chapter_id, story_id)

    # ------------------------------------------------------------------
    # Likes / dislikes
    # ------------------------------------------------------------------

    async def _add_exclusive(
        self,
        item_id: Any,
        user_id: Any,
        anonymous_token: str | None,
        add: InteractionType,
        remove: InteractionType,
    ) -> InteractionResult:
        chapter_id, story_id = await self._get_chapter(item_id)
        actor = self.resolver.require(user_id, anonymous_token)
        await self._prepare()

        created = await self.store.insert_if_absent(actor, chapter_id, add)
        if created:
            await self._apply_reaction(add, chapter_id, story_id, +1)

        removed = await self.store.delete(actor, chapter_id, remove)
        if removed:
            await self._apply_reaction(remove, chapter_id, story_id, -1)

        await self._finish(chapter_id, story_id)
        return InteractionResult(
            changed=created or removed,
            stats=await self.stats.get_item_stats(chapter_id),
        )

    async def _remove_reaction(
        self,
        item_id: Any,
        user_id: Any,
        anonymous_token: str | None,
        interaction_type: InteractionType,
    ) -> InteractionResult:
        chapter_id, story_id = await self._get_chapter(item_id)
        actor = self.resolver.require(user_id, anonymous_token)
        await self._prepare()

        removed = await self.store.delete(actor, chapter_id, interaction_type)
        if removed:
            await self._apply_reaction(interaction_type, chapter_id, story_id, -1)

        await self._finish(chapter_id, story_id)
        return InteractionResult(
            changed=removed,
            stats=await self.stats.get_item_stats(chapter_id),
        )

    async def _apply_reaction(
        self, interaction_type: InteractionType, chapter_id: int, story_id: int, delta: int
    ) -> None:
        if interaction_type == InteractionType.LIKE:
            await self.rollups.apply_like_delta(chapter_id, story_id, delta)
        else:
            await self.rollups.apply_dislike_delta(chapter_id, story_id, delta)

    async def record_like(
        self, item_id: Any, user_id: Any = 0, anonymous_token: str | None = None
    ) -> InteractionResult:
        """
        Like a chapter, clearing any dislike by the same actor.

        Args:
            item_id: Chapter ID.
            user_id: Authenticated user ID, 0 for anonymous.
            anonymous_token: Anonymous client token.

        Returns:
            Whether anything changed, plus the chapter's stats.

        Raises:
            InteractionValidationError: Unknown chapter or no usable identity.
        """
        return await self._add_exclusive(
            item_id, user_id, anonymous_token, InteractionType.LIKE, InteractionType.DISLIKE
        )

    async def remove_like(
        self, item_id: Any, user_id: Any = 0, anonymous_token: str | None = None
    ) -> InteractionResult:
        """Remove the actor's like from a chapter."""
        return await self._remove_reaction(item_id, user_id, anonymous_token, InteractionType.LIKE)

    async def record_dislike(
        self, item_id: Any, user_id: Any = 0, anonymous_token: str | None = None
    ) -> InteractionResult:
        """Dislike a chapter, clearing any like by the same actor."""
        return await self._add_exclusive(
            item_id, user_id, anonymous_token, InteractionType.DISLIKE, InteractionType.LIKE
        )

    async def remove_dislike(
        self, item_id: Any, user_id: Any = 0, anonymous_token: str | None = None
    ) -> InteractionResult:
        """Remove the actor's dislike from a chapter."""
        return await self._remove_reaction(
            item_id, user_id, anonymous_token, InteractionType.DISLIKE
        )

    # ------------------------------------------------------------------
    # Ratings
    # ------------------------------------------------------------------

    async def record_rating(
        self,
        item_id: Any,
        rating: Any,
        user_id: Any = 0,
        anonymous_token: str | None = None,
    ) -> InteractionResult:
        """
        Rate a chapter or change the actor's rating.

        Args:
            item_id: Chapter ID.
            rating: Value between 0.5 and 5.0, snapped to half stars.
            user_id: Authenticated user ID, 0 for anonymous.
            anonymous_token: Anonymous client token.

        Returns:
            Whether the stored rating changed, plus the chapter's stats.

        Raises:
            InteractionValidationError: Bad chapter, identity or rating.
            WriteFailedError: Concurrent writers kept racing this actor's row.
        """
        value = normalize_rating(rating)
        if value is None:
            raise InteractionValidationError(
                "Rating must be between 0.5 and 5.0", code="invalid_rating"
            )
        chapter_id, story_id = await self._get_chapter(item_id)
        actor = self.resolver.require(user_id, anonymous_token)
        await self._prepare()

        changed = False
        for _ in range(self.settings.rating_max_retries):
            current = await self.store.get_all_for_actor_item(actor, chapter_id)
            row = current.get(InteractionType.RATING)
            old = row.value if row is not None else None

            if old is None:
                if await self.store.insert_if_absent(
                    actor, chapter_id, InteractionType.RATING, value
                ):
                    await self.rollups.apply_rating(chapter_id, story_id, value, 0.0, True, False)
                    changed = True
                    break
                continue

            if abs(old - value) < RATING_EPSILON:
                break

            if await self.store.compare_and_set_value(
                actor, chapter_id, InteractionType.RATING, old, value
            ):
                await self.rollups.apply_rating(chapter_id, story_id, value, old, False, False)
                changed = True
                break
        else:
            raise WriteFailedError("Rating kept changing concurrently", code="rating_conflict")

        await self._finish(chapter_id, story_id)
        return InteractionResult(changed=changed, stats=await self.stats.get_item_stats(chapter_id))

    async def remove_rating(
        self, item_id: Any, user_id: Any = 0, anonymous_token: str | None = None
    ) -> InteractionResult:
        """Remove the actor's rating from a chapter."""
        chapter_id, story_id = await self._get_chapter(item_id)
        actor = self.resolver.require(user_id, anonymous_token)
        await self._prepare()

        changed = False
        for _ in range(self.settings.rating_max_retries):
            current = await self.store.get_all_for_actor_item(actor, chapter_id)
            row = current.get(InteractionType.RATING)
            if row is None or row.value is None:
                break
            old = row.value
            if await self.store.delete(
                actor, chapter_id, InteractionType.RATING, expected_value=old
            ):
                await self.rollups.apply_rating(chapter_id, story_id, 0.0, old, False, True)
                changed = True
                break
        else:
            raise WriteFailedError("Rating kept changing concurrently", code="rating_conflict")

        await self._finish(chapter_id, story_id)
        return InteractionResult(changed=changed, stats=await self.stats.get_item_stats(chapter_id))

    # ------------------------------------------------------------------
    # Views / reads
    # ------------------------------------------------------------------

    async def record_view(self, item_id: Any, story_id: Any = 0, viewer_id: Any = 0) -> ViewResult:
        """
        Count a view of a published chapter.

        Views are not deduplicated per actor; they go straight to the
        rollups. Views by the story's author or a co-author are skipped.

        Args:
            item_id: Chapter ID.
            story_id: Owning story, looked up when 0.
            viewer_id: Current user ID, 0 for anonymous.

        Returns:
            Whether the view was skipped.
        """
        post = await self._get_post(item_id)
        if not post.is_chapter or not post.is_published:
            raise InteractionValidationError(
                f"Item {post.id} is not a published chapter", code="invalid_item"
            )
        parent_id = coerce_id(story_id) or post.parent_id or 0
        if parent_id <= 0:
            raise InteractionValidationError(
                f"Chapter {post.id} has no story", code="invalid_view_story"
            )

        if await self.content.is_author_or_coauthor(parent_id, coerce_id(viewer_id)):
            return ViewResult(skipped=True)

        await self._prepare()
        await self.rollups.apply_view(post.id, parent_id)
        await self._finish(post.id, parent_id)
        return ViewResult(skipped=False)

    async def record_read(self, item_id: Any, user_id: Any) -> InteractionResult:
        """
        Mark a chapter as read by a logged-in user.

        Args:
            item_id: Chapter ID.
            user_id: Authenticated user ID.

        Returns:
            Always changed; repeat reads refresh the row's timestamp.
        """
        chapter_id, _ = await self._get_chapter(item_id)
        actor = self._require_user(user_id)
        await self._prepare()

        await self.store.upsert(actor, chapter_id, InteractionType.READ)
        await self._commit()
        return InteractionResult(changed=True)

    async def remove_read(self, item_id: Any, user_id: Any) -> InteractionResult:
        """Clear a chapter's read mark."""
        chapter_id, _ = await self._get_chapter(item_id)
        actor = self._require_user(user_id)
        await self._prepare()

        removed = await self.store.delete(actor, chapter_id, InteractionType.READ)
        await self._commit()
        return InteractionResult(changed=removed)

    def _require_user(self, user_id: Any) -> Actor:
        if coerce_id(user_id) <= 0:
            raise InteractionValidationError("Login required", code="login_required")
        return self.resolver.require(user_id)

    # ------------------------------------------------------------------
    # Follows
    # ------------------------------------------------------------------

    async def _follow_changed(self, post: ContentRef, actor: Actor, delta: int) -> None:
        story_id = await self.rollups.apply_follow_delta(post, delta)
        await self._finish(post.id, story_id)
        if delta > 0:
            await self.events.follow_added(post.id, actor)
        else:
            await self.events.follow_removed(post.id, actor)

    async def record_follow(
        self, post_id: Any, user_id: Any = 0, anonymous_token: str | None = None
    ) -> FollowResult:
        """
        Follow a story or chapter.

        Args:
            post_id: Story or chapter ID.
            user_id: Authenticated user ID, 0 for anonymous.
            anonymous_token: Anonymous client token.

        Returns:
            Whether a follow was created; is_followed is always True.
        """
        post = await self._get_post(post_id)
        actor = self.resolver.require(user_id, anonymous_token)
        await self._prepare()

        created = await self.store.insert_if_absent(actor, post.id, InteractionType.FOLLOW)
        if created:
            await self._follow_changed(post, actor, +1)
        return FollowResult(changed=created, is_followed=True)

    async def remove_follow(
        self, post_id: Any, user_id: Any = 0, anonymous_token: str | None = None
    ) -> FollowResult:
        """Unfollow a story or chapter."""
        post = await self._get_post(post_id)
        actor = self.resolver.require(user_id, anonymous_token)
        await self._prepare()

        removed = await self.store.delete(actor, post.id, InteractionType.FOLLOW)
        if removed:
            await self._follow_changed(post, actor, -1)
        return FollowResult(changed=removed, is_followed=False)

    async def toggle_follow(
        self, post_id: Any, user_id: Any = 0, anonymous_token: str | None = None
    ) -> FollowResult:
        """
        Flip the actor's follow on a post.

        The delete runs first; only when it removed nothing is a follow
        inserted.

        Returns:
            changed and the resulting follow state.
        """
        post = await self._get_post(post_id)
        actor = self.resolver.require(user_id, anonymous_token)
        await self._prepare()

        if await self.store.delete(actor, post.id, InteractionType.FOLLOW):
            await self._follow_changed(post, actor, -1)
            return FollowResult(changed=True, is_followed=False)

        created = await self.store.insert_if_absent(actor, post.id, InteractionType.FOLLOW)
        if created:
            await self._follow_changed(post, actor, +1)
        return FollowResult(changed=created, is_followed=True)

    async def upsert_follow(
        self, post_id: Any, user_id: Any = 0, anonymous_token: str | None = None
    ) -> bool:
        """
        Ensure the actor follows a post, never removing an existing follow.

        Returns:
            True once the follow exists.
        """
        result = await self.record_follow(post_id, user_id, anonymous_token)
        return result.is_followed

    async def has_follow(
        self, post_id: Any, user_id: Any = 0, anonymous_token: str | None = None
    ) -> bool:
        """Check whether the actor follows a post; False for unknown actors."""
        actor = self.resolver.resolve(user_id, anonymous_token)
        post_id = coerce_id(post_id)
        if actor is None or post_id <= 0:
            return False
        try:
            if not await self.tables.exists(self.session, Interaction.__tablename__):
                return False
            return await self.store.has(actor, post_id, InteractionType.FOLLOW)
        except (SQLAlchemyError, StorageUnavailableError):
            logger.warning("Follow lookup failed", extra={"post_id": post_id}, exc_info=True)
            return False

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_actor_state(
        self, item_id: Any, user_id: Any = 0, anonymous_token: str | None = None
    ) -> ActorState:
        """
        Get what the actor has done to an item.

        Returns:
            Flags and rating; all defaults for unknown actors or storage.
        """
        actor = self.resolver.resolve(user_id, anonymous_token)
        item_id = coerce_id(item_id)
        if actor is None or item_id <= 0:
            return ActorState()
        try:
            if not await self.tables.exists(self.session, Interaction.__tablename__):
                return ActorState()
            rows = await self.store.get_all_for_actor_item(actor, item_id)
        except (SQLAlchemyError, StorageUnavailableError):
            logger.warning("Actor state lookup failed", extra={"item_id": item_id}, exc_info=True)
            return ActorState()

        rating = rows.get(InteractionType.RATING)
        return ActorState(
            liked=InteractionType.LIKE in rows,
            disliked=InteractionType.DISLIKE in rows,
            rating=rating.value if rating is not None else None,
            read=InteractionType.READ in rows,
            followed=InteractionType.FOLLOW in rows,
        )
