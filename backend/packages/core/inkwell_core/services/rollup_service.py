"""
Rollup service.

Maintains the denormalized item_rollups counters. Every counter change is
a single statement whose new value is computed by the database from the
stored row, so concurrent writers never lose an update. Week and month
buckets roll over lazily: a write whose period stamp differs from the
stored one reseeds the bucket instead of incrementing it.
"""

from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import case, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from inkwell_core import get_logger
from inkwell_core.exceptions import WriteFailedError
from inkwell_database.models import ContentKind, ItemRollup
from inkwell_database.upsert import insert_for

from .content import ContentRef
from .periods import PeriodStamps, period_stamps
from .rating_rollup import compute_rating_rollup

logger = get_logger(__name__)


def _saturating_add(column: Any, delta: int) -> Any:
    if delta >= 0:
        return column + delta
    return case((column + delta > 0, column + delta), else_=0)


def _windowed_increment(column: Any, stamp_column: Any, stamp: int) -> Any:
    return case((stamp_column == stamp, column + 1), else_=1)


def _windowed_decrement(column: Any, stamp_column: Any, stamp: int) -> Any:
    # A stale bucket already counts nothing from the current period
    return case((stamp_column == stamp, case((column > 0, column - 1), else_=0)), else_=column)


class RollupService:
    """Counter maintenance for chapter and story rollup rows."""

    def __init__(
        self,
        session: AsyncSession,
        clock: Callable[[], datetime] | None = None,
        max_retries: int = 5,
    ) -> None:
        """
        Initialize rollup service.

        Args:
            session: Database session.
            clock: Returns the current time; defaults to UTC now.
            max_retries: Compare-and-swap attempts for rating rollups.
        """
        self.session = session
        self._clock = clock or (lambda: datetime.now(UTC))
        self.max_retries = max_retries

    def stamps(self) -> PeriodStamps:
        """Current period stamps."""
        return period_stamps(self._clock())

    @staticmethod
    def _targets(chapter_id: int, story_id: int | None) -> list[tuple[int, str, int | None]]:
        targets = [(chapter_id, ContentKind.CHAPTER.value, story_id)]
        if story_id and story_id != chapter_id:
            targets.append((story_id, ContentKind.STORY.value, None))
        return targets

    async def _execute(self, stmt, action: str):
        try:
            return await self.session.execute(stmt)
        except SQLAlchemyError as e:
            logger.exception("Rollup write failed", extra={"action": action})
            raise WriteFailedError(f"Could not {action}", code="rollup_failed") from e

    async def _ensure_row(self, item_id: int, kind: str, parent_id: int | None) -> None:
        now = self._clock()
        stmt = insert_for(self.session, ItemRollup).values(
            item_id=item_id,
            item_kind=kind,
            parent_id=parent_id,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_nothing(index_elements=["item_id"])
        await self._execute(stmt, "create_rollup")

    async def apply_view(self, chapter_id: int, story_id: int | None) -> None:
        """
        Count one view on a chapter and its story.

        Args:
            chapter_id: Viewed chapter.
            story_id: Owning story.
        """
        stamps = self.stamps()
        now = self._clock()
        for item_id, kind, parent_id in self._targets(chapter_id, story_id):
            stmt = insert_for(self.session, ItemRollup).values(
                item_id=item_id,
                item_kind=kind,
                parent_id=parent_id,
                views_total=1,
                views_week=1,
                views_month=1,
                views_week_stamp=stamps.week,
                views_month_stamp=stamps.month,
                trending_week=1,
                trending_month=1,
                created_at=now,
                updated_at=now,
            )
            week = _windowed_increment(
                ItemRollup.views_week, ItemRollup.views_week_stamp, stamps.week
            )
            month = _windowed_increment(
                ItemRollup.views_month, ItemRollup.views_month_stamp, stamps.month
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=["item_id"],
                set_={
                    "views_total": ItemRollup.views_total + 1,
                    "views_week": week,
                    "views_month": month,
                    "trending_week": week,
                    "trending_month": month,
                    "views_week_stamp": stamps.week,
                    "views_month_stamp": stamps.month,
                    "updated_at": now,
                },
            )
            await self._execute(stmt, "apply_view")

    async def apply_like_delta(self, chapter_id: int, story_id: int | None, delta: int) -> None:
        """
        Add or remove one like on a chapter and its story.

        Args:
            chapter_id: Liked chapter.
            story_id: Owning story.
            delta: +1 or -1.
        """
        stamps = self.stamps()
        now = self._clock()
        for item_id, kind, parent_id in self._targets(chapter_id, story_id):
            if delta > 0:
                stmt = insert_for(self.session, ItemRollup).values(
                    item_id=item_id,
                    item_kind=kind,
                    parent_id=parent_id,
                    likes_total=1,
                    likes_week=1,
                    likes_month=1,
                    likes_week_stamp=stamps.week,
                    likes_month_stamp=stamps.month,
                    created_at=now,
                    updated_at=now,
                )
                stmt = stmt.on_conflict_do_update(
                    index_elements=["item_id"],
                    set_={
                        "likes_total": ItemRollup.likes_total + 1,
                        "likes_week": _windowed_increment(
                            ItemRollup.likes_week, ItemRollup.likes_week_stamp, stamps.week
                        ),
                        "likes_month": _windowed_increment(
                            ItemRollup.likes_month, ItemRollup.likes_month_stamp, stamps.month
                        ),
                        "likes_week_stamp": stamps.week,
                        "likes_month_stamp": stamps.month,
                        "updated_at": now,
                    },
                )
            else:
                # Decrements never create rows
                stmt = (
                    update(ItemRollup)
                    .where(ItemRollup.item_id == item_id)
                    .values(
                        likes_total=_saturating_add(ItemRollup.likes_total, -1),
                        likes_week=_windowed_decrement(
                            ItemRollup.likes_week, ItemRollup.likes_week_stamp, stamps.week
                        ),
                        likes_month=_windowed_decrement(
                            ItemRollup.likes_month, ItemRollup.likes_month_stamp, stamps.month
                        ),
                        updated_at=now,
                    )
                    .execution_options(synchronize_session=False)
                )
            await self._execute(stmt, "apply_like")

    async def apply_dislike_delta(self, chapter_id: int, story_id: int | None, delta: int) -> None:
        """
        Add or remove one dislike. Dislikes are counted all-time only.

        Args:
            chapter_id: Disliked chapter.
            story_id: Owning story.
            delta: +1 or -1.
        """
        now = self._clock()
        for item_id, kind, parent_id in self._targets(chapter_id, story_id):
            if delta > 0:
                stmt = insert_for(self.session, ItemRollup).values(
                    item_id=item_id,
                    item_kind=kind,
                    parent_id=parent_id,
                    dislikes_total=1,
                    created_at=now,
                    updated_at=now,
                )
                stmt = stmt.on_conflict_do_update(
                    index_elements=["item_id"],
                    set_={"dislikes_total": ItemRollup.dislikes_total + 1, "updated_at": now},
                )
            else:
                stmt = (
                    update(ItemRollup)
                    .where(ItemRollup.item_id == item_id)
                    .values(
                        dislikes_total=_saturating_add(ItemRollup.dislikes_total, -1),
                        updated_at=now,
                    )
                    .execution_options(synchronize_session=False)
                )
            await self._execute(stmt, "apply_dislike")

    async def apply_follow_delta(self, post: ContentRef, delta: int) -> int | None:
        """
        Add or remove one follow on the story owning a post.

        A chapter follow credits its parent story; chapters have no
        follow counter of their own.

        Args:
            post: Followed story or chapter.
            delta: +1 or -1.

        Returns:
            The credited story ID, or None when the post has no story.
        """
        story_id = post.story_id
        if not story_id:
            return None

        now = self._clock()
        if delta > 0:
            stmt = insert_for(self.session, ItemRollup).values(
                item_id=story_id,
                item_kind=ContentKind.STORY.value,
                follow_count=1,
                created_at=now,
                updated_at=now,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=["item_id"],
                set_={"follow_count": ItemRollup.follow_count + 1, "updated_at": now},
            )
        else:
            stmt = (
                update(ItemRollup)
                .where(ItemRollup.item_id == story_id)
                .values(follow_count=_saturating_add(ItemRollup.follow_count, -1), updated_at=now)
                .execution_options(synchronize_session=False)
            )
        await self._execute(stmt, "apply_follow")
        return story_id

    async def apply_rating(
        self,
        chapter_id: int,
        story_id: int | None,
        new_rating: float,
        old_rating: float,
        is_new: bool,
        is_removal: bool,
    ) -> None:
        """
        Fold one rating change into the chapter and story rollups.

        Args:
            chapter_id: Rated chapter.
            story_id: Owning story.
            new_rating: Rating written (0 for removals).
            old_rating: Previous rating (0 for new ratings).
            is_new: The actor had no rating before.
            is_removal: The actor's rating was removed.
        """
        for item_id, kind, parent_id in self._targets(chapter_id, story_id):
            await self._apply_rating_to_row(
                item_id, kind, parent_id, new_rating, old_rating, is_new, is_removal
            )

    async def _apply_rating_to_row(
        self,
        item_id: int,
        kind: str,
        parent_id: int | None,
        new_rating: float,
        old_rating: float,
        is_new: bool,
        is_removal: bool,
    ) -> None:
        if is_removal:
            # Removals never create rows
            row = await self._get_row(item_id)
            if row is None:
                return
        else:
            await self._ensure_row(item_id, kind, parent_id)

        for _ in range(self.max_retries):
            row = await self._get_row(item_id)
            if row is None:
                return

            stamps = self.stamps()
            rollup = compute_rating_rollup(
                row, new_rating, old_rating, is_new, is_removal, stamps.week, stamps.month
            )
            now = self._clock()
            values = {
                **rollup.to_columns(),
                "rating_version": row.rating_version + 1,
                "updated_at": now,
            }
            if not is_removal:
                values["rating_updated_at"] = now
            stmt = (
                update(ItemRollup)
                .where(
                    ItemRollup.item_id == item_id,
                    ItemRollup.rating_version == row.rating_version,
                )
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            result = await self._execute(stmt, "apply_rating")
            if result.rowcount == 1:
                return

            logger.debug("Rating rollup version conflict", extra={"item_id": item_id})

        raise WriteFailedError(
            f"Rating rollup for item {item_id} kept conflicting",
            code="rating_rollup_conflict",
        )

    async def _get_row(self, item_id: int) -> ItemRollup | None:
        result = await self._execute(
            select(ItemRollup)
            .where(ItemRollup.item_id == item_id)
            .execution_options(populate_existing=True),
            "read_rollup",
        )
        return result.scalar_one_or_none()
