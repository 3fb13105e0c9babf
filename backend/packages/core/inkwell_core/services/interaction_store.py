"""
Interaction store.

Single source of truth for "did this actor do X to this item". Every write
is one conditional statement keyed by the (actor, item, type) unique index,
so concurrent duplicate requests cannot create duplicate rows.
"""

from collections.abc import Callable, Iterable
from datetime import UTC, datetime, timedelta

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from inkwell_core import get_logger
from inkwell_core.exceptions import StorageUnavailableError, WriteFailedError
from inkwell_database.models import Interaction, InteractionType
from inkwell_database.upsert import insert_for

from .actor_resolver import Actor, AuthenticatedActor

logger = get_logger(__name__)

_UNIQUE_KEY = ["actor_key", "item_id", "interaction_type"]
_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def to_millis(value: datetime | None) -> int:
    """Convert a stored timestamp to integer milliseconds since the epoch."""
    if value is None:
        return 0
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return (value - _EPOCH) // timedelta(milliseconds=1)


def from_millis(millis: int) -> datetime:
    """Convert milliseconds since the epoch to an aware datetime."""
    return _EPOCH + timedelta(milliseconds=int(millis))


class InteractionStore:
    """Row-level access to the interactions table."""

    def __init__(self, session: AsyncSession, clock: Callable[[], datetime] | None = None) -> None:
        """
        Initialize interaction store.

        Args:
            session: Database session.
            clock: Returns the current time; defaults to UTC now.
        """
        self.session = session
        self._clock = clock or (lambda: datetime.now(UTC))

    def _key(self, actor: Actor, item_id: int, interaction_type: InteractionType) -> list:
        return [
            Interaction.actor_key == actor.storage_key,
            Interaction.item_id == item_id,
            Interaction.interaction_type == interaction_type.value,
        ]

    async def _write(self, stmt, action: str):
        try:
            return await self.session.execute(stmt)
        except SQLAlchemyError as e:
            logger.exception("Interaction write failed", extra={"action": action})
            raise WriteFailedError(f"Could not {action}", code=f"{action}_failed") from e

    async def _read(self, stmt):
        try:
            return await self.session.execute(stmt)
        except SQLAlchemyError as e:
            raise StorageUnavailableError("Interaction storage is unavailable") from e

    async def upsert(
        self,
        actor: Actor,
        item_id: int,
        interaction_type: InteractionType,
        value: float | None = None,
    ) -> None:
        """
        Insert a row or update it in place, refreshing updated_at.

        Args:
            actor: Acting identity.
            item_id: Story or chapter ID.
            interaction_type: Interaction type.
            value: Rating value, None for other types.
        """
        now = self._clock()
        stmt = insert_for(self.session, Interaction).values(
            actor_key=actor.storage_key,
            item_id=item_id,
            interaction_type=interaction_type.value,
            value=value,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=_UNIQUE_KEY,
            set_={"value": stmt.excluded.value, "updated_at": stmt.excluded.updated_at},
        )
        await self._write(stmt, f"save_{interaction_type.value}")

    async def insert_if_absent(
        self,
        actor: Actor,
        item_id: int,
        interaction_type: InteractionType,
        value: float | None = None,
    ) -> bool:
        """
        Create a row unless one already exists.

        Returns:
            True if this call created the row.
        """
        now = self._clock()
        stmt = insert_for(self.session, Interaction).values(
            actor_key=actor.storage_key,
            item_id=item_id,
            interaction_type=interaction_type.value,
            value=value,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_nothing(index_elements=_UNIQUE_KEY)
        result = await self._write(stmt, f"save_{interaction_type.value}")
        return result.rowcount == 1

    async def compare_and_set_value(
        self,
        actor: Actor,
        item_id: int,
        interaction_type: InteractionType,
        expected: float,
        new: float,
    ) -> bool:
        """
        Replace a row's value only if it still holds the expected value.

        Returns:
            True if the row was updated.
        """
        stmt = (
            update(Interaction)
            .where(*self._key(actor, item_id, interaction_type), Interaction.value == expected)
            .values(value=new, updated_at=self._clock())
            .execution_options(synchronize_session=False)
        )
        result = await self._write(stmt, f"save_{interaction_type.value}")
        return result.rowcount == 1

    async def has(self, actor: Actor, item_id: int, interaction_type: InteractionType) -> bool:
        """Check whether a row exists."""
        stmt = select(Interaction.id).where(*self._key(actor, item_id, interaction_type))
        result = await self._read(stmt)
        return result.first() is not None

    async def delete(
        self,
        actor: Actor,
        item_id: int,
        interaction_type: InteractionType,
        expected_value: float | None = None,
    ) -> bool:
        """
        Delete a row.

        Args:
            expected_value: When given, only delete if the row still holds it.

        Returns:
            False if no row was deleted.
        """
        stmt = delete(Interaction).where(*self._key(actor, item_id, interaction_type))
        if expected_value is not None:
            stmt = stmt.where(Interaction.value == expected_value)
        stmt = stmt.execution_options(synchronize_session=False)
        result = await self._write(stmt, f"delete_{interaction_type.value}")
        return result.rowcount > 0

    async def get_all_for_actor_item(
        self, actor: Actor, item_id: int
    ) -> dict[InteractionType, Interaction]:
        """
        Get every row an actor has on one item, indexed by type.

        Returns:
            Mapping of interaction type to row.
        """
        stmt = (
            select(Interaction)
            .where(Interaction.actor_key == actor.storage_key, Interaction.item_id == item_id)
            .execution_options(populate_existing=True)
        )
        result = await self._read(stmt)

        rows: dict[InteractionType, Interaction] = {}
        for row in result.scalars().all():
            try:
                rows[InteractionType(row.interaction_type)] = row
            except ValueError:
                continue
        return rows

    async def get_all_for_actor(self, actor: Actor) -> list[Interaction]:
        """Get every row of an actor (used to build sync snapshots)."""
        stmt = (
            select(Interaction)
            .where(Interaction.actor_key == actor.storage_key)
            .order_by(Interaction.item_id, Interaction.interaction_type)
            .execution_options(populate_existing=True)
        )
        result = await self._read(stmt)
        return list(result.scalars().all())

    async def stamp_rows(
        self,
        actor: Actor,
        item_id: int,
        interaction_types: Iterable[InteractionType],
        when: datetime,
    ) -> int:
        """
        Set updated_at on an actor's rows for one item.

        Returns:
            Number of rows stamped.
        """
        types = sorted({t.value for t in interaction_types})
        if not types:
            return 0
        stmt = (
            update(Interaction)
            .where(
                Interaction.actor_key == actor.storage_key,
                Interaction.item_id == item_id,
                Interaction.interaction_type.in_(types),
            )
            .values(updated_at=when)
            .execution_options(synchronize_session=False)
        )
        result = await self._write(stmt, "stamp_interactions")
        return result.rowcount

    async def discard_opposite_reactions(
        self, user_id: int, digest: str
    ) -> list[tuple[int, InteractionType]]:
        """
        Drop anonymous likes/dislikes the user answered the other way.

        Keeps at most one of like/dislike per item once the anonymous rows
        are moved; the user's own reaction wins.

        Args:
            user_id: Authenticated user ID.
            digest: Anonymous token digest.

        Returns:
            (item_id, type) of each dropped row. Their rollups were applied
            when first written and must be reversed by the caller.
        """
        user_key = AuthenticatedActor(user_id).storage_key
        anon_key = f"a:{digest}"
        user_row = aliased(Interaction)

        dropped: list[tuple[int, InteractionType]] = []
        for reaction, opposite in (
            (InteractionType.LIKE, InteractionType.DISLIKE),
            (InteractionType.DISLIKE, InteractionType.LIKE),
        ):
            answered = (
                select(user_row.id)
                .where(
                    user_row.actor_key == user_key,
                    user_row.item_id == Interaction.item_id,
                    user_row.interaction_type == opposite.value,
                )
                .correlate(Interaction)
                .exists()
            )
            result = await self._read(
                select(Interaction.id, Interaction.item_id).where(
                    Interaction.actor_key == anon_key,
                    Interaction.interaction_type == reaction.value,
                    answered,
                )
            )
            rows = result.all()
            if not rows:
                continue

            await self._write(
                delete(Interaction)
                .where(Interaction.id.in_([row.id for row in rows]))
                .execution_options(synchronize_session=False),
                "reattribute_interactions",
            )
            dropped.extend((row.item_id, reaction) for row in rows)
        return dropped

    async def reattribute(self, user_id: int, digest: str) -> tuple[int, int]:
        """
        Move anonymous rows to a user.

        Anonymous rows colliding with an existing user row for the same
        (item, type) are discarded; they were counted when first written.

        Args:
            user_id: Authenticated user ID.
            digest: Anonymous token digest.

        Returns:
            (moved, discarded) row counts.
        """
        user_key = AuthenticatedActor(user_id).storage_key
        anon_key = f"a:{digest}"

        user_row = aliased(Interaction)
        duplicate = (
            select(user_row.id)
            .where(
                user_row.actor_key == user_key,
                user_row.item_id == Interaction.item_id,
                user_row.interaction_type == Interaction.interaction_type,
            )
            .correlate(Interaction)
            .exists()
        )

        discarded = await self._write(
            delete(Interaction)
            .where(Interaction.actor_key == anon_key, duplicate)
            .execution_options(synchronize_session=False),
            "reattribute_interactions",
        )
        moved = await self._write(
            update(Interaction)
            .where(Interaction.actor_key == anon_key)
            .values(actor_key=user_key)
            .execution_options(synchronize_session=False),
            "reattribute_interactions",
        )
        return moved.rowcount, discarded.rowcount
