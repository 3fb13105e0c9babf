"""
Login sync service.

Merges the client's local interaction snapshot into the server store once
per login. Anonymous rows written under the client's token are first
re-attributed to the user; each snapshot key is then resolved by
timestamp, and winning local entries are replayed through the public
InteractionService operations so rollups stay consistent.
"""

from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from inkwell_core import get_logger
from inkwell_core.config import InteractionSettings
from inkwell_core.exceptions import InteractionValidationError, WriteFailedError
from inkwell_core.schemas import LocalEntry, SyncResult, build_local_key, parse_local_key
from inkwell_database.models import Interaction, InteractionType

from .actor_resolver import AuthenticatedActor, coerce_id
from .content import ContentRef, ContentRepository
from .events import FollowEventSink
from .interaction_service import InteractionService
from .interaction_store import from_millis, to_millis
from .stats_cache import StatsCache
from .storage import TableRegistry

logger = get_logger(__name__)


def _server_key(row: Interaction, ref: ContentRef | None) -> str | None:
    """Snapshot key for a stored row, None when its item cannot be placed."""
    if ref is None:
        return None
    if ref.is_story:
        if row.interaction_type != InteractionType.FOLLOW.value:
            return None
        return build_local_key(ref.id, 0)
    if ref.is_chapter and ref.parent_id:
        return build_local_key(ref.parent_id, ref.id)
    return None


class SyncService:
    """Login-time reconciliation of client snapshots."""

    def __init__(
        self,
        session: AsyncSession,
        settings: InteractionSettings | None = None,
        *,
        interactions: InteractionService | None = None,
        content: ContentRepository | None = None,
        cache: StatsCache | None = None,
        events: FollowEventSink | None = None,
        tables: TableRegistry | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """
        Initialize sync service.

        Args:
            session: Database session.
            settings: Engine settings, defaults to the environment.
            interactions: Interaction service used to replay local entries.
            content: Story/chapter lookups.
            cache: Stats cache also holding the pending-sync flags.
            events: Follow event sink.
            tables: Table existence registry.
            clock: Returns the current time; defaults to UTC now.
        """
        self.session = session
        self.interactions = interactions or InteractionService(
            session,
            settings,
            content=content,
            cache=cache,
            events=events,
            tables=tables,
            clock=clock,
        )
        self.store = self.interactions.store
        self.content = self.interactions.content
        self.resolver = self.interactions.resolver
        self.cache = cache if cache is not None else self.interactions.cache

    async def flag_sync_needed(self, user_id: int) -> None:
        """Mark that the user's client should push its snapshot."""
        if self.cache:
            await self.cache.set_sync_needed(user_id)

    async def needs_sync(self, user_id: int) -> bool:
        """Check whether the user's client still has to sync."""
        if not self.cache:
            return False
        return await self.cache.is_sync_needed(user_id)

    async def build_server_snapshot(self, user_id: int) -> dict[str, LocalEntry]:
        """
        Reduce a user's rows to snapshot entries.

        Args:
            user_id: Authenticated user ID.

        Returns:
            Entries keyed ``story_<s>_chapter_<c>``; each timestamp is the
            newest updated_at among the key's rows.
        """
        rows = await self.store.get_all_for_actor(AuthenticatedActor(user_id))
        refs = await self.content.get_items([row.item_id for row in rows])

        entries: dict[str, dict[str, Any]] = {}
        for row in rows:
            key = _server_key(row, refs.get(row.item_id))
            if key is None:
                continue
            try:
                interaction_type = InteractionType(row.interaction_type)
            except ValueError:
                continue

            entry = entries.setdefault(key, {"timestamp": 0})
            if interaction_type == InteractionType.RATING:
                entry["rating"] = row.value
            else:
                entry[interaction_type.value] = True
            stamp = to_millis(row.updated_at or row.created_at)
            entry["timestamp"] = max(entry["timestamp"], stamp)

        return {key: LocalEntry.model_validate(data) for key, data in entries.items()}

    @staticmethod
    def _parse_local(
        local_snapshot: Mapping[str, Any] | None,
    ) -> dict[str, tuple[int, int, LocalEntry]]:
        parsed: dict[str, tuple[int, int, LocalEntry]] = {}
        for raw_key, raw_entry in (local_snapshot or {}).items():
            ids = parse_local_key(raw_key)
            if ids is None or ids[0] <= 0 or not isinstance(raw_entry, (Mapping, LocalEntry)):
                continue
            story_id, chapter_id = ids
            parsed[build_local_key(story_id, chapter_id)] = (
                story_id,
                chapter_id,
                LocalEntry.model_validate(
                    dict(raw_entry) if isinstance(raw_entry, Mapping) else raw_entry
                ),
            )
        return parsed

    async def _drop_misplaced(
        self, parsed: dict[str, tuple[int, int, LocalEntry]]
    ) -> dict[str, tuple[int, int, LocalEntry]]:
        """
        Drop keys that name a known item under the wrong story.

        A chapter key must name the chapter's own story and a story key
        must name a story; otherwise the key could never match its server
        key. Unknown items are kept and rejected when applied.
        """
        refs = await self.content.get_items(
            [chapter_id or story_id for story_id, chapter_id, _ in parsed.values()]
        )
        kept: dict[str, tuple[int, int, LocalEntry]] = {}
        for key, (story_id, chapter_id, entry) in parsed.items():
            ref = refs.get(chapter_id or story_id)
            if ref is not None:
                placed = (
                    ref.is_chapter and ref.parent_id == story_id
                    if chapter_id > 0
                    else ref.is_story
                )
                if not placed:
                    logger.info("Skipped misplaced sync key", extra={"key": key})
                    continue
            kept[key] = (story_id, chapter_id, entry)
        return kept

    async def sync_on_login(
        self,
        user_id: Any,
        local_snapshot: Mapping[str, Any] | None,
        anonymous_token: str | None = None,
    ) -> SyncResult:
        """
        Merge a client snapshot into the server store.

        Args:
            user_id: Authenticated user ID.
            local_snapshot: Client entries keyed ``story_<s>_chapter_<c>``.
            anonymous_token: Token the client used while logged out.

        Returns:
            The merged snapshot the client should keep.

        Raises:
            InteractionValidationError: If the user is not logged in.
        """
        uid = coerce_id(user_id)
        if uid <= 0:
            raise InteractionValidationError("Login required", code="login_required")

        await self._reattribute(uid, anonymous_token)

        server = await self.build_server_snapshot(uid)
        local = await self._drop_misplaced(self._parse_local(local_snapshot))
        merged: dict[str, LocalEntry] = dict(server)

        applied = 0
        for key, (story_id, chapter_id, entry) in local.items():
            server_entry = server.get(key)
            # Server wins ties
            if server_entry is not None and entry.timestamp <= server_entry.timestamp:
                continue

            try:
                await self._apply_local_entry(uid, story_id, chapter_id, entry)
                applied += 1
            except InteractionValidationError as e:
                logger.info(
                    "Skipped sync entry",
                    extra={"user_id": uid, "key": key, "code": e.code},
                )
            merged[key] = entry

        if self.cache:
            await self.cache.clear_sync_needed(uid)

        logger.info(
            "Login sync complete",
            extra={
                "user_id": uid,
                "local_keys": len(local),
                "server_keys": len(server),
                "applied": applied,
            },
        )
        return SyncResult(merged=merged)

    async def _reattribute(self, user_id: int, anonymous_token: str | None) -> None:
        digest = self.resolver.hash_token(anonymous_token)
        if digest is None:
            return

        dropped = await self.store.discard_opposite_reactions(user_id, digest)
        moved, discarded = await self.store.reattribute(user_id, digest)
        touched = await self._reverse_reactions(dropped)
        await self._commit()
        if self.cache and touched:
            await self.cache.invalidate(*touched)
        if moved or discarded or dropped:
            logger.info(
                "Re-attributed anonymous interactions",
                extra={
                    "user_id": user_id,
                    "moved": moved,
                    "discarded": discarded + len(dropped),
                },
            )

    async def _reverse_reactions(self, dropped: list[tuple[int, InteractionType]]) -> set[int]:
        """Take dropped anonymous reactions back out of the rollups."""
        if not dropped:
            return set()

        refs = await self.content.get_items([item_id for item_id, _ in dropped])
        rollups = self.interactions.rollups
        touched: set[int] = set()
        for item_id, reaction in dropped:
            ref = refs.get(item_id)
            if ref is None or not ref.is_chapter:
                continue
            if reaction == InteractionType.LIKE:
                await rollups.apply_like_delta(ref.id, ref.parent_id, -1)
            else:
                await rollups.apply_dislike_delta(ref.id, ref.parent_id, -1)
            touched.update(i for i in (ref.id, ref.parent_id) if i)
        return touched

    async def _apply_local_entry(
        self, user_id: int, story_id: int, chapter_id: int, entry: LocalEntry
    ) -> None:
        """Replay one winning local entry through the public operations."""
        actor = AuthenticatedActor(user_id)
        service = self.interactions
        written: set[InteractionType] = set()

        if chapter_id > 0:
            chapter = await self.content.get_item(chapter_id)
            if chapter is None:
                raise InteractionValidationError(
                    f"Item {chapter_id} not found", code="item_not_found"
                )
            if not chapter.is_chapter or chapter.parent_id != story_id:
                raise InteractionValidationError(
                    f"Item {chapter_id} is not a chapter of story {story_id}", code="invalid_item"
                )

            current = await self.store.get_all_for_actor_item(actor, chapter_id)

            if entry.like:
                await service.record_like(chapter_id, user_id)
                written.add(InteractionType.LIKE)
            elif InteractionType.LIKE in current:
                await service.remove_like(chapter_id, user_id)

            if entry.dislike:
                await service.record_dislike(chapter_id, user_id)
                written.add(InteractionType.DISLIKE)
            elif InteractionType.DISLIKE in current:
                await service.remove_dislike(chapter_id, user_id)

            if entry.rating is not None:
                await service.record_rating(chapter_id, entry.rating, user_id)
                written.add(InteractionType.RATING)
            elif InteractionType.RATING in current:
                await service.remove_rating(chapter_id, user_id)

            if entry.read:
                await service.record_read(chapter_id, user_id)
                written.add(InteractionType.READ)
            elif InteractionType.READ in current:
                await service.remove_read(chapter_id, user_id)

            # Replayed views do not feed the view rollups
            await self.store.upsert(actor, chapter_id, InteractionType.VIEW)
            written.add(InteractionType.VIEW)

        follow_id = chapter_id if chapter_id > 0 else story_id
        if entry.follow:
            await service.upsert_follow(follow_id, user_id)
        elif await self.store.has(actor, follow_id, InteractionType.FOLLOW):
            await service.remove_follow(follow_id, user_id)

        if entry.timestamp > 0:
            when = from_millis(entry.timestamp)
            if follow_id == chapter_id and entry.follow:
                written.add(InteractionType.FOLLOW)
            elif entry.follow:
                await self.store.stamp_rows(actor, follow_id, [InteractionType.FOLLOW], when)
            if chapter_id > 0:
                await self.store.stamp_rows(actor, chapter_id, written, when)

        await self._commit()

    async def _commit(self) -> None:
        try:
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.exception("Sync commit failed")
            raise WriteFailedError(
                "Could not save synced interactions", code="commit_failed"
            ) from e
