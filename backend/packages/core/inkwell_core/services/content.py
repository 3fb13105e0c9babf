"""
Content repository.

Resolves story/chapter identifiers to their kind, parent story,
publication status and authorship. The interaction engine only reads
content; it never writes it.
"""

from dataclasses import dataclass
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from inkwell_database.models import ContentCoauthor, ContentItem, ContentKind, ContentStatus


@dataclass(frozen=True)
class ContentRef:
    """Lightweight view of a story or chapter."""

    id: int
    kind: str
    parent_id: int | None
    status: str
    author_id: int = 0

    @property
    def is_story(self) -> bool:
        return self.kind == ContentKind.STORY.value

    @property
    def is_chapter(self) -> bool:
        return self.kind == ContentKind.CHAPTER.value

    @property
    def is_published(self) -> bool:
        return self.status == ContentStatus.PUBLISHED.value

    @property
    def story_id(self) -> int | None:
        """Owning story: the item itself for stories, the parent for chapters."""
        if self.is_story:
            return self.id
        if self.is_chapter and self.parent_id:
            return self.parent_id
        return None


class ContentRepository(Protocol):
    """Read access to stories and chapters."""

    async def get_item(self, item_id: int) -> ContentRef | None: ...

    async def get_items(self, item_ids: list[int]) -> dict[int, ContentRef]: ...

    async def is_author_or_coauthor(self, story_id: int, user_id: int) -> bool: ...


class SqlContentRepository:
    """ContentRepository backed by the content_items tables."""

    def __init__(self, session: AsyncSession, coauthors_enabled: bool = True) -> None:
        """
        Initialize content repository.

        Args:
            session: Database session.
            coauthors_enabled: Whether co-authors count as authors.
        """
        self.session = session
        self.coauthors_enabled = coauthors_enabled

    async def get_item(self, item_id: int) -> ContentRef | None:
        """
        Get one item.

        Args:
            item_id: Story or chapter ID.

        Returns:
            Content reference, or None if unknown.
        """
        if item_id <= 0:
            return None
        result = await self.session.execute(select(ContentItem).where(ContentItem.id == item_id))
        item = result.scalar_one_or_none()
        return self._to_ref(item) if item else None

    async def get_items(self, item_ids: list[int]) -> dict[int, ContentRef]:
        """
        Get several items in one query.

        Args:
            item_ids: Story or chapter IDs.

        Returns:
            Mapping of found IDs to content references.
        """
        ids = sorted({int(i) for i in item_ids if int(i) > 0})
        if not ids:
            return {}
        result = await self.session.execute(select(ContentItem).where(ContentItem.id.in_(ids)))
        return {item.id: self._to_ref(item) for item in result.scalars().all()}

    async def is_author_or_coauthor(self, story_id: int, user_id: int) -> bool:
        """
        Check whether a user wrote or co-wrote a story.

        Args:
            story_id: Story ID.
            user_id: User ID (0 for anonymous).

        Returns:
            True for the author, or a co-author when co-authors are enabled.
        """
        if user_id <= 0 or story_id <= 0:
            return False

        story = await self.get_item(story_id)
        if story and story.author_id == user_id:
            return True

        if not self.coauthors_enabled:
            return False

        result = await self.session.execute(
            select(ContentCoauthor.user_id).where(
                ContentCoauthor.story_id == story_id,
                ContentCoauthor.user_id == user_id,
            )
        )
        return result.scalar_one_or_none() is not None

    @staticmethod
    def _to_ref(item: ContentItem) -> ContentRef:
        return ContentRef(
            id=int(item.id),
            kind=item.kind,
            parent_id=int(item.parent_id) if item.parent_id else None,
            status=item.status,
            author_id=int(item.author_id or 0),
        )
