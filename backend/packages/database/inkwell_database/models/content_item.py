"""
Content item models.

Minimal story/chapter registry consulted for parent lookups, publication
status and authorship.
"""

from enum import Enum

from sqlalchemy import BigInteger, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin


class ContentKind(str, Enum):
    """Content kind enumeration."""

    STORY = "story"
    CHAPTER = "chapter"


class ContentStatus(str, Enum):
    """Publication status enumeration."""

    PUBLISHED = "publish"
    DRAFT = "draft"


class ContentItem(Base, TimestampMixin):
    """Story or chapter."""

    __tablename__ = "content_items"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    kind: Mapped[str] = mapped_column(String(16), nullable=False)
    parent_id: Mapped[int | None] = mapped_column(BigInteger, index=True)
    status: Mapped[str] = mapped_column(
        String(16), default=ContentStatus.PUBLISHED.value, nullable=False
    )
    author_id: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)


class ContentCoauthor(Base):
    """Co-author membership of a story."""

    __tablename__ = "content_coauthors"

    story_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("content_items.id", ondelete="CASCADE"),
        primary_key=True,
    )
    user_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
