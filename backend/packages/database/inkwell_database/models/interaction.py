"""
Interaction model definition.

One row per (actor, item, interaction type).
"""

from enum import Enum

from sqlalchemy import BigInteger, Float, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin


class InteractionType(str, Enum):
    """Interaction type enumeration."""

    LIKE = "like"
    DISLIKE = "dislike"
    RATING = "rating"
    VIEW = "view"
    READ = "read"
    FOLLOW = "follow"


class Interaction(Base, TimestampMixin):
    """
    Per-actor interaction row.

    The actor is stored as a single derived key: ``u:<user_id>`` for
    authenticated users or ``a:<hmac digest>`` for anonymous clients.

    Attributes:
        id: Surrogate primary key.
        actor_key: Storage key of the actor.
        item_id: Story or chapter the interaction targets.
        interaction_type: One of InteractionType values.
        value: Rating value (0.5-5.0), NULL for every other type.
    """

    __tablename__ = "interactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    actor_key: Mapped[str] = mapped_column(String(80), nullable=False)
    item_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    interaction_type: Mapped[str] = mapped_column(String(16), nullable=False)
    value: Mapped[float | None] = mapped_column(Float)

    __table_args__ = (
        UniqueConstraint(
            "actor_key",
            "item_id",
            "interaction_type",
            name="uq_interactions_actor_item_type",
        ),
        Index("ix_interactions_item_type", "item_id", "interaction_type"),
    )
