"""
Database models package.

This module exports all SQLAlchemy models for the Inkwell application.
"""

from .base import Base, TimestampMixin
from .content_item import ContentCoauthor, ContentItem, ContentKind, ContentStatus
from .interaction import Interaction, InteractionType
from .item_rollup import ItemRollup

__all__ = [
    "Base",
    "TimestampMixin",
    # Content registry
    "ContentItem",
    "ContentCoauthor",
    "ContentKind",
    "ContentStatus",
    # Interactions
    "Interaction",
    "InteractionType",
    "ItemRollup",
]
