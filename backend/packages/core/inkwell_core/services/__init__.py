"""
Service layer.

Business logic for the interaction engine.
"""

from .actor_resolver import ActorResolver, AnonymousActor, AuthenticatedActor
from .content import ContentRef, ContentRepository, SqlContentRepository
from .events import ArqFollowEventSink, FollowEventSink, NullFollowEventSink
from .interaction_service import InteractionService
from .interaction_store import InteractionStore
from .rollup_service import RollupService
from .stats_cache import StatsCache
from .stats_service import StatsService
from .storage import TableRegistry, table_registry
from .sync_service import SyncService

__all__ = [
    "ActorResolver",
    "AnonymousActor",
    "AuthenticatedActor",
    "ContentRef",
    "ContentRepository",
    "SqlContentRepository",
    "FollowEventSink",
    "ArqFollowEventSink",
    "NullFollowEventSink",
    "InteractionService",
    "InteractionStore",
    "RollupService",
    "StatsCache",
    "StatsService",
    "SyncService",
    "TableRegistry",
    "table_registry",
]
