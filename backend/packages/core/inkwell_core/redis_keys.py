"""Redis key templates and TTL constants.

Centralized management of all Redis keys used by the interaction engine.
"""


class RedisKeys:
    """Redis key templates and helper methods."""

    # ============================================================================
    # Stats Cache Keys
    # ============================================================================

    # Cached chapter/item stats
    # Format: item_stats:{item_id}
    @staticmethod
    def item_stats(item_id: int) -> str:
        """
        Get cached item stats key.

        Args:
            item_id: Story or chapter ID.

        Returns:
            Redis key string.
        """
        return f"item_stats:{item_id}"

    # Cached story stats (includes follow count)
    # Format: story_stats:{story_id}
    @staticmethod
    def story_stats(story_id: int) -> str:
        """
        Get cached story stats key.

        Args:
            story_id: Story ID.

        Returns:
            Redis key string.
        """
        return f"story_stats:{story_id}"

    # ============================================================================
    # Sync Keys
    # ============================================================================

    # Pending login sync marker
    # Format: sync_needed:{user_id}
    # TTL: 1 hour (configurable through InteractionSettings.sync_flag_ttl)
    SYNC_NEEDED_TTL = 3600

    @staticmethod
    def sync_needed(user_id: int) -> str:
        """
        Get pending-sync flag key.

        Set when a user logs in and cleared once the client snapshot has
        been merged.

        Args:
            user_id: User ID.

        Returns:
            Redis key string.
        """
        return f"sync_needed:{user_id}"
