"""
Storage availability checks.

Table existence is checked once per table and memoized. The registry is an
explicit object so services and tests can share, inject or reset it.
"""

from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import AsyncSession

from inkwell_core.exceptions import StorageUnavailableError


class TableRegistry:
    """Memoized table existence checks."""

    def __init__(self) -> None:
        self._cache: dict[str, bool] = {}

    async def exists(self, session: AsyncSession, table_name: str) -> bool:
        """
        Check whether a table exists.

        Args:
            session: Database session.
            table_name: Table name.

        Returns:
            True if the table exists.
        """
        if table_name in self._cache:
            return self._cache[table_name]

        conn = await session.connection()
        exists = await conn.run_sync(lambda sync_conn: inspect(sync_conn).has_table(table_name))
        self._cache[table_name] = bool(exists)
        return self._cache[table_name]

    async def require(self, session: AsyncSession, *table_names: str) -> None:
        """
        Ensure tables exist before writing.

        Raises:
            StorageUnavailableError: If any table is missing.
        """
        for name in table_names:
            if not await self.exists(session, name):
                raise StorageUnavailableError(
                    f"Table '{name}' is unavailable", code=f"{name}_missing"
                )

    def clear(self) -> None:
        """Forget every memoized result."""
        self._cache.clear()


# Process-wide default registry
table_registry = TableRegistry()
