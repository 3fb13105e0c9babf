"""
Dialect-aware INSERT ... ON CONFLICT helpers.

PostgreSQL and SQLite expose the same ``on_conflict_do_update`` /
``on_conflict_do_nothing`` API through their dialect-specific ``insert``
constructs. Services pick the one matching the session's bind.
"""

from typing import Any

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def insert_for(session: AsyncSession, table: Any) -> Any:
    """
    Build an upsert-capable insert for the session's dialect.

    Args:
        session: Session whose bind determines the dialect.
        table: Mapped class or Table.

    Returns:
        Dialect-specific Insert construct.

    Raises:
        RuntimeError: If the dialect has no ON CONFLICT support.
    """
    dialect = session.get_bind().dialect.name
    factory = _INSERTS.get(dialect)
    if factory is None:
        raise RuntimeError(f"Upserts are not supported on dialect '{dialect}'")
    return factory(table)
