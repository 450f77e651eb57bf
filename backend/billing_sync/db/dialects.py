"""Dialect-aware INSERT constructs for race-safe writes.

PostgreSQL and SQLite both implement ``ON CONFLICT DO NOTHING`` /
``ON CONFLICT DO UPDATE`` and ``RETURNING``; their SQLAlchemy constructs
share the same API, so callers stay dialect-agnostic.
"""

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def supports_native_upsert(session: AsyncSession) -> bool:
    return session.get_bind().dialect.name in _INSERTS


def upsert_insert(session: AsyncSession, model):
    """Return an INSERT for ``model`` that supports ``on_conflict_*`` clauses.

    Raises:
        RuntimeError: the bound dialect has no native conditional upsert
    """
    dialect = session.get_bind().dialect.name
    try:
        return _INSERTS[dialect](model)
    except KeyError:
        raise RuntimeError(f"Dialect '{dialect}' has no native conditional upsert") from None
