"""Dialect-aware INSERT ... ON CONFLICT builders.

Both supported backends (PostgreSQL and SQLite) expose ``on_conflict_do_nothing``
with ``RETURNING``, which gives a single-statement conditional insert.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession


def insert_for(db: AsyncSession, model: Any):  # noqa: ANN401
    """Return the dialect-specific ``insert()`` for the session's backend."""
    dialect = db.bind.dialect.name
    if dialect == "postgresql":
        return pg_insert(model)
    if dialect == "sqlite":
        return sqlite_insert(model)
    msg = f"Conditional inserts are not supported on {dialect}"
    raise NotImplementedError(msg)
