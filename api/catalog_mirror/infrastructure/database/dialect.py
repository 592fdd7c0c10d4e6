"""
INSERT .. ON CONFLICT segun el dialecto de la sesion.

PostgreSQL en produccion, SQLite (aiosqlite) en tests: ambos soportan
`on_conflict_do_update` / `on_conflict_do_nothing` con la misma API.
"""
from typing import Any

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from catalog_mirror.shared.exceptions.sync import LocalStoreError

_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def dialect_insert(db: AsyncSession, table: Any):
    """Retorna un `insert(table)` con soporte de ON CONFLICT para el dialecto activo."""
    dialect_name = db.get_bind().dialect.name
    insert_fn = _INSERTS.get(dialect_name)
    if insert_fn is None:
        raise LocalStoreError(f"Dialecto sin soporte de upsert: {dialect_name}")
    return insert_fn(table)
