"""
Merge applier: upsert a change set into the target in one transaction.

Rows whose key already exists in the target have every projected column
overwritten; missing keys are inserted. Nothing is ever deleted. Applying
the same change set twice leaves the target unchanged the second time.

SQLite and PostgreSQL use INSERT ... ON CONFLICT DO UPDATE. Other dialects
update existing keys and insert the rest, still inside the same transaction.
"""
import logging
from typing import Any, Dict, List, Sequence

from sqlalchemy import bindparam, insert, select, update
from sqlalchemy.dialects import postgresql, sqlite

from replication.sync.tables import SyncTables

logger = logging.getLogger(__name__)

# Bound on IN (...) list size when probing for existing keys
KEY_CHUNK_SIZE = 500

_ON_CONFLICT_INSERTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


def apply_changes(engine, tables: SyncTables, rows: Sequence[Dict[str, Any]]) -> int:
    """
    Upsert rows into tables.target atomically.

    Returns:
        Number of rows merged (inserted + overwritten).

    Raises:
        Any database error; the transaction is rolled back first, so the
        target is exactly as it was before the call.
    """
    if not rows:
        return 0

    with engine.begin() as conn:
        dialect_insert = _ON_CONFLICT_INSERTS.get(conn.dialect.name)
        if dialect_insert is not None:
            _upsert_on_conflict(conn, dialect_insert, tables, rows)
        else:
            _upsert_update_then_insert(conn, tables, rows)

    logger.debug("Merged %d rows into %s", len(rows), tables.target.name)
    return len(rows)


def _payload_columns(tables: SyncTables) -> List[str]:
    return [c for c in tables.columns if c != tables.key_column]


def _upsert_on_conflict(conn, dialect_insert, tables: SyncTables, rows) -> None:
    stmt = dialect_insert(tables.target)
    stmt = stmt.on_conflict_do_update(
        index_elements=[tables.target_key],
        set_={c: stmt.excluded[c] for c in _payload_columns(tables)},
    )
    conn.execute(stmt, list(rows))


def _upsert_update_then_insert(conn, tables: SyncTables, rows) -> None:
    key = tables.key_column
    existing = set()
    keys = [r[key] for r in rows]
    for i in range(0, len(keys), KEY_CHUNK_SIZE):
        chunk = keys[i:i + KEY_CHUNK_SIZE]
        existing.update(
            conn.execute(
                select(tables.target_key).where(tables.target_key.in_(chunk))
            ).scalars()
        )

    to_update = [r for r in rows if r[key] in existing]
    to_insert = [r for r in rows if r[key] not in existing]

    if to_update:
        # Bind names must not collide with column names in SET
        stmt = (
            update(tables.target)
            .where(tables.target_key == bindparam("b_" + key))
            .values({c: bindparam("b_" + c) for c in _payload_columns(tables)})
        )
        conn.execute(stmt, [{"b_" + k: v for k, v in r.items()} for r in to_update])
    if to_insert:
        conn.execute(insert(tables.target), to_insert)
