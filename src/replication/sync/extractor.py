"""
Change extractor: select everything in the change window and classify it.

The window is half-open, (watermark_from, watermark_to]. watermark_to is the
largest change timestamp actually read, so the rows handed to the applier
and the ceiling recorded for the run always come from the same read.

Insert/update counts come from separate EXISTS queries against the target
and are for reporting only. The applier decides insert vs overwrite per row
at write time, so under a concurrent target writer the counts may disagree
with what was written.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List

from sqlalchemy import exists, func, select

from replication.sync.tables import SyncTables


@dataclass
class ChangeSet:
    watermark_from: datetime
    watermark_to: datetime
    rows: List[Dict[str, Any]] = field(default_factory=list)
    rows_inserted: int = 0
    rows_updated: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.rows


def extract_changes(conn, tables: SyncTables, watermark_from: datetime) -> ChangeSet:
    """
    Read every source row changed after watermark_from.

    Args:
        conn: SQLAlchemy connection (read-only use).
        tables: Resolved source/target pair.
        watermark_from: Ceiling of the last successful run.

    Returns:
        ChangeSet ordered by (change timestamp, key). An empty set keeps
        watermark_to == watermark_from.
    """
    wm = tables.source_watermark
    stmt = (
        select(*[tables.source.c[name] for name in tables.columns])
        .where(wm > watermark_from)
        .order_by(wm, tables.source_key)
    )
    rows = [dict(r._mapping) for r in conn.execute(stmt)]
    if not rows:
        return ChangeSet(watermark_from=watermark_from, watermark_to=watermark_from)

    watermark_to = max(r[tables.watermark_column] for r in rows)
    inserted, updated = _classify(conn, tables, watermark_from, watermark_to)
    return ChangeSet(
        watermark_from=watermark_from,
        watermark_to=watermark_to,
        rows=rows,
        rows_inserted=inserted,
        rows_updated=updated,
    )


def _classify(conn, tables: SyncTables, lower: datetime, upper: datetime):
    """Count window rows absent from / present in the target."""
    wm = tables.source_watermark
    in_target = exists().where(tables.target_key == tables.source_key)
    window = (wm > lower, wm <= upper)

    inserted = conn.execute(
        select(func.count()).select_from(tables.source).where(*window, ~in_target)
    ).scalar_one()
    updated = conn.execute(
        select(func.count()).select_from(tables.source).where(*window, in_target)
    ).scalar_one()
    return inserted, updated
