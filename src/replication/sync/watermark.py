"""
Watermark store.

There is no stored "current watermark" cell: the watermark is derived from
the audit log every time, as the largest watermark_to among SUCCESS runs.
FAILED and RUNNING runs never move it.
"""
from datetime import datetime

from sqlalchemy import func
from sqlmodel import Session, select

from replication.models.sync import SyncRun, SyncStatus

# Lower bound used before a table has ever synced successfully
EPOCH_SENTINEL = datetime(1900, 1, 1)


def get_last_successful_watermark(session: Session, table_name: str) -> datetime:
    """Return the watermark for table_name, or EPOCH_SENTINEL if never synced."""
    last = session.exec(
        select(func.max(SyncRun.watermark_to)).where(
            SyncRun.table_name == table_name,
            SyncRun.status == SyncStatus.SUCCESS.value,
        )
    ).one()
    return last if last is not None else EPOCH_SENTINEL
