"""
Read-only views over the SyncRun audit table.

Covers the monitoring queries operators run against the sync history:
recent runs, runs in a time range, failures, and per-day statistics.
"""
from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, List, Optional

from sqlmodel import Session, select

from replication.models.sync import SyncRun, SyncStatus


@dataclass
class DailySyncStats:
    sync_date: date
    total_runs: int
    success_count: int
    failed_count: int
    total_inserted: int
    total_updated: int
    avg_duration_seconds: Optional[float]


def _for_table(stmt, table_name: Optional[str]):
    if table_name is not None:
        stmt = stmt.where(SyncRun.table_name == table_name)
    return stmt


def recent_runs(
    session: Session, table_name: Optional[str] = None, limit: int = 20
) -> List[SyncRun]:
    """Most recent runs, newest first."""
    stmt = _for_table(select(SyncRun), table_name)
    return list(session.exec(stmt.order_by(SyncRun.id.desc()).limit(limit)).all())


def runs_since(
    session: Session,
    since: datetime,
    table_name: Optional[str] = None,
    limit: Optional[int] = None,
) -> List[SyncRun]:
    """Runs started after `since` (e.g. the last 24 hours), newest first."""
    stmt = _for_table(select(SyncRun).where(SyncRun.started_at > since), table_name)
    stmt = stmt.order_by(SyncRun.id.desc())
    if limit is not None:
        stmt = stmt.limit(limit)
    return list(session.exec(stmt).all())


def failed_runs(
    session: Session, table_name: Optional[str] = None, limit: int = 100
) -> List[SyncRun]:
    """FAILED runs, newest first."""
    stmt = _for_table(
        select(SyncRun).where(SyncRun.status == SyncStatus.FAILED.value), table_name
    )
    return list(session.exec(stmt.order_by(SyncRun.id.desc()).limit(limit)).all())


def daily_stats(session: Session, table_name: Optional[str] = None) -> List[DailySyncStats]:
    """
    Aggregate terminal runs per calendar day of started_at, newest day first.

    RUNNING rows are excluded. Durations are averaged over runs that have
    an ended_at.
    """
    stmt = _for_table(
        select(SyncRun).where(
            SyncRun.status.in_([SyncStatus.SUCCESS.value, SyncStatus.FAILED.value])
        ),
        table_name,
    )
    runs = session.exec(stmt).all()

    # Grouped in Python: date arithmetic differs too much across dialects
    by_day: Dict[date, List[SyncRun]] = {}
    for run in runs:
        by_day.setdefault(run.started_at.date(), []).append(run)

    stats = []
    for day in sorted(by_day, reverse=True):
        day_runs = by_day[day]
        durations = [
            (r.ended_at - r.started_at).total_seconds()
            for r in day_runs
            if r.ended_at is not None
        ]
        stats.append(
            DailySyncStats(
                sync_date=day,
                total_runs=len(day_runs),
                success_count=sum(r.status == SyncStatus.SUCCESS.value for r in day_runs),
                failed_count=sum(r.status == SyncStatus.FAILED.value for r in day_runs),
                total_inserted=sum(r.rows_inserted for r in day_runs),
                total_updated=sum(r.rows_updated for r in day_runs),
                avg_duration_seconds=(
                    sum(durations) / len(durations) if durations else None
                ),
            )
        )
    return stats
