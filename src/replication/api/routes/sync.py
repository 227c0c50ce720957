"""Sync trigger and audit routes."""
from datetime import date, datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlmodel import Session

from replication.db.engine import get_session
from replication.models.sync import SyncRun
from replication.sync import audit
from replication.sync.service import RunSummary, SyncCycleError, WatermarkSyncService
from replication.sync.tables import ConfigurationError, UnknownTableError
from replication.sync.watermark import get_last_successful_watermark

router = APIRouter()


class RunSummaryResponse(BaseModel):
    run_id: int
    table_name: str
    status: str
    watermark_from: datetime
    watermark_to: Optional[datetime]
    rows_inserted: int
    rows_updated: int
    rows_processed: int
    error_message: Optional[str]
    message: str

    @classmethod
    def from_summary(cls, summary: RunSummary) -> "RunSummaryResponse":
        return cls(
            run_id=summary.run_id,
            table_name=summary.table_name,
            status=summary.status.value,
            watermark_from=summary.watermark_from,
            watermark_to=summary.watermark_to,
            rows_inserted=summary.rows_inserted,
            rows_updated=summary.rows_updated,
            rows_processed=summary.rows_processed,
            error_message=summary.error_message,
            message=summary.describe(),
        )


class DailyStatsResponse(BaseModel):
    sync_date: date
    total_runs: int
    success_count: int
    failed_count: int
    total_inserted: int
    total_updated: int
    avg_duration_seconds: Optional[float]


class WatermarkResponse(BaseModel):
    table_name: str
    watermark: datetime


@router.post("/{table_name}/run", response_model=RunSummaryResponse)
def run_sync(table_name: str, session: Session = Depends(get_session)):
    """
    Run one sync cycle now (manual trigger / recovery).

    Blocks until the cycle is recorded. A failed cycle returns 500 with the
    FAILED run summary as detail.
    """
    service = WatermarkSyncService(engine=session.get_bind())
    try:
        summary = service.run_cycle(table_name)
    except UnknownTableError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except ConfigurationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except SyncCycleError as exc:
        raise HTTPException(
            status_code=500,
            detail=RunSummaryResponse.from_summary(exc.summary).model_dump(mode="json"),
        )
    return RunSummaryResponse.from_summary(summary)


@router.get("/runs", response_model=List[SyncRun])
def list_runs(
    table_name: Optional[str] = None,
    since: Optional[datetime] = None,
    limit: int = 20,
    session: Session = Depends(get_session),
):
    """List recent sync runs, newest first; `since` keeps runs started after it."""
    if since is not None:
        return audit.runs_since(session, since, table_name=table_name, limit=limit)
    return audit.recent_runs(session, table_name=table_name, limit=limit)


@router.get("/runs/failed", response_model=List[SyncRun])
def list_failed_runs(
    table_name: Optional[str] = None,
    limit: int = 100,
    session: Session = Depends(get_session),
):
    """List FAILED sync runs, newest first."""
    return audit.failed_runs(session, table_name=table_name, limit=limit)


@router.get("/runs/{run_id}", response_model=SyncRun)
def get_run(run_id: int, session: Session = Depends(get_session)):
    """Fetch a single sync run by id."""
    run = session.get(SyncRun, run_id)
    if not run:
        raise HTTPException(status_code=404, detail="Sync run not found")
    return run


@router.get("/stats", response_model=List[DailyStatsResponse])
def sync_stats(table_name: Optional[str] = None, session: Session = Depends(get_session)):
    """Per-day run counts, row totals and average duration."""
    return [
        DailyStatsResponse(**vars(day))
        for day in audit.daily_stats(session, table_name=table_name)
    ]


@router.get("/{table_name}/watermark", response_model=WatermarkResponse)
def current_watermark(table_name: str, session: Session = Depends(get_session)):
    """Return the watermark the next cycle for table_name will start from."""
    return WatermarkResponse(
        table_name=table_name,
        watermark=get_last_successful_watermark(session, table_name),
    )
