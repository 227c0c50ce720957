"""
WatermarkSyncService: runs one bracketed sync cycle for a table pair.

Flow for a single cycle:
  1. Look up the config and check the target (ConfigurationError here, nothing recorded)
  2. Read the watermark and create SyncRun (status="RUNNING")
  3. Reflect the source and extract the change window (watermark_from, watermark_to]
  4. Upsert the change set into the target in one transaction
  5. Update SyncRun (status="SUCCESS", watermark_to, row counts)

On any exception in 3–5: update SyncRun (status="FAILED", error_message),
leave watermark_to unset and raise SyncCycleError. The next cycle then
reads the same watermark and replays the same window.

No lock is taken: the caller must not run two cycles for one table at the
same time. Overlapping cycles stay correct (the upsert is idempotent) but
their audit counts may overlap.
"""
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterator, Optional

from sqlmodel import Session

from replication.config import TableSyncConfig, get_settings
from replication.models.sync import SyncRun, SyncStatus
from replication.sync.applier import apply_changes
from replication.sync.extractor import extract_changes
from replication.sync.tables import lookup_config, reflect_target, resolve_tables
from replication.sync.watermark import get_last_successful_watermark

logger = logging.getLogger(__name__)


@dataclass
class RunSummary:
    run_id: int
    table_name: str
    status: SyncStatus
    watermark_from: datetime
    watermark_to: Optional[datetime] = None
    rows_inserted: int = 0
    rows_updated: int = 0
    rows_processed: int = 0
    error_message: Optional[str] = None

    def describe(self) -> str:
        if self.status == SyncStatus.FAILED:
            return f"Sync failed. Run ID: {self.run_id}. Error: {self.error_message}"
        return (
            f"Sync completed. Run ID: {self.run_id}. "
            f"Rows inserted: {self.rows_inserted}. "
            f"Rows updated: {self.rows_updated}. "
            f"Watermark: {self.watermark_from} -> {self.watermark_to}"
        )


class SyncCycleError(RuntimeError):
    """Raised after a cycle has been recorded as FAILED."""

    def __init__(self, summary: RunSummary):
        super().__init__(summary.describe())
        self.summary = summary


class WatermarkSyncService:
    """Runs watermark-driven sync cycles against one database."""

    def __init__(self, engine, tables: Optional[Dict[str, TableSyncConfig]] = None):
        """
        Args:
            engine: SQLAlchemy engine holding the source, target and audit tables.
            tables: Logical table name → TableSyncConfig. Defaults to settings.
        """
        self.engine = engine
        self.tables = tables if tables is not None else get_settings().sync_tables

    def run_cycle(self, table_name: str) -> RunSummary:
        """
        Sync every change since the last successful run of table_name.

        Returns:
            The SUCCESS RunSummary.

        Raises:
            ConfigurationError: Unknown table or bad target schema (no run recorded).
            SyncCycleError: Source schema, extraction or apply failed (run
                recorded as FAILED).
        """
        config = lookup_config(self.tables, table_name)
        with self.engine.connect() as conn:
            target = reflect_target(conn, config)

        with self._recorded_run(table_name) as summary:
            with self.engine.connect() as conn:
                tables = resolve_tables(conn, table_name, config, target=target)
                changes = extract_changes(conn, tables, summary.watermark_from)
            processed = apply_changes(self.engine, tables, changes.rows)

            summary.watermark_to = changes.watermark_to
            summary.rows_inserted = changes.rows_inserted
            summary.rows_updated = changes.rows_updated
            summary.rows_processed = processed

        logger.info(summary.describe())
        return summary

    # ─── Run record bracket ────────────────────────────────────────────────────

    @contextmanager
    def _recorded_run(self, table_name: str) -> Iterator[RunSummary]:
        """Open a RUNNING record and close it on every exit path."""
        summary = self._open_run(table_name)
        try:
            yield summary
            summary.status = SyncStatus.SUCCESS
            self._close_run(summary)
        except BaseException as exc:
            summary.status = SyncStatus.FAILED
            summary.watermark_to = None
            summary.rows_inserted = 0
            summary.rows_updated = 0
            summary.rows_processed = 0
            summary.error_message = _error_text(exc)
            self._close_run(summary)
            logger.error("Sync of %s failed (run %d): %s",
                         table_name, summary.run_id, summary.error_message)
            if isinstance(exc, Exception):
                raise SyncCycleError(summary) from exc
            raise

    def _open_run(self, table_name: str) -> RunSummary:
        with Session(self.engine) as s:
            watermark = get_last_successful_watermark(s, table_name)
            run = SyncRun(
                table_name=table_name,
                started_at=datetime.utcnow(),
                watermark_from=watermark,
                status=SyncStatus.RUNNING.value,
            )
            s.add(run)
            s.commit()
            s.refresh(run)

        logger.info("Sync run %d opened for %s (watermark %s)",
                    run.id, table_name, watermark)
        return RunSummary(
            run_id=run.id,
            table_name=table_name,
            status=SyncStatus.RUNNING,
            watermark_from=watermark,
        )

    def _close_run(self, summary: RunSummary) -> None:
        with Session(self.engine) as s:
            db_run = s.get(SyncRun, summary.run_id)
            if db_run.status != SyncStatus.RUNNING.value:
                raise RuntimeError(
                    f"Sync run {summary.run_id} is already {db_run.status}"
                )
            db_run.ended_at = datetime.utcnow()
            db_run.status = summary.status.value
            db_run.watermark_to = summary.watermark_to
            db_run.rows_inserted = summary.rows_inserted
            db_run.rows_updated = summary.rows_updated
            db_run.rows_processed = summary.rows_processed
            db_run.error_message = summary.error_message
            s.add(db_run)
            s.commit()


def _error_text(exc: BaseException) -> str:
    message = str(exc).strip()
    name = type(exc).__name__
    return f"{name}: {message}" if message else name
