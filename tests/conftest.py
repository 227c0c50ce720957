"""Shared test fixtures."""
from datetime import datetime, timedelta
from typing import Generator

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine, select

# Import all models so SQLModel.metadata knows about them
from replication.models.run_history import (  # noqa: F401
    PipelineRunHistoryLog,
    PipelineRunHistoryLogReplication,
)
from replication.models.sync import SyncRun  # noqa: F401
from replication.config import DEFAULT_TABLE_NAME, TableSyncConfig

PIPELINE_TABLES = {
    DEFAULT_TABLE_NAME: TableSyncConfig(
        source_table="etl_pipeline_run_history_log",
        target_table="etl_pipeline_run_history_log_replication",
        key_column="pipeline_run_id",
        watermark_column="last_update_date",
    )
}


BASE_TIME = datetime(2025, 1, 15, 7, 0)


def ts(seconds: int) -> datetime:
    """A change timestamp `seconds` after BASE_TIME."""
    return BASE_TIME + timedelta(seconds=seconds)


def make_source_row(run_id: int, updated_at: datetime, **overrides) -> PipelineRunHistoryLog:
    fields = dict(
        pipeline_run_id=run_id,
        pipeline_id=100 + run_id,
        domain_id=7,
        orchestration_pipeline_nm=f"pipeline_{run_id}",
        orchestration_pipeline_run_cd=f"run-{run_id}",
        pipeline_start_dt=datetime(2025, 1, 15, 6, 0),
        pipeline_run_status="STARTED",
        last_updated_by="orchestrator",
        last_update_date=updated_at,
        calendar_fl=False,
        schedule_timezone="UTC",
    )
    fields.update(overrides)
    return PipelineRunHistoryLog(**fields)


@pytest.fixture(name="engine")
def engine_fixture():
    """In-memory SQLite engine. Tables recreated fresh for each test."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(name="test_session")
def test_session_fixture(engine) -> Generator[Session, None, None]:
    """Provides a DB session connected to in-memory SQLite."""
    with Session(engine) as session:
        yield session


@pytest.fixture(name="write_source")
def write_source_fixture(engine):
    """Insert or overwrite source rows, as the external writer would."""

    def _write(*rows: PipelineRunHistoryLog) -> None:
        with Session(engine) as s:
            for row in rows:
                s.merge(row)
            s.commit()

    return _write


@pytest.fixture(name="pipeline_tables")
def pipeline_tables_fixture(engine):
    """The default pair, reflected from the in-memory DB."""
    from replication.sync.tables import resolve_tables

    with engine.connect() as conn:
        return resolve_tables(conn, DEFAULT_TABLE_NAME, PIPELINE_TABLES[DEFAULT_TABLE_NAME])


def target_rows(engine):
    """Target contents keyed by pipeline_run_id."""
    with Session(engine) as s:
        return {
            r.pipeline_run_id: r.model_dump()
            for r in s.exec(select(PipelineRunHistoryLogReplication)).all()
        }
