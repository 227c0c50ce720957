"""
ETL pipeline run history: the default replicated table pair.

The source log is written by the orchestration layer (one row per pipeline
run, updated in place as the run progresses and stamped with
last_update_date). The replication table is an identical copy owned by the
sync job.
"""
from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel


class PipelineRunHistoryBase(SQLModel):
    pipeline_run_id: int = Field(primary_key=True)
    pipeline_id: Optional[int] = None
    domain_id: Optional[int] = None
    provider_source_id: Optional[int] = None
    orchestration_pipeline_nm: Optional[str] = None
    orchestration_pipeline_run_cd: Optional[str] = None
    pipeline_start_dt: Optional[datetime] = None
    pipeline_end_dt: Optional[datetime] = None
    pipeline_run_status: Optional[str] = None  # "STARTED", "SUCCEEDED", "FAILED", ...
    last_updated_by: Optional[str] = None
    last_update_date: datetime = Field(index=True)
    version_nm: Optional[str] = None
    pipeline_exception_desc: Optional[str] = None
    parent_orchestration_pipeline_nm: Optional[str] = None
    parent_orchestration_pipeline_run_cd: Optional[str] = None
    adopter_id: Optional[int] = None
    calendar_fl: Optional[bool] = None
    calendar_code: Optional[str] = None
    calendar_business_day_tag: Optional[str] = None
    schedule_timezone: Optional[str] = None
    timezone_offset: Optional[str] = None


class PipelineRunHistoryLog(PipelineRunHistoryBase, table=True):
    __tablename__ = "etl_pipeline_run_history_log"


class PipelineRunHistoryLogReplication(PipelineRunHistoryBase, table=True):
    __tablename__ = "etl_pipeline_run_history_log_replication"
