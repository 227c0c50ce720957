"""Sync run audit model."""
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlmodel import Field, SQLModel


class SyncStatus(str, Enum):
    RUNNING = "RUNNING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class SyncRun(SQLModel, table=True):
    """
    One row per sync cycle: opened RUNNING, closed SUCCESS or FAILED.

    The table doubles as the watermark store: the current watermark of a
    table is the largest watermark_to among its SUCCESS runs.
    """

    id: Optional[int] = Field(default=None, primary_key=True)
    table_name: str = Field(index=True)
    started_at: datetime = Field(default_factory=datetime.utcnow)
    ended_at: Optional[datetime] = None
    watermark_from: datetime
    watermark_to: Optional[datetime] = None  # set only on SUCCESS
    rows_inserted: int = 0
    rows_updated: int = 0
    rows_processed: int = 0
    status: str = Field(default=SyncStatus.RUNNING.value, index=True)
    error_message: Optional[str] = None
