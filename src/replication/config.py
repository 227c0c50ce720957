from typing import Dict, List, Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings

DEFAULT_TABLE_NAME = "etl_pipeline_run_history_log"


class TableSyncConfig(BaseModel):
    """One source → target replication pair."""

    source_table: str
    target_table: str
    key_column: str
    watermark_column: str
    columns: Optional[List[str]] = None  # None = every source column


def _default_tables() -> Dict[str, TableSyncConfig]:
    return {
        DEFAULT_TABLE_NAME: TableSyncConfig(
            source_table="etl_pipeline_run_history_log",
            target_table="etl_pipeline_run_history_log_replication",
            key_column="pipeline_run_id",
            watermark_column="last_update_date",
        )
    }


class Settings(BaseSettings):
    database_url: str = "sqlite:///./replication.db"
    sync_interval_minutes: int = 1
    sync_paused: bool = False
    # JSON in the environment, e.g. SYNC_TABLES='{"orders": {...}}'
    sync_tables: Dict[str, TableSyncConfig] = Field(default_factory=_default_tables)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
