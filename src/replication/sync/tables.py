"""
Resolve a logical table name into reflected source and target tables.

Config lookup and the target check run before a SyncRun is opened: their
ConfigurationError goes straight to the caller and is never recorded.
The source is reflected inside the run, so a missing source table or
column (SourceSchemaError) closes the run as FAILED and is retried on
the next cycle.
"""
from dataclasses import dataclass
from typing import Dict, List, Optional

from sqlalchemy import Column, MetaData, Table
from sqlalchemy.exc import NoSuchTableError

from replication.config import TableSyncConfig


class ConfigurationError(ValueError):
    """Raised when a table pair cannot be synced as configured."""


class UnknownTableError(ConfigurationError):
    """Raised when no sync config exists for a logical table name."""


class SourceSchemaError(RuntimeError):
    """Raised when the source table or a required source column is missing."""


@dataclass
class SyncTables:
    """Reflected source/target pair plus the projected column names."""

    name: str
    source: Table
    target: Table
    key_column: str
    watermark_column: str
    columns: List[str]

    @property
    def source_key(self) -> Column:
        return self.source.c[self.key_column]

    @property
    def source_watermark(self) -> Column:
        return self.source.c[self.watermark_column]

    @property
    def target_key(self) -> Column:
        return self.target.c[self.key_column]


def lookup_config(tables: Dict[str, TableSyncConfig], name: str) -> TableSyncConfig:
    try:
        return tables[name]
    except KeyError:
        raise UnknownTableError(f"No sync configuration for table {name!r}") from None


def reflect_target(conn, config: TableSyncConfig) -> Table:
    """
    Reflect the target table and check the columns named in config.

    Runs before a SyncRun is opened.

    Raises:
        ConfigurationError: If the target table, its key, its watermark
            column or a configured projection column is missing.
    """
    try:
        target = Table(config.target_table, MetaData(), autoload_with=conn)
    except NoSuchTableError:
        raise ConfigurationError(
            f"Target table {config.target_table!r} does not exist"
        ) from None

    for col in _required(config) + list(config.columns or []):
        if col not in target.c:
            raise ConfigurationError(
                f"Column {col!r} missing from target table {config.target_table!r}"
            )
    return target


def resolve_tables(
    conn, name: str, config: TableSyncConfig, target: Optional[Table] = None
) -> SyncTables:
    """
    Reflect the source (and the target, unless given) and fix the projection.

    Args:
        conn: SQLAlchemy connection or engine used for reflection.
        name: Logical table name (recorded as SyncRun.table_name).
        config: The pair's TableSyncConfig.
        target: Target already returned by reflect_target().

    Raises:
        ConfigurationError: From reflect_target(), or when a source column
            picked up by the default projection has no target column.
        SourceSchemaError: If the source table or a required column is missing.
    """
    if target is None:
        target = reflect_target(conn, config)
    try:
        source = Table(config.source_table, MetaData(), autoload_with=conn)
    except NoSuchTableError:
        raise SourceSchemaError(
            f"Source table {config.source_table!r} does not exist"
        ) from None

    required = _required(config)
    columns = list(config.columns) if config.columns else [c.name for c in source.columns]
    for col in required + columns:
        if col not in source.c:
            raise SourceSchemaError(
                f"Column {col!r} missing from source table {config.source_table!r}"
            )
        if col not in target.c:
            raise ConfigurationError(
                f"Column {col!r} missing from target table {config.target_table!r}"
            )

    # Key and watermark always travel with the payload
    for col in reversed(required):
        if col not in columns:
            columns.insert(0, col)

    return SyncTables(
        name=name,
        source=source,
        target=target,
        key_column=config.key_column,
        watermark_column=config.watermark_column,
        columns=columns,
    )


def _required(config: TableSyncConfig) -> List[str]:
    return [config.key_column, config.watermark_column]
