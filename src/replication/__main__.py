"""
Main entrypoint: run sync cycles by hand, inspect history, or start the scheduler.

FastAPI runs separately under uvicorn (manual trigger + audit endpoints).

Usage:
    python -m replication run [TABLE ...]            # one cycle per table
    python -m replication history [--table T] [--limit N]
    python -m replication [serve]                    # starts interval scheduler
    uvicorn replication.api.main:app --host 0.0.0.0 --port 8000  # starts API
"""
import argparse
import asyncio
import logging
import sys
from typing import List, Optional

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(name)s %(levelname)s %(message)s",
)
logger = logging.getLogger(__name__)


def _run_once(table_names: List[str]) -> int:
    """Run one cycle per table. Returns the process exit status."""
    from replication.config import get_settings
    from replication.db.engine import get_engine
    from replication.sync.service import SyncCycleError, WatermarkSyncService
    from replication.sync.tables import ConfigurationError

    service = WatermarkSyncService(engine=get_engine())
    names = table_names or list(get_settings().sync_tables)
    exit_code = 0
    for name in names:
        try:
            summary = service.run_cycle(name)
            print(summary.describe())
        except SyncCycleError as exc:
            print(exc.summary.describe())
            exit_code = 1
        except ConfigurationError as exc:
            logger.error("Cannot sync %s: %s", name, exc)
            exit_code = 1
    return exit_code


def _print_history(table_name: Optional[str], limit: int) -> None:
    from sqlmodel import Session

    from replication.db.engine import get_engine
    from replication.sync.audit import recent_runs

    with Session(get_engine()) as s:
        runs = recent_runs(s, table_name=table_name, limit=limit)
    for run in runs:
        print(
            f"{run.id:>6}  {run.table_name}  {run.status:<8}  "
            f"{run.started_at:%Y-%m-%d %H:%M:%S}  "
            f"{run.watermark_from} -> {run.watermark_to}  "
            f"+{run.rows_inserted} ~{run.rows_updated} ={run.rows_processed}"
            + (f"  {run.error_message}" if run.error_message else "")
        )


async def _serve() -> None:
    from replication.config import get_settings
    from replication.db.engine import get_engine
    from replication.scheduler.jobs import build_scheduler

    settings = get_settings()
    scheduler = build_scheduler(get_engine())
    scheduler.start()
    logger.info(
        "Scheduler started (%d table(s), every %d minute(s))",
        len(scheduler.get_jobs()),
        settings.sync_interval_minutes,
    )

    try:
        await asyncio.Event().wait()
    except (KeyboardInterrupt, SystemExit):
        logger.info("Shutting down...")
    finally:
        scheduler.shutdown()
        logger.info("Goodbye.")


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="python -m replication")
    sub = parser.add_subparsers(dest="command")

    run_parser = sub.add_parser("run", help="Run one sync cycle now")
    run_parser.add_argument("tables", nargs="*", help="Logical table names (default: all)")

    history_parser = sub.add_parser("history", help="Show recent sync runs")
    history_parser.add_argument("--table", default=None)
    history_parser.add_argument("--limit", type=int, default=20)

    sub.add_parser("serve", help="Start the interval scheduler")

    args = parser.parse_args(argv)
    if args.command == "run":
        return _run_once(args.tables)
    if args.command == "history":
        _print_history(args.table, args.limit)
        return 0
    asyncio.run(_serve())
    return 0


if __name__ == "__main__":
    sys.exit(main())
