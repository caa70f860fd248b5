"""
Script to export App Store analytics for one app into the warehouse
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from core.config import settings
from core.exceptions import ExportException, InvalidInputError
from core.logging import setup_logging
from ingestion.extractors.analytics_client import AnalyticsClient
from ingestion.loaders.base import WarehouseSink
from ingestion.loaders.bigquery_sink import BigQuerySink
from ingestion.loaders.sql_sink import SqlWarehouseSink
from ingestion.retry import BackoffPolicy
from ingestion.runner import ExportOrchestrator
from schemas.export import ExportJob

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Export App Store Connect analytics into a data warehouse"
    )
    parser.add_argument("--username", help="App store connect user to authenticate with")
    parser.add_argument("--password", help="Password for the given app store connect user")
    parser.add_argument("--app-id", help="Apple ID of the app to export")
    parser.add_argument("--app-name", help="Name written to the app_name column")
    parser.add_argument("--start-date", required=True, help="First day to export (YYYY-MM-DD)")
    parser.add_argument("--end-date", required=True, help="Last day to export (YYYY-MM-DD)")
    parser.add_argument(
        "--backend",
        choices=["bigquery", "sql"],
        default=settings.WAREHOUSE_BACKEND,
        help="Warehouse to write to",
    )
    parser.add_argument("--project", help="BigQuery project")
    parser.add_argument("--dataset", help="BigQuery dataset")
    parser.add_argument("--database-url", help="SQLAlchemy URL for the sql backend")
    parser.add_argument(
        "--overwrite",
        action="store_true",
        help="Truncate each date partition instead of appending",
    )
    parser.add_argument(
        "--allow-incomplete",
        action="store_true",
        help="Allow exporting the most recent day, whose data may be incomplete",
    )
    parser.add_argument("--log-level", default=settings.LOG_LEVEL, help="Logging level")
    return parser.parse_args(argv)


async def prompt_for_code() -> str:
    """Read the 2SV code from stdin without blocking the event loop"""
    return await asyncio.to_thread(input, "Enter 2SV code: ")


def _require(value: Optional[str], name: str) -> str:
    if not value:
        raise InvalidInputError(f"Missing required option --{name}")
    return value


def build_job(args: argparse.Namespace) -> ExportJob:
    return ExportJob(
        app_id=_require(args.app_id or settings.APP_ID, "app-id"),
        app_name=_require(args.app_name or settings.APP_NAME, "app-name"),
        start_date=args.start_date,
        end_date=args.end_date,
        overwrite=args.overwrite,
        allow_incomplete=args.allow_incomplete,
        project=args.project or settings.BIGQUERY_PROJECT,
        dataset=args.dataset or settings.BIGQUERY_DATASET,
    )


def build_sink(args: argparse.Namespace, job: ExportJob) -> WarehouseSink:
    if args.backend == "sql":
        return SqlWarehouseSink(database_url=args.database_url or settings.DATABASE_URL)
    return BigQuerySink(
        project=_require(job.project, "project"),
        dataset=_require(job.dataset, "dataset"),
    )


async def run_export(args: argparse.Namespace) -> int:
    """Run the export; returns the process exit code"""
    try:
        job = build_job(args)
        username = _require(args.username or settings.ANALYTICS_USERNAME, "username")
        password = _require(args.password or settings.ANALYTICS_PASSWORD, "password")
        # Fail on a malformed window before logging in
        job.date_window()
        sink = build_sink(args, job)
    except ExportException as e:
        logger.error(f"Export failed: {e.message}")
        return 1

    try:
        async with AnalyticsClient() as client:
            session = await client.login(username, password, prompt_for_code)
            orchestrator = ExportOrchestrator(
                client=client,
                session=session,
                sink=sink,
                policy=BackoffPolicy(),
            )
            await orchestrator.run(job)

    except ExportException as e:
        logger.error(f"Export failed: {e}", extra={"error_context": e.to_dict()})
        return 1

    finally:
        await sink.close()

    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging(args.log_level)
    return asyncio.run(run_export(args))


if __name__ == "__main__":
    sys.exit(main())
