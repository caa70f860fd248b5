# ============================================================================
# File: ingestion/runner.py
# Description: Export orchestrator with per-cell retry and partial failure
# ============================================================================
"""
Export Runner - Orchestrates metadata resolution, metric fetches and writes.

This module provides the export control loop with:
- Fail-fast validation of the date window and provider metadata
- Sequential per-cell fetches paced by exponential backoff
- Retry of rate limits, provider 500s and transport failures
- Partial failure support (an abandoned cell never stops the run)
- Partition writes dispatched in the background with logged outcomes
"""

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Tuple

from core.exceptions import (
    ApiError,
    ExportException,
    MetadataError,
    SinkInitError,
)
from ingestion.extractors.analytics_client import AnalyticsClient
from ingestion.extractors.metric_fetcher import MetricFetcher, group_rows_by_date
from ingestion.loaders.base import WarehouseSink
from ingestion.loaders.partition_writer import PartitionWriter
from ingestion.metadata import AvailabilityMap, MetadataResolver
from ingestion.retry import BackoffPolicy, RetryState, is_retryable
from models.base import CellState
from models.catalog import MetricCatalog, catalog as default_catalog
from schemas.export import (
    CellResult,
    DateWindow,
    DimensionKey,
    ExportJob,
    ExportSummary,
    MetricRow,
    Session,
    dimension_label,
)

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class ExportOrchestrator:
    """
    Export Orchestrator

    Responsibilities:
    - Resolve which measures are available per dimension
    - Restrict the export to catalogued metrics and dimensions
    - Fetch each (measure, dimension) cell with bounded retry
    - Hand non-empty results to the partition writer
    - Report a summary of the run

    The session and sink belong to the caller and outlive the run.
    """

    def __init__(
        self,
        client: AnalyticsClient,
        session: Session,
        sink: WarehouseSink,
        catalog: Optional[MetricCatalog] = None,
        policy: Optional[BackoffPolicy] = None,
        sleep: Optional[Sleep] = None
    ):
        self.client = client
        self.session = session
        self.sink = sink
        self.catalog = catalog or default_catalog
        self.policy = policy or BackoffPolicy()
        self.sleep = sleep or asyncio.sleep

        self.resolver = MetadataResolver(client)
        self.fetcher = MetricFetcher(client)
        self.writer = PartitionWriter(sink, self.catalog)

    async def run(self, job: ExportJob) -> ExportSummary:
        """
        Run a full export for one app and date window.

        Pipeline phases:
        1. Validate - Parse and order-check the date window
        2. Metadata - Resolve the availability map
        3. Sink - Initialize the warehouse connection
        4. Cells - Fetch and dispatch writes for every known cell
        5. Drain - Await outstanding partition writes

        Args:
            job: Export parameters

        Returns:
            ExportSummary with per-cell results

        Raises:
            InvalidInputError: Malformed date window
            MetadataError: Metadata resolution failed (incl. DateRangeError
                and IncompleteDataError)
            SinkInitError: Warehouse could not be initialized
        """
        # --------------------------------------------------
        # PHASE 1: VALIDATION
        # --------------------------------------------------
        date_window = job.date_window()

        logger.info(
            f"Starting export for {job.app_name} ({job.app_id}) "
            f"from {date_window.start} to {date_window.end}"
        )

        # --------------------------------------------------
        # PHASE 2: METADATA
        # --------------------------------------------------
        try:
            availability = await self.resolver.resolve(
                self.session, date_window, job.allow_incomplete
            )

        except MetadataError:
            raise

        except Exception as e:
            raise MetadataError(
                "Failed to get analytics metadata",
                context={"app_id": job.app_id},
                original_exception=e
            )

        # --------------------------------------------------
        # PHASE 3: SINK
        # --------------------------------------------------
        try:
            await self.sink.initialize()

        except Exception as e:
            raise SinkInitError(
                f"Failed to create {self.sink.backend} client",
                context={"backend": self.sink.backend, "target": self.sink.target},
                original_exception=e
            )

        # --------------------------------------------------
        # PHASE 4/5: CELLS AND WRITES
        # --------------------------------------------------
        summary = ExportSummary(start_date=date_window.start, end_date=date_window.end)
        write_tasks: List[asyncio.Task] = []

        try:
            await self._run_cells(job, date_window, availability, summary, write_tasks)
        finally:
            outcomes = await asyncio.gather(*write_tasks)

        tables = set()
        for table_name, written, failed in outcomes:
            summary.partitions_written += written
            summary.write_failures += failed
            if written:
                tables.add(table_name)
        summary.tables = sorted(tables)

        logger.info(
            f"Export completed: {summary.status.value} - "
            f"Cells: {summary.cells_attempted} attempted, {summary.cells_succeeded} succeeded, "
            f"{summary.cells_abandoned} abandoned, {summary.cells_skipped} skipped | "
            f"Partitions: {summary.partitions_written} written, {summary.write_failures} failed"
        )
        return summary

    async def _run_cells(
        self,
        job: ExportJob,
        date_window: DateWindow,
        availability: AvailabilityMap,
        summary: ExportSummary,
        write_tasks: List[asyncio.Task]
    ) -> None:
        """Walk the availability map one cell at a time to respect the rate limit"""
        for dimension, measures in availability.items():
            if not self.catalog.has_dimension(dimension):
                logger.debug(f"Skipping unrecognized dimension {dimension}")
                summary.cells_skipped += len(measures)
                continue

            for measure in measures:
                if not self.catalog.has_metric(measure):
                    logger.debug(f"Skipping unrecognized metric {measure}")
                    summary.cells_skipped += 1
                    continue

                cell, rows = await self.fetch_cell(job, date_window, measure, dimension)
                summary.cells.append(cell)
                summary.cells_attempted += 1

                if cell.state == CellState.SUCCEEDED:
                    summary.cells_succeeded += 1
                    if rows:
                        write_tasks.append(asyncio.create_task(
                            self.write_cell(job, measure, dimension, rows)
                        ))
                else:
                    summary.cells_abandoned += 1

    async def fetch_cell(
        self,
        job: ExportJob,
        date_window: DateWindow,
        measure: str,
        dimension: DimensionKey
    ) -> Tuple[CellResult, List[MetricRow]]:
        """
        Fetch one cell, retrying transient failures with backoff.

        Every attempt is followed by one sleep of the current backoff delay,
        successful or not, to pace requests.

        Returns:
            The cell result and the fetched rows (empty unless SUCCEEDED)
        """
        label = dimension_label(dimension)
        cell = CellResult(measure=measure, dimension=dimension)
        retry_state = RetryState(self.policy)

        while True:
            delay = retry_state.next_delay
            cell.state = CellState.FETCHING
            cell.attempts += 1

            try:
                rows = await self.fetcher.fetch_metric(
                    self.session, job.app_id, job.app_name, measure, dimension, date_window
                )

            except ExportException as e:
                logger.error(f"Failed to get {measure} by {label}: {e.message}")

                if not is_retryable(e):
                    await self.sleep(delay)
                    return self._abandon(cell, e), []

                retry_state.record_failure(e)
                if retry_state.exhausted:
                    await self.sleep(delay)
                    logger.error(
                        f"Failed to get {measure} by {label} after {retry_state.attempt} attempts"
                    )
                    return self._abandon(cell, e), []

                if isinstance(e, ApiError) and e.status_code == 429:
                    logger.warning(f"Retrying in {delay} seconds due to API rate limit")
                else:
                    logger.warning(f"Possibly intermittent error, retrying in {delay} seconds")

                cell.state = CellState.RETRY_SCHEDULED
                await self.sleep(delay)
                continue

            await self.sleep(delay)
            cell.state = CellState.SUCCEEDED
            cell.rows = len(rows)
            logger.info(f"Fetched {len(rows)} rows for {measure} by {label}")
            return cell, rows

    @staticmethod
    def _abandon(cell: CellResult, error: ExportException) -> CellResult:
        cell.state = CellState.ABANDONED
        cell.error = str(error)
        logger.error(
            f"Abandoned {cell.measure} by {dimension_label(cell.dimension)} "
            f"after {cell.attempts} attempt(s)",
            extra={"error_context": error.to_dict()}
        )
        return cell

    async def write_cell(
        self,
        job: ExportJob,
        measure: str,
        dimension: DimensionKey,
        rows: List[MetricRow]
    ) -> Tuple[str, int, int]:
        """
        Write every date partition of a cell; never raises.

        Returns:
            (table name, partitions written, partitions failed)
        """
        label = dimension_label(dimension)
        table_name = self.catalog.table_name(measure, dimension)
        by_date = group_rows_by_date(rows)

        results = await asyncio.gather(
            *(
                self.writer.write_partition(
                    measure, dimension, partition_date, date_rows, job.overwrite
                )
                for partition_date, date_rows in by_date.items()
            ),
            return_exceptions=True
        )

        written = 0
        failed = 0
        for partition_date, result in zip(by_date, results):
            if isinstance(result, BaseException):
                failed += 1
                logger.error(
                    f"Failed to write to table {measure} by {label} for {partition_date}: {result}"
                )
            else:
                written += 1

        if failed == 0:
            logger.info(f"Finished writing to table for {measure} by {label}")
        return table_name, written, failed
