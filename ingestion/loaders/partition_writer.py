"""
Write one (measure, dimension, date) partition with idempotent overwrite.
"""

import asyncio
import logging
from datetime import date
from typing import Any, Dict, List, Optional, Set

from core.exceptions import SinkWriteError
from ingestion.loaders.base import WarehouseSink
from models.base import NoGrouping, WriteMode
from models.catalog import MetricCatalog, catalog as default_catalog
from schemas.export import DimensionKey, MetricRow, TableSpec, dimension_label

logger = logging.getLogger(__name__)


class PartitionWriter:
    """
    Load MetricRows into the table for their measure and dimension.

    Ensures:
    - The target table exists with the catalog schema
    - Re-running a write for the same app and date leaves the same rows,
      since the app's rows are deleted from the partition before every load
    """

    def __init__(self, sink: WarehouseSink, catalog: Optional[MetricCatalog] = None):
        self.sink = sink
        self.catalog = catalog or default_catalog
        self._ensured: Set[str] = set()
        self._ensure_lock = asyncio.Lock()

    def render_rows(
        self, measure: str, dimension: DimensionKey, rows: List[MetricRow]
    ) -> List[Dict[str, Any]]:
        """Map rows onto the table columns: date, app_name, value[, dimension]"""
        value_column = self.catalog.metric(measure).name
        dimension_column = (
            None if isinstance(dimension, NoGrouping) else self.catalog.suffix(dimension)
        )

        rendered = []
        for row in rows:
            record = {
                "date": row.date,
                "app_name": row.app_name,
                value_column: row.value,
            }
            if dimension_column is not None:
                record[dimension_column] = row.dimension_value
            rendered.append(record)
        return rendered

    async def ensure_table(self, measure: str, dimension: DimensionKey) -> TableSpec:
        spec = self.catalog.table_spec(measure, dimension)
        async with self._ensure_lock:
            if spec.name not in self._ensured:
                await self.sink.ensure_table(spec)
                self._ensured.add(spec.name)
        return spec

    async def write_partition(
        self,
        measure: str,
        dimension: DimensionKey,
        partition_date: date,
        rows: List[MetricRow],
        overwrite: bool = False
    ) -> str:
        """
        Replace the rows' apps' data in one date partition.

        Args:
            measure: Measure key
            dimension: Dimension key or NO_GROUPING
            partition_date: Day being written
            rows: Rows for that day
            overwrite: Truncate the partition instead of appending

        Returns:
            Name of the table written

        Raises:
            SinkWriteError: If the table could not be created or loaded
        """
        for row in rows:
            if row.date != partition_date:
                raise ValueError(
                    f"Row dated {row.date} does not belong to partition {partition_date}"
                )

        table_name = self.catalog.table_name(measure, dimension)
        write_mode = WriteMode.TRUNCATE if overwrite else WriteMode.APPEND

        try:
            async with self.sink.load_semaphore:
                spec = await self.ensure_table(measure, dimension)

                if not rows:
                    logger.debug(f"No rows for {table_name} on {partition_date}")
                    return table_name

                for app_name in sorted({row.app_name for row in rows}):
                    await self.sink.delete_partition_rows(spec, partition_date, app_name)

                await self.sink.load_partition(
                    spec,
                    partition_date,
                    self.render_rows(measure, dimension, rows),
                    write_mode,
                )

        except Exception as e:
            raise SinkWriteError(
                f"Failed to write to table {measure} by {dimension_label(dimension)} "
                f"for {partition_date}",
                context={
                    "table_name": table_name,
                    "date": partition_date.isoformat(),
                    "write_mode": write_mode.value,
                },
                original_exception=e
            )

        logger.info(
            f"Wrote {len(rows)} rows to {table_name} for {partition_date} ({write_mode.value})"
        )
        return table_name
