"""
Load metric partitions into BigQuery.

The google-cloud-bigquery client is blocking, so every call runs in a
worker thread to keep the export loop responsive.
"""

import asyncio
import logging
from datetime import date
from typing import Any, Dict, List, Optional

from google.api_core.exceptions import NotFound
from google.cloud import bigquery

from ingestion.loaders.base import WarehouseSink
from models.base import WriteMode
from schemas.export import TableSpec

logger = logging.getLogger(__name__)


class BigQuerySink(WarehouseSink):
    """Warehouse sink writing to day-partitioned BigQuery tables"""

    backend = "bigquery"

    def __init__(
        self,
        project: str,
        dataset: str,
        client: Optional[bigquery.Client] = None,
        load_concurrency: Optional[int] = None
    ):
        super().__init__(load_concurrency)
        self.project = project
        self.dataset_id = dataset
        self.client = client
        self.dataset_ref = bigquery.DatasetReference(project, dataset)

    @property
    def target(self) -> str:
        return f"{self.project}.{self.dataset_id}"

    @staticmethod
    def schema_fields(spec: TableSpec) -> List[bigquery.SchemaField]:
        return [
            bigquery.SchemaField(column.name, column.type.value, mode=column.mode)
            for column in spec.columns
        ]

    def table_ref(self, table_id: str) -> bigquery.TableReference:
        return bigquery.TableReference(self.dataset_ref, table_id)

    async def initialize(self) -> None:
        if self.client is None:
            self.client = await asyncio.to_thread(bigquery.Client, project=self.project)

        try:
            await asyncio.to_thread(self.client.get_dataset, self.dataset_ref)
        except NotFound:
            await asyncio.to_thread(
                self.client.create_dataset, bigquery.Dataset(self.dataset_ref), exists_ok=True
            )
            logger.info(f"Created dataset: {self.target}")

    async def ensure_table(self, spec: TableSpec) -> None:
        ref = self.table_ref(spec.name)
        try:
            await asyncio.to_thread(self.client.get_table, ref)
            return
        except NotFound:
            pass

        table = bigquery.Table(ref, schema=self.schema_fields(spec))
        table.description = spec.description
        table.time_partitioning = bigquery.TimePartitioning(
            type_=bigquery.TimePartitioningType.DAY,
            field=spec.partition_field,
        )
        created = await asyncio.to_thread(self.client.create_table, table, exists_ok=True)
        logger.info(f"Created table {created.table_id}")

    async def delete_partition_rows(
        self, spec: TableSpec, partition_date: date, app_name: str
    ) -> None:
        query = (
            f"DELETE FROM `{self.target}.{spec.name}` "
            f"WHERE {spec.partition_field} = @partition_date AND app_name = @app_name"
        )
        job_config = bigquery.QueryJobConfig(
            query_parameters=[
                bigquery.ScalarQueryParameter("partition_date", "DATE", partition_date),
                bigquery.ScalarQueryParameter("app_name", "STRING", app_name),
            ]
        )
        job = await asyncio.to_thread(self.client.query, query, job_config=job_config)
        await asyncio.to_thread(job.result)

    async def load_partition(
        self,
        spec: TableSpec,
        partition_date: date,
        rows: List[Dict[str, Any]],
        write_mode: WriteMode
    ) -> None:
        # Partition decorator targets exactly one day of the table
        destination = self.table_ref(f"{spec.name}${partition_date.strftime('%Y%m%d')}")

        job_config = bigquery.LoadJobConfig(
            schema=self.schema_fields(spec),
            source_format=bigquery.SourceFormat.NEWLINE_DELIMITED_JSON,
            create_disposition=bigquery.CreateDisposition.CREATE_NEVER,
            write_disposition=(
                bigquery.WriteDisposition.WRITE_TRUNCATE
                if write_mode == WriteMode.TRUNCATE
                else bigquery.WriteDisposition.WRITE_APPEND
            ),
        )
        json_rows = [
            {key: value.isoformat() if isinstance(value, date) else value for key, value in row.items()}
            for row in rows
        ]
        job = await asyncio.to_thread(
            self.client.load_table_from_json, json_rows, destination, job_config=job_config
        )
        await asyncio.to_thread(job.result)

    async def close(self) -> None:
        if self.client is not None:
            await asyncio.to_thread(self.client.close)
