"""
Load metric partitions into a SQL database with SQLAlchemy async.
"""

import logging
from datetime import date
from typing import Any, Dict, List, Optional

from sqlalchemy import MetaData, delete, insert, text
from sqlalchemy.ext.asyncio import AsyncEngine

from core.database import create_engine
from ingestion.loaders.base import WarehouseSink
from models.base import WriteMode
from models.warehouse import build_table
from schemas.export import TableSpec

logger = logging.getLogger(__name__)


class SqlWarehouseSink(WarehouseSink):
    """
    Warehouse sink backed by any SQLAlchemy async engine.

    A date "partition" is the set of rows sharing a date value; truncating
    a partition deletes those rows before inserting.
    """

    backend = "sql"

    def __init__(
        self,
        engine: Optional[AsyncEngine] = None,
        database_url: Optional[str] = None,
        load_concurrency: Optional[int] = None
    ):
        super().__init__(load_concurrency)
        self._owns_engine = engine is None
        self.engine = engine or create_engine(database_url)
        self.metadata = MetaData()

    @property
    def target(self) -> str:
        return self.engine.url.render_as_string(hide_password=True)

    async def initialize(self) -> None:
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info(f"Connected to SQL warehouse {self.target}")

    async def ensure_table(self, spec: TableSpec) -> None:
        table = build_table(spec, self.metadata)
        async with self.engine.begin() as conn:
            await conn.run_sync(table.create, checkfirst=True)
        logger.debug(f"Ensured table {spec.name}")

    async def delete_partition_rows(
        self, spec: TableSpec, partition_date: date, app_name: str
    ) -> None:
        table = build_table(spec, self.metadata)
        partition = table.c[spec.partition_field]
        async with self.engine.begin() as conn:
            await conn.execute(
                delete(table).where(partition == partition_date, table.c.app_name == app_name)
            )

    async def load_partition(
        self,
        spec: TableSpec,
        partition_date: date,
        rows: List[Dict[str, Any]],
        write_mode: WriteMode
    ) -> None:
        table = build_table(spec, self.metadata)
        partition = table.c[spec.partition_field]
        async with self.engine.begin() as conn:
            if write_mode == WriteMode.TRUNCATE:
                await conn.execute(delete(table).where(partition == partition_date))
            if rows:
                await conn.execute(insert(table), rows)

    async def close(self) -> None:
        if self._owns_engine:
            await self.engine.dispose()
