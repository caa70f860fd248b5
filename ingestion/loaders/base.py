"""
Abstract warehouse sink used by the partition writer
"""

import asyncio
from abc import ABC, abstractmethod
from datetime import date
from typing import Any, Dict, List, Optional

from core.config import settings
from models.base import WriteMode
from schemas.export import TableSpec


class WarehouseSink(ABC):
    """
    Abstract base class for warehouse targets.

    Responsibilities:
    - Dataset / database bootstrap
    - Idempotent creation of day-partitioned tables
    - Row deletion within a date partition
    - Bulk loads into a single date partition

    Sinks bound their own concurrent loads through load_semaphore; callers
    hold a permit for the delete and load of one partition.
    """

    backend: str = "base"

    def __init__(self, load_concurrency: Optional[int] = None):
        self.load_semaphore = asyncio.Semaphore(load_concurrency or settings.LOAD_CONCURRENCY)

    @property
    @abstractmethod
    def target(self) -> str:
        """Human readable name of where data is written"""
        pass

    @abstractmethod
    async def initialize(self) -> None:
        """Connect and create the dataset if it does not exist"""
        pass

    @abstractmethod
    async def ensure_table(self, spec: TableSpec) -> None:
        """Create the table if it does not exist"""
        pass

    @abstractmethod
    async def delete_partition_rows(
        self, spec: TableSpec, partition_date: date, app_name: str
    ) -> None:
        """Delete one app's rows from a date partition"""
        pass

    @abstractmethod
    async def load_partition(
        self,
        spec: TableSpec,
        partition_date: date,
        rows: List[Dict[str, Any]],
        write_mode: WriteMode
    ) -> None:
        """Append rows to a date partition, or replace it when truncating"""
        pass

    async def close(self) -> None:
        pass
