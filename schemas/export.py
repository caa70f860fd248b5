"""
Pydantic schemas for export jobs, produced rows and run results
"""

from datetime import date
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from core.exceptions import InvalidInputError
from models.base import CellState, ExportStatus, NoGrouping, ValueType

DimensionKey = Union[NoGrouping, str]


def dimension_label(dimension: DimensionKey) -> str:
    """Human readable name of a dimension key for log lines"""
    return "total" if isinstance(dimension, NoGrouping) else dimension


# ============================================================================
# Authentication
# ============================================================================

class Session(BaseModel):
    """
    Cookie pair returned by a successful login.

    A Session is never mutated; logging in again produces a new one.
    """

    model_config = ConfigDict(frozen=True)

    account_cookie: Optional[str] = None
    session_cookie: Optional[str] = None

    def is_authenticated(self) -> bool:
        return bool(self.account_cookie) and bool(self.session_cookie)

    def cookie_header(self) -> str:
        cookies = []
        if self.account_cookie:
            cookies.append(f"myacinfo={self.account_cookie}")
        if self.session_cookie:
            cookies.append(f"itctx={self.session_cookie}")
        return "; ".join(cookies)


# ============================================================================
# Job Parameters
# ============================================================================

class DateWindow(BaseModel):
    """Inclusive (start, end) pair of days"""

    model_config = ConfigDict(frozen=True)

    start: date
    end: date

    @model_validator(mode="after")
    def check_order(self):
        if self.start > self.end:
            raise ValueError("Start date must be before end date")
        return self

    @classmethod
    def parse(cls, start_date: str, end_date: str) -> "DateWindow":
        """
        Build a window from two YYYY-MM-DD strings.

        Raises:
            InvalidInputError: If either date does not parse or start > end
        """
        try:
            start = date.fromisoformat(str(start_date))
            end = date.fromisoformat(str(end_date))
        except ValueError as e:
            raise InvalidInputError(
                "Execution dates must be given in the format YYYY-MM-DD",
                context={"start_date": start_date, "end_date": end_date},
                original_exception=e
            )

        if start > end:
            raise InvalidInputError(
                "Start date must be before end date",
                context={"start_date": start_date, "end_date": end_date}
            )

        return cls(start=start, end=end)


class ExportJob(BaseModel):
    """Top-level parameters of one export run"""

    model_config = ConfigDict(frozen=True)

    app_id: str = Field(..., min_length=1)
    app_name: str = Field(..., min_length=1)
    start_date: str
    end_date: str
    overwrite: bool = False
    allow_incomplete: bool = False

    # Sink target, informational for the orchestrator
    project: Optional[str] = None
    dataset: Optional[str] = None

    def date_window(self) -> DateWindow:
        return DateWindow.parse(self.start_date, self.end_date)


# ============================================================================
# Produced Data
# ============================================================================

class MetricRow(BaseModel):
    """One value of a measure for one app, day and (optional) dimension value"""

    model_config = ConfigDict(frozen=True)

    date: date
    app_id: str
    app_name: str
    value: Union[int, float]
    dimension_value: Optional[str] = None


class ColumnSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    type: ValueType
    mode: str = "REQUIRED"


class TableSpec(BaseModel):
    """Warehouse table definition, day-partitioned on the date column"""

    model_config = ConfigDict(frozen=True)

    name: str
    columns: List[ColumnSpec]
    description: str = ""
    partition_field: str = "date"

    @property
    def column_names(self) -> List[str]:
        return [column.name for column in self.columns]


# ============================================================================
# Run Results
# ============================================================================

class CellResult(BaseModel):
    """Outcome of one (measure, dimension) cell"""

    measure: str
    dimension: DimensionKey
    state: CellState = CellState.PENDING
    attempts: int = 0
    rows: int = 0
    error: Optional[str] = None


class ExportSummary(BaseModel):
    """Statistics of a completed export run"""

    status: ExportStatus = ExportStatus.SUCCESS
    start_date: date
    end_date: date
    cells_attempted: int = 0
    cells_succeeded: int = 0
    cells_abandoned: int = 0
    cells_skipped: int = 0
    partitions_written: int = 0
    write_failures: int = 0
    tables: List[str] = Field(default_factory=list)
    cells: List[CellResult] = Field(default_factory=list)
