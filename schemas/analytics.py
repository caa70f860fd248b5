"""
Pydantic schemas for analytics provider payloads.

Only the fields the exporter reads are declared; everything else the
provider sends is ignored.
"""

from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

NO_DATA_VALUE = -1


class _ProviderModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class ProviderConfiguration(_ProviderModel):
    """Published range of days with data"""

    data_start_date: date = Field(..., alias="dataStartDate")
    data_end_date: date = Field(..., alias="dataEndDate")

    @field_validator("data_start_date", "data_end_date", mode="before")
    @classmethod
    def truncate_to_day(cls, v):
        """Settings report timestamps; only the day matters"""
        if isinstance(v, datetime):
            return v.date()
        if isinstance(v, str):
            return v[:10]
        return v


class ProviderDimension(_ProviderModel):
    id: int
    key: str
    group_by: bool = Field(False, alias="groupBy")


class ProviderMeasure(_ProviderModel):
    key: str
    dimensions: List[int] = Field(default_factory=list)


class ProviderSettings(_ProviderModel):
    """Response of the settings endpoint"""

    configuration: ProviderConfiguration
    dimensions: List[ProviderDimension] = Field(default_factory=list)
    measures: List[ProviderMeasure] = Field(default_factory=list)


class SeriesTotals(_ProviderModel):
    value: Optional[float] = None


class SeriesGroup(_ProviderModel):
    title: Optional[str] = None


class SeriesResult(_ProviderModel):
    """
    One series of a time-series response: the whole app when ungrouped,
    otherwise one value of the grouping dimension.

    `data` entries look like {"date": "2020-07-01T00:00:00Z", "<measure>": 12}.
    """

    totals: SeriesTotals = Field(default_factory=SeriesTotals)
    group: Optional[SeriesGroup] = None
    data: List[Dict[str, Any]] = Field(default_factory=list)

    @property
    def has_data(self) -> bool:
        return self.totals.value != NO_DATA_VALUE


class TimeSeriesResponse(_ProviderModel):
    """Response of the time-series endpoint"""

    results: List[SeriesResult] = Field(default_factory=list)
