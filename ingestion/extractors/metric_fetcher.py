"""
Fetch one measure's time series and normalize it into MetricRows
"""

import logging
from collections import defaultdict
from datetime import date
from typing import Dict, List

from pydantic import ValidationError

from core.exceptions import DataFormatError
from ingestion.extractors.analytics_client import AnalyticsClient
from models.base import NoGrouping
from schemas.analytics import TimeSeriesResponse
from schemas.export import DateWindow, DimensionKey, MetricRow, Session, dimension_label

logger = logging.getLogger(__name__)


class MetricFetcher:
    """Issues one time-series request per (measure, dimension) pair"""

    def __init__(self, client: AnalyticsClient):
        self.client = client

    async def fetch_metric(
        self,
        session: Session,
        app_id: str,
        app_name: str,
        measure: str,
        dimension: DimensionKey,
        date_window: DateWindow
    ) -> List[MetricRow]:
        """
        Fetch a measure over the window and return one row per (day, group).

        Raises:
            ApiError: Provider returned a non-success status
            NetworkError: Transport failure
        """
        logger.info(f"Getting {measure} by {dimension_label(dimension)}")

        response = await self.client.get_time_series(
            session,
            app_id,
            measure,
            dimension,
            date_window.start.isoformat(),
            date_window.end.isoformat(),
        )
        return self.normalize(response, app_id, app_name, measure, dimension)

    @staticmethod
    def normalize(
        response: TimeSeriesResponse,
        app_id: str,
        app_name: str,
        measure: str,
        dimension: DimensionKey
    ) -> List[MetricRow]:
        """
        Drop no-data series and flatten the rest into rows.

        Raises:
            DataFormatError: A data point has an unparseable date or value
        """
        grouped = not isinstance(dimension, NoGrouping)
        rows: List[MetricRow] = []

        for result in response.results:
            if not result.has_data:
                continue

            group_title = result.group.title if result.group else None

            for point in result.data:
                value = point.get(measure)
                if value is None or "date" not in point:
                    logger.debug(f"Skipping data point without {measure}: {point}")
                    continue

                try:
                    row = MetricRow(
                        date=str(point["date"])[:10],
                        app_id=app_id,
                        app_name=app_name,
                        value=value,
                        dimension_value=(group_title or "") if grouped else None,
                    )
                except ValidationError as e:
                    raise DataFormatError(
                        f"Malformed data point for {measure}",
                        context={
                            "measure": measure,
                            "dimension": dimension_label(dimension),
                            "point": point,
                        },
                        original_exception=e
                    )
                rows.append(row)

        return rows


def group_rows_by_date(rows: List[MetricRow]) -> Dict[date, List[MetricRow]]:
    """Split rows into date partitions, keeping first-seen date order"""
    by_date: Dict[date, List[MetricRow]] = defaultdict(list)
    for row in rows:
        by_date[row.date].append(row)
    return dict(by_date)
