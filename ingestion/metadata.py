"""
Resolve which measures can be grouped by which dimensions.
"""

import logging
from typing import Dict, List

from core.exceptions import DateRangeError, IncompleteDataError
from ingestion.extractors.analytics_client import AnalyticsClient
from models.base import NO_GROUPING
from schemas.analytics import ProviderSettings
from schemas.export import DateWindow, DimensionKey, Session

logger = logging.getLogger(__name__)

AvailabilityMap = Dict[DimensionKey, List[str]]


class MetadataResolver:
    """
    Builds the measure-by-dimension availability map for one export run.

    The map is not filtered against the metric catalog; the orchestrator
    decides what it exports.
    """

    def __init__(self, client: AnalyticsClient):
        self.client = client

    async def resolve(
        self,
        session: Session,
        date_window: DateWindow,
        allow_incomplete: bool = False
    ) -> AvailabilityMap:
        """
        Fetch provider settings, validate the window and build the map.

        Raises:
            DateRangeError: Window falls outside the provider's data range
            IncompleteDataError: Window ends on the latest day and
                allow_incomplete is not set
        """
        provider_settings = await self.client.get_settings(session)
        self.validate_window(provider_settings, date_window, allow_incomplete)
        return self.build_availability(provider_settings)

    @staticmethod
    def validate_window(
        provider_settings: ProviderSettings,
        date_window: DateWindow,
        allow_incomplete: bool
    ) -> None:
        data_start = provider_settings.configuration.data_start_date
        data_end = provider_settings.configuration.data_end_date

        if date_window.end > data_end or date_window.start < data_start:
            raise DateRangeError(
                f"Date out of range; data exists for {data_start} to {data_end}",
                context={
                    "data_start_date": data_start.isoformat(),
                    "data_end_date": data_end.isoformat(),
                    "start_date": date_window.start.isoformat(),
                    "end_date": date_window.end.isoformat(),
                }
            )

        if date_window.end == data_end:
            warning = f"{data_end} has incomplete data"
            if not allow_incomplete:
                raise IncompleteDataError(
                    f"{warning}; set --allow-incomplete to allow this",
                    context={"data_end_date": data_end.isoformat()}
                )
            logger.warning(warning)

    @staticmethod
    def build_availability(provider_settings: ProviderSettings) -> AvailabilityMap:
        """
        Map every groupable dimension (plus NO_GROUPING) to the measures
        that support it, in the provider's measure order.
        """
        availability: AvailabilityMap = {}
        dimensions_by_id: Dict[int, str] = {}

        for dimension in provider_settings.dimensions:
            if dimension.group_by:
                dimensions_by_id[dimension.id] = dimension.key
                availability[dimension.key] = []

        # Every measure supports the ungrouped total
        availability[NO_GROUPING] = []

        for measure in provider_settings.measures:
            for dimension_id in measure.dimensions:
                if dimension_id in dimensions_by_id:
                    availability[dimensions_by_id[dimension_id]].append(measure.key)
            availability[NO_GROUPING].append(measure.key)

        logger.debug(
            f"Resolved {len(provider_settings.measures)} measures across "
            f"{len(dimensions_by_id)} groupable dimensions"
        )
        return availability
