"""
Unit tests for metadata resolution
"""

from datetime import date
from unittest.mock import AsyncMock, Mock

import pytest

from core.exceptions import DateRangeError, IncompleteDataError, MetadataError
from ingestion.metadata import MetadataResolver
from models.base import NO_GROUPING
from schemas.analytics import ProviderSettings
from schemas.export import DateWindow


def make_settings(start="2020-01-02T00:00:00", end="2020-01-03T00:00:00", dimensions=None, measures=None):
    return ProviderSettings.model_validate({
        "configuration": {"dataStartDate": start, "dataEndDate": end},
        "dimensions": dimensions or [],
        "measures": measures or [],
    })


def make_resolver(provider_settings):
    client = Mock()
    client.get_settings = AsyncMock(return_value=provider_settings)
    return MetadataResolver(client)


def window(start, end):
    return DateWindow(start=date.fromisoformat(start), end=date.fromisoformat(end))


class TestDateValidation:
    """Test validation of the requested window against the data range"""

    @pytest.mark.asyncio
    async def test_fails_if_given_date_with_no_data(self, session):
        resolver = make_resolver(make_settings())

        with pytest.raises(DateRangeError, match="Date out of range"):
            await resolver.resolve(session, window("2020-01-01", "2020-01-02"), True)

        with pytest.raises(DateRangeError, match="Date out of range"):
            await resolver.resolve(session, window("2020-01-02", "2020-01-05"), True)

        with pytest.raises(DateRangeError, match="Date out of range"):
            await resolver.resolve(session, window("2019-01-02", "2019-01-02"), True)

    @pytest.mark.asyncio
    async def test_fails_if_window_includes_incomplete_day(self, session):
        resolver = make_resolver(make_settings())

        with pytest.raises(IncompleteDataError, match="has incomplete data"):
            await resolver.resolve(session, window("2020-01-03", "2020-01-03"), False)

    @pytest.mark.asyncio
    async def test_allows_incomplete_day_when_requested(self, session):
        resolver = make_resolver(make_settings())

        availability = await resolver.resolve(session, window("2020-01-03", "2020-01-03"), True)

        assert availability == {NO_GROUPING: []}

    @pytest.mark.asyncio
    async def test_window_inside_range_succeeds(self, session):
        resolver = make_resolver(make_settings(end="2020-01-10T00:00:00"))

        availability = await resolver.resolve(session, window("2020-01-03", "2020-01-05"), False)

        assert NO_GROUPING in availability

    def test_date_errors_are_metadata_errors(self):
        assert issubclass(DateRangeError, MetadataError)
        assert issubclass(IncompleteDataError, MetadataError)


class TestAvailabilityMap:
    """Test grouping of measures by allowed dimensions"""

    @pytest.mark.asyncio
    async def test_groups_metrics_with_allowed_dimensions(self, session):
        provider_settings = make_settings(
            start="2019-01-01T00:00:00",
            end="2021-01-01T00:00:00",
            dimensions=[
                {"id": 3, "key": "appVersion", "groupBy": True},
                {"id": 2, "key": "platform", "groupBy": True},
                {"id": 4, "key": "platformVersion", "groupBy": True},
                {"id": 1, "key": "storefront", "groupBy": False},
            ],
            measures=[
                {"key": "impressionsTotal", "dimensions": [1, 2, 3]},
                {"key": "impressionsTotalUnique", "dimensions": [1, 2]},
                {"key": "pageViewCount", "dimensions": [1, 3]},
            ],
        )
        resolver = make_resolver(provider_settings)

        availability = await resolver.resolve(session, window("2020-01-30", "2020-02-01"), True)

        assert availability["appVersion"] == ["impressionsTotal", "pageViewCount"]
        assert availability["platform"] == ["impressionsTotal", "impressionsTotalUnique"]
        assert availability["platformVersion"] == []
        assert "storefront" not in availability
        assert availability[NO_GROUPING] == [
            "impressionsTotal",
            "impressionsTotalUnique",
            "pageViewCount",
        ]

    def test_ungrouped_sentinel_always_present(self):
        availability = MetadataResolver.build_availability(make_settings())

        assert availability == {NO_GROUPING: []}

    @pytest.mark.asyncio
    async def test_settings_fetched_once(self, session):
        provider_settings = make_settings(end="2020-01-10T00:00:00")
        resolver = make_resolver(provider_settings)

        await resolver.resolve(session, window("2020-01-02", "2020-01-03"))

        resolver.client.get_settings.assert_awaited_once_with(session)
