"""
Unit tests for metric fetching and normalization
"""

from datetime import date
from unittest.mock import AsyncMock, Mock

import pytest

from core.exceptions import DataFormatError, RateLimitError
from ingestion.extractors.metric_fetcher import MetricFetcher, group_rows_by_date
from models.base import NO_GROUPING
from schemas.analytics import TimeSeriesResponse
from schemas.export import DateWindow


def make_fetcher(payload=None, error=None):
    client = Mock()
    if error is not None:
        client.get_time_series = AsyncMock(side_effect=error)
    else:
        client.get_time_series = AsyncMock(
            return_value=TimeSeriesResponse.model_validate(payload)
        )
    return MetricFetcher(client)


WINDOW = DateWindow(start=date(2020, 1, 2), end=date(2020, 1, 3))


class TestMetricFetcher:
    """Test time-series normalization"""

    @pytest.mark.asyncio
    async def test_grouped_rows_carry_dimension_value(self, session, time_series_payload):
        payload = time_series_payload({"measures": ["impressionsTotal"], "group": {}})
        fetcher = make_fetcher(payload)

        rows = await fetcher.fetch_metric(
            session, "123", "Firefox", "impressionsTotal", "region", WINDOW
        )

        assert len(rows) == 4
        assert {row.dimension_value for row in rows} == {"US", "DE"}
        assert rows[0].date == date(2020, 1, 2)
        assert rows[0].app_id == "123"
        assert rows[0].app_name == "Firefox"
        assert rows[0].value == 7

    @pytest.mark.asyncio
    async def test_ungrouped_rows_have_no_dimension_value(self, session, time_series_payload):
        payload = time_series_payload({"measures": ["units"], "group": None})
        fetcher = make_fetcher(payload)

        rows = await fetcher.fetch_metric(session, "123", "Firefox", "units", NO_GROUPING, WINDOW)

        assert [row.value for row in rows] == [10, 11]
        assert all(row.dimension_value is None for row in rows)

    @pytest.mark.asyncio
    async def test_passes_window_as_iso_dates(self, session):
        fetcher = make_fetcher({"results": []})

        await fetcher.fetch_metric(session, "123", "Firefox", "units", "region", WINDOW)

        fetcher.client.get_time_series.assert_awaited_once_with(
            session, "123", "units", "region", "2020-01-02", "2020-01-03"
        )

    def test_no_data_series_are_dropped(self):
        response = TimeSeriesResponse.model_validate({
            "results": [
                {
                    "totals": {"value": -1},
                    "group": {"title": "FR"},
                    "data": [{"date": "2020-01-02T00:00:00Z", "units": 0}],
                }
            ]
        })

        rows = MetricFetcher.normalize(response, "123", "Firefox", "units", "region")

        assert rows == []

    def test_points_without_measure_value_are_skipped(self):
        response = TimeSeriesResponse.model_validate({
            "results": [
                {
                    "totals": {"value": 5},
                    "data": [
                        {"date": "2020-01-02T00:00:00Z", "units": 5},
                        {"date": "2020-01-03T00:00:00Z"},
                    ],
                }
            ]
        })

        rows = MetricFetcher.normalize(response, "123", "Firefox", "units", NO_GROUPING)

        assert len(rows) == 1
        assert rows[0].date == date(2020, 1, 2)

    @pytest.mark.asyncio
    async def test_api_errors_propagate(self, session):
        fetcher = make_fetcher(error=RateLimitError("Too many requests", status_code=429))

        with pytest.raises(RateLimitError):
            await fetcher.fetch_metric(session, "123", "Firefox", "units", "region", WINDOW)

    def test_group_rows_by_date(self):
        response = TimeSeriesResponse.model_validate({
            "results": [
                {
                    "totals": {"value": 3},
                    "group": {"title": "US"},
                    "data": [
                        {"date": "2020-01-02T00:00:00Z", "units": 1},
                        {"date": "2020-01-03T00:00:00Z", "units": 2},
                    ],
                },
                {
                    "totals": {"value": 3},
                    "group": {"title": "DE"},
                    "data": [{"date": "2020-01-02T00:00:00Z", "units": 3}],
                },
            ]
        })
        rows = MetricFetcher.normalize(response, "123", "Firefox", "units", "region")

        by_date = group_rows_by_date(rows)

        assert list(by_date) == [date(2020, 1, 2), date(2020, 1, 3)]
        assert [row.dimension_value for row in by_date[date(2020, 1, 2)]] == ["US", "DE"]

    def test_unparseable_value_raises_data_format_error(self):
        response = TimeSeriesResponse.model_validate({
            "results": [
                {
                    "totals": {"value": 5},
                    "group": {"title": "US"},
                    "data": [{"date": "2020-01-02T00:00:00Z", "units": "n/a"}],
                }
            ]
        })

        with pytest.raises(DataFormatError, match="Malformed data point") as exc_info:
            MetricFetcher.normalize(response, "123", "Firefox", "units", "region")

        assert exc_info.value.context["dimension"] == "region"

    def test_unparseable_date_raises_data_format_error(self):
        response = TimeSeriesResponse.model_validate({
            "results": [
                {
                    "totals": {"value": 5},
                    "data": [{"date": "yesterday", "units": 5}],
                }
            ]
        })

        with pytest.raises(DataFormatError):
            MetricFetcher.normalize(response, "123", "Firefox", "units", NO_GROUPING)
