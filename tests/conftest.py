"""
Pytest configuration and fixtures
"""

from typing import Any, AsyncGenerator, Callable, Dict

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool

from ingestion.extractors.analytics_client import AnalyticsClient
from ingestion.loaders.sql_sink import SqlWarehouseSink
from schemas.export import ExportJob, Session

# In-memory warehouse shared by every connection of the engine
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture(scope="function")
async def sql_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create test warehouse engine"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def sql_sink(sql_engine) -> SqlWarehouseSink:
    """SQL sink serializing loads on the single test connection"""
    return SqlWarehouseSink(engine=sql_engine, load_concurrency=1)


@pytest.fixture
def session() -> Session:
    return Session(account_cookie="acc", session_cookie="sess")


@pytest.fixture
def export_job() -> ExportJob:
    return ExportJob(
        app_id="989804926",
        app_name="Firefox",
        start_date="2020-01-02",
        end_date="2020-01-03",
        overwrite=False,
        allow_incomplete=False,
    )


@pytest.fixture
def make_client() -> Callable[[Callable[[httpx.Request], httpx.Response]], AnalyticsClient]:
    """Build an AnalyticsClient whose requests are answered by a handler"""
    def factory(handler):
        client = AnalyticsClient(
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler))
        )
        return client

    return factory


@pytest.fixture
def mock_settings_payload() -> Dict[str, Any]:
    """Mock analytics settings response"""
    return {
        "configuration": {
            "dataStartDate": "2020-01-01T00:00:00Z",
            "dataEndDate": "2020-01-10T00:00:00Z",
        },
        "dimensions": [
            {"id": 1, "key": "region", "groupBy": True},
            {"id": 2, "key": "deviceType", "groupBy": True},
            {"id": 3, "key": "platform", "groupBy": False},
        ],
        "measures": [
            {"key": "impressionsTotal", "dimensions": [1, 2, 3]},
            {"key": "units", "dimensions": [1]},
            {"key": "downloadsNotExported", "dimensions": [1]},
        ],
    }


def _time_series_payload(body: Dict[str, Any]) -> Dict[str, Any]:
    measure = body["measures"][0]
    days = ["2020-01-02T00:00:00Z", "2020-01-03T00:00:00Z"]

    if body["group"] is None:
        return {
            "results": [
                {
                    "totals": {"value": 30},
                    "data": [{"date": day, measure: 10 + i} for i, day in enumerate(days)],
                }
            ]
        }

    return {
        "results": [
            {
                "totals": {"value": 20},
                "group": {"title": "US"},
                "data": [{"date": day, measure: 7 + i} for i, day in enumerate(days)],
            },
            {
                "totals": {"value": 10},
                "group": {"title": "DE"},
                "data": [{"date": day, measure: 3 + i} for i, day in enumerate(days)],
            },
            {
                "totals": {"value": -1},
                "group": {"title": "FR"},
                "data": [{"date": day, measure: 0} for day in days],
            },
        ]
    }


@pytest.fixture
def time_series_payload() -> Callable[[Dict[str, Any]], Dict[str, Any]]:
    """
    Answer a time-series request body: two days of data, grouped into
    US / DE when a group is requested, plus a no-data series.
    """
    return _time_series_payload
