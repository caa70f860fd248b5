"""
Metric and dimension metadata for warehouse tables.

Maps the provider's measure keys to table names, value types and
descriptions, and dimension keys to the suffix used for both the table name
and the dimension column. Only metrics and dimensions listed here are
exported; the catalog acts as the allow-list for the exporter.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict

from models.base import NoGrouping, ValueType
from schemas.export import ColumnSpec, DimensionKey, TableSpec


class MetricInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    value_type: ValueType = ValueType.INTEGER
    optin: bool = False


METRICS: Dict[str, MetricInfo] = {
    "activeDevices": MetricInfo(
        name="active_devices",
        description=(
            "The number of devices with atleast one session during the selected period. "
            "Only devices with iOS 8 and tvOS 9 or later are included."
        ),
        optin=True,
    ),
    "crashes": MetricInfo(
        name="crashes",
        description="The total number of crashes. Actual crash reports are available in xCode.",
        optin=True,
    ),
    "impressionsTotal": MetricInfo(
        name="impressions",
        description=(
            "Number of times the app was viewed in the Featured, Categories, Top Charts and "
            "Search Sections of the App Store. Also includes views of the product page."
        ),
    ),
    "impressionsTotalUnique": MetricInfo(
        name="impressions_unique_device",
        description=(
            "Number of times the app was viewed in the Featured, Categories, Top Charts and "
            "Search Sections of the App Store by unique device. Also includes views of the "
            "product page."
        ),
    ),
    "installs": MetricInfo(
        name="installations",
        description=(
            "The total number of times your app has been installed on an iOS device with iOS8 "
            "and tvOS 9 or later. Re-downloads on the same device, downloads to multiple devices "
            "sharing the same apple ID and Family Sharing installations are included. Updates "
            "are not included."
        ),
        optin=True,
    ),
    "optin": MetricInfo(
        name="rate",
        description=(
            "Opt in rate of users who have agreed to share their diagnostic and usage "
            "information with app developers. This applies to installations, sessions, active "
            "devices, active last 30 days, crashes and deletions. Each day represents the "
            "average opt-in rate of all users who installed Apps during the last 30 days."
        ),
        value_type=ValueType.FLOAT,
        optin=True,
    ),
    "pageViewCount": MetricInfo(
        name="product_page_views",
        description=(
            "Number of times the app's product page has been viewed on devices iOS 8 and "
            "tvOS 9 or later. Includes both App Store app and Storekit API"
        ),
    ),
    "pageViewUnique": MetricInfo(
        name="product_page_views_unique_device",
        description=(
            "Number of times the app's product page has been viewed on devices iOS 8 and "
            "tvOS 9 or later by unique device. Includes both App Store app and Storekit API"
        ),
    ),
    "rollingActiveDevices": MetricInfo(
        name="active_devices_last_30_days",
        description=(
            "The total number of devices with atleast one session within 30 days of the "
            "selected day"
        ),
        optin=True,
    ),
    "sessions": MetricInfo(
        name="sessions",
        description=(
            "Opt-In. The number of times the app has been used for at least two seconds. If "
            "the app is in the background and is later used again that counts as another "
            "session."
        ),
        optin=True,
    ),
    "uninstalls": MetricInfo(
        name="deletions",
        description=(
            "The number of times your app has been deleted on devices running iOS 12.3 or "
            "tvOS 13.0 or later."
        ),
        optin=True,
    ),
    "units": MetricInfo(
        name="app_units",
        description=(
            "The number of first-time app purchases made on the App Store using iOS 8 and "
            "tvOS 9 or later. Updates, re-downloads, download onto other devices are not "
            "counted. Family sharing downloads are included for free apps, but not for paid "
            "apps."
        ),
    ),
}

DIMENSION_SUFFIXES: Dict[str, str] = {
    "appReferrer": "app_referrer",
    "appVersion": "app_version",
    "campaignId": "campaign",
    "domainReferrer": "web_referrer",
    "platform": "platform",
    "platformVersion": "platform_version",
    "region": "region",
    "source": "source",
    "storefront": "storefront",
}


class MetricCatalog:
    """
    Read-only lookup of exportable metrics and dimensions.

    The ungrouped sentinel is always a known dimension.
    """

    def __init__(
        self,
        metrics: Optional[Dict[str, MetricInfo]] = None,
        dimensions: Optional[Dict[str, str]] = None
    ):
        self._metrics = dict(METRICS if metrics is None else metrics)
        self._dimensions = dict(DIMENSION_SUFFIXES if dimensions is None else dimensions)

    @property
    def metric_keys(self) -> frozenset:
        return frozenset(self._metrics)

    @property
    def dimension_keys(self) -> frozenset:
        return frozenset(self._dimensions)

    def has_metric(self, measure: str) -> bool:
        return measure in self._metrics

    def has_dimension(self, dimension: DimensionKey) -> bool:
        if isinstance(dimension, NoGrouping):
            return True
        return dimension in self._dimensions

    def metric(self, measure: str) -> MetricInfo:
        try:
            return self._metrics[measure]
        except KeyError:
            raise KeyError(f"Unknown metric: {measure}")

    def suffix(self, dimension: str) -> str:
        try:
            return self._dimensions[dimension]
        except KeyError:
            raise KeyError(f"Unknown dimension: {dimension}")

    def table_name(self, measure: str, dimension: DimensionKey) -> str:
        """
        <metric>_total for ungrouped data, otherwise <metric>_by_<suffix>,
        with opt-in metrics getting an opt_in_ prefix on the suffix.
        """
        info = self.metric(measure)
        if isinstance(dimension, NoGrouping):
            return f"{info.name}_total"
        optin = "opt_in_" if info.optin else ""
        return f"{info.name}_by_{optin}{self.suffix(dimension)}"

    def table_spec(self, measure: str, dimension: DimensionKey) -> TableSpec:
        info = self.metric(measure)
        columns: List[ColumnSpec] = [
            ColumnSpec(name="date", type=ValueType.DATE),
            ColumnSpec(name="app_name", type=ValueType.STRING),
            ColumnSpec(name=info.name, type=info.value_type),
        ]
        if not isinstance(dimension, NoGrouping):
            columns.append(ColumnSpec(name=self.suffix(dimension), type=ValueType.STRING))

        return TableSpec(
            name=self.table_name(measure, dimension),
            columns=columns,
            description=info.description,
        )


catalog = MetricCatalog()
