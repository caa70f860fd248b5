"""
Pydantic schemas for provider payloads and export data.

Schemas:
    analytics: Settings and time-series responses of the analytics API
    export: Session, DateWindow, ExportJob, MetricRow, TableSpec and run results

Usage:
    from schemas.export import ExportJob, DateWindow
    from schemas.analytics import ProviderSettings
"""

__all__ = [
    "ProviderSettings",
    "TimeSeriesResponse",
    "Session",
    "DateWindow",
    "ExportJob",
    "MetricRow",
    "ColumnSpec",
    "TableSpec",
    "CellResult",
    "ExportSummary",
]
