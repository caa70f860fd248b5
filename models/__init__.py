"""
Warehouse models and metric metadata.

Models:
    base: Shared enums (NoGrouping, ValueType, WriteMode, CellState, ExportStatus)
    catalog: Metric and dimension metadata, table naming and schemas
    warehouse: SQLAlchemy Table construction for the SQL warehouse

Usage:
    from models.base import NO_GROUPING, WriteMode
    from models.catalog import catalog

Example:
    catalog.table_name("impressionsTotal", "region")   # impressions_by_region
    catalog.table_name("impressionsTotal", NO_GROUPING)  # impressions_total
"""

__all__ = [
    "NO_GROUPING",
    "NoGrouping",
    "ValueType",
    "WriteMode",
    "CellState",
    "ExportStatus",
    "MetricInfo",
    "MetricCatalog",
    "catalog",
    "build_table",
]
