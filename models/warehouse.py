"""
SQLAlchemy table definitions for the SQL warehouse.

Metric tables are not declared statically: their columns depend on the
measure and dimension, so they are built from a TableSpec at export time.
"""

from sqlalchemy import Column, Date, Float, Index, Integer, MetaData, String, Table

from models.base import ValueType
from schemas.export import TableSpec

COLUMN_TYPES = {
    ValueType.DATE: Date,
    ValueType.STRING: String(255),
    ValueType.INTEGER: Integer,
    ValueType.FLOAT: Float,
}


def build_table(spec: TableSpec, metadata: MetaData) -> Table:
    """
    Return the Table for a spec, registering it on the metadata if needed.

    The partition column is indexed together with app_name since every
    partition write deletes by (date, app_name).
    """
    if spec.name in metadata.tables:
        return metadata.tables[spec.name]

    columns = [
        Column(column.name, COLUMN_TYPES[column.type], nullable=column.mode != "REQUIRED")
        for column in spec.columns
    ]
    return Table(
        spec.name,
        metadata,
        *columns,
        Index(f"idx_{spec.name}_{spec.partition_field}_app", spec.partition_field, "app_name"),
        comment=spec.description or None,
    )
