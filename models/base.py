import enum


# ============================================================================
# ENUMS
# ============================================================================

class NoGrouping(enum.Enum):
    """Sentinel dimension for ungrouped totals"""
    TOTAL = "total"

    def __repr__(self) -> str:
        return "NO_GROUPING"


NO_GROUPING = NoGrouping.TOTAL


class ValueType(str, enum.Enum):
    """Warehouse column types"""
    DATE = "DATE"
    STRING = "STRING"
    INTEGER = "INTEGER"
    FLOAT = "FLOAT"


class WriteMode(str, enum.Enum):
    """Bulk load mode for a date partition"""
    APPEND = "append"
    TRUNCATE = "truncate"


class CellState(str, enum.Enum):
    """Lifecycle of one (measure, dimension) cell"""
    PENDING = "pending"
    FETCHING = "fetching"
    RETRY_SCHEDULED = "retry_scheduled"
    SUCCEEDED = "succeeded"
    ABANDONED = "abandoned"


class ExportStatus(str, enum.Enum):
    """Status of a completed export run; fatal errors raise instead"""
    SUCCESS = "success"
