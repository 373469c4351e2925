"""Pydantic schemas for API validation."""

from .job import (
    CellJobCreate,
    CellJobResponse,
    BulkCellItem,
    BulkJobCreate,
    BulkJobStarted,
    BulkJobStatus,
    BulkJobCellResponse,
)
from .cell import (
    CellUpdate,
    CellResponse,
    ColumnScriptResponse,
)

__all__ = [
    "CellJobCreate",
    "CellJobResponse",
    "BulkCellItem",
    "BulkJobCreate",
    "BulkJobStarted",
    "BulkJobStatus",
    "BulkJobCellResponse",
    "CellUpdate",
    "CellResponse",
    "ColumnScriptResponse",
]
