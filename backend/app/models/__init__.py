"""Database models."""

from .grid import DataTable, GridColumn, Cell
from .cell_job import CellJob
from .bulk_job import BulkJob, BulkJobCell

# Job and sub-job status values
PENDING = "pending"
COMPLETED = "completed"
FAILED = "failed"
TERMINAL_STATUSES = frozenset({COMPLETED, FAILED})

__all__ = [
    "DataTable", "GridColumn", "Cell",
    "CellJob",
    "BulkJob", "BulkJobCell",
    "PENDING", "COMPLETED", "FAILED", "TERMINAL_STATUSES",
]
