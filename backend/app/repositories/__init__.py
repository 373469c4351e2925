"""Data access repositories."""

from .base import BaseRepository
from .cell_repository import CellRepository, normalize_key
from .column_repository import ColumnRepository

__all__ = [
    "BaseRepository",
    "CellRepository",
    "ColumnRepository",
    "normalize_key",
]
