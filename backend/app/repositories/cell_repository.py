"""Cell store: reads, value upserts and row context lookups."""

import re
from typing import Dict, Optional

from ..exceptions import CellNotFoundError
from ..models import Cell, GridColumn
from .base import BaseRepository

_WHITESPACE = re.compile(r"\s+")


def normalize_key(name: str) -> str:
    """Canonical form of a column heading or placeholder name."""
    return _WHITESPACE.sub(" ", name.strip().lower())


class CellRepository(BaseRepository[Cell]):
    """Repository for cell reads and writes.

    Writes only flush; the caller owns the transaction so that a cell write
    and the job bookkeeping around it commit together.
    """

    model_class = Cell
    not_found_error = CellNotFoundError
    # Generation needs the column heading alongside the cell
    eager_load = ("column",)

    def read(self, cell_id: int) -> Optional[str]:
        """Current value of a cell. Raises CellNotFoundError if missing."""
        return self.get_by_id(cell_id).value

    def write(self, cell_id: int, value: Optional[str], is_ai_generated: bool) -> Cell:
        """Set a cell's value and AI-generated flag."""
        cell = self.get_by_id(cell_id)
        cell.value = value
        cell.is_ai_generated = is_ai_generated
        self.db.flush()
        return cell

    def row_context(self, cell: Cell) -> Dict[str, str]:
        """All values in the cell's row, keyed by normalized column heading.

        Covers every column of the cell's table at the cell's row index,
        the cell's own column included. NULL values map to "".
        """
        table_id = (
            self.db.query(GridColumn.table_id)
            .filter(GridColumn.id == cell.column_id)
            .scalar()
        )
        if table_id is None:
            return {}

        rows = (
            self.db.query(GridColumn.heading, Cell.value)
            .join(Cell, Cell.column_id == GridColumn.id)
            .filter(GridColumn.table_id == table_id, Cell.row_index == cell.row_index)
            .order_by(GridColumn.id.asc())
            .all()
        )
        return {normalize_key(heading): value or "" for heading, value in rows}
