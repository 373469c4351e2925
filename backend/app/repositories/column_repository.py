"""Column repository (read-only; column CRUD lives elsewhere)."""

from ..exceptions import ColumnNotFoundError
from ..models import GridColumn
from .base import BaseRepository


class ColumnRepository(BaseRepository[GridColumn]):
    """Repository for column lookups."""

    model_class = GridColumn
    not_found_error = ColumnNotFoundError
