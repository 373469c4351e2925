"""Cell and column-script schemas."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel


class CellUpdate(BaseModel):
    """Manual edit of a cell value."""
    value: Optional[str]


class CellResponse(BaseModel):
    """Cell record."""
    id: int
    column_id: int
    row_index: int
    value: Optional[str] = None
    is_ai_generated: bool
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class RequiredColumn(BaseModel):
    content: str
    description: str


class ColumnScriptResponse(BaseModel):
    """Registered column script."""
    id: str
    title: str
    description: str
    required_columns: List[RequiredColumn] = []
