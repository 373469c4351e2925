"""Single-cell and bulk job schemas."""

import re
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

# Deliberately loose: the notification provider does the real validation.
_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class CellJobCreate(BaseModel):
    """Request to generate one cell's value synchronously."""
    cell_id: int
    input: str = Field(..., description="Prompt text, or the script input value when script_id is set")
    script_id: Optional[str] = None
    use_web_search: bool = False

    @field_validator("input")
    @classmethod
    def input_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("input must not be empty")
        return v

    model_config = {
        "json_schema_extra": {
            "examples": [
                {"cell_id": 42, "input": "Summarise {{Company}} in one sentence."},
                {"cell_id": 43, "input": "Head of Sales", "script_id": "management-labels"},
            ]
        }
    }


class CellJobResponse(BaseModel):
    """Single-cell job record."""
    id: int
    cell_id: int
    prompt: str
    script_id: Optional[str] = None
    use_web_search: bool
    status: str
    result: Optional[str] = None
    error: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class BulkCellItem(BaseModel):
    """One target cell of a bulk job."""
    cell_id: int
    input: Optional[str] = Field(
        None,
        description="Per-cell prompt or script input; omit to derive it from the column rule",
    )


class BulkJobCreate(BaseModel):
    """Request to populate a batch of cells of one column."""
    column_id: int
    cells: List[BulkCellItem] = Field(..., min_length=1)
    notify_target: str = Field(..., description="Email address notified on start, completion and failure")
    prompt: Optional[str] = Field(None, description="Overrides the column's ai_prompt for this batch")
    use_web_search: Optional[bool] = Field(None, description="Overrides the column's use_web_search flag")

    @field_validator("notify_target")
    @classmethod
    def validate_notify_target(cls, v: str) -> str:
        v = v.strip()
        if not _EMAIL_PATTERN.match(v):
            raise ValueError("notify_target must be an email address")
        return v

    @field_validator("cells")
    @classmethod
    def reject_duplicate_cells(cls, v: List[BulkCellItem]) -> List[BulkCellItem]:
        seen = set()
        for item in v:
            if item.cell_id in seen:
                raise ValueError(f"cell {item.cell_id} appears more than once")
            seen.add(item.cell_id)
        return v


class BulkJobStarted(BaseModel):
    """Response after a bulk job was accepted."""
    bulk_job_id: int
    total_cells: int
    message: str = "Bulk processing started"


class BulkJobStatus(BaseModel):
    """Pollable aggregate state of a bulk job."""
    id: int
    column_id: int
    status: str
    total_cells: int
    processed_cells: int
    successful_cells: int
    failed_cells: int
    error: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class BulkJobCellResponse(BaseModel):
    """Sub-job record of a bulk job."""
    id: int
    bulk_job_id: int
    cell_id: int
    input: Optional[str] = None
    status: str
    result: Optional[str] = None
    error: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
