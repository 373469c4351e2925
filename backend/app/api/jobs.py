"""Single-cell job endpoints."""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..database import get_db
from ..exceptions import ValidationError
from ..schemas.job import CellJobCreate, CellJobResponse
from ..services import CellJobService, GenerationBackend, StatusPoller
from .deps import get_generation_backend

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/jobs", tags=["jobs"])


@router.post("", response_model=CellJobResponse, status_code=201)
def create_job(
    request: CellJobCreate,
    db: Session = Depends(get_db),
    backend: GenerationBackend = Depends(get_generation_backend),
):
    """Generate one cell's value.

    Runs synchronously: the returned job is already completed or failed.
    A generation failure is reported in the job's ``error`` field, not as
    an HTTP error; only an unknown cell is a 404.
    """
    service = CellJobService(db, backend)
    return service.submit(
        cell_id=request.cell_id,
        input_text=request.input,
        script_id=request.script_id,
        use_web_search=request.use_web_search,
    )


@router.get("", response_model=List[CellJobResponse])
def list_jobs(
    cell_id: Optional[int] = Query(None, description="Cell whose job history to list"),
    db: Session = Depends(get_db),
):
    """List all jobs of a cell, oldest first."""
    if cell_id is None:
        raise ValidationError("cell_id query parameter is required", field="cell_id")
    return CellJobService(db).list_for_cell(cell_id)


@router.get("/{job_id}", response_model=CellJobResponse)
def get_job(job_id: int, db: Session = Depends(get_db)):
    """Get a job by ID (identity lookup; see /api/cells/{cell_id}/jobs/latest for cell status)."""
    return StatusPoller(db).get_job(job_id)
