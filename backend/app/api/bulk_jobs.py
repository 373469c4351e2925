"""Bulk job endpoints: start a batch, poll its progress."""

import logging
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..database import get_db
from ..schemas.job import BulkJobCellResponse, BulkJobCreate, BulkJobStarted, BulkJobStatus
from ..services import BulkJobSupervisor, StatusPoller
from .deps import get_bulk_job_supervisor

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/jobs/bulk", tags=["bulk-jobs"])


@router.post("", response_model=BulkJobStarted, status_code=202)
def start_bulk_job(
    request: BulkJobCreate,
    supervisor: BulkJobSupervisor = Depends(get_bulk_job_supervisor),
):
    """Start populating a batch of cells.

    Returns as soon as the batch and its sub-jobs are recorded and
    dispatched. Poll ``GET /api/jobs/bulk/{bulk_job_id}`` until the status
    is ``completed`` or ``failed``.
    """
    handle = supervisor.start(
        column_id=request.column_id,
        cells=request.cells,
        notify_target=request.notify_target,
        prompt=request.prompt,
        use_web_search=request.use_web_search,
    )
    return BulkJobStarted(bulk_job_id=handle.bulk_job_id, total_cells=handle.total_cells)


@router.get("/{bulk_job_id}", response_model=BulkJobStatus)
def get_bulk_job(bulk_job_id: int, db: Session = Depends(get_db)):
    """Current progress of a batch. Safe to poll repeatedly."""
    return StatusPoller(db).get_bulk_job(bulk_job_id)


@router.get("/{bulk_job_id}/cells", response_model=List[BulkJobCellResponse])
def list_bulk_job_cells(bulk_job_id: int, db: Session = Depends(get_db)):
    """Per-cell outcomes of a batch."""
    return StatusPoller(db).list_sub_jobs(bulk_job_id)
