"""Cell endpoints: read, manual edit, current generation status."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..database import get_db
from ..repositories import CellRepository
from ..schemas.cell import CellResponse, CellUpdate
from ..schemas.job import CellJobResponse
from ..services import StatusPoller

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cells", tags=["cells"])


@router.get("/{cell_id}", response_model=CellResponse)
def get_cell(cell_id: int, db: Session = Depends(get_db)):
    return CellRepository(db).get_by_id(cell_id)


@router.put("/{cell_id}", response_model=CellResponse)
def update_cell(cell_id: int, update: CellUpdate, db: Session = Depends(get_db)):
    """Manually set a cell's value. Clears the AI-generated flag."""
    cell = CellRepository(db).write(cell_id, update.value, is_ai_generated=False)
    db.commit()
    db.refresh(cell)
    logger.info(f"Cell {cell_id} edited manually", extra={"cell_id": cell_id})
    return cell


@router.get("/{cell_id}/jobs/latest", response_model=CellJobResponse)
def get_latest_job(cell_id: int, db: Session = Depends(get_db)):
    """Current generation status of a cell: its most recently created job."""
    job = StatusPoller(db).get_latest_for_cell(cell_id)
    if not job:
        raise HTTPException(status_code=404, detail="No jobs found for this cell")
    return job
