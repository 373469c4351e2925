"""Service for single-cell generation jobs."""

import logging
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..exceptions import DatabaseError
from ..models import CellJob, COMPLETED, FAILED, PENDING
from ..repositories.cell_repository import CellRepository
from .cell_executor import describe_error
from .generation_backend import GenerationBackend
from .generation_rules import generate, resolve_job_rule

logger = logging.getLogger(__name__)


class CellJobService:
    """
    Manages the lifecycle of single-cell generation jobs.

    Unlike bulk jobs, a single job runs inside the request: it is created
    pending, executed, and moved to completed or failed before submit()
    returns. A failed job leaves its cell untouched; a completed job and
    its cell write commit together.
    """

    def __init__(self, db: Session, backend: Optional[GenerationBackend] = None):
        self.db = db
        self.backend = backend
        self.cell_repo = CellRepository(db)

    def submit(
        self,
        cell_id: int,
        input_text: str,
        script_id: Optional[str] = None,
        use_web_search: bool = False,
    ) -> CellJob:
        """
        Create a job for a cell and run it to a terminal state.

        Args:
            cell_id: Target cell
            input_text: Prompt text, or the script input value when script_id is set
            script_id: Registered column script to run instead of a prompt
            use_web_search: Route the prompt to the web-search-augmented model

        Returns:
            The job, completed or failed

        Raises:
            CellNotFoundError: if the cell does not exist (no job is created)
        """
        cell = self.cell_repo.get_by_id(cell_id)

        job = CellJob(
            cell_id=cell_id,
            prompt=input_text,
            script_id=script_id,
            use_web_search=use_web_search,
            status=PENDING,
        )
        self.db.add(job)
        self.db.commit()
        self.db.refresh(job)
        logger.info(f"Created job {job.id} for cell {cell_id}", extra={"job_id": job.id, "cell_id": cell_id})

        try:
            rule = resolve_job_rule(input_text, script_id, use_web_search)
            row_context = self.cell_repo.row_context(cell)
            result = generate(rule, input_text, row_context, cell.column.heading, self.backend)
        except Exception as e:
            return self._finish(job, FAILED, error=describe_error(e))
        return self._finish(job, COMPLETED, result=result)

    def _finish(
        self, job: CellJob, status: str, result: Optional[str] = None, error: Optional[str] = None
    ) -> CellJob:
        """Single terminal write for a job; on success the cell write joins the same commit."""
        try:
            job.status = status
            job.result = result
            job.error = error
            if status == COMPLETED:
                self.cell_repo.write(job.cell_id, result, is_ai_generated=True)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to record outcome of job {job.id}: {e}")
            raise DatabaseError(f"Could not record outcome of job {job.id}", e)

        self.db.refresh(job)
        if status == COMPLETED:
            logger.info(f"Job {job.id} completed", extra={"job_id": job.id})
        else:
            logger.warning(f"Job {job.id} failed: {error}", extra={"job_id": job.id})
        return job

    def list_for_cell(self, cell_id: int) -> List[CellJob]:
        """All jobs for a cell, oldest first."""
        return (
            self.db.query(CellJob)
            .filter(CellJob.cell_id == cell_id)
            .order_by(CellJob.created_at.asc(), CellJob.id.asc())
            .all()
        )

