"""Read-only status queries polled by clients.

Every read goes to the database with ``populate_existing`` so a
long-lived session never serves an identity-map copy older than the
last commit made by a worker thread. Reads have no side effects.
"""

from typing import List, Optional

from sqlalchemy.orm import Session

from ..exceptions import BulkJobNotFoundError, JobNotFoundError
from ..models import BulkJob, BulkJobCell, CellJob


class StatusPoller:
    """Point reads of single jobs and bulk jobs."""

    def __init__(self, db: Session):
        self.db = db

    def get_job(self, job_id: int) -> CellJob:
        job = (
            self.db.query(CellJob)
            .populate_existing()
            .filter(CellJob.id == job_id)
            .first()
        )
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    def get_latest_for_cell(self, cell_id: int) -> Optional[CellJob]:
        """Current generation status of a cell: its newest job.

        Ordered by creation time, then id, so two jobs created within the
        same timestamp resolve to the later insert.
        """
        return (
            self.db.query(CellJob)
            .populate_existing()
            .filter(CellJob.cell_id == cell_id)
            .order_by(CellJob.created_at.desc(), CellJob.id.desc())
            .first()
        )

    def get_bulk_job(self, bulk_job_id: int) -> BulkJob:
        bulk_job = (
            self.db.query(BulkJob)
            .populate_existing()
            .filter(BulkJob.id == bulk_job_id)
            .first()
        )
        if bulk_job is None:
            raise BulkJobNotFoundError(bulk_job_id)
        return bulk_job

    def list_sub_jobs(self, bulk_job_id: int) -> List[BulkJobCell]:
        """Sub-jobs of a batch in creation order."""
        self.get_bulk_job(bulk_job_id)
        return (
            self.db.query(BulkJobCell)
            .populate_existing()
            .filter(BulkJobCell.bulk_job_id == bulk_job_id)
            .order_by(BulkJobCell.id.asc())
            .all()
        )
