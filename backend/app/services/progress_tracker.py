"""Progress tracker: the only mutation path for a bulk job's counters.

Counters move through single UPDATE statements evaluated by the database
(``processed_cells = processed_cells + 1``), never read-modify-write in
Python, so concurrent workers cannot lose updates. The completion check
runs in the same transaction as the increment; exactly one outcome can
observe the batch flipping to completed.
"""

import logging

from sqlalchemy.orm import Session
from sqlalchemy.sql import func

from ..models import BulkJob, COMPLETED, PENDING

logger = logging.getLogger(__name__)


class ProgressTracker:
    """Records per-cell outcomes on the bulk job aggregate.

    Runs inside the caller's transaction; the caller commits. That lets
    the sub-job transition, the cell write and the counter increment
    become durable together.
    """

    def __init__(self, db: Session):
        self.db = db

    def record_outcome(self, bulk_job_id: int, success: bool) -> bool:
        """Count one finished cell.

        Increments processed_cells and exactly one of successful_cells /
        failed_cells. If that makes processed_cells == total_cells the
        batch becomes completed in the same transaction.

        Returns:
            True if this outcome completed the batch.
        """
        outcome_counter = BulkJob.successful_cells if success else BulkJob.failed_cells
        counted = (
            self.db.query(BulkJob)
            .filter(
                BulkJob.id == bulk_job_id,
                BulkJob.status == PENDING,
                BulkJob.processed_cells < BulkJob.total_cells,
            )
            .update(
                {
                    BulkJob.processed_cells: BulkJob.processed_cells + 1,
                    outcome_counter: outcome_counter + 1,
                    BulkJob.updated_at: func.now(),
                },
                synchronize_session=False,
            )
        )
        if counted == 0:
            # Unknown, already terminal, or already full: nothing left to count
            logger.warning(
                "Outcome not counted for bulk job %d (not pending or already complete)",
                bulk_job_id,
                extra={"bulk_job_id": bulk_job_id},
            )
            return False

        completed = (
            self.db.query(BulkJob)
            .filter(
                BulkJob.id == bulk_job_id,
                BulkJob.status == PENDING,
                BulkJob.processed_cells == BulkJob.total_cells,
            )
            .update(
                {BulkJob.status: COMPLETED, BulkJob.updated_at: func.now()},
                synchronize_session=False,
            )
        )
        return completed == 1
