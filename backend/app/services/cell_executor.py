"""Per-cell execution for bulk jobs.

Each sub-job runs on a pool worker with its own database sessions:

1. Read phase: load the cell and its row context (session closed before
   the backend call, so no connection is held during generation).
2. Generate: run the batch's rule. Any exception becomes this cell's
   failure and is never re-raised.
3. Record phase: one transaction moves the sub-job out of pending, writes
   the cell (success only) and counts the outcome. Database errors are
   retried with backoff; if that is exhausted the sub-job stays pending
   and OutcomeRecordingError is raised.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.sql import func

from ..core.logging_config import job_context
from ..exceptions import OutcomeRecordingError
from ..models import BulkJob, BulkJobCell, Cell, COMPLETED, FAILED, PENDING
from ..repositories.cell_repository import CellRepository
from .generation_backend import GenerationBackend
from .generation_rules import GenerationRule, generate
from .notification_service import BatchSummary, NotificationDispatcher, NotificationKind
from .progress_tracker import ProgressTracker

logger = logging.getLogger(__name__)

# Backoff between attempts to record an outcome
RECORD_RETRY_DELAYS = (0.5, 1.0, 2.0)


@dataclass(frozen=True)
class CellTask:
    """One dispatched sub-job."""
    bulk_job_id: int
    sub_job_id: int
    cell_id: int
    input: Optional[str]
    notify_target: str


@dataclass(frozen=True)
class CellOutcome:
    success: bool
    result: Optional[str] = None
    error: Optional[str] = None


def describe_error(exc: BaseException) -> str:
    """Human-readable cause for a job's ``error`` field."""
    return str(exc) or type(exc).__name__


class CellExecutor:
    """Runs one sub-job end to end. Safe to call from many threads at once."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        backend: GenerationBackend,
        notifier: NotificationDispatcher,
        retry_delays: Sequence[float] = RECORD_RETRY_DELAYS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.session_factory = session_factory
        self.backend = backend
        self.notifier = notifier
        self.retry_delays = tuple(retry_delays)
        self._sleep = sleep

    def run(self, task: CellTask, rule: GenerationRule) -> CellOutcome:
        """Execute one sub-job and record its outcome.

        Raises:
            OutcomeRecordingError: if the outcome could not be persisted.
        """
        with job_context(bulk_job_id=task.bulk_job_id, sub_job_id=task.sub_job_id, cell_id=task.cell_id):
            outcome = self._generate(task, rule)
            if outcome.success:
                logger.debug("Cell generated")
            else:
                logger.info("Cell failed: %s", outcome.error)

            recorded, completed_batch = self._record_with_retry(task, outcome)
            if not recorded:
                logger.info("Sub-job already recorded; outcome ignored")
            if completed_batch:
                self._notify_completed(task)
            return outcome

    def _generate(self, task: CellTask, rule: GenerationRule) -> CellOutcome:
        try:
            db = self.session_factory()
            try:
                cell = CellRepository(db).get_by_id(task.cell_id)
                heading = cell.column.heading
                row_context = CellRepository(db).row_context(cell)
            finally:
                db.close()

            result = generate(rule, task.input, row_context, heading, self.backend)
            return CellOutcome(success=True, result=result)
        except Exception as e:
            return CellOutcome(success=False, error=describe_error(e))

    def _record_with_retry(self, task: CellTask, outcome: CellOutcome) -> Tuple[bool, bool]:
        attempts = len(self.retry_delays) + 1
        for attempt in range(attempts):
            try:
                return self._record(task, outcome)
            except SQLAlchemyError as e:
                if attempt == attempts - 1:
                    logger.error(
                        "Giving up recording outcome after %d attempts: %s", attempts, e,
                    )
                    raise OutcomeRecordingError(task.bulk_job_id, task.sub_job_id, e) from e
                delay = self.retry_delays[attempt]
                logger.warning(
                    "Recording outcome failed (attempt %d/%d), retrying in %.1fs: %s",
                    attempt + 1, attempts, delay, e,
                )
                self._sleep(delay)
        raise AssertionError("unreachable")

    def _record(self, task: CellTask, outcome: CellOutcome) -> Tuple[bool, bool]:
        """One transaction. Returns (recorded, completed_batch)."""
        db = self.session_factory()
        try:
            if outcome.success:
                written = (
                    db.query(Cell)
                    .filter(Cell.id == task.cell_id)
                    .update(
                        {Cell.value: outcome.result, Cell.is_ai_generated: True, Cell.updated_at: func.now()},
                        synchronize_session=False,
                    )
                )
                if written == 0:
                    # Cell deleted while generating
                    outcome = CellOutcome(success=False, error=f"Cell {task.cell_id} not found")

            transitioned = (
                db.query(BulkJobCell)
                .filter(BulkJobCell.id == task.sub_job_id, BulkJobCell.status == PENDING)
                .update(
                    {
                        BulkJobCell.status: COMPLETED if outcome.success else FAILED,
                        BulkJobCell.result: outcome.result,
                        BulkJobCell.error: outcome.error,
                        BulkJobCell.updated_at: func.now(),
                    },
                    synchronize_session=False,
                )
            )
            if transitioned == 0:
                db.rollback()
                return False, False

            completed_batch = ProgressTracker(db).record_outcome(task.bulk_job_id, outcome.success)
            db.commit()
            return True, completed_batch
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def _notify_completed(self, task: CellTask) -> None:
        db = self.session_factory()
        try:
            bulk_job = db.query(BulkJob).filter(BulkJob.id == task.bulk_job_id).first()
            summary = BatchSummary(
                bulk_job_id=bulk_job.id,
                total_cells=bulk_job.total_cells,
                successful_cells=bulk_job.successful_cells,
                failed_cells=bulk_job.failed_cells,
            )
        finally:
            db.close()
        logger.info(
            "Bulk job completed: %d succeeded, %d failed",
            summary.successful_cells, summary.failed_cells,
        )
        self.notifier.notify(task.notify_target, NotificationKind.COMPLETED, summary)
