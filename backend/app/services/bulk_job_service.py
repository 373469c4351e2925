"""Bulk job supervisor: creates batches and fans them out to the worker pool."""

import logging
from concurrent.futures import Future, wait
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from sqlalchemy.orm import Session
from sqlalchemy.sql import func

from ..exceptions import RuleResolutionError
from ..models import BulkJob, BulkJobCell, FAILED, PENDING
from ..repositories.column_repository import ColumnRepository
from ..schemas.job import BulkCellItem
from .cell_executor import CellExecutor, CellTask
from .generation_backend import GenerationBackend
from .generation_rules import GenerationRule, resolve_column_rule
from .notification_service import BatchSummary, NotificationDispatcher, NotificationKind
from .worker_pool import CellWorkerPool

logger = logging.getLogger(__name__)


@dataclass
class BulkJobHandle:
    """A started batch. ``futures`` complete as sub-jobs finish."""
    bulk_job_id: int
    total_cells: int
    futures: List[Future] = field(default_factory=list)

    def wait(self, timeout: Optional[float] = None) -> None:
        """Block until every dispatched sub-job has finished (tests and scripts)."""
        wait(self.futures, timeout=timeout)


class BulkJobSupervisor:
    """
    Owns the bulk job lifecycle up to dispatch.

    Start creates the aggregate and all sub-jobs in one commit, so a poll
    right after Start already sees total_cells == number of sub-jobs. The
    generation rule is resolved once per batch; a resolution fault fails
    the whole batch before any cell runs. Everything after dispatch
    (per-cell outcomes, completion) happens on pool workers.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        backend: GenerationBackend,
        notifier: NotificationDispatcher,
        pool: CellWorkerPool,
        executor: Optional[CellExecutor] = None,
    ):
        self.session_factory = session_factory
        self.notifier = notifier
        self.pool = pool
        self.executor = executor or CellExecutor(session_factory, backend, notifier)

    def start(
        self,
        column_id: int,
        cells: Sequence[BulkCellItem],
        notify_target: str,
        prompt: Optional[str] = None,
        use_web_search: Optional[bool] = None,
    ) -> BulkJobHandle:
        """Create a batch and dispatch its cells. Returns without waiting for them.

        Args:
            column_id: Column whose rule populates the cells
            cells: Target cells, each with an optional per-cell input
            notify_target: Email address for started/completed/failed notices
            prompt: Optional template overriding the column's ai_prompt
            use_web_search: Optional override of the column's web search flag

        Returns:
            Handle with the bulk job id and one future per dispatched cell
        """
        if not cells:
            raise ValueError("A bulk job needs at least one cell")

        db = self.session_factory()
        try:
            bulk_job = BulkJob(
                column_id=column_id,
                status=PENDING,
                total_cells=len(cells),
                processed_cells=0,
                successful_cells=0,
                failed_cells=0,
                prompt=prompt,
                use_web_search=use_web_search,
                notify_target=notify_target,
            )
            db.add(bulk_job)
            db.flush()

            sub_jobs = [
                BulkJobCell(bulk_job_id=bulk_job.id, cell_id=item.cell_id, input=item.input, status=PENDING)
                for item in cells
            ]
            db.add_all(sub_jobs)
            db.flush()
            tasks = self._tasks_for(bulk_job, sub_jobs)
            handle = BulkJobHandle(bulk_job_id=bulk_job.id, total_cells=bulk_job.total_cells)
            db.commit()

            logger.info(
                f"Created bulk job {bulk_job.id} for column {column_id} ({len(cells)} cells)",
                extra={"bulk_job_id": bulk_job.id},
            )

            rule = self._resolve_rule(db, bulk_job, tasks)
            if rule is None:
                return handle

            if self.pool.closed:
                logger.warning(
                    f"Worker pool is shut down; bulk job {bulk_job.id} stays pending until resume",
                    extra={"bulk_job_id": bulk_job.id},
                )
                return handle

            self.notifier.notify(
                notify_target,
                NotificationKind.STARTED,
                BatchSummary(bulk_job_id=bulk_job.id, total_cells=bulk_job.total_cells),
            )
            handle.futures = self._dispatch(handle.bulk_job_id, tasks, rule)
            return handle
        finally:
            db.close()

    def resume_pending(self) -> List[BulkJobHandle]:
        """Re-dispatch pending sub-jobs of every unfinished batch.

        Used at startup after a restart interrupted running batches.
        Recording is idempotent per sub-job, so a cell that finished just
        before the restart is never counted twice.
        """
        handles: List[BulkJobHandle] = []
        db = self.session_factory()
        try:
            pending_jobs = (
                db.query(BulkJob)
                .filter(BulkJob.status == PENDING)
                .order_by(BulkJob.id.asc())
                .all()
            )
            for bulk_job in pending_jobs:
                sub_jobs = (
                    db.query(BulkJobCell)
                    .filter(BulkJobCell.bulk_job_id == bulk_job.id, BulkJobCell.status == PENDING)
                    .order_by(BulkJobCell.id.asc())
                    .all()
                )
                handle = BulkJobHandle(bulk_job_id=bulk_job.id, total_cells=bulk_job.total_cells)
                handles.append(handle)
                if not sub_jobs:
                    continue

                tasks = self._tasks_for(bulk_job, sub_jobs)
                rule = self._resolve_rule(db, bulk_job, tasks)
                if rule is None:
                    continue

                logger.info(
                    f"Resuming bulk job {bulk_job.id}: {len(sub_jobs)} of {bulk_job.total_cells} cells pending",
                    extra={"bulk_job_id": bulk_job.id},
                )
                handle.futures = self._dispatch(bulk_job.id, tasks, rule)
        finally:
            db.close()
        return handles

    def _resolve_rule(
        self, db: Session, bulk_job: BulkJob, tasks: Sequence[CellTask]
    ) -> Optional[GenerationRule]:
        """Resolve the batch rule, failing the batch if it cannot be resolved."""
        column = ColumnRepository(db).get_by_id_optional(bulk_job.column_id)
        if column is None:
            self._fail_batch(db, bulk_job, f"Column {bulk_job.column_id} not found")
            return None
        try:
            return resolve_column_rule(
                column,
                prompt_override=bulk_job.prompt,
                web_search_override=bulk_job.use_web_search,
                every_cell_has_input=all(task.input for task in tasks),
            )
        except RuleResolutionError as e:
            self._fail_batch(db, bulk_job, e.message)
            return None

    @staticmethod
    def _tasks_for(bulk_job: BulkJob, sub_jobs: Sequence[BulkJobCell]) -> List[CellTask]:
        return [
            CellTask(
                bulk_job_id=bulk_job.id,
                sub_job_id=sub.id,
                cell_id=sub.cell_id,
                input=sub.input,
                notify_target=bulk_job.notify_target,
            )
            for sub in sub_jobs
        ]

    def _dispatch(self, bulk_job_id: int, tasks: Sequence[CellTask], rule: GenerationRule) -> List[Future]:
        """Submit every task; stops early if the pool shuts down meanwhile.

        Undispatched sub-jobs stay pending and are picked up by resume.
        """
        futures: List[Future] = []
        for task in tasks:
            try:
                futures.append(self.pool.submit(self.executor.run, task, rule))
            except RuntimeError as e:
                logger.warning(
                    f"Stopped dispatching bulk job {bulk_job_id} after "
                    f"{len(futures)} of {len(tasks)} cells: {e}",
                    extra={"bulk_job_id": bulk_job_id},
                )
                return futures
        logger.info(
            f"Dispatched {len(futures)} cells of bulk job {bulk_job_id}",
            extra={"bulk_job_id": bulk_job_id},
        )
        return futures

    def _fail_batch(self, db: Session, bulk_job: BulkJob, error: str) -> None:
        """Mark a batch failed before any cell ran and notify the requester.

        Sub-jobs stay pending; they are never executed and never counted.
        """
        (
            db.query(BulkJob)
            .filter(BulkJob.id == bulk_job.id, BulkJob.status == PENDING)
            .update(
                {BulkJob.status: FAILED, BulkJob.error: error, BulkJob.updated_at: func.now()},
                synchronize_session=False,
            )
        )
        db.commit()
        logger.warning(
            f"Bulk job {bulk_job.id} failed before dispatch: {error}",
            extra={"bulk_job_id": bulk_job.id},
        )
        self.notifier.notify(
            bulk_job.notify_target,
            NotificationKind.FAILED,
            BatchSummary(bulk_job_id=bulk_job.id, total_cells=bulk_job.total_cells, error=error),
        )
