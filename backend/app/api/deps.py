"""FastAPI dependencies for the job engine's collaborators.

The generation backend, notifier and worker pool are built once in the
application lifespan and stored on ``app.state``; routes receive them
through these functions so tests can swap in fakes with
``app.dependency_overrides``.
"""

from typing import Callable

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from ..database import SessionLocal
from ..services import (
    BulkJobSupervisor,
    CellWorkerPool,
    GenerationBackend,
    NotificationDispatcher,
)


def get_session_factory() -> Callable[[], Session]:
    """Factory worker threads use to open their own sessions."""
    return SessionLocal


def get_generation_backend(request: Request) -> GenerationBackend:
    return request.app.state.generation_backend


def get_notifier(request: Request) -> NotificationDispatcher:
    return request.app.state.notifier


def get_worker_pool(request: Request) -> CellWorkerPool:
    return request.app.state.worker_pool


def get_bulk_job_supervisor(
    session_factory: Callable[[], Session] = Depends(get_session_factory),
    backend: GenerationBackend = Depends(get_generation_backend),
    notifier: NotificationDispatcher = Depends(get_notifier),
    pool: CellWorkerPool = Depends(get_worker_pool),
) -> BulkJobSupervisor:
    return BulkJobSupervisor(session_factory, backend, notifier, pool)
