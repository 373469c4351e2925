"""Business logic services."""

from .bulk_job_service import BulkJobHandle, BulkJobSupervisor
from .cell_executor import CellExecutor, CellTask
from .generation_backend import GenerationBackend, LiteLLMGenerationBackend
from .job_service import CellJobService
from .notification_service import NotificationDispatcher, NotificationKind
from .progress_tracker import ProgressTracker
from .status_poller import StatusPoller
from .worker_pool import CellWorkerPool

__all__ = [
    "BulkJobHandle",
    "BulkJobSupervisor",
    "CellExecutor",
    "CellTask",
    "CellJobService",
    "CellWorkerPool",
    "GenerationBackend",
    "LiteLLMGenerationBackend",
    "NotificationDispatcher",
    "NotificationKind",
    "ProgressTracker",
    "StatusPoller",
]
