"""Shared test fixtures for the Gridfill backend test suite.

Tests run against a SQLite database file in a temporary directory, so
worker threads opening their own sessions see the same data as the test.
Every table is emptied before each test.

The generation backend and notifier are replaced with in-memory fakes;
the worker pool is real (bounded, small) so concurrency paths are exercised.
"""

import os
import tempfile

# Point the app at a throwaway database before any app imports.
_TEST_DB_DIR = tempfile.mkdtemp(prefix="gridfill-tests-")
os.environ["DATABASE_URL"] = os.environ.get(
    "TEST_DATABASE_URL",
    f"sqlite:///{os.path.join(_TEST_DB_DIR, 'gridfill_test.db')}",
)
os.environ["LOG_FORMAT"] = "text"
os.environ["RESUME_PENDING_BULK_JOBS"] = "false"
os.environ["RESEND_API_KEY"] = ""
# Status polling in tests is far faster than a real client polls
os.environ["RATE_LIMIT_PER_MINUTE"] = "0"
os.environ["SUBMISSION_RATE_LIMIT_PER_MINUTE"] = "0"

import json
import threading
import time
from types import SimpleNamespace
from typing import Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from app.api.deps import get_generation_backend, get_notifier, get_worker_pool
from app.column_scripts import get_column_script
from app.database import Base, get_db, SessionLocal
from app.main import app
from app.middleware.request_context import _rate_buckets
from app.models import DataTable, GridColumn, Cell, TERMINAL_STATUSES
from app.services import BulkJobSupervisor, CellExecutor, CellWorkerPool


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeBackend:
    """Generation backend that echoes prompts and fails on request.

    Prompts containing any of ``fail_on`` raise RuntimeError. Scripts run
    from the real registry. Thread-safe call log.
    """

    def __init__(self, fail_on: tuple = (), delay: float = 0.0):
        self.fail_on = tuple(fail_on)
        self.delay = delay
        self.prompt_calls: List[tuple] = []
        self.script_calls: List[tuple] = []
        self._lock = threading.Lock()

    @property
    def calls(self) -> int:
        with self._lock:
            return len(self.prompt_calls) + len(self.script_calls)

    def run_prompt(self, prompt_text: str, use_augmented_search: bool) -> str:
        with self._lock:
            self.prompt_calls.append((prompt_text, use_augmented_search))
        if self.delay:
            time.sleep(self.delay)
        if any(marker in prompt_text for marker in self.fail_on):
            raise RuntimeError(f"backend rejected prompt: {prompt_text}")
        return f"generated: {prompt_text}"

    def run_script(self, script_id: str, input_value: str, row_context: Dict[str, str]) -> str:
        with self._lock:
            self.script_calls.append((script_id, input_value))
        return get_column_script(script_id).execute(input_value, row_context)


class RecordingNotifier:
    """Notification dispatcher that records instead of sending."""

    def __init__(self):
        self.sent: List[tuple] = []
        self._lock = threading.Lock()

    def notify(self, target, kind, summary):
        with self._lock:
            self.sent.append((target, kind, summary))
        return None

    @property
    def kinds(self) -> List[str]:
        with self._lock:
            return [kind.value for _, kind, _ in self.sent]

    def close(self, wait: bool = True) -> None:
        pass


# ---------------------------------------------------------------------------
# Database fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _clean_tables():
    """Empty all tables before each test (children first for foreign keys)."""
    db = SessionLocal()
    try:
        for table in reversed(Base.metadata.sorted_tables):
            db.execute(table.delete())
        db.commit()
    finally:
        db.close()
    yield


@pytest.fixture()
def db():
    """Per-test database session."""
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture()
def backend():
    return FakeBackend()


@pytest.fixture()
def notifier():
    return RecordingNotifier()


@pytest.fixture()
def pool():
    worker_pool = CellWorkerPool(max_workers=4)
    yield worker_pool
    worker_pool.shutdown(wait=True)


@pytest.fixture()
def supervisor(backend, notifier, pool):
    executor = CellExecutor(SessionLocal, backend, notifier, sleep=lambda _: None)
    return BulkJobSupervisor(SessionLocal, backend, notifier, pool, executor=executor)


@pytest.fixture()
def client(db, backend, notifier, pool):
    """TestClient with the session, backend, notifier and pool overridden."""

    def _override_get_db():
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_generation_backend] = lambda: backend
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_worker_pool] = lambda: pool
    _rate_buckets.clear()  # Reset rate limiter so tests don't hit 429
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Grid factory
# ---------------------------------------------------------------------------


def make_grid(
    db,
    columns: Dict[str, dict],
    rows: List[Dict[str, Optional[str]]],
    name: str = "People",
) -> SimpleNamespace:
    """Create a table with the given columns and rows.

    Args:
        columns: heading -> extra GridColumn fields (ai_prompt, script_to_populate, ...).
            A ``required_fields`` list is stored as script_required_fields JSON.
        rows: one dict per row, heading -> value (missing headings get NULL cells).

    Returns:
        Namespace with ``table``, ``columns`` (heading -> GridColumn) and
        ``cells`` (list per row of heading -> Cell).
    """
    table = DataTable(name=name)
    db.add(table)
    db.flush()

    created_columns = {}
    for heading, fields in columns.items():
        fields = dict(fields)
        required = fields.pop("required_fields", None)
        if required is not None:
            fields["script_required_fields"] = json.dumps(
                [{"field": f, "description": f"{f} value"} for f in required]
            )
        column = GridColumn(table_id=table.id, heading=heading, **fields)
        db.add(column)
        created_columns[heading] = column
    db.flush()

    created_cells = []
    for row_index, row in enumerate(rows):
        row_cells = {}
        for heading, column in created_columns.items():
            cell = Cell(column_id=column.id, row_index=row_index, value=row.get(heading))
            db.add(cell)
            row_cells[heading] = cell
        created_cells.append(row_cells)
    db.commit()

    return SimpleNamespace(table=table, columns=created_columns, cells=created_cells)


def wait_for_terminal(client, bulk_job_id: int, timeout: float = 10.0) -> dict:
    """Poll the bulk status endpoint until the batch is completed or failed."""
    deadline = time.monotonic() + timeout
    while True:
        state = client.get(f"/api/jobs/bulk/{bulk_job_id}").json()
        if state["status"] in TERMINAL_STATUSES or time.monotonic() >= deadline:
            return state
        time.sleep(0.05)


def wait_for_idle(pool: CellWorkerPool, timeout: float = 10.0) -> None:
    """Wait until every task submitted to the pool has finished."""
    deadline = time.monotonic() + timeout
    while pool.pending and time.monotonic() < deadline:
        time.sleep(0.02)
