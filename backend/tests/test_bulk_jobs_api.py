"""Tests for the /api/jobs/bulk endpoints: start, poll, per-cell results."""

from app.models import BulkJob
from tests.conftest import make_grid, wait_for_idle, wait_for_terminal

NOTIFY = "ops@example.com"


def _people(db, rows=("Alice", "Bob", "Carol"), summary=None):
    grid = make_grid(
        db,
        columns={"Name": {}, "Summary": summary if summary is not None else {"ai_prompt": "Describe {{Name}}"}},
        rows=[{"Name": name} for name in rows],
    )
    return grid.columns["Summary"].id, [row["Summary"].id for row in grid.cells]


class TestStartAndPoll:

    def test_start_returns_202_and_completes(self, client, db, backend, pool):
        backend.fail_on = ("Bob",)
        column_id, cell_ids = _people(db)

        resp = client.post(
            "/api/jobs/bulk",
            json={"column_id": column_id, "cells": [{"cell_id": c} for c in cell_ids], "notify_target": NOTIFY},
        )
        assert resp.status_code == 202
        started = resp.json()
        assert started["total_cells"] == 3
        assert started["message"] == "Bulk processing started"

        state = wait_for_terminal(client, started["bulk_job_id"])
        wait_for_idle(pool)
        assert state["status"] == "completed"
        assert state["processed_cells"] == 3
        assert state["successful_cells"] == 2
        assert state["failed_cells"] == 1
        assert state["column_id"] == column_id

        cells = client.get(f"/api/jobs/bulk/{started['bulk_job_id']}/cells").json()
        assert [c["cell_id"] for c in cells] == cell_ids
        assert [c["status"] for c in cells] == ["completed", "failed", "completed"]

    def test_poll_never_shows_more_processed_than_total(self, client, db, backend, pool):
        backend.delay = 0.02
        column_id, cell_ids = _people(db, rows=tuple(f"Person {i}" for i in range(8)))

        bulk_job_id = client.post(
            "/api/jobs/bulk",
            json={"column_id": column_id, "cells": [{"cell_id": c} for c in cell_ids], "notify_target": NOTIFY},
        ).json()["bulk_job_id"]

        for _ in range(5):
            state = client.get(f"/api/jobs/bulk/{bulk_job_id}").json()
            assert state["total_cells"] == 8
            assert state["processed_cells"] == state["successful_cells"] + state["failed_cells"]
            assert state["processed_cells"] <= state["total_cells"]

        assert wait_for_terminal(client, bulk_job_id)["status"] == "completed"
        wait_for_idle(pool)

    def test_per_cell_inputs_override_column_prompt(self, client, db, backend, pool):
        column_id, cell_ids = _people(db, rows=("Alice",))

        bulk_job_id = client.post(
            "/api/jobs/bulk",
            json={
                "column_id": column_id,
                "cells": [{"cell_id": cell_ids[0], "input": "Where does {{Name}} live?"}],
                "notify_target": NOTIFY,
            },
        ).json()["bulk_job_id"]
        wait_for_terminal(client, bulk_job_id)
        wait_for_idle(pool)
        db.expire_all()  # the shared test session cached the cell before workers wrote it

        assert client.get(f"/api/cells/{cell_ids[0]}").json()["value"] == "generated: Where does Alice live?"

    def test_unknown_column_is_reported_on_the_batch(self, client, db, backend, notifier):
        _, cell_ids = _people(db)

        resp = client.post(
            "/api/jobs/bulk",
            json={"column_id": 777777, "cells": [{"cell_id": cell_ids[0]}], "notify_target": NOTIFY},
        )
        assert resp.status_code == 202

        state = client.get(f"/api/jobs/bulk/{resp.json()['bulk_job_id']}").json()
        assert state["status"] == "failed"
        assert state["error"] == "Column 777777 not found"
        assert backend.calls == 0
        assert notifier.kinds == ["failed"]


class TestValidation:

    def test_empty_cells_rejected(self, client, db):
        column_id, _ = _people(db)
        resp = client.post("/api/jobs/bulk", json={"column_id": column_id, "cells": [], "notify_target": NOTIFY})
        assert resp.status_code == 422

    def test_invalid_email_rejected(self, client, db):
        column_id, cell_ids = _people(db)
        resp = client.post(
            "/api/jobs/bulk",
            json={"column_id": column_id, "cells": [{"cell_id": cell_ids[0]}], "notify_target": "not-an-email"},
        )
        assert resp.status_code == 422

    def test_duplicate_cells_rejected(self, client, db):
        column_id, cell_ids = _people(db)
        resp = client.post(
            "/api/jobs/bulk",
            json={
                "column_id": column_id,
                "cells": [{"cell_id": cell_ids[0]}, {"cell_id": cell_ids[0]}],
                "notify_target": NOTIFY,
            },
        )
        assert resp.status_code == 422
        assert "appears more than once" in resp.text
        assert db.query(BulkJob).count() == 0


class TestNotFound:

    def test_unknown_bulk_job_returns_404(self, client):
        resp = client.get("/api/jobs/bulk/999999")
        assert resp.status_code == 404
        assert resp.json()["error"] == "BULK_JOB_NOT_FOUND"

    def test_unknown_bulk_job_cells_returns_404(self, client):
        assert client.get("/api/jobs/bulk/999999/cells").status_code == 404
