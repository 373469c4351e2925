"""Tests for the single-cell job endpoints (/api/jobs and /api/cells/{id}/jobs)."""

from tests.conftest import make_grid


def _summary_cell(db, name="Alice"):
    grid = make_grid(db, columns={"Name": {}, "Summary": {}}, rows=[{"Name": name}])
    return grid.cells[0]["Summary"].id


class TestSubmitJob:

    def test_prompt_job_completes_and_writes_cell(self, client, db):
        cell_id = _summary_cell(db)

        resp = client.post("/api/jobs", json={"cell_id": cell_id, "input": "Describe {{Name}}"})
        assert resp.status_code == 201
        job = resp.json()
        assert job["status"] == "completed"
        assert job["result"] == "generated: Describe Alice"
        assert job["prompt"] == "Describe {{Name}}"
        assert job["error"] is None

        cell = client.get(f"/api/cells/{cell_id}").json()
        assert cell["value"] == "generated: Describe Alice"
        assert cell["is_ai_generated"] is True

    def test_web_search_flag_reaches_backend(self, client, db, backend):
        cell_id = _summary_cell(db)
        client.post("/api/jobs", json={"cell_id": cell_id, "input": "News on {{Name}}", "use_web_search": True})
        assert backend.prompt_calls == [("News on Alice", True)]

    def test_generation_failure_is_recorded_on_job(self, client, db, backend):
        backend.fail_on = ("Alice",)
        cell_id = _summary_cell(db)

        resp = client.post("/api/jobs", json={"cell_id": cell_id, "input": "Describe {{Name}}"})
        assert resp.status_code == 201
        job = resp.json()
        assert job["status"] == "failed"
        assert job["result"] is None
        assert "backend rejected prompt" in job["error"]

        cell = client.get(f"/api/cells/{cell_id}").json()
        assert cell["value"] is None
        assert cell["is_ai_generated"] is False

    def test_script_job(self, client, db, backend):
        cell_id = _summary_cell(db)

        resp = client.post(
            "/api/jobs",
            json={"cell_id": cell_id, "input": "Head of Marketing", "script_id": "management-labels"},
        )
        job = resp.json()
        assert job["status"] == "completed"
        assert job["result"] == "HEAD_OF"
        assert job["script_id"] == "management-labels"
        assert backend.prompt_calls == []

    def test_unknown_script_fails_the_job(self, client, db):
        cell_id = _summary_cell(db)

        job = client.post(
            "/api/jobs", json={"cell_id": cell_id, "input": "CEO", "script_id": "no-such-script"},
        ).json()
        assert job["status"] == "failed"
        assert job["error"] == "Script no-such-script not found"

    def test_missing_cell_returns_404_without_job(self, client):
        resp = client.post("/api/jobs", json={"cell_id": 999999, "input": "Hello"})
        assert resp.status_code == 404
        assert resp.json()["error"] == "CELL_NOT_FOUND"

        assert client.get("/api/jobs", params={"cell_id": 999999}).json() == []

    def test_blank_input_is_rejected(self, client, db):
        cell_id = _summary_cell(db)
        resp = client.post("/api/jobs", json={"cell_id": cell_id, "input": "   "})
        assert resp.status_code == 422


class TestJobQueries:

    def test_get_job_by_id(self, client, db):
        cell_id = _summary_cell(db)
        job_id = client.post("/api/jobs", json={"cell_id": cell_id, "input": "Hi"}).json()["id"]

        resp = client.get(f"/api/jobs/{job_id}")
        assert resp.status_code == 200
        assert resp.json()["id"] == job_id

    def test_get_unknown_job_returns_404(self, client):
        resp = client.get("/api/jobs/999999")
        assert resp.status_code == 404
        assert resp.json()["error"] == "JOB_NOT_FOUND"

    def test_list_requires_cell_id(self, client):
        resp = client.get("/api/jobs")
        assert resp.status_code == 400
        assert resp.json()["error"] == "VALIDATION_ERROR"

    def test_list_is_oldest_first(self, client, db):
        cell_id = _summary_cell(db)
        first = client.post("/api/jobs", json={"cell_id": cell_id, "input": "one"}).json()["id"]
        second = client.post("/api/jobs", json={"cell_id": cell_id, "input": "two"}).json()["id"]

        jobs = client.get("/api/jobs", params={"cell_id": cell_id}).json()
        assert [job["id"] for job in jobs] == [first, second]

    def test_latest_job_for_cell(self, client, db):
        cell_id = _summary_cell(db)
        client.post("/api/jobs", json={"cell_id": cell_id, "input": "one"})
        second = client.post("/api/jobs", json={"cell_id": cell_id, "input": "two"}).json()["id"]

        resp = client.get(f"/api/cells/{cell_id}/jobs/latest")
        assert resp.status_code == 200
        assert resp.json()["id"] == second

    def test_latest_without_jobs_returns_404(self, client, db):
        cell_id = _summary_cell(db)
        resp = client.get(f"/api/cells/{cell_id}/jobs/latest")
        assert resp.status_code == 404
