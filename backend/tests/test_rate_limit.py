"""Tests for the rate limiting pure function and middleware integration."""

from starlette.requests import Request

from app.core.config import settings
from app.middleware.request_context import bucket_for, check_rate_limit


class TestCheckRateLimit:
    """Unit tests for the pure function, without middleware or HTTP."""

    def test_allows_within_limit(self):
        bucket: dict = {}
        allowed, retry = check_rate_limit(bucket, "client-a", max_per_minute=60, now=0.0)
        assert allowed is True
        assert retry == 0.0

    def test_denies_after_exhaustion(self):
        bucket: dict = {}
        now = 0.0
        # Exhaust all tokens
        for _ in range(60):
            check_rate_limit(bucket, "client-a", max_per_minute=60, now=now)

        allowed, retry = check_rate_limit(bucket, "client-a", max_per_minute=60, now=now)
        assert allowed is False
        assert retry > 0

    def test_refills_over_time(self):
        bucket: dict = {}
        # Exhaust tokens at t=0
        for _ in range(60):
            check_rate_limit(bucket, "client-a", max_per_minute=60, now=0.0)

        # 2 seconds later: should have refilled ~2 tokens
        allowed, _ = check_rate_limit(bucket, "client-a", max_per_minute=60, now=2.0)
        assert allowed is True

    def test_separate_keys_independent(self):
        bucket: dict = {}
        for _ in range(60):
            check_rate_limit(bucket, "client-a", max_per_minute=60, now=0.0)

        # Different client should still have tokens
        allowed, _ = check_rate_limit(bucket, "client-b", max_per_minute=60, now=0.0)
        assert allowed is True

    def test_zero_limit_always_allows(self):
        bucket: dict = {}
        allowed, _ = check_rate_limit(bucket, "any", max_per_minute=0, now=0.0)
        assert allowed is True


def _request(method: str, path: str, client_host: str = "10.0.0.1", headers=None) -> Request:
    return Request({
        "type": "http",
        "method": method,
        "path": path,
        "root_path": "",
        "scheme": "http",
        "server": ("testserver", 80),
        "query_string": b"",
        "headers": headers or [],
        "client": (client_host, 50000),
    })


class TestBucketFor:
    """Submissions and everything else draw from separate buckets."""

    def test_job_submission_uses_submission_bucket(self, monkeypatch):
        monkeypatch.setattr(settings, "submission_rate_limit_per_minute", 7)
        assert bucket_for(_request("POST", "/api/jobs")) == ("submit:10.0.0.1", 7)
        assert bucket_for(_request("POST", "/api/jobs/bulk")) == ("submit:10.0.0.1", 7)

    def test_polling_uses_general_bucket(self, monkeypatch):
        monkeypatch.setattr(settings, "rate_limit_per_minute", 99)
        assert bucket_for(_request("GET", "/api/jobs/bulk/1")) == ("10.0.0.1", 99)
        assert bucket_for(_request("PUT", "/api/cells/1")) == ("10.0.0.1", 99)

    def test_forwarded_for_header_identifies_client(self):
        request = _request("GET", "/api/cells/1", headers=[(b"x-forwarded-for", b"203.0.113.9, 10.0.0.1")])
        assert bucket_for(request)[0] == "203.0.113.9"


class TestRateLimitMiddleware:

    def test_submissions_are_throttled_separately(self, client, monkeypatch):
        monkeypatch.setattr(settings, "submission_rate_limit_per_minute", 1)

        first = client.post("/api/jobs", json={"cell_id": 999999, "input": "Hello"})
        assert first.status_code == 404

        second = client.post("/api/jobs", json={"cell_id": 999999, "input": "Hello"})
        assert second.status_code == 429
        assert second.json()["error"] == "RATE_LIMITED"
        assert int(second.headers["retry-after"]) >= 1

        # Status reads are not affected by the exhausted submission bucket
        assert client.get("/api/jobs/999999").status_code == 404

    def test_health_is_exempt(self, client, monkeypatch):
        monkeypatch.setattr(settings, "rate_limit_per_minute", 1)
        for _ in range(3):
            assert client.get("/health").status_code == 200
