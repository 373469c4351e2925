"""HTTP client for the Gridfill REST API."""

import asyncio
import logging
import os
import time
from typing import Any, Optional

import httpx

logger = logging.getLogger(__name__)

# Retry configuration for transient failures (connection errors, 5xx, 429).
MAX_RETRIES = 3
RETRY_BASE_DELAY = 1.0  # seconds; exponential: 1s, 2s, 4s

# POST /api/jobs holds the connection while the server generates; must
# exceed the server's GENERATION_TIMEOUT_SECONDS (default 120).
DEFAULT_SUBMIT_TIMEOUT = 150.0

# Methods safe to repeat after the server may already have acted.
IDEMPOTENT_METHODS = frozenset({"GET", "HEAD", "OPTIONS", "PUT", "DELETE"})

DEFAULT_POLL_INTERVAL = 1.0
TERMINAL_STATUSES = frozenset({"completed", "failed"})


class PollTimeoutError(Exception):
    """A job did not reach a terminal status within the allowed time."""

    def __init__(self, what: str, last_state: dict[str, Any], timeout: float):
        self.last_state = last_state
        super().__init__(f"{what} still {last_state.get('status')!r} after {timeout:.0f}s")


class GridfillClient:
    """Async client wrapping the Gridfill backend REST API.

    Configuration via arguments or environment variables:
        GRIDFILL_API_URL     -- Backend base URL (default: http://localhost:8000)
        GRIDFILL_API_TIMEOUT -- Request timeout in seconds (default: 30)
        GRIDFILL_SUBMIT_TIMEOUT -- Timeout for single-cell submissions (default: 150)

    ``transport`` is passed to httpx; tests inject ``httpx.MockTransport``.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        retry_base_delay: float = RETRY_BASE_DELAY,
        submit_timeout: Optional[float] = None,
    ) -> None:
        self.base_url = base_url or os.environ.get("GRIDFILL_API_URL", "http://localhost:8000")
        self.timeout = timeout if timeout is not None else float(os.environ.get("GRIDFILL_API_TIMEOUT", "30"))
        self.retry_base_delay = retry_base_delay
        self.submit_timeout = (
            submit_timeout if submit_timeout is not None
            else float(os.environ.get("GRIDFILL_SUBMIT_TIMEOUT", str(DEFAULT_SUBMIT_TIMEOUT)))
        )
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def _request_with_retry(
        self,
        method: str,
        path: str,
        **kwargs: Any,
    ) -> httpx.Response:
        """Execute an HTTP request with retry on transient failures.

        Idempotent methods retry on connection errors, timeouts, 429 and 5xx
        responses with exponential backoff. Other methods (POST) retry only
        when the server cannot have acted on the request: a failed connect
        or a 429 from the rate limiter. Other client errors (4xx) raise
        immediately.
        """
        client = await self._get_client()
        idempotent = method.upper() in IDEMPOTENT_METHODS
        last_exc: Exception | None = None

        for attempt in range(MAX_RETRIES):
            try:
                resp = await client.request(method, path, **kwargs)
                if resp.status_code < 500 and resp.status_code != 429:
                    resp.raise_for_status()
                    return resp
                last_exc = httpx.HTTPStatusError(
                    f"Server error {resp.status_code}",
                    request=resp.request,
                    response=resp,
                )
                if resp.status_code != 429 and not idempotent:
                    raise last_exc
            except httpx.ConnectError as exc:
                last_exc = exc
            except httpx.TimeoutException as exc:
                if not idempotent:
                    raise
                last_exc = exc

            if attempt < MAX_RETRIES - 1:
                delay = self.retry_base_delay * (2 ** attempt)
                logger.warning(
                    "Request %s %s failed (attempt %d/%d), retrying in %.1fs: %s",
                    method, path, attempt + 1, MAX_RETRIES, delay, last_exc,
                )
                await asyncio.sleep(delay)

        raise last_exc  # type: ignore[misc]

    async def submit_cell_job(
        self,
        cell_id: int,
        input_text: str,
        script_id: Optional[str] = None,
        use_web_search: bool = False,
    ) -> dict[str, Any]:
        """Generate one cell synchronously. Maps to POST /api/jobs.

        Uses ``submit_timeout`` because the server answers only after the
        generation call returns. A timeout is not retried: the job may
        already exist, so check ``get_latest_job`` instead of resubmitting.
        """
        payload: dict[str, Any] = {"cell_id": cell_id, "input": input_text, "use_web_search": use_web_search}
        if script_id:
            payload["script_id"] = script_id
        resp = await self._request_with_retry(
            "POST",
            "/api/jobs",
            json=payload,
            timeout=max(self.timeout, self.submit_timeout),
        )
        return resp.json()

    async def get_job(self, job_id: int) -> dict[str, Any]:
        """Maps to GET /api/jobs/{job_id}."""
        resp = await self._request_with_retry("GET", f"/api/jobs/{job_id}")
        return resp.json()

    async def get_latest_job(self, cell_id: int) -> dict[str, Any]:
        """Maps to GET /api/cells/{cell_id}/jobs/latest."""
        resp = await self._request_with_retry("GET", f"/api/cells/{cell_id}/jobs/latest")
        return resp.json()

    async def start_bulk_job(
        self,
        column_id: int,
        cells: list[dict[str, Any]],
        notify_target: str,
        prompt: Optional[str] = None,
        use_web_search: Optional[bool] = None,
    ) -> dict[str, Any]:
        """Start a batch. Maps to POST /api/jobs/bulk.

        ``cells`` items are ``{"cell_id": int, "input": str | None}``.
        """
        payload: dict[str, Any] = {"column_id": column_id, "cells": cells, "notify_target": notify_target}
        if prompt is not None:
            payload["prompt"] = prompt
        if use_web_search is not None:
            payload["use_web_search"] = use_web_search
        resp = await self._request_with_retry("POST", "/api/jobs/bulk", json=payload)
        return resp.json()

    async def get_bulk_job(self, bulk_job_id: int) -> dict[str, Any]:
        """Maps to GET /api/jobs/bulk/{bulk_job_id}."""
        resp = await self._request_with_retry("GET", f"/api/jobs/bulk/{bulk_job_id}")
        return resp.json()

    async def list_bulk_job_cells(self, bulk_job_id: int) -> list[dict[str, Any]]:
        """Maps to GET /api/jobs/bulk/{bulk_job_id}/cells."""
        resp = await self._request_with_retry("GET", f"/api/jobs/bulk/{bulk_job_id}/cells")
        return resp.json()

    async def _poll(
        self,
        what: str,
        fetch,
        poll_interval: float,
        timeout: Optional[float],
        on_progress=None,
    ) -> dict[str, Any]:
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            state = await fetch()
            if on_progress is not None:
                on_progress(state)
            if state.get("status") in TERMINAL_STATUSES:
                return state
            if deadline is not None and time.monotonic() >= deadline:
                raise PollTimeoutError(what, state, timeout)
            await asyncio.sleep(poll_interval)

    async def wait_for_bulk_job(
        self,
        bulk_job_id: int,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        timeout: Optional[float] = None,
        on_progress=None,
    ) -> dict[str, Any]:
        """Poll a batch until it is completed or failed.

        Args:
            on_progress: Optional callback receiving each polled state.

        Raises:
            PollTimeoutError: if *timeout* elapses first.
        """
        return await self._poll(
            f"Bulk job {bulk_job_id}",
            lambda: self.get_bulk_job(bulk_job_id),
            poll_interval,
            timeout,
            on_progress,
        )

    async def wait_for_job(
        self,
        job_id: int,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        timeout: Optional[float] = None,
    ) -> dict[str, Any]:
        """Poll a single job until it is completed or failed."""
        return await self._poll(f"Job {job_id}", lambda: self.get_job(job_id), poll_interval, timeout)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def __aenter__(self) -> "GridfillClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()
