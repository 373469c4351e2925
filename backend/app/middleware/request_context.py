"""Request context middleware: request ids, timing, request logs and rate limiting.

One pass per request:
- Generate or propagate ``X-Request-ID`` (also bound to log records)
- Measure request duration (``X-Response-Time``)
- Log every request/response
- Enforce per-client token buckets. Job submissions (which start generation
  work) draw from their own, smaller bucket so that a client polling status
  once a second cannot starve itself of submissions and vice versa.

The token bucket is a pure function ``check_rate_limit`` tested on its own.
"""

import logging
import threading
import time
import uuid
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from ..core.config import settings
from ..core.logging_config import request_id_var

logger = logging.getLogger(__name__)

# Bucket state: {bucket_key: (available_tokens, last_refill_timestamp)}
_rate_buckets: dict[str, tuple[float, float]] = {}
_rate_lock = threading.Lock()

# Periodic eviction bounds memory when client addresses rotate
_rate_call_count = 0
_EVICT_EVERY = 100
_EVICT_AGE = 120.0


def check_rate_limit(
    bucket: dict[str, tuple[float, float]],
    key: str,
    max_per_minute: int,
    now: Optional[float] = None,
) -> tuple[bool, float]:
    """Check whether a request from *key* is allowed under the token bucket.

    Args:
        bucket: Mutable dict holding per-key state. Modified in place.
        key: Bucket identifier (client address, optionally prefixed by class).
        max_per_minute: Sustained rate cap; also the burst size. 0 disables.
        now: Current timestamp (injectable for testing). Defaults to ``time.monotonic()``.

    Returns:
        ``(allowed, retry_after)``: *retry_after* is 0.0 when allowed, otherwise
        the seconds until the next token becomes available.
    """
    global _rate_call_count

    if max_per_minute <= 0:
        return True, 0.0

    if now is None:
        now = time.monotonic()

    _rate_call_count += 1
    if _rate_call_count % _EVICT_EVERY == 0:
        cutoff = now - _EVICT_AGE
        for k in [k for k, (_, ts) in bucket.items() if ts < cutoff]:
            del bucket[k]

    refill_rate = max_per_minute / 60.0

    if key in bucket:
        tokens, last_refill = bucket[key]
        tokens = min(max_per_minute, tokens + (now - last_refill) * refill_rate)
    else:
        tokens = float(max_per_minute)

    if tokens >= 1.0:
        bucket[key] = (tokens - 1.0, now)
        return True, 0.0

    bucket[key] = (tokens, now)
    return False, (1.0 - tokens) / refill_rate


# Health probes and API docs are never throttled
_EXEMPT_PATHS = frozenset({"/", "/health", "/docs", "/redoc", "/openapi.json"})


def _client_key(request: Request) -> str:
    """Client address, honouring ``X-Forwarded-For`` behind a proxy."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client:
        return request.client.host
    return "unknown"


def _is_submission(request: Request) -> bool:
    return request.method == "POST" and request.url.path.rstrip("/") in ("/api/jobs", "/api/jobs/bulk")


def bucket_for(request: Request) -> tuple[str, int]:
    """(bucket key, per-minute limit) that this request draws from."""
    client = _client_key(request)
    if _is_submission(request):
        return f"submit:{client}", settings.submission_rate_limit_per_minute
    return client, settings.rate_limit_per_minute


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Single middleware handling request id, timing, logging and rate limiting."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        rid = request.headers.get("x-request-id") or uuid.uuid4().hex[:16]
        request_id_var.set(rid)

        if request.url.path not in _EXEMPT_PATHS:
            key, limit = bucket_for(request)
            with _rate_lock:
                allowed, retry_after = check_rate_limit(_rate_buckets, key, limit)
            if not allowed:
                logger.warning(
                    "Rate limit exceeded",
                    extra={"client": key, "path": request.url.path, "retry_after": round(retry_after, 1)},
                )
                return JSONResponse(
                    status_code=429,
                    content={
                        "error": "RATE_LIMITED",
                        "message": "Too many requests",
                        "details": {"retry_after": round(retry_after, 1)},
                    },
                    headers={
                        "Retry-After": str(int(retry_after) + 1),
                        "X-Request-ID": rid,
                    },
                )

        start = time.monotonic()
        response = await call_next(request)
        duration_ms = round((time.monotonic() - start) * 1000, 1)

        response.headers["X-Request-ID"] = rid
        response.headers["X-Response-Time"] = f"{duration_ms}ms"

        # Status polls are frequent; keep them out of INFO
        level = logging.DEBUG if request.method == "GET" and response.status_code < 400 else logging.INFO
        logger.log(
            level,
            f"{request.method} {request.url.path} {response.status_code}",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            },
        )
        return response
