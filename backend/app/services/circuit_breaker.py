"""Thread-safe circuit breaker for generation endpoints.

Prevents a batch from piling up timeouts when an LLM endpoint is down by
tracking consecutive failures and failing cells fast during outages.

States:
  CLOSED    -- normal operation, requests pass through
  OPEN      -- endpoint is down, requests fail immediately
  HALF_OPEN -- cooldown expired, one probe request allowed

Also provides ``run_with_timeout`` which combines a wall-clock timeout
with circuit-breaker bookkeeping so callers get a single helper.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeoutError
from enum import Enum
from typing import Any, Callable, Dict

logger = logging.getLogger(__name__)

DEFAULT_FAILURE_THRESHOLD = 5    # consecutive failures before opening
DEFAULT_COOLDOWN_SECONDS = 60    # seconds to wait before half-open probe


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerOpen(Exception):
    """Raised when the circuit is open and requests are blocked."""

    def __init__(self, endpoint: str, retry_after: float):
        self.endpoint = endpoint
        self.retry_after = retry_after
        super().__init__(
            f"Circuit breaker OPEN for '{endpoint}'. "
            f"Retry after {retry_after:.0f}s."
        )


class CircuitBreaker:
    """Per-endpoint circuit breaker.

    Thread-safe: bulk workers share one breaker per model endpoint.
    """

    def __init__(
        self,
        endpoint: str,
        failure_threshold: int = DEFAULT_FAILURE_THRESHOLD,
        cooldown_seconds: float = DEFAULT_COOLDOWN_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.endpoint = endpoint
        self._failure_threshold = failure_threshold
        self._cooldown_seconds = cooldown_seconds
        self._clock = clock

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time = 0.0
        self._lock = threading.Lock()

    @property
    def state(self) -> CircuitState:
        with self._lock:
            return self._state

    def check(self) -> None:
        """Check if a request is allowed. Raises CircuitBreakerOpen if not."""
        with self._lock:
            if self._state == CircuitState.CLOSED:
                return
            if self._state == CircuitState.OPEN:
                elapsed = self._clock() - self._last_failure_time
                if elapsed >= self._cooldown_seconds:
                    self._state = CircuitState.HALF_OPEN
                    logger.info("Circuit %s: OPEN -> HALF_OPEN (cooldown expired)", self.endpoint)
                    return
                raise CircuitBreakerOpen(self.endpoint, self._cooldown_seconds - elapsed)
            # HALF_OPEN: allow the probe request through
            return

    def record_success(self) -> None:
        with self._lock:
            if self._state == CircuitState.HALF_OPEN:
                logger.info("Circuit %s: HALF_OPEN -> CLOSED", self.endpoint)
            self._state = CircuitState.CLOSED
            self._failure_count = 0

    def record_failure(self) -> None:
        with self._lock:
            self._failure_count += 1
            self._last_failure_time = self._clock()
            if self._state == CircuitState.HALF_OPEN:
                self._state = CircuitState.OPEN
                logger.warning("Circuit %s: HALF_OPEN -> OPEN (probe failed)", self.endpoint)
            elif self._state == CircuitState.CLOSED and self._failure_count >= self._failure_threshold:
                self._state = CircuitState.OPEN
                logger.warning(
                    "Circuit %s: CLOSED -> OPEN (%d consecutive failures)",
                    self.endpoint, self._failure_count,
                )


class CircuitBreakerRegistry:
    """One breaker per endpoint, created on first use with shared thresholds."""

    def __init__(
        self,
        failure_threshold: int = DEFAULT_FAILURE_THRESHOLD,
        cooldown_seconds: float = DEFAULT_COOLDOWN_SECONDS,
    ) -> None:
        self._failure_threshold = failure_threshold
        self._cooldown_seconds = cooldown_seconds
        self._breakers: Dict[str, CircuitBreaker] = {}
        self._lock = threading.Lock()

    def get(self, endpoint: str) -> CircuitBreaker:
        with self._lock:
            if endpoint not in self._breakers:
                self._breakers[endpoint] = CircuitBreaker(
                    endpoint,
                    failure_threshold=self._failure_threshold,
                    cooldown_seconds=self._cooldown_seconds,
                )
            return self._breakers[endpoint]

    def reset(self) -> None:
        with self._lock:
            self._breakers.clear()


def run_with_timeout(
    fn: Callable[[], Any],
    timeout: float,
    breaker: CircuitBreaker,
) -> Any:
    """Run *fn* with a wall-clock timeout and circuit-breaker bookkeeping.

    Wraps *fn* in a single-thread executor to enforce the timeout. The
    executor is shut down without waiting, so a hung call is abandoned
    rather than blocking the caller past *timeout*.

    Raises:
        CircuitBreakerOpen: if the breaker is open.
        TimeoutError: if *fn* exceeds *timeout* seconds.
        Exception: any exception raised by *fn*.
    """
    breaker.check()

    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="generation-call")
    try:
        future = executor.submit(fn)
        try:
            result = future.result(timeout=timeout)
        except FuturesTimeoutError:
            breaker.record_failure()
            logger.error("%s timed out after %ss", breaker.endpoint, timeout)
            raise TimeoutError(f"{breaker.endpoint} exceeded {timeout}s timeout")
        except Exception:
            breaker.record_failure()
            raise
        breaker.record_success()
        return result
    finally:
        executor.shutdown(wait=False)
