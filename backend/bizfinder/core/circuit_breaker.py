"""
Circuit breaker for remote dependencies (model API, Redis).

- Opens when the error rate over a sliding window reaches the threshold
  (once enough calls have been observed).
- Stays open for open_duration_seconds, then lets a few probe calls through
  (half-open).
- Probe successes close the circuit; a probe failure reopens it.
"""
import time
from collections import deque
from enum import Enum
from threading import Lock
from typing import Any, Callable, Deque, Optional, Tuple

from bizfinder.core.logging import get_logger

logger = get_logger(__name__)


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerOpenError(Exception):
    """Raised when the circuit rejects a call."""


class CircuitBreaker:
    """Error-rate circuit breaker usable from sync and async code."""

    def __init__(
        self,
        name: str,
        failure_threshold: float = 0.5,
        time_window_seconds: float = 60,
        open_duration_seconds: float = 30,
        min_requests_for_threshold: int = 10,
        half_open_max_probes: int = 3,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.time_window_seconds = time_window_seconds
        self.open_duration_seconds = open_duration_seconds
        self.min_requests_for_threshold = min_requests_for_threshold
        self.half_open_max_probes = half_open_max_probes
        self._clock = clock

        self._lock = Lock()
        self._state = CircuitState.CLOSED
        self._history: Deque[Tuple[float, bool]] = deque()
        self._opened_at: Optional[float] = None
        self._probes_in_flight = 0
        self._probe_successes = 0

    @property
    def state(self) -> CircuitState:
        with self._lock:
            self._refresh(self._clock())
            return self._state

    def _refresh(self, now: float) -> None:
        cutoff = now - self.time_window_seconds
        while self._history and self._history[0][0] < cutoff:
            self._history.popleft()

        if self._state == CircuitState.OPEN and self._opened_at is not None:
            if now - self._opened_at >= self.open_duration_seconds:
                self._state = CircuitState.HALF_OPEN
                self._probes_in_flight = 0
                self._probe_successes = 0
                logger.info("circuit_breaker_half_open", circuit_breaker=self.name)

    def _open(self, now: float, reason: str) -> None:
        self._state = CircuitState.OPEN
        self._opened_at = now
        self._history.clear()
        logger.warning("circuit_breaker_opened", circuit_breaker=self.name, reason=reason)

    def _before_call(self) -> None:
        with self._lock:
            self._refresh(self._clock())
            if self._state == CircuitState.OPEN:
                raise CircuitBreakerOpenError(f"Circuit breaker {self.name} is open")
            if self._state == CircuitState.HALF_OPEN:
                if self._probes_in_flight >= self.half_open_max_probes:
                    raise CircuitBreakerOpenError(
                        f"Circuit breaker {self.name} is half-open and probing"
                    )
                self._probes_in_flight += 1

    def _after_call(self, success: bool) -> None:
        with self._lock:
            now = self._clock()
            if self._state == CircuitState.HALF_OPEN:
                self._probes_in_flight = max(0, self._probes_in_flight - 1)
                if not success:
                    self._open(now, "probe_failed")
                    return
                self._probe_successes += 1
                if self._probe_successes >= self.half_open_max_probes:
                    self._state = CircuitState.CLOSED
                    self._opened_at = None
                    logger.info("circuit_breaker_closed", circuit_breaker=self.name)
                return

            self._history.append((now, success))
            self._refresh(now)
            total = len(self._history)
            if self._state == CircuitState.CLOSED and total >= self.min_requests_for_threshold:
                failures = sum(1 for _, ok in self._history if not ok)
                if failures / total >= self.failure_threshold:
                    self._open(now, "error_rate")

    def call(self, func: Callable, *args, **kwargs) -> Any:
        """Run a sync callable under circuit protection."""
        self._before_call()
        try:
            result = func(*args, **kwargs)
        except Exception:
            self._after_call(False)
            raise
        self._after_call(True)
        return result

    async def call_async(self, func: Callable, *args, **kwargs) -> Any:
        """Await an async callable under circuit protection."""
        self._before_call()
        try:
            result = await func(*args, **kwargs)
        except Exception:
            self._after_call(False)
            raise
        self._after_call(True)
        return result

    def get_metrics(self) -> dict:
        with self._lock:
            self._refresh(self._clock())
            total = len(self._history)
            failures = sum(1 for _, ok in self._history if not ok)
            return {
                "name": self.name,
                "state": self._state.value,
                "recent_requests": total,
                "recent_failures": failures,
                "error_rate": failures / total if total else 0.0,
                "opened_at": self._opened_at,
            }
