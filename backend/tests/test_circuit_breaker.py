"""
Unit tests for the circuit breaker guarding the model API and Redis.
"""
import asyncio

import pytest

from bizfinder.core.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerOpenError,
    CircuitState,
)


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _fail():
    raise RuntimeError("boom")


def _trip(cb: CircuitBreaker, failures: int) -> None:
    for _ in range(failures):
        with pytest.raises(RuntimeError):
            cb.call(_fail)


def test_circuit_breaker_closed_state():
    """Successful calls pass through a closed circuit."""
    cb = CircuitBreaker("test", failure_threshold=0.5, time_window_seconds=60)

    assert cb.state == CircuitState.CLOSED
    assert cb.call(lambda: "success") == "success"


def test_circuit_breaker_needs_minimum_requests():
    """A few failures below the minimum sample size do not open the circuit."""
    cb = CircuitBreaker("test", min_requests_for_threshold=5, clock=FakeClock())

    _trip(cb, 4)

    assert cb.state == CircuitState.CLOSED


def test_circuit_breaker_opens_on_error_rate():
    """Reaching the error-rate threshold opens the circuit and rejects calls."""
    cb = CircuitBreaker(
        "test",
        failure_threshold=0.5,
        min_requests_for_threshold=4,
        clock=FakeClock(),
    )

    cb.call(lambda: "ok")
    cb.call(lambda: "ok")
    _trip(cb, 2)

    assert cb.state == CircuitState.OPEN
    with pytest.raises(CircuitBreakerOpenError):
        cb.call(lambda: "should not execute")


def test_circuit_breaker_half_open_then_closed():
    """After the open period, successful probes close the circuit again."""
    clock = FakeClock()
    cb = CircuitBreaker(
        "test",
        min_requests_for_threshold=2,
        open_duration_seconds=30,
        half_open_max_probes=2,
        clock=clock,
    )
    _trip(cb, 2)
    assert cb.state == CircuitState.OPEN

    clock.advance(31)
    assert cb.state == CircuitState.HALF_OPEN

    cb.call(lambda: "probe")
    assert cb.state == CircuitState.HALF_OPEN
    cb.call(lambda: "probe")
    assert cb.state == CircuitState.CLOSED


def test_circuit_breaker_probe_failure_reopens():
    clock = FakeClock()
    cb = CircuitBreaker("test", min_requests_for_threshold=2, open_duration_seconds=10, clock=clock)
    _trip(cb, 2)
    clock.advance(11)

    _trip(cb, 1)

    assert cb.state == CircuitState.OPEN


def test_circuit_breaker_window_forgets_old_failures():
    """Failures outside the sliding window do not count toward the error rate."""
    clock = FakeClock()
    cb = CircuitBreaker(
        "test",
        min_requests_for_threshold=3,
        time_window_seconds=60,
        clock=clock,
    )
    _trip(cb, 2)
    clock.advance(61)
    _trip(cb, 1)

    assert cb.state == CircuitState.CLOSED


def test_circuit_breaker_async():
    """Async callables are protected the same way."""
    cb = CircuitBreaker("test")

    async def async_func():
        return "async success"

    result = asyncio.run(cb.call_async(async_func))
    assert result == "async success"


def test_circuit_breaker_metrics():
    """get_metrics reports state and recent error rate."""
    cb = CircuitBreaker("test", clock=FakeClock())

    cb.call(lambda: "success")
    _trip(cb, 1)

    metrics = cb.get_metrics()
    assert metrics["name"] == "test"
    assert metrics["state"] == "closed"
    assert metrics["recent_requests"] == 2
    assert metrics["recent_failures"] == 1
    assert metrics["error_rate"] == pytest.approx(0.5)
