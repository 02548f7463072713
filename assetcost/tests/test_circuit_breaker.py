"""
Tests for the circuit breaker.
"""

from datetime import datetime, timedelta

from assetcost.resilience.circuit_breaker import CircuitBreaker, CircuitState, get_circuit_breaker


def test_opens_after_threshold():
    """Consecutive failures open the circuit."""
    breaker = CircuitBreaker('test', failure_threshold=2, open_duration=60)

    breaker.record_failure()
    assert breaker.allow_request()
    breaker.record_failure()

    assert breaker.state == CircuitState.OPEN
    assert not breaker.allow_request()


def test_success_resets_failures():
    """A success in between keeps the circuit closed."""
    breaker = CircuitBreaker('test', failure_threshold=2, open_duration=60)

    breaker.record_failure()
    breaker.record_success()
    breaker.record_failure()

    assert breaker.state == CircuitState.CLOSED


def test_half_open_allows_single_trial():
    """After the open period exactly one trial call goes through."""
    breaker = CircuitBreaker('test', failure_threshold=1, open_duration=30)
    breaker.record_failure()
    breaker.opened_at = datetime.now() - timedelta(seconds=31)

    assert breaker.allow_request()
    assert breaker.state == CircuitState.HALF_OPEN
    assert not breaker.allow_request()

    breaker.record_success()
    assert breaker.state == CircuitState.CLOSED
    assert breaker.allow_request()


def test_failed_trial_reopens():
    """A failed trial call reopens the circuit."""
    breaker = CircuitBreaker('test', failure_threshold=1, open_duration=30)
    breaker.record_failure()
    breaker.opened_at = datetime.now() - timedelta(seconds=31)

    assert breaker.allow_request()
    breaker.record_failure()

    assert breaker.state == CircuitState.OPEN
    assert not breaker.allow_request()


def test_breakers_are_shared_per_service():
    """The same service always gets the same breaker."""
    assert get_circuit_breaker('a') is get_circuit_breaker('a')
    assert get_circuit_breaker('a') is not get_circuit_breaker('b')
