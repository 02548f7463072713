"""
Circuit breaker for outbound pricing calls.
Stops calling a pricing API for a while after it keeps failing.
"""
from enum import Enum
from datetime import datetime
import logging
from typing import Dict, Optional

from assetcost.core.config import config

logger = logging.getLogger(__name__)


class CircuitState(Enum):
    """Circuit breaker states."""
    CLOSED = "closed"  # calls go through
    OPEN = "open"  # calls are refused
    HALF_OPEN = "half_open"  # one trial call decides


class CircuitBreaker:
    """
    Per-service circuit breaker.

    CLOSED opens after failure_threshold consecutive failures. OPEN refuses
    calls for open_duration seconds, then lets a single trial call through
    (HALF_OPEN). The trial's outcome closes or reopens the circuit.
    """

    def __init__(
        self,
        service_name: str,
        failure_threshold: Optional[int] = None,
        open_duration: Optional[int] = None
    ):
        """
        Initialize circuit breaker.

        Args:
            service_name: Name of the guarded service (e.g., "cloud_billing")
            failure_threshold: Consecutive failures before opening (config default if None)
            open_duration: Seconds to stay OPEN before a trial call (config default if None)
        """
        self.service_name = service_name
        self.failure_threshold = failure_threshold or config.CIRCUIT_FAILURE_THRESHOLD
        self.open_duration = open_duration if open_duration is not None else config.CIRCUIT_OPEN_SECONDS

        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.opened_at: Optional[datetime] = None
        self.trial_in_flight = False

    def allow_request(self) -> bool:
        """
        Check whether a call may be made now.

        Returns:
            True if the call should proceed, False if the circuit refuses it
        """
        if self.state == CircuitState.CLOSED:
            return True

        if self.state == CircuitState.OPEN:
            elapsed = (datetime.now() - self.opened_at).total_seconds() if self.opened_at else 0
            if elapsed < self.open_duration:
                return False
            logger.warning(f"Circuit for {self.service_name}: OPEN -> HALF_OPEN, trying one call")
            self.state = CircuitState.HALF_OPEN
            self.trial_in_flight = False

        # HALF_OPEN: only one trial call at a time
        if self.trial_in_flight:
            return False
        self.trial_in_flight = True
        return True

    def record_success(self) -> None:
        """Record a successful call; a successful trial closes the circuit."""
        if self.state == CircuitState.HALF_OPEN:
            logger.warning(f"Circuit for {self.service_name}: HALF_OPEN -> CLOSED")
            self.state = CircuitState.CLOSED
            self.opened_at = None
            self.trial_in_flight = False
        self.failure_count = 0

    def record_failure(self) -> None:
        """Record a failed call; opens the circuit at the threshold or on a failed trial."""
        self.failure_count += 1
        if self.state == CircuitState.HALF_OPEN:
            logger.warning(f"Circuit for {self.service_name}: HALF_OPEN -> OPEN, still failing")
            self._open()
        elif self.state == CircuitState.CLOSED and self.failure_count >= self.failure_threshold:
            logger.warning(
                f"Circuit for {self.service_name}: CLOSED -> OPEN after "
                f"{self.failure_count} consecutive failures"
            )
            self._open()

    def _open(self) -> None:
        self.state = CircuitState.OPEN
        self.opened_at = datetime.now()
        self.trial_in_flight = False


# One breaker per guarded service
_circuit_breakers: Dict[str, CircuitBreaker] = {}


def get_circuit_breaker(service_name: str) -> CircuitBreaker:
    """
    Get or create the circuit breaker of a service.

    Args:
        service_name: Name of the service

    Returns:
        Shared CircuitBreaker for the service
    """
    if service_name not in _circuit_breakers:
        _circuit_breakers[service_name] = CircuitBreaker(service_name)
    return _circuit_breakers[service_name]


def reset_circuit_breakers() -> None:
    """Forget all breakers, e.g. between tests."""
    _circuit_breakers.clear()
