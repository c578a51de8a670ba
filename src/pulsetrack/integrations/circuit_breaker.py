"""Per-provider circuit breaker.

Stops calling an analytics provider that keeps failing so a broken
integration costs nothing on the hot path, then probes it again after a
recovery timeout.

States:
- CLOSED: Normal operation, events are forwarded
- OPEN: Provider is failing, events are skipped
- HALF_OPEN: Probing whether the provider has recovered

Transitions:
- CLOSED -> OPEN: After failure_threshold consecutive failures
- OPEN -> HALF_OPEN: After recovery_timeout seconds
- HALF_OPEN -> CLOSED: After success_threshold consecutive successes
- HALF_OPEN -> OPEN: On any failure
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

import structlog

logger = structlog.get_logger()


class CircuitState(str, Enum):
    """Circuit breaker states."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitBreakerConfig:
    """Configuration for a circuit breaker."""

    failure_threshold: int = 5  # Failures before opening
    success_threshold: int = 1  # Successes to close from half-open
    recovery_timeout: float = 30.0  # Seconds before trying half-open


@dataclass
class CircuitMetrics:
    """Counters for a circuit breaker."""

    total_calls: int = 0
    failed_calls: int = 0
    rejected_calls: int = 0
    consecutive_failures: int = 0
    consecutive_successes: int = 0


@dataclass
class CircuitBreaker:
    """State of one provider's circuit."""

    circuit_id: str
    config: CircuitBreakerConfig = field(default_factory=CircuitBreakerConfig)
    clock: Callable[[], float] = time.monotonic
    state: CircuitState = CircuitState.CLOSED
    metrics: CircuitMetrics = field(default_factory=CircuitMetrics)
    state_changed_at: float = 0.0

    def should_allow_request(self) -> bool:
        """Check if a call should go through."""
        if self.state == CircuitState.OPEN:
            if self.clock() - self.state_changed_at >= self.config.recovery_timeout:
                self._transition_to(CircuitState.HALF_OPEN)
                return True
            self.metrics.rejected_calls += 1
            return False
        return True

    def record_success(self) -> None:
        self.metrics.total_calls += 1
        self.metrics.consecutive_successes += 1
        self.metrics.consecutive_failures = 0

        if self.state == CircuitState.HALF_OPEN:
            if self.metrics.consecutive_successes >= self.config.success_threshold:
                self._transition_to(CircuitState.CLOSED)

    def record_failure(self) -> None:
        self.metrics.total_calls += 1
        self.metrics.failed_calls += 1
        self.metrics.consecutive_failures += 1
        self.metrics.consecutive_successes = 0

        if self.state == CircuitState.HALF_OPEN:
            self._transition_to(CircuitState.OPEN)
        elif self.metrics.consecutive_failures >= self.config.failure_threshold:
            self._transition_to(CircuitState.OPEN)

    def _transition_to(self, new_state: CircuitState) -> None:
        old_state = self.state
        self.state = new_state
        self.state_changed_at = self.clock()

        logger.info(
            "Circuit breaker state transition",
            circuit_id=self.circuit_id,
            old_state=old_state.value,
            new_state=new_state.value,
            consecutive_failures=self.metrics.consecutive_failures,
        )
