"""Error taxonomy and error handling utilities."""
from typing import Callable, Any, Optional, Type
from datetime import datetime
from enum import Enum
from loguru import logger


class ArbigraphError(Exception):
    """Base class for Arbigraph errors."""
    pass


class ConfigurationError(ArbigraphError):
    """Raised at startup when a configuration cannot produce meaningful results."""
    pass


class PassCancelledError(ArbigraphError):
    """Raised when a detection pass is abandoned before completion."""
    pass


class RateSourceError(ArbigraphError):
    """Raised when a rate source cannot supply a snapshot."""
    pass


class DiscardReason(Enum):
    """Why a quote or candidate cycle was dropped."""
    UNKNOWN_TOKEN = "unknown_token"
    SELF_LOOP = "self_loop"
    INVALID_RATE = "invalid_rate"
    INVALID_FEE = "invalid_fee"
    STALE_QUOTE = "stale_quote"
    OUT_OF_RANGE = "out_of_range"
    BROKEN_CHAIN = "broken_chain"
    LENGTH_CAP = "length_cap"
    NOT_THROUGH_SOURCE = "not_through_source"
    TOO_SHORT = "too_short"
    MISSING_EDGE = "missing_edge"
    BELOW_MIN = "below_min"
    ABOVE_MAX = "above_max"


class CircuitState(Enum):
    """Circuit breaker states."""
    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Failing, reject requests
    HALF_OPEN = "half_open"  # Testing if service recovered


class CircuitBreakerError(ArbigraphError):
    """Raised when circuit breaker is open."""
    pass


class CircuitBreaker:
    """Circuit breaker guarding calls to an external collaborator."""

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: int = 60,
        expected_exception: Type[Exception] = Exception,
        name: str = "default",
    ):
        """
        Initialize circuit breaker.

        Args:
            failure_threshold: Number of failures before opening circuit
            recovery_timeout: Seconds before attempting recovery
            expected_exception: Exception type counted as a failure
            name: Circuit breaker name for logging
        """
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.expected_exception = expected_exception
        self.name = name

        self.failure_count = 0
        self.last_failure_time: Optional[datetime] = None
        self.state = CircuitState.CLOSED

    def _before_call(self):
        if self.state == CircuitState.OPEN:
            if self._should_attempt_reset():
                self.state = CircuitState.HALF_OPEN
                logger.info(f"Circuit breaker '{self.name}' entering HALF_OPEN state")
            else:
                raise CircuitBreakerError(
                    f"Circuit breaker '{self.name}' is OPEN. "
                    f"Will retry after {self.recovery_timeout}s"
                )

    def call(self, func: Callable, *args, **kwargs) -> Any:
        """Execute function through circuit breaker."""
        self._before_call()
        try:
            result = func(*args, **kwargs)
        except self.expected_exception:
            self._on_failure()
            raise
        self._on_success()
        return result

    async def call_async(self, func: Callable, *args, **kwargs) -> Any:
        """Execute async function through circuit breaker."""
        self._before_call()
        try:
            result = await func(*args, **kwargs)
        except self.expected_exception:
            self._on_failure()
            raise
        self._on_success()
        return result

    def _should_attempt_reset(self) -> bool:
        """Check if enough time has passed to attempt reset."""
        if not self.last_failure_time:
            return True

        elapsed = (datetime.now() - self.last_failure_time).total_seconds()
        return elapsed >= self.recovery_timeout

    def _on_success(self):
        if self.state == CircuitState.HALF_OPEN:
            logger.info(f"Circuit breaker '{self.name}' recovered, closing circuit")

        self.failure_count = 0
        self.state = CircuitState.CLOSED

    def _on_failure(self):
        self.failure_count += 1
        self.last_failure_time = datetime.now()

        if self.failure_count >= self.failure_threshold or self.state == CircuitState.HALF_OPEN:
            if self.state != CircuitState.OPEN:
                logger.error(
                    f"Circuit breaker '{self.name}' opened after "
                    f"{self.failure_count} failures"
                )
                self.state = CircuitState.OPEN

    def reset(self):
        """Manually reset circuit breaker."""
        self.failure_count = 0
        self.state = CircuitState.CLOSED
        logger.info(f"Circuit breaker '{self.name}' manually reset")

    def get_state(self) -> dict:
        """Get current circuit breaker state."""
        return {
            'name': self.name,
            'state': self.state.value,
            'failure_count': self.failure_count,
            'last_failure': self.last_failure_time.isoformat() if self.last_failure_time else None,
        }


class ErrorHandler:
    """Counts locally recovered errors and tracks circuit breakers."""

    def __init__(self):
        self.circuit_breakers: dict[str, CircuitBreaker] = {}
        self.error_counts: dict[str, int] = {}

    def get_circuit_breaker(
        self,
        name: str,
        failure_threshold: int = 5,
        recovery_timeout: int = 60,
    ) -> CircuitBreaker:
        """Get or create circuit breaker."""
        if name not in self.circuit_breakers:
            self.circuit_breakers[name] = CircuitBreaker(
                failure_threshold=failure_threshold,
                recovery_timeout=recovery_timeout,
                name=name,
            )

        return self.circuit_breakers[name]

    def record_error(self, error_type: str, count: int = 1):
        """Record an error occurrence."""
        if count <= 0:
            return
        self.error_counts[error_type] = self.error_counts.get(error_type, 0) + count

    def get_error_stats(self) -> dict:
        """Get error statistics."""
        return {
            'total_errors': sum(self.error_counts.values()),
            'error_types': self.error_counts.copy(),
            'circuit_breakers': {
                name: cb.get_state()
                for name, cb in self.circuit_breakers.items()
            },
        }

    def reset_all_circuits(self):
        """Reset all circuit breakers."""
        for cb in self.circuit_breakers.values():
            cb.reset()
        logger.info("All circuit breakers reset")
