"""Infrastructure components for error handling and performance monitoring."""

from .error_handling import (
    ArbigraphError,
    ConfigurationError,
    PassCancelledError,
    RateSourceError,
    DiscardReason,
    CircuitBreaker,
    CircuitBreakerError,
    CircuitState,
    ErrorHandler,
)
from .performance import PerformanceMonitor, OperationTimer, PassTotals, performance_monitor

__all__ = [
    "ArbigraphError",
    "ConfigurationError",
    "PassCancelledError",
    "RateSourceError",
    "DiscardReason",
    "CircuitBreaker",
    "CircuitBreakerError",
    "CircuitState",
    "ErrorHandler",
    "PerformanceMonitor",
    "OperationTimer",
    "PassTotals",
    "performance_monitor",
]
