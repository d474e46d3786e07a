"""Circuit breaker implementation for the scraping pipeline.

The circuit breaker has three states:
- CLOSED: Normal operation, failures are counted in a rolling window
- OPEN: Circuit tripped, requests immediately fail
- HALF_OPEN: Testing recovery, trial requests allowed
"""

from ..errors import CircuitBreakerOpenError
from .breaker import CircuitBreaker, CircuitStats, FailureRecord
from .registry import CircuitBreakerRegistry

__all__ = [
    "CircuitBreaker",
    "CircuitBreakerOpenError",
    "CircuitBreakerRegistry",
    "CircuitStats",
    "FailureRecord",
]
