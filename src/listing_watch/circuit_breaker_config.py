"""Circuit breaker configuration for the scraping pipeline.

This module defines the breaker states, the per-breaker configuration
record, and the named presets for each guarded resource category.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class CircuitState(Enum):
    """Possible states for a circuit breaker."""

    CLOSED = "closed"  # Normal operation - requests allowed
    OPEN = "open"  # Circuit tripped - requests blocked
    HALF_OPEN = "half_open"  # Testing recovery - trial requests allowed


@dataclass(frozen=True)
class CircuitBreakerConfig:
    """Configuration for a single circuit breaker.

    Attributes:
        failure_threshold: Failures inside the monitor window that open the circuit.
        recovery_timeout_ms: Time spent OPEN before a trial call is allowed.
        success_threshold: Consecutive HALF_OPEN successes needed to close.
        monitor_window_ms: Rolling window over which failures are counted.
    """

    failure_threshold: int = 5
    recovery_timeout_ms: float = 30000
    success_threshold: int = 2
    monitor_window_ms: float = 60000

    def __post_init__(self) -> None:
        if self.failure_threshold < 1:
            raise ValueError(f"failure_threshold must be >= 1, got {self.failure_threshold}")
        if self.success_threshold < 1:
            raise ValueError(f"success_threshold must be >= 1, got {self.success_threshold}")
        if self.recovery_timeout_ms < 0:
            raise ValueError(
                f"recovery_timeout_ms must be >= 0, got {self.recovery_timeout_ms}"
            )
        if self.monitor_window_ms <= 0:
            raise ValueError(f"monitor_window_ms must be > 0, got {self.monitor_window_ms}")


# Breaker names shared by every stage that touches the same resource
BROWSER_LAUNCH = "BROWSER_LAUNCH"
PAGE_OPERATIONS = "PAGE_OPERATIONS"
DATA_EXTRACTION = "DATA_EXTRACTION"
NETWORK_OPERATIONS = "NETWORK_OPERATIONS"

CIRCUIT_BREAKER_PRESETS: dict[str, CircuitBreakerConfig] = {
    PAGE_OPERATIONS: CircuitBreakerConfig(
        failure_threshold=5,
        recovery_timeout_ms=30000,
        success_threshold=2,
        monitor_window_ms=60000,
    ),
    DATA_EXTRACTION: CircuitBreakerConfig(
        failure_threshold=3,
        recovery_timeout_ms=20000,
        success_threshold=1,
        monitor_window_ms=45000,
    ),
    BROWSER_LAUNCH: CircuitBreakerConfig(
        failure_threshold=2,
        recovery_timeout_ms=45000,
        success_threshold=1,
        monitor_window_ms=120000,
    ),
    NETWORK_OPERATIONS: CircuitBreakerConfig(
        failure_threshold=4,
        recovery_timeout_ms=25000,
        success_threshold=2,
        monitor_window_ms=90000,
    ),
}

# Default configuration for names without a preset
DEFAULT_CONFIG = CircuitBreakerConfig()
