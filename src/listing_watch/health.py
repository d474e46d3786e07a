"""Health summary for circuit breaker monitoring.

Derives an overall status from the registry's breaker snapshots. Reading
health never transitions a breaker.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any

from .circuit_breaker_config import BROWSER_LAUNCH, CircuitState

if TYPE_CHECKING:
    from .circuit_breaker import CircuitBreakerRegistry, CircuitStats

logger = logging.getLogger(__name__)


class CircuitHealthStatus(Enum):
    """Overall health of the scraper's breakers."""

    HEALTHY = "HEALTHY"  # every breaker closed
    DEGRADED = "DEGRADED"  # a page or extraction breaker is tripped or probing
    UNHEALTHY = "UNHEALTHY"  # no browser can start, or nothing is reachable


@dataclass
class HealthReport:
    """Breaker health at one point in time.

    Attributes:
        status: Overall status derived from the breaker states.
        checked_at: When the snapshot was taken (UTC).
        state_counts: Number of breakers per CircuitState.
        breakers: Per-breaker stats keyed by breaker name.
    """

    status: CircuitHealthStatus
    checked_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    state_counts: dict[CircuitState, int] = field(default_factory=dict)
    breakers: dict[str, CircuitStats] = field(default_factory=dict)

    @property
    def breaker_count(self) -> int:
        return len(self.breakers)

    @property
    def tripped(self) -> list[str]:
        """Names of breakers that are not CLOSED, sorted."""
        return sorted(
            name for name, stats in self.breakers.items() if stats.state != CircuitState.CLOSED
        )

    def count(self, state: CircuitState) -> int:
        return self.state_counts.get(state, 0)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "status": self.status.value,
            "checked_at": self.checked_at.isoformat(),
            "breaker_count": self.breaker_count,
            "states": {state.value: self.count(state) for state in CircuitState},
            "tripped": self.tripped,
            "breakers": {name: stats.to_dict() for name, stats in self.breakers.items()},
        }


def _overall_status(stats: dict[str, CircuitStats]) -> CircuitHealthStatus:
    states = [s.state for s in stats.values()]
    if not states or all(state == CircuitState.CLOSED for state in states):
        return CircuitHealthStatus.HEALTHY

    launch = stats.get(BROWSER_LAUNCH)
    if launch is not None and launch.state == CircuitState.OPEN:
        return CircuitHealthStatus.UNHEALTHY
    if all(state == CircuitState.OPEN for state in states):
        return CircuitHealthStatus.UNHEALTHY
    return CircuitHealthStatus.DEGRADED


def summarize_circuits(registry: CircuitBreakerRegistry) -> HealthReport:
    """Summarize the health of every breaker in ``registry``.

    Args:
        registry: Registry whose breakers are inspected.

    Returns:
        HealthReport with per-state counts and per-breaker stats.
    """
    stats = registry.get_all_stats()
    counts: dict[CircuitState, int] = {}
    for snapshot in stats.values():
        counts[snapshot.state] = counts.get(snapshot.state, 0) + 1

    report = HealthReport(status=_overall_status(stats), state_counts=counts, breakers=stats)
    if report.status != CircuitHealthStatus.HEALTHY:
        logger.debug("Breaker health %s, tripped: %s", report.status.value, report.tripped)
    return report
