"""Circuit breaker registry for managing named breaker instances.

Guarantees one breaker per logical name for the registry's lifetime, so
every stage naming "PAGE_OPERATIONS" shares the same failure history. The
registry is an explicit object owned by the composition root and injected
into each stage runner; tests build isolated registries.
"""

from __future__ import annotations

import logging
from typing import Mapping

from ..circuit_breaker_config import (
    CIRCUIT_BREAKER_PRESETS,
    DEFAULT_CONFIG,
    CircuitBreakerConfig,
    CircuitState,
)
from ..clock import Clock
from .breaker import CircuitBreaker, CircuitStats

logger = logging.getLogger(__name__)


class CircuitBreakerRegistry:
    """Central registry for all circuit breakers.

    Usage:
        registry = CircuitBreakerRegistry()
        browser_circuit = registry.get("BROWSER_LAUNCH")
        stats = registry.get_all_stats()

    Attributes:
        presets: Configuration used when ``get`` is called without one.
    """

    def __init__(
        self,
        presets: Mapping[str, CircuitBreakerConfig] | None = None,
        clock: Clock | None = None,
    ) -> None:
        """Initialize the registry.

        Args:
            presets: Name -> config defaults. Uses CIRCUIT_BREAKER_PRESETS if None.
            clock: Clock handed to every breaker created here.
        """
        self._presets = dict(CIRCUIT_BREAKER_PRESETS if presets is None else presets)
        self._clock = clock
        self._breakers: dict[str, CircuitBreaker] = {}

    @property
    def presets(self) -> dict[str, CircuitBreakerConfig]:
        return dict(self._presets)

    def get(self, name: str, config: CircuitBreakerConfig | None = None) -> CircuitBreaker:
        """Get or create the breaker for ``name``.

        ``config`` only applies when the breaker is created; an existing
        breaker keeps the configuration it was built with.
        """
        breaker = self._breakers.get(name)
        if breaker is None:
            resolved = config or self._presets.get(name, DEFAULT_CONFIG)
            breaker = CircuitBreaker(name, resolved, clock=self._clock)
            self._breakers[name] = breaker
            logger.info("Created circuit breaker '%s'", name)
        elif config is not None and config != breaker.config:
            logger.debug(
                "Circuit breaker '%s' already exists; ignoring supplied config", name
            )
        return breaker

    def names(self) -> list[str]:
        return list(self._breakers)

    def __contains__(self, name: object) -> bool:
        return name in self._breakers

    def __len__(self) -> int:
        return len(self._breakers)

    def get_all_stats(self) -> dict[str, CircuitStats]:
        """Snapshot every breaker, keyed by name."""
        return {name: breaker.get_stats() for name, breaker in self._breakers.items()}

    def open_circuits(self) -> list[CircuitBreaker]:
        """Breakers currently OPEN or HALF_OPEN."""
        return [b for b in self._breakers.values() if b.state != CircuitState.CLOSED]

    def reset_all(self) -> int:
        """Reset every breaker to CLOSED.

        Administrative function for recovery from widespread issues.

        Returns:
            Number of breakers that were not CLOSED before the reset.
        """
        reset_count = 0
        for breaker in self._breakers.values():
            if breaker.state != CircuitState.CLOSED:
                reset_count += 1
            breaker.reset()

        logger.info("Reset %d circuits via registry.reset_all()", reset_count)
        return reset_count
