"""Rolling-window circuit breaker for a named pipeline resource.

Counts failures inside a rolling monitor window and opens the circuit once
the threshold is reached. The OPEN -> HALF_OPEN transition is evaluated
lazily when availability is queried, so it is a pure function of wall-clock
time at call time and needs no background timer.

All state mutations (on_success, on_failure, transitions) are synchronous.
Under cooperative scheduling no other task can observe a breaker
mid-transition, so no lock is held.
"""

from __future__ import annotations

import logging
import math
from collections import deque
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar

from ..circuit_breaker_config import DEFAULT_CONFIG, CircuitBreakerConfig, CircuitState
from ..clock import Clock, wall_clock_ms
from ..errors import CircuitBreakerOpenError, summarize_error

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class FailureRecord:
    """A single failure observed by a breaker."""

    timestamp: float


@dataclass(frozen=True)
class CircuitStats:
    """Point-in-time snapshot of a breaker, safe to hand to monitoring."""

    name: str
    state: CircuitState
    recent_failures: int
    total_failures: int
    half_open_successes: int
    last_failure_time: float | None
    last_state_change_time: float | None
    next_attempt_time: float | None
    is_available: bool

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "name": self.name,
            "state": self.state.value,
            "recent_failures": self.recent_failures,
            "total_failures": self.total_failures,
            "half_open_successes": self.half_open_successes,
            "last_failure_time": self.last_failure_time,
            "last_state_change_time": self.last_state_change_time,
            "next_attempt_time": self.next_attempt_time,
            "is_available": self.is_available,
        }


class CircuitBreaker:
    """Circuit breaker protecting one named resource.

    Usage:
        breaker = CircuitBreaker("BROWSER_LAUNCH", CIRCUIT_BREAKER_PRESETS["BROWSER_LAUNCH"])
        browser = await breaker.execute(launch, "browser launch")

    Transitions:
        CLOSED    + failure (threshold reached in window) -> OPEN
        OPEN      + availability query after recovery timeout -> HALF_OPEN
        HALF_OPEN + success_threshold successes -> CLOSED (history cleared)
        HALF_OPEN + any failure -> OPEN
    """

    def __init__(
        self,
        name: str,
        config: CircuitBreakerConfig | None = None,
        clock: Clock | None = None,
    ) -> None:
        """Initialize the circuit breaker.

        Args:
            name: Logical resource name shared by every stage using it.
            config: Breaker tunables. Uses DEFAULT_CONFIG if None.
            clock: Callable returning wall-clock milliseconds.
        """
        self._name = name
        self._config = config or DEFAULT_CONFIG
        self._clock = clock or wall_clock_ms

        self._state = CircuitState.CLOSED
        self._failures: deque[FailureRecord] = deque()
        self._success_count = 0
        self._last_failure_time: float | None = None
        self._last_state_change_time: float | None = None

        logger.debug("Circuit breaker '%s' initialized with %s", name, self._config)

    @property
    def name(self) -> str:
        """Return the breaker name."""
        return self._name

    @property
    def config(self) -> CircuitBreakerConfig:
        """Return the breaker configuration."""
        return self._config

    @property
    def state(self) -> CircuitState:
        """Return the current state without evaluating recovery."""
        return self._state

    @property
    def failure_records(self) -> tuple[FailureRecord, ...]:
        """Failure records as of the last prune."""
        return tuple(self._failures)

    @property
    def success_count(self) -> int:
        """Successes recorded in the current HALF_OPEN trial."""
        return self._success_count

    @property
    def last_failure_time(self) -> float | None:
        return self._last_failure_time

    @property
    def last_state_change_time(self) -> float | None:
        return self._last_state_change_time

    @property
    def is_open(self) -> bool:
        """Check if circuit is currently open (blocking requests)."""
        return self._state == CircuitState.OPEN

    @property
    def is_closed(self) -> bool:
        """Check if circuit is currently closed (normal operation)."""
        return self._state == CircuitState.CLOSED

    def is_available(self) -> bool:
        """Check whether a call may go through, evaluating recovery lazily.

        An OPEN breaker whose recovery timeout has elapsed moves to
        HALF_OPEN here and admits the call.
        """
        if self._state == CircuitState.CLOSED:
            return True

        if self._state == CircuitState.OPEN:
            now = self._clock()
            if self._recovery_due(now):
                self._transition_to_half_open(now)
                return True
            return False

        return True

    def time_until_retry_ms(self) -> float:
        """Milliseconds until an OPEN breaker admits a trial call."""
        if self._state != CircuitState.OPEN or self._last_state_change_time is None:
            return 0.0
        remaining = (
            self._last_state_change_time + self._config.recovery_timeout_ms - self._clock()
        )
        return max(0.0, remaining)

    def on_success(self) -> bool:
        """Record a successful call.

        Ordinary successes in CLOSED leave failure history untouched.

        Returns:
            True if the breaker transitioned to CLOSED.
        """
        if self._state != CircuitState.HALF_OPEN:
            return False

        self._success_count += 1
        logger.info(
            "Circuit breaker '%s' success in HALF_OPEN (%d/%d)",
            self._name,
            self._success_count,
            self._config.success_threshold,
        )
        if self._success_count >= self._config.success_threshold:
            self._transition_to_closed(self._clock())
            return True
        return False

    def on_failure(self) -> bool:
        """Record a failed call and prune records outside the window.

        Returns:
            True if the breaker transitioned to OPEN.
        """
        now = self._clock()
        self._failures.append(FailureRecord(timestamp=now))
        self._last_failure_time = now
        self._prune(now)

        if self._state == CircuitState.CLOSED:
            if len(self._failures) >= self._config.failure_threshold:
                self._transition_to_open(now, from_half_open=False)
                return True
            logger.debug(
                "Circuit breaker '%s' failure %d/%d in window",
                self._name,
                len(self._failures),
                self._config.failure_threshold,
            )
            return False

        if self._state == CircuitState.HALF_OPEN:
            self._transition_to_open(now, from_half_open=True)
            return True

        return False

    async def execute(self, operation: Callable[[], Awaitable[T]], label: str = "operation") -> T:
        """Run ``operation`` through the breaker.

        Args:
            operation: Zero-argument callable returning an awaitable.
            label: Operation name for logs and the rejection message.

        Returns:
            The operation's result.

        Raises:
            CircuitBreakerOpenError: The breaker is unavailable; ``operation``
                was not invoked.
            Exception: Whatever ``operation`` raised, unchanged.
        """
        if not self.is_available():
            wait_ms = self.time_until_retry_ms()
            recent = self._count_recent(self._clock())
            logger.warning(
                "Circuit breaker '%s' rejected %s (retry in %.1fs)",
                self._name,
                label,
                wait_ms / 1000,
            )
            raise CircuitBreakerOpenError(
                self._name,
                wait_ms,
                f"Circuit breaker '{self._name}' is OPEN for {label}. "
                f"Wait {math.ceil(wait_ms / 1000)} seconds before retry. "
                f"Recent failures: {recent}/{self._config.failure_threshold}",
            )

        logger.debug(
            "Executing %s through circuit breaker '%s' (state: %s)",
            label,
            self._name,
            self._state.value,
        )
        try:
            result = await operation()
        except Exception as e:
            self.on_failure()
            logger.error(
                "Circuit breaker '%s' recorded failure for %s: %s",
                self._name,
                label,
                summarize_error(e),
            )
            raise

        self.on_success()
        return result

    def get_stats(self) -> CircuitStats:
        """Snapshot the breaker without mutating records or state."""
        now = self._clock()
        next_attempt: float | None = None
        available = self._state != CircuitState.OPEN
        if self._state == CircuitState.OPEN and self._last_state_change_time is not None:
            next_attempt = self._last_state_change_time + self._config.recovery_timeout_ms
            available = self._recovery_due(now)

        return CircuitStats(
            name=self._name,
            state=self._state,
            recent_failures=self._count_recent(now),
            total_failures=len(self._failures),
            half_open_successes=self._success_count,
            last_failure_time=self._last_failure_time,
            last_state_change_time=self._last_state_change_time,
            next_attempt_time=next_attempt,
            is_available=available,
        )

    def force_open(self) -> None:
        """Administratively open the circuit, starting a fresh recovery timeout."""
        self._state = CircuitState.OPEN
        self._success_count = 0
        self._last_state_change_time = self._clock()
        logger.warning("Circuit breaker '%s' has been forced OPEN", self._name)

    def force_close(self) -> None:
        """Administratively close the circuit and clear failure history."""
        self._clear(CircuitState.CLOSED)
        self._last_state_change_time = self._clock()
        logger.warning("Circuit breaker '%s' has been forced CLOSED", self._name)

    def reset(self) -> None:
        """Return the breaker to its initial state."""
        self._clear(CircuitState.CLOSED)
        self._last_state_change_time = None
        logger.info("Circuit breaker '%s' has been reset to initial state", self._name)

    def _recovery_due(self, now: float) -> bool:
        if self._last_state_change_time is None:
            return True
        return now - self._last_state_change_time >= self._config.recovery_timeout_ms

    def _count_recent(self, now: float) -> int:
        window = self._config.monitor_window_ms
        return sum(1 for record in self._failures if now - record.timestamp <= window)

    def _prune(self, now: float) -> None:
        window = self._config.monitor_window_ms
        while self._failures and now - self._failures[0].timestamp > window:
            self._failures.popleft()

    def _clear(self, state: CircuitState) -> None:
        self._state = state
        self._failures.clear()
        self._success_count = 0
        self._last_failure_time = None

    def _transition_to_open(self, now: float, from_half_open: bool) -> None:
        self._state = CircuitState.OPEN
        self._success_count = 0
        self._last_state_change_time = now

        if from_half_open:
            logger.warning(
                "Circuit breaker '%s' failed in HALF_OPEN, returning to OPEN", self._name
            )
        else:
            logger.warning(
                "Circuit breaker '%s' OPENED - too many failures (%d/%d in %.0fs)",
                self._name,
                len(self._failures),
                self._config.failure_threshold,
                self._config.monitor_window_ms / 1000,
            )
        logger.info(
            "Circuit breaker '%s' will admit a trial call in %.1fs",
            self._name,
            self._config.recovery_timeout_ms / 1000,
        )

    def _transition_to_half_open(self, now: float) -> None:
        self._state = CircuitState.HALF_OPEN
        self._success_count = 0
        self._last_state_change_time = now
        logger.info("Circuit breaker '%s' entering HALF_OPEN for recovery test", self._name)

    def _transition_to_closed(self, now: float) -> None:
        self._clear(CircuitState.CLOSED)
        self._last_state_change_time = now
        logger.info("Circuit breaker '%s' CLOSED - resource recovered", self._name)
