"""Retry controller with exponential backoff and jitter.

Runs a zero-argument async operation up to ``max_attempts`` times and
produces exactly one outcome: the operation's result, a RetryExhaustedError
once the budget is spent, or a NonRetryableError as soon as a failure is
classified non-retryable.

Delay before retry n (1-based attempt that just failed):
    min(max_delay_ms, base_delay_ms * backoff_multiplier ** (n - 1))
perturbed by a uniform +/-10% when jitter is enabled.
"""

from __future__ import annotations

import asyncio
import logging
import math
import random
from typing import Awaitable, Callable, TypeVar

from .errors import (
    NonRetryableError,
    RetryExhaustedError,
    error_kind,
    is_retryable_error,
    summarize_error,
)
from .retry_config import NETWORK_RETRY, RetryConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Fraction of the computed delay used as the jitter amplitude
JITTER_FRACTION = 0.1


class RetryController:
    """Executes operations with bounded retries.

    Usage:
        controller = RetryController()
        page = await controller.run(
            navigate, operation_type="page navigation", retry_config=NETWORK_RETRY
        )

    The sleep function and random source are injectable so tests can observe
    the chosen delays without waiting.
    """

    def __init__(
        self,
        sleep: Callable[[float], Awaitable[object]] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        """Initialize the controller.

        Args:
            sleep: Async callable taking seconds. Defaults to asyncio.sleep.
            rng: Random source for jitter. Defaults to a fresh random.Random.
        """
        self._sleep = sleep or asyncio.sleep
        self._rng = rng or random.Random()

    def compute_delay(self, attempt: int, retry_config: RetryConfig) -> float:
        """Return the delay in milliseconds after the given failed attempt."""
        base = retry_config.base_delay_ms
        ceiling = retry_config.max_delay_ms
        exponent = attempt - 1
        if base <= 0:
            delay = 0.0
        elif exponent >= math.log(ceiling / base, retry_config.backoff_multiplier):
            # Already at the ceiling; stop growing so large attempts cannot overflow
            delay = ceiling
        else:
            delay = min(ceiling, base * retry_config.backoff_multiplier**exponent)
        if retry_config.jitter:
            amplitude = delay * JITTER_FRACTION
            delay += self._rng.uniform(-amplitude, amplitude)
        return max(0.0, delay)

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        operation_type: str = "operation",
        retry_config: RetryConfig = NETWORK_RETRY,
    ) -> T:
        """Run ``operation`` until it succeeds or the retry policy gives up.

        Args:
            operation: Zero-argument callable returning an awaitable.
            operation_type: Label used in log messages and errors.
            retry_config: Retry tunables for this operation.

        Returns:
            The operation's result.

        Raises:
            RetryExhaustedError: All ``max_attempts`` attempts failed.
            NonRetryableError: A failure was classified non-retryable.
        """
        max_attempts = retry_config.max_attempts
        attempt = 1

        while True:
            logger.info("Attempting %s (attempt %d/%d)", operation_type, attempt, max_attempts)
            try:
                result = await operation()
            except Exception as e:
                if attempt == max_attempts:
                    logger.error(
                        "%s failed after %d attempts: %s",
                        operation_type,
                        max_attempts,
                        summarize_error(e),
                    )
                    raise RetryExhaustedError(operation_type, max_attempts, e) from e

                if not is_retryable_error(e, retry_config):
                    logger.error(
                        "%s failed with non-retryable error (%s) on attempt %d/%d: %s",
                        operation_type,
                        error_kind(e, retry_config).value,
                        attempt,
                        max_attempts,
                        summarize_error(e),
                    )
                    raise NonRetryableError(
                        f"Non-retryable error in {operation_type}: {e}", cause=e
                    ) from e

                delay_ms = self.compute_delay(attempt, retry_config)
                logger.warning(
                    "%s failed on attempt %d/%d (%s), retrying in %.0fms: %s",
                    operation_type,
                    attempt,
                    max_attempts,
                    error_kind(e, retry_config).value,
                    delay_ms,
                    summarize_error(e),
                )
                await self._sleep(delay_ms / 1000)
                attempt += 1
                continue

            if attempt > 1:
                logger.info(
                    "%s succeeded on attempt %d/%d", operation_type, attempt, max_attempts
                )
            return result
