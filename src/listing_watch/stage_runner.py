"""Composition of circuit breaker and retry controller per pipeline stage.

Each guarded stage runs as:

    breaker.execute(lambda: retry.run(stage_op, preset), label)

The breaker is the outer layer. When it is open no attempt and no retry loop
starts. The whole retry loop is a single breaker-visible call, so a stage
that exhausts every retry counts as exactly one breaker failure.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Mapping, TypeVar

from .circuit_breaker import CircuitBreaker, CircuitBreakerRegistry
from .errors import StageBusyError
from .models import STAGE_BINDINGS, Stage, StageBinding
from .retry import RetryController
from .retry_config import RETRY_PRESETS, OperationCategory, RetryConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")


class StageRunner:
    """Runs pipeline stages behind their breaker and retry policy.

    A stage may only be in flight once per runner. Entering a stage that is
    already running fails fast with StageBusyError without invoking the
    operation or touching the breaker.

    Attributes:
        registry: Breaker registry shared by all stages.
        retry: Retry controller used for every stage.
    """

    def __init__(
        self,
        registry: CircuitBreakerRegistry,
        retry: RetryController | None = None,
        retry_presets: Mapping[OperationCategory, RetryConfig] | None = None,
        bindings: Mapping[Stage, StageBinding] | None = None,
    ) -> None:
        self.registry = registry
        self.retry = retry or RetryController()
        self._retry_presets = dict(RETRY_PRESETS if retry_presets is None else retry_presets)
        self._bindings = dict(STAGE_BINDINGS if bindings is None else bindings)
        self._in_flight: set[Stage] = set()

    def breaker_for(self, stage: Stage) -> CircuitBreaker:
        return self.registry.get(self._bindings[stage].breaker_name)

    def retry_config_for(self, stage: Stage) -> RetryConfig:
        return self._retry_presets[self._bindings[stage].retry_category]

    def is_running(self, stage: Stage) -> bool:
        return stage in self._in_flight

    async def run_stage(self, stage: Stage, operation: Callable[[], Awaitable[T]]) -> T:
        """Run one stage invocation.

        Args:
            stage: The stage being executed.
            operation: Zero-argument callable performing the stage.

        Returns:
            The operation's result.

        Raises:
            StageBusyError: The stage is already in flight on this runner.
            CircuitBreakerOpenError: The stage's breaker is open.
            NonRetryableError: The operation failed with a non-retryable error.
            RetryExhaustedError: Every retry attempt failed.
        """
        binding = self._bindings[stage]
        if stage in self._in_flight:
            logger.warning("Stage %s already in flight; rejecting overlapping call", binding.label)
            raise StageBusyError(f"Stage '{binding.label}' is already running")

        breaker = self.registry.get(binding.breaker_name)
        retry_config = self._retry_presets[binding.retry_category]

        async def guarded() -> T:
            return await self.retry.run(
                operation,
                operation_type=binding.label,
                retry_config=retry_config,
            )

        self._in_flight.add(stage)
        try:
            return await breaker.execute(guarded, binding.label)
        finally:
            self._in_flight.discard(stage)
