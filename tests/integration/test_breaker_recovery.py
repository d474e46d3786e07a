"""Integration tests: scheduler -> pipeline -> stage runner -> breaker/retry.

Drives several scrape cycles through the real components with a fake
browser session and a manually advanced clock.
"""

from __future__ import annotations

import random
from unittest.mock import AsyncMock

import pytest

from listing_watch.circuit_breaker import CircuitBreakerOpenError, CircuitBreakerRegistry
from listing_watch.circuit_breaker_config import CIRCUIT_BREAKER_PRESETS, CircuitState
from listing_watch.errors import RetryExhaustedError
from listing_watch.health import CircuitHealthStatus, summarize_circuits
from listing_watch.models import Stage
from listing_watch.pipeline import ScrapePipeline
from listing_watch.retry import RetryController
from listing_watch.scheduler import ScrapeScheduler
from listing_watch.stage_runner import StageRunner


@pytest.fixture
def session() -> AsyncMock:
    session = AsyncMock()
    session.extract_records.return_value = [{"text": "Merchant A 129.50 KES"}]
    return session


@pytest.fixture
def scheduler(session, clock, fake_sleep) -> ScrapeScheduler:
    registry = CircuitBreakerRegistry(clock=clock)
    runner = StageRunner(registry, retry=RetryController(sleep=fake_sleep, rng=random.Random(3)))
    pipeline = ScrapePipeline(runner, session, "https://example.com/p2p", clock=clock)
    return ScrapeScheduler(pipeline, interval_ms=60000, clock=clock)


@pytest.mark.asyncio
async def test_launch_breaker_opens_and_recovers(scheduler, session, clock) -> None:
    registry = scheduler.pipeline.runner.registry
    session.launch.side_effect = OSError("chrome crashed")

    for _ in range(2):
        result = await scheduler.run_cycle_safely()
        assert isinstance(result.error, RetryExhaustedError)
        assert result.failed_stage == Stage.BROWSER_LAUNCH

    assert session.launch.await_count == 6
    assert registry.get("BROWSER_LAUNCH").state == CircuitState.OPEN
    assert summarize_circuits(registry).status == CircuitHealthStatus.UNHEALTHY

    rejected = await scheduler.run_cycle_safely()
    assert isinstance(rejected.error, CircuitBreakerOpenError)
    assert session.launch.await_count == 6
    assert session.close.await_count == 3

    session.launch.side_effect = None
    clock.advance(CIRCUIT_BREAKER_PRESETS["BROWSER_LAUNCH"].recovery_timeout_ms)

    recovered = await scheduler.run_cycle_safely()
    assert recovered.success
    assert registry.get("BROWSER_LAUNCH").state == CircuitState.CLOSED
    assert summarize_circuits(registry).status == CircuitHealthStatus.HEALTHY
    assert scheduler.cycles_run == 4
    assert scheduler.cycles_failed == 3


@pytest.mark.asyncio
async def test_navigation_failures_open_shared_page_breaker(scheduler, session) -> None:
    registry = scheduler.pipeline.runner.registry
    session.navigate.side_effect = PermissionError("403 Forbidden")

    threshold = CIRCUIT_BREAKER_PRESETS["PAGE_OPERATIONS"].failure_threshold
    for _ in range(threshold):
        await scheduler.run_cycle_safely()

    # Non-retryable: one navigation attempt per cycle
    assert session.navigate.await_count == threshold
    assert registry.get("PAGE_OPERATIONS").state == CircuitState.OPEN
    assert registry.get("BROWSER_LAUNCH").state == CircuitState.CLOSED

    session.navigate.side_effect = None
    result = await scheduler.run_cycle_safely()
    assert isinstance(result.error, CircuitBreakerOpenError)
    assert result.failed_stage == Stage.PAGE_NAVIGATION
    session.wait_for_content.assert_not_awaited()
    assert summarize_circuits(registry).status == CircuitHealthStatus.DEGRADED
