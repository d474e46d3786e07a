"""Interval scheduler and top-level per-cycle error handler.

Cycles never overlap: a cycle starts only after the previous one finished,
and a concurrent call to run_cycle_safely() is refused. Ticks that fall
inside a slow cycle are skipped, not queued. Failures are logged and turned
into a failed CycleResult so the host process keeps running; the circuit
breakers decide whether the next cycle's calls are attempted at all.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from .clock import Clock, wall_clock_ms
from .errors import CircuitBreakerOpenError, summarize_error
from .models import CycleResult

if TYPE_CHECKING:
    from .pipeline import ScrapePipeline

logger = logging.getLogger(__name__)


class ScrapeScheduler:
    """Runs scrape cycles on a fixed interval.

    Usage:
        scheduler = ScrapeScheduler(pipeline, interval_ms=60000)
        stop = asyncio.Event()
        await scheduler.run_forever(stop)

    Attributes:
        pipeline: Pipeline executing each cycle.
        interval_ms: Time between cycle starts.
        cycles_run: Cycles started so far.
        cycles_failed: Cycles that ended with an error.
        last_result: Result of the most recent cycle.
    """

    def __init__(
        self,
        pipeline: ScrapePipeline,
        interval_ms: float,
        clock: Clock | None = None,
    ) -> None:
        if interval_ms <= 0:
            raise ValueError(f"interval_ms must be positive, got {interval_ms}")
        self.pipeline = pipeline
        self.interval_ms = interval_ms
        self.cycles_run = 0
        self.cycles_failed = 0
        self.last_result: CycleResult | None = None
        self._clock = clock or wall_clock_ms
        self._cycle_in_flight = False

    @property
    def cycle_in_flight(self) -> bool:
        return self._cycle_in_flight

    async def run_cycle_safely(self) -> CycleResult | None:
        """Run one cycle, converting any failure into a failed CycleResult.

        Returns:
            The cycle result, or None if another cycle is still running.
        """
        if self._cycle_in_flight:
            logger.warning("Previous scrape cycle still running; skipping this one")
            return None

        self._cycle_in_flight = True
        self.cycles_run += 1
        started = self._clock()
        try:
            result = await self.pipeline.run_cycle()
        except CircuitBreakerOpenError as e:
            logger.warning("Circuit breaker prevented operation: %s", e)
            result = self._failed_result(started, e)
        except Exception as e:
            stage = self.pipeline.failed_stage
            logger.error(
                "Scrape cycle %d failed%s: %s",
                self.cycles_run,
                f" at {stage.value}" if stage else "",
                summarize_error(e),
                exc_info=True,
            )
            result = self._failed_result(started, e)
        finally:
            self._cycle_in_flight = False

        if not result.success:
            self.cycles_failed += 1
        self.last_result = result
        return result

    async def run_forever(self, stop_event: asyncio.Event, max_cycles: int | None = None) -> None:
        """Run cycles until ``stop_event`` is set.

        Args:
            stop_event: Set to stop after the current cycle.
            max_cycles: Optional cap on cycles, mainly for tests and one-shot runs.
        """
        logger.info("Starting scheduled scraping every %.1fs", self.interval_ms / 1000)
        completed = 0
        while not stop_event.is_set():
            started = self._clock()
            await self.run_cycle_safely()
            completed += 1
            if max_cycles is not None and completed >= max_cycles:
                break

            now = self._clock()
            elapsed = now - started
            ticks = int(elapsed // self.interval_ms)
            if ticks > 0:
                logger.warning(
                    "Scrape cycle took %.1fs, longer than the %.1fs interval; skipping %d tick(s)",
                    elapsed / 1000,
                    self.interval_ms / 1000,
                    ticks,
                )
            wait_ms = started + (ticks + 1) * self.interval_ms - now
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=max(0.0, wait_ms) / 1000)
            except asyncio.TimeoutError:
                pass

        logger.info(
            "Scheduler stopped after %d cycle(s), %d failed",
            self.cycles_run,
            self.cycles_failed,
        )

    def _failed_result(self, started: float, error: BaseException) -> CycleResult:
        return CycleResult(
            started_at=started,
            finished_at=self._clock(),
            circuit_stats=self.pipeline.runner.registry.get_all_stats(),
            error=error,
            failed_stage=self.pipeline.failed_stage,
        )
