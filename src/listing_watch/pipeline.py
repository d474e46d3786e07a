"""Scrape pipeline: one guarded pass over the target page.

Runs launch, navigation, content wait and extraction through the
StageRunner. Settling the page (scrolling) is best-effort and unguarded.
The browser session is always closed, and close failures never mask the
cycle outcome.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from .clock import Clock, wall_clock_ms
from .errors import BrowserLaunchError, ExtractionError, NoDataFoundError, ScraperError
from .models import CycleResult, Stage

if TYPE_CHECKING:
    from .browser import BrowserSession
    from .stage_runner import StageRunner

logger = logging.getLogger(__name__)


class ScrapePipeline:
    """Runs scrape cycles against a browser session.

    Usage:
        pipeline = ScrapePipeline(runner, session, target_url)
        records = await pipeline.run_cycle()

    Attributes:
        runner: Stage runner providing breaker and retry protection.
        session: Browser collaborator.
        target_url: Page to scrape.
        failed_stage: Stage that ended the most recent cycle, None if it
            succeeded or failed outside a guarded stage.
    """

    def __init__(
        self,
        runner: StageRunner,
        session: BrowserSession,
        target_url: str,
        clock: Clock | None = None,
    ) -> None:
        self.runner = runner
        self.session = session
        self.target_url = target_url
        self.failed_stage: Stage | None = None
        self._clock = clock or wall_clock_ms

    async def run_cycle(self) -> CycleResult:
        """Run one full cycle.

        Returns:
            CycleResult with the extracted records.

        Raises:
            Exception: The error that ended the cycle, unchanged, after the
                session was closed.
        """
        started = self._clock()
        self.failed_stage = None
        try:
            records = await self._run_stages()
        finally:
            await self._close_session()

        result = CycleResult(
            records=records,
            started_at=started,
            finished_at=self._clock(),
            circuit_stats=self.runner.registry.get_all_stats(),
        )
        logger.info(
            "Cycle complete: %d record(s) in %.1fs",
            len(records),
            result.duration_ms / 1000,
        )
        return result

    async def _run_stages(self) -> list[dict[str, Any]]:
        await self._stage(Stage.BROWSER_LAUNCH, self._launch)
        await self._stage(Stage.PAGE_NAVIGATION, self._navigate)
        await self._stage(Stage.ELEMENT_WAIT, self.session.wait_for_content)

        try:
            await self.session.settle()
        except Exception as e:
            logger.warning("Settling page failed, continuing: %s", e)

        return await self._stage(Stage.DATA_EXTRACTION, self._extract)

    async def _stage(self, stage: Stage, operation: Callable[[], Awaitable[Any]]) -> Any:
        try:
            return await self.runner.run_stage(stage, operation)
        except Exception:
            self.failed_stage = stage
            raise

    async def _launch(self) -> None:
        logger.info("Launching browser")
        try:
            await self.session.launch()
        except ScraperError:
            raise
        except Exception as e:
            raise BrowserLaunchError(f"Failed to launch browser: {e}", cause=e) from e

    async def _navigate(self) -> None:
        await self.session.navigate(self.target_url)

    async def _extract(self) -> list[dict[str, Any]]:
        logger.info("Extracting listing records")
        try:
            records = await self.session.extract_records()
        except ScraperError:
            raise
        except Exception as e:
            raise ExtractionError(f"Data extraction failed: {e}", cause=e) from e

        if not records:
            raise NoDataFoundError("No listing data found on the page")
        return list(records)

    async def _close_session(self) -> None:
        try:
            await self.session.close()
        except Exception as e:
            logger.error("Error closing browser session: %s", e)
