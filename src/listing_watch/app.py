"""Application composition root.

Builds the breaker registry, retry controller, stage runner, pipeline and
scheduler from an AppConfig. The registry is created here and injected
everywhere it is needed; nothing looks it up globally.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from .circuit_breaker import CircuitBreakerRegistry
from .pipeline import ScrapePipeline
from .retry import RetryController
from .scheduler import ScrapeScheduler
from .stage_runner import StageRunner

if TYPE_CHECKING:
    from .browser import BrowserSession
    from .config import AppConfig


@dataclass
class Application:
    """Wired application components."""

    registry: CircuitBreakerRegistry
    runner: StageRunner
    pipeline: ScrapePipeline
    scheduler: ScrapeScheduler


def build_application(
    config: AppConfig,
    session: BrowserSession | None = None,
    retry: RetryController | None = None,
) -> Application:
    """Wire every component for ``config``.

    Args:
        config: Effective application configuration.
        session: Browser collaborator. Defaults to a PlaywrightSession.
        retry: Retry controller. Defaults to one using asyncio.sleep.

    Returns:
        The wired Application.
    """
    if session is None:
        from .browser import PlaywrightSession

        session = PlaywrightSession(config.scraper)

    registry = CircuitBreakerRegistry(presets=config.breakers)
    runner = StageRunner(registry, retry=retry, retry_presets=config.retry)
    pipeline = ScrapePipeline(runner, session, config.scraper.target_url)
    scheduler = ScrapeScheduler(pipeline, interval_ms=config.scraper.scrape_interval_ms)
    return Application(registry=registry, runner=runner, pipeline=pipeline, scheduler=scheduler)
