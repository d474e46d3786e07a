"""Browser collaborator for the scrape pipeline.

The pipeline only depends on the BrowserSession protocol. PlaywrightSession
is the production implementation over ``playwright.async_api``; rendering,
stealth and selector strategy stay with the browser engine and the
injected extractor.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Protocol, runtime_checkable

from playwright.async_api import Browser, Page, Playwright, async_playwright

from .config import ScraperConfig
from .errors import BrowserLaunchError, NonRetryableError

logger = logging.getLogger(__name__)

# Extractor callable: receives the loaded page, returns listing records
Extractor = Callable[[Page], Awaitable[list[dict[str, Any]]]]

LAUNCH_ARGS = [
    "--disable-blink-features=AutomationControlled",
    "--disable-infobars",
    "--no-first-run",
]

_TEXT_EXTRACT_JS = """
els => els
    .map(e => (e.innerText || '').trim())
    .filter(t => t.length > 0)
    .map(t => ({ text: t }))
"""


@runtime_checkable
class BrowserSession(Protocol):
    """Protocol for the browser-automation collaborator.

    Every method may raise; the pipeline treats failures as opaque and lets
    the stage runner classify them.
    """

    async def launch(self) -> None: ...

    async def navigate(self, url: str) -> None: ...

    async def wait_for_content(self) -> None: ...

    async def settle(self) -> None: ...

    async def extract_records(self) -> list[dict[str, Any]]: ...

    async def close(self) -> None: ...


class PlaywrightSession:
    """Headless Chromium session driven by Playwright.

    Each ``launch`` call starts a fresh Playwright driver and browser, so a
    retried launch never reuses a half-started process. ``navigate`` opens a
    new page per attempt for the same reason.
    """

    def __init__(self, config: ScraperConfig, extractor: Extractor | None = None) -> None:
        self._config = config
        self._extractor = extractor
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._page: Page | None = None

    @property
    def page(self) -> Page | None:
        return self._page

    async def launch(self) -> None:
        await self.close()
        launch_kwargs: dict[str, Any] = {
            "headless": self._config.headless,
            "args": LAUNCH_ARGS,
        }
        if self._config.chrome_executable:
            launch_kwargs["executable_path"] = self._config.chrome_executable
            logger.info("Using custom Chrome executable: %s", self._config.chrome_executable)
        else:
            logger.info("Using Playwright bundled Chromium")

        try:
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(**launch_kwargs)
        except Exception as e:
            await self.close()
            raise BrowserLaunchError(f"Failed to launch browser: {e}", cause=e) from e

    async def navigate(self, url: str) -> None:
        if self._browser is None:
            raise BrowserLaunchError("Browser is not running")
        if self._page is not None:
            await self._close_page()
        self._page = await self._browser.new_page()
        logger.info("Navigating to: %s", url)
        await self._page.goto(
            url,
            wait_until="networkidle",
            timeout=self._config.navigation_timeout_ms,
        )

    async def wait_for_content(self) -> None:
        page = self._require_page()
        await page.wait_for_selector("body", timeout=self._config.content_timeout_ms)
        await page.wait_for_selector(
            self._config.content_selector,
            timeout=self._config.content_timeout_ms,
        )
        logger.info("Listing content detected")

    async def settle(self) -> None:
        """Scroll to the bottom a few times so lazy-loaded rows render."""
        page = self._require_page()
        for _ in range(self._config.scroll_passes):
            await page.mouse.wheel(0, 1200)
            await asyncio.sleep(self._config.scroll_pause_ms / 1000)
        await page.evaluate("window.scrollTo(0, 0)")

    async def extract_records(self) -> list[dict[str, Any]]:
        page = self._require_page()
        if self._extractor is not None:
            return await self._extractor(page)
        return await page.eval_on_selector_all(self._config.listing_selector, _TEXT_EXTRACT_JS)

    async def close(self) -> None:
        await self._close_page()
        if self._browser is not None:
            try:
                await self._browser.close()
            except Exception as e:
                logger.warning("Failed to close browser cleanly: %s", e)
            self._browser = None
        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except Exception as e:
                logger.warning("Failed to stop Playwright driver cleanly: %s", e)
            self._playwright = None

    async def _close_page(self) -> None:
        if self._page is None:
            return
        try:
            await self._page.close()
        except Exception as e:
            logger.debug("Ignoring page close failure: %s", e)
        self._page = None

    def _require_page(self) -> Page:
        if self._page is None:
            raise NonRetryableError("No page is open; navigate first")
        return self._page
