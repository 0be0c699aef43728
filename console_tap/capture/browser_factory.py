"""Chromium launch and per-capture browser contexts.

A capture run needs one browser and one fresh context whose options come
from the command line. BrowserFactory owns the Playwright driver for the
life of a run and hands out pages that clean up after themselves.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright

logger = logging.getLogger(__name__)


class BrowserConfig:
    """Launch and context options for the capture browser."""

    def __init__(
        self,
        headless: bool = True,
        user_agent: Optional[str] = None,
        launch_args: Optional[List[str]] = None,
        viewport: Optional[Dict[str, int]] = None,
    ):
        """Initialize browser options.

        Args:
            headless: Launch Chromium without a window
            user_agent: User-Agent for every page in the context
            launch_args: Extra Chromium command line switches
            viewport: Viewport size dict with 'width' and 'height'
        """
        self.headless = headless
        self.user_agent = user_agent
        self.launch_args = list(launch_args or [])
        self.viewport = viewport

    def launch_options(self) -> Dict[str, Any]:
        options: Dict[str, Any] = {'headless': self.headless}
        if self.launch_args:
            options['args'] = self.launch_args
        return options

    def context_options(self) -> Dict[str, Any]:
        options: Dict[str, Any] = {}
        if self.user_agent:
            options['user_agent'] = self.user_agent
        if self.viewport:
            options['viewport'] = self.viewport
        return options


class BrowserFactory:
    """Owns the Playwright driver and the Chromium instance for one run."""

    def __init__(self, config: Optional[BrowserConfig] = None):
        self.config = config or BrowserConfig()
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None

    @property
    def browser(self) -> Optional[Browser]:
        return self._browser

    @property
    def is_running(self) -> bool:
        return self._browser is not None and self._browser.is_connected()

    async def start(self) -> None:
        """Start the Playwright driver and launch Chromium.

        Raises:
            Exception: Whatever Playwright raises when the browser cannot be
                launched (for example a missing executable); the driver is
                stopped before re-raising
        """
        if self._browser is not None:
            logger.warning("Browser already launched, ignoring start()")
            return

        self._playwright = await async_playwright().start()
        try:
            self._browser = await self._playwright.chromium.launch(**self.config.launch_options())
        except Exception as e:
            logger.error(f"Chromium launch failed: {e}")
            await self.stop()
            raise

        logger.info(f"Chromium launched (headless={self.config.headless})")

    async def stop(self) -> None:
        """Close the browser and the driver; safe to call more than once."""
        browser, self._browser = self._browser, None
        driver, self._playwright = self._playwright, None

        if browser is not None:
            try:
                await browser.close()
            except Exception as e:
                logger.warning(f"Error closing browser: {e}")

        if driver is not None:
            try:
                await driver.stop()
            except Exception as e:
                logger.warning(f"Error stopping Playwright driver: {e}")

        logger.debug("Browser factory stopped")

    async def __aenter__(self) -> "BrowserFactory":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    async def new_context(self, **overrides: Any) -> BrowserContext:
        """Open a browser context with the configured options.

        Raises:
            RuntimeError: If the browser has not been launched
        """
        if self._browser is None:
            raise RuntimeError("Browser not launched; call start() first")

        options = {**self.config.context_options(), **overrides}
        logger.debug(f"Opening browser context ({', '.join(sorted(options)) or 'defaults'})")
        return await self._browser.new_context(**options)

    @asynccontextmanager
    async def page(self, **overrides: Any) -> AsyncIterator[Page]:
        """Yield a page in a fresh context; the context is closed on exit."""
        context = await self.new_context(**overrides)
        try:
            yield await context.new_page()
        finally:
            await context.close()

    def __repr__(self) -> str:
        return f"BrowserFactory(headless={self.config.headless}, running={self.is_running})"
