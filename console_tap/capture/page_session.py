"""Page session orchestration for one observation window.

This module provides the PageSession class that wires the console and
network observers to a SessionRecorder, navigates to the target page,
keeps observing for the configured window and assembles the TapResult.
"""

import logging
from typing import Callable, Dict, List, Optional

from playwright.async_api import Page, Request, TimeoutError as PlaywrightTimeoutError

from ..models.capture import CaptureStatus, NetworkExchange, TapResult, TranscriptEntry
from .console_observer import ConsoleObserver
from .network_observer import NetworkObserver
from .recorder import SessionRecorder

logger = logging.getLogger(__name__)


class WaitUntil:
    """Navigation lifecycle events accepted by page.goto."""
    COMMIT = "commit"
    DOMCONTENTLOADED = "domcontentloaded"
    LOAD = "load"
    NETWORKIDLE = "networkidle"


class PageSessionConfig:
    """Configuration for a page observation session."""

    def __init__(
        self,
        observation_window_ms: int = 3000,
        navigation_timeout_ms: int = 30000,
        wait_until: str = WaitUntil.DOMCONTENTLOADED,
        track_network: bool = False,
        extra_headers: Optional[Dict[str, str]] = None,
    ):
        """Initialize page session configuration.

        Args:
            observation_window_ms: How long to keep observing after load
            navigation_timeout_ms: Maximum time allowed for navigation
            wait_until: Lifecycle event that ends navigation
            track_network: Whether to track requests, responses and websockets
            extra_headers: Additional HTTP headers set on the page
        """
        self.observation_window_ms = observation_window_ms
        self.navigation_timeout_ms = navigation_timeout_ms
        self.wait_until = wait_until
        self.track_network = track_network
        self.extra_headers = extra_headers or {}


class PageSession:
    """Observes a single page load and produces a TapResult."""

    def __init__(
        self,
        page: Page,
        config: PageSessionConfig,
        recorder: Optional[SessionRecorder] = None,
    ):
        """Initialize page session.

        Args:
            page: Playwright page to observe
            config: Page session configuration
            recorder: Recorder for captured events (a default one is created when omitted)
        """
        self.page = page
        self.config = config
        self.recorder = recorder or SessionRecorder()
        self.result: Optional[TapResult] = None

        self.console_observer: Optional[ConsoleObserver] = None
        self.network_observer: Optional[NetworkObserver] = None
        self._failure_callbacks: List[Callable[[str, str], None]] = []
        self._loaded_callbacks: List[Callable[[str], None]] = []

        self._initialize_components()

    def _initialize_components(self) -> None:
        """Attach observers to the page."""
        self.console_observer = ConsoleObserver(self.page, self.recorder)

        if self.config.track_network:
            self.network_observer = NetworkObserver(self.page, self.recorder)
        else:
            self.page.on("requestfailed", self._on_untracked_failure)

        logger.debug(f"Page session initialized (track_network={self.config.track_network})")

    def add_console_callback(self, callback: Callable[[TranscriptEntry], None]) -> None:
        """Call back with each console record or page error as it is recorded."""
        self.recorder.transcript.add_callback(callback)

    def add_exchange_callback(self, callback: Callable[[NetworkExchange], None]) -> None:
        """Call back with each exchange as it is created or resolved."""
        self.recorder.ledger.add_callback(callback)

    def add_failure_callback(self, callback: Callable[[str, str], None]) -> None:
        """Call back with (url, reason) for failed requests while network tracking is off."""
        self._failure_callbacks.append(callback)

    def add_loaded_callback(self, callback: Callable[[str], None]) -> None:
        """Call back with the URL once navigation completes, before the observation window."""
        self._loaded_callbacks.append(callback)

    def _on_untracked_failure(self, request: Request) -> None:
        try:
            url = request.url
            reason = request.failure or "Unknown error"
        except Exception as e:
            logger.error(f"Error reading failed request: {e}")
            return

        for callback in self._failure_callbacks:
            try:
                callback(url, reason)
            except Exception as e:
                logger.error(f"Error in request failure callback: {e}")

    async def capture(self, url: str) -> TapResult:
        """Navigate to url and observe it for the configured window.

        Args:
            url: Page URL to observe

        Returns:
            TapResult with transcript, exchanges and diagnostics
        """
        clock = self.recorder.clock
        self.result = TapResult(url=url, started_at=clock())

        try:
            if self.config.extra_headers:
                await self.page.set_extra_http_headers(self.config.extra_headers)

            await self._navigate(url)

            for callback in self._loaded_callbacks:
                try:
                    callback(url)
                except Exception as e:
                    logger.error(f"Error in page loaded callback: {e}")

            logger.debug(f"Observing for {self.config.observation_window_ms}ms")
            await self.page.wait_for_timeout(self.config.observation_window_ms)

        except PlaywrightTimeoutError as e:
            logger.error(f"Navigation timed out: {e}")
            self.result.status = CaptureStatus.TIMEOUT
            self.result.error = str(e)

        except Exception as e:
            logger.error(f"Page capture failed: {e}")
            self.result.status = CaptureStatus.FAILED
            self.result.error = str(e)

        await self._finalize()

        logger.info(
            f"Capture finished for {url}: {self.result.status.value}, "
            f"{self.result.console_message_count} console messages, "
            f"{len(self.result.exchanges)} exchanges"
        )
        return self.result

    async def _navigate(self, url: str) -> None:
        logger.debug(f"Navigating to {url} (wait_until={self.config.wait_until})")
        await self.page.goto(
            url,
            wait_until=self.config.wait_until,
            timeout=self.config.navigation_timeout_ms,
        )

    async def _finalize(self) -> None:
        """Flush pending console work and snapshot the recorder."""
        if self.console_observer:
            await self.console_observer.drain()

        self.result.console = list(self.recorder.console_snapshot())

        if self.config.track_network:
            self.result.exchanges = list(self.recorder.network_snapshot())
            self.result.diagnostics = self.recorder.summarize()

        self.result.finished_at = self.recorder.clock()

    def __repr__(self) -> str:
        return (
            f"PageSession(track_network={self.config.track_network}, "
            f"window={self.config.observation_window_ms}ms, "
            f"recorder={self.recorder!r})"
        )
