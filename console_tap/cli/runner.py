"""CLI runner for browser-console-tap with exit code mapping.

This module runs one capture from a merged TapConfig and maps the outcome
to process exit codes suitable for scripts and CI jobs.
"""

import logging
from enum import IntEnum
from typing import Optional

import typer

from ..capture.browser_factory import BrowserConfig, BrowserFactory
from ..capture.diagnostics import StatusPolicy
from ..capture.page_session import PageSession, PageSessionConfig
from ..capture.recorder import SessionRecorder
from ..models.capture import CaptureStatus, TapResult
from .config import TapConfig
from .render import ConsoleRenderer

logger = logging.getLogger(__name__)


class ExitCode(IntEnum):
    """CLI exit codes.

    Values 0, 3, 4 and 5 keep the meaning they have in the rest of the
    tooling; 130 follows the shell convention for SIGINT.
    """
    SUCCESS = 0           # Page observed for the full window
    CONFIG_ERROR = 3      # Invalid arguments or configuration
    RUNTIME_ERROR = 4     # Browser or navigation failure
    TIMEOUT_ERROR = 5     # Navigation timed out
    INTERRUPTED = 130     # Interrupted by the user


STATUS_EXIT_CODES = {
    CaptureStatus.SUCCESS: ExitCode.SUCCESS,
    CaptureStatus.TIMEOUT: ExitCode.TIMEOUT_ERROR,
    CaptureStatus.FAILED: ExitCode.RUNTIME_ERROR,
}


class TapRunner:
    """Runs a single capture and reports it."""

    def __init__(
        self,
        url: str,
        config: TapConfig,
        renderer: Optional[ConsoleRenderer] = None,
        factory: Optional[BrowserFactory] = None,
    ):
        """Initialize the runner.

        Args:
            url: Page to observe
            config: Merged configuration
            renderer: Terminal renderer (one is built from config when omitted)
            factory: Browser factory (one is built from config when omitted)
        """
        self.url = url
        self.config = config
        self.renderer = renderer or ConsoleRenderer(
            color=config.output.color,
            verbose=config.output.verbose,
            track_network=config.capture.track_network,
            network_verbose=config.capture.network_verbose,
            max_value_length=config.capture.max_value_length,
        )
        self.factory = factory or BrowserFactory(self._browser_config())
        self.result: Optional[TapResult] = None

    @property
    def live_output(self) -> bool:
        return not self.config.output.json_output

    def _browser_config(self) -> BrowserConfig:
        return BrowserConfig(
            headless=self.config.browser.headless,
            user_agent=self.config.browser.user_agent,
        )

    def _session_config(self) -> PageSessionConfig:
        capture = self.config.capture
        return PageSessionConfig(
            observation_window_ms=capture.delay_ms,
            navigation_timeout_ms=capture.timeout_ms,
            track_network=capture.track_network,
            extra_headers=self.config.browser.extra_headers,
        )

    def _recorder(self) -> SessionRecorder:
        capture = self.config.capture
        return SessionRecorder(
            stale_threshold_ms=capture.stale_threshold_ms,
            status_policy=StatusPolicy(failure_threshold=capture.fail_status),
            max_value_length=capture.max_value_length,
        )

    def _attach_renderer(self, session: PageSession) -> None:
        if not self.live_output:
            return
        session.add_console_callback(self.renderer.console_entry)
        session.add_failure_callback(self.renderer.request_failed)
        delay_ms = self.config.capture.delay_ms
        session.add_loaded_callback(lambda _: self.renderer.page_loaded(delay_ms))

    async def run(self) -> ExitCode:
        """Launch the browser, observe the page and print the report.

        Returns:
            Exit code for the process
        """
        if self.live_output:
            self.renderer.banner(
                self.url,
                self.config.capture.delay_ms,
                self.config.capture.timeout_ms,
                self.config.browser.headless,
                self.config.browser.extra_headers,
            )

        try:
            await self.factory.start()
        except Exception as e:
            logger.debug("Browser launch failed", exc_info=True)
            self.renderer.error(str(e))
            return ExitCode.RUNTIME_ERROR

        try:
            async with self.factory.page() as page:
                session = PageSession(page, self._session_config(), recorder=self._recorder())
                self._attach_renderer(session)

                if self.live_output:
                    self.renderer.navigating(self.url)
                self.result = await session.capture(self.url)

            exit_code = self._report(self.result)

        except Exception as e:
            logger.debug("Capture failed", exc_info=True)
            self.renderer.error(str(e))
            exit_code = ExitCode.RUNTIME_ERROR

        finally:
            await self.factory.stop()
            if self.live_output:
                self.renderer.browser_closed()

        return exit_code

    def _report(self, result: TapResult) -> ExitCode:
        if self.config.output.json_output:
            typer.echo(result.model_dump_json(indent=2))
        elif result.is_successful:
            self.renderer.completion(result)
        else:
            self.renderer.error(result.error or result.status.value)

        exit_code = STATUS_EXIT_CODES[result.status]
        logger.debug(f"Capture of {result.url} finished with exit code {exit_code.value}")
        return exit_code
