"""Terminal rendering of live console output and the post-capture report.

ConsoleRenderer prints the startup banner, echoes console records and page
errors as they are recorded, and after the observation window prints the
network summary, issues and diagnostics blocks.
"""

import json
from typing import Dict, Optional, Union

import typer

from ..capture.formatting import DEFAULT_MAX_LENGTH, format_headers_block, format_value
from ..models.capture import (
    Completed,
    DiagnosticsReport,
    DisplayClass,
    ExchangeKind,
    Failed,
    NetworkExchange,
    PageErrorRecord,
    ResourceCategory,
    TapResult,
    TranscriptEntry,
)

DISPLAY_COLORS = {
    DisplayClass.ALERT: typer.colors.RED,
    DisplayClass.CAUTION: typer.colors.YELLOW,
    DisplayClass.NORMAL: typer.colors.GREEN,
}

MUTED = typer.colors.BRIGHT_BLACK

PENDING_CATEGORY_WARNINGS = {
    ResourceCategory.SCRIPT: "JavaScript files pending - may cause page functionality issues",
    ResourceCategory.STYLESHEET: "CSS files pending - may cause styling issues",
    ResourceCategory.IMAGE: "images pending - may cause visual issues",
}


def status_color(status: Union[int, str]) -> str:
    """Color for a response status in network listings."""
    if not isinstance(status, int) or status >= 400:
        return typer.colors.RED
    if status >= 300:
        return typer.colors.YELLOW
    return typer.colors.GREEN


class ConsoleRenderer:
    """Writes human-readable capture output to the terminal."""

    def __init__(
        self,
        color: bool = True,
        verbose: bool = False,
        track_network: bool = False,
        network_verbose: bool = False,
        max_value_length: Optional[int] = DEFAULT_MAX_LENGTH,
    ):
        self.color = color
        self.verbose = verbose
        self.track_network = track_network or network_verbose
        self.network_verbose = network_verbose
        self.max_value_length = max_value_length

    def _say(self, text: str, fg: Optional[str] = None, err: bool = False) -> None:
        if self.color and fg:
            typer.secho(text, fg=fg, err=err)
        else:
            typer.echo(text, err=err)

    def banner(
        self,
        url: str,
        delay_ms: int,
        timeout_ms: int,
        headless: bool,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        self._say("🚀 Starting browser-console-tap", typer.colors.BLUE)
        self._say(f"URL: {url}", MUTED)
        self._say(f"Delay: {delay_ms}ms", MUTED)
        self._say(f"Timeout: {timeout_ms}ms", MUTED)
        self._say(f"Headless: {'Yes' if headless else 'No'}", MUTED)
        if self.track_network:
            self._say(f"Network tracking: {'Verbose' if self.network_verbose else 'Basic'}", MUTED)
        if headers:
            self._say(f"Headers: {json.dumps(headers, separators=(',', ':'))}", MUTED)
        self._say("")

    def navigating(self, url: str) -> None:
        self._say(f"📄 Navigating to {url}...", typer.colors.BLUE)

    def page_loaded(self, delay_ms: int) -> None:
        self._say("✅ Page loaded successfully", typer.colors.GREEN)
        self._say(f"⏳ Waiting {delay_ms}ms for console activity...", typer.colors.BLUE)

    def console_entry(self, entry: TranscriptEntry) -> None:
        """Echo one transcript entry as it is recorded."""
        if isinstance(entry, PageErrorRecord):
            self._say(f"[pageerror] {entry.message}", typer.colors.RED, err=True)
            return
        self._say(
            f"[console.{entry.severity}] {entry.display_text}",
            DISPLAY_COLORS[entry.display_class],
        )

    def request_failed(self, url: str, reason: str) -> None:
        """Echo an untracked request failure (verbose mode without network tracking)."""
        if self.verbose and not self.track_network:
            self._say(f"[requestfailed] {url} - {reason}", typer.colors.RED, err=True)

    def error(self, message: str) -> None:
        self._say(f"❌ Error: {message}", typer.colors.RED, err=True)

    def interrupted(self) -> None:
        self._say("\n⚠️  Interrupted by user", typer.colors.YELLOW, err=True)

    def browser_closed(self) -> None:
        self._say("🔚 Browser closed", typer.colors.BLUE)

    def completion(self, result: TapResult) -> None:
        """Print the post-capture report."""
        self._say("✅ Capture complete!", typer.colors.GREEN)
        self._say(f"📊 Captured {result.console_message_count} console messages", MUTED)

        if not self.track_network or result.diagnostics is None:
            return

        report = result.diagnostics
        self._say(
            f"🌐 Network: {report.successful} successful, {report.failed} failed, "
            f"{report.pending} pending requests",
            MUTED,
        )

        if report.has_issues:
            self._issues(report)

        if not result.exchanges:
            return
        if self.network_verbose:
            self._detailed_listing(result)
        else:
            self._summary_listing(result)

    def _issues(self, report: DiagnosticsReport) -> None:
        self._say("⚠️  Network Issues Detected:", typer.colors.YELLOW)

        if report.failed_exchanges:
            self._say(f"   {report.failed} failed requests:", typer.colors.RED)
            for index, entry in enumerate(report.failed_exchanges, 1):
                detail = entry.reason if entry.reason is not None else f"HTTP {entry.status}"
                self._say(f"     {index}. {entry.method} {entry.url} - {detail}", typer.colors.RED)

        if report.pending_exchanges:
            self._say(
                f"   {report.pending} pending requests (no response received):",
                typer.colors.YELLOW,
            )
            for index, entry in enumerate(report.pending_exchanges, 1):
                self._say(
                    f"     {index}. {entry.method} {entry.url} - Pending for {entry.age_ms}ms",
                    typer.colors.YELLOW,
                )

        self._say("\n🔍 Network Diagnostics:", typer.colors.BLUE)

        for category, warning in PENDING_CATEGORY_WARNINGS.items():
            count = len(report.pending_in(category))
            if count:
                self._say(f"   ⚠️  {count} {warning}", typer.colors.YELLOW)

        if report.stuck_exchanges:
            seconds = f"{report.stale_threshold_ms / 1000:g}"
            self._say(
                f"   🚨 {len(report.stuck_exchanges)} requests pending for >{seconds} seconds "
                f"- possible network connectivity issues",
                typer.colors.RED,
            )

        if report.spans_multiple_hosts:
            self._say(
                f"   📡 Pending requests span {report.pending_host_count} different domains",
                typer.colors.YELLOW,
            )

    def _summary_listing(self, result: TapResult) -> None:
        self._say("\n📋 Network Summary:", typer.colors.BLUE)
        for index, exchange in enumerate(result.exchanges, 1):
            request_type = "WEBSOCKET" if exchange.kind == ExchangeKind.WEBSOCKET else exchange.method
            prefix = f"  {index}. {request_type} {exchange.url}"
            outcome = exchange.outcome
            if isinstance(outcome, Completed):
                self._say(
                    f"{prefix} - {outcome.status} ({outcome.duration_ms}ms)",
                    status_color(outcome.status),
                )
            elif isinstance(outcome, Failed):
                self._say(f"{prefix} - FAILED: {outcome.reason}", typer.colors.RED)
            else:
                self._say(f"{prefix} - PENDING", typer.colors.YELLOW)

    def _detailed_listing(self, result: TapResult) -> None:
        self._say("\n📋 Network Requests (collected during timeout):", typer.colors.BLUE)
        for index, exchange in enumerate(result.exchanges, 1):
            self._exchange_detail(index, exchange)

    def _exchange_detail(self, index: int, exchange: NetworkExchange) -> None:
        request = exchange.request
        self._say(f"\n{index}. [REQUEST] {exchange.request_type} {exchange.url}", typer.colors.CYAN)
        if request.resource_type:
            self._say(f"   Resource Type: {request.resource_type}", MUTED)
        if exchange.kind == ExchangeKind.WEBSOCKET_UPGRADE:
            self._say("   WebSocket Upgrade Request", typer.colors.BLUE)
        self._say(f"   Headers: {format_headers_block(request.headers, self.max_value_length)}", MUTED)
        if request.body:
            self._say(f"   Post Data: {format_value(request.body, self.max_value_length)}", MUTED)

        outcome = exchange.outcome
        if isinstance(outcome, Completed):
            self._say(
                f"   [RESPONSE] {outcome.status} ({outcome.duration_ms}ms)",
                status_color(outcome.status),
            )
            self._say(
                f"   Response Headers: {format_headers_block(outcome.headers, self.max_value_length)}",
                MUTED,
            )
        elif isinstance(outcome, Failed):
            self._say(f"   [FAILED] {outcome.reason}", typer.colors.RED)
        else:
            self._say("   [PENDING] No response received", typer.colors.YELLOW)
