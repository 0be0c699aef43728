"""Browser capture for browser-console-tap.

This package observes a single page load with Playwright and records what
the page printed to its console and which network exchanges it made.

Main Components:
- Value Formatter: Bounded display strings for arbitrary values
- Console Transcript: Ordered console records and page errors
- Network Ledger: Request lifecycle tracking with FIFO correlation
- Diagnostics: Health summary of the ledger at window close
- Session Recorder: Single entry point routing capture events
- Browser Factory: Browser launch and context creation
- Page Session: Navigation and observation window orchestration

Usage:
    from console_tap.capture import BrowserConfig, BrowserFactory, PageSession, PageSessionConfig

    async with BrowserFactory(BrowserConfig()) as factory:
        async with factory.page() as page:
            result = await PageSession(page, PageSessionConfig()).capture("https://example.com")
"""

__all__ = [
    # Formatting
    "DEFAULT_MAX_LENGTH",
    "format_value",
    "format_headers",
    "format_headers_block",
    "to_text",
    "truncate",

    # Console
    "ConsoleTranscript",
    "ConsoleObserver",
    "PrefetchedArgument",
    "Resolution",
    "resolve_argument",
    "UNRESOLVABLE",
    "ArgumentHandle",

    # Network
    "NetworkLedger",
    "NetworkObserver",
    "websocket_upgrade_headers",

    # Diagnostics
    "StatusPolicy",
    "summarize",
    "DEFAULT_STALE_THRESHOLD_MS",

    # Orchestration
    "SessionRecorder",
    "BrowserFactory",
    "BrowserConfig",
    "PageSession",
    "PageSessionConfig",
    "WaitUntil",
]

from .formatting import (
    DEFAULT_MAX_LENGTH,
    format_headers,
    format_headers_block,
    format_value,
    to_text,
    truncate,
)
from .console_observer import (
    UNRESOLVABLE,
    ArgumentHandle,
    ConsoleObserver,
    ConsoleTranscript,
    PrefetchedArgument,
    Resolution,
    resolve_argument,
)
from .network_observer import NetworkLedger, NetworkObserver, websocket_upgrade_headers
from .diagnostics import DEFAULT_STALE_THRESHOLD_MS, StatusPolicy, summarize
from .recorder import SessionRecorder
from .browser_factory import BrowserConfig, BrowserFactory
from .page_session import PageSession, PageSessionConfig, WaitUntil
