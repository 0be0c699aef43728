#!/usr/bin/env python3
"""
Programmatic capture example for browser-console-tap.

Shows the library API without the CLI: a live PageSession against an
inline test page, and a SessionRecorder fed with events directly (the
way a test or a non-Playwright event source would drive it).
"""

import asyncio
from pathlib import Path
import sys

# Add the parent directory to Python path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from console_tap.capture import (
    BrowserConfig,
    BrowserFactory,
    PageSession,
    PageSessionConfig,
    SessionRecorder,
)
from console_tap.models.events import RequestFailed, RequestStart, Response

PAGE_URL = "data:text/html,<script>console.log('hello', {answer: 42}); console.warn('careful')</script>"


async def live_capture_example():
    """Observe a page for one second and print its console transcript."""
    print("=== Live Capture Example ===")

    async with BrowserFactory(BrowserConfig(headless=True)) as factory:
        async with factory.page() as page:
            session = PageSession(page, PageSessionConfig(observation_window_ms=1000, track_network=True))
            session.add_console_callback(lambda entry: print(f"  live: {entry.display_text}"))

            result = await session.capture(PAGE_URL)

    print(f"Status: {result.status.value}")
    for entry in result.console:
        print(f"- [{entry.display_class.value}] {entry.display_text}")
    print(f"Network exchanges: {len(result.exchanges)}")


def recorder_example():
    """Drive the ledger and diagnostics with synthetic events."""
    print("\n=== Recorder Example ===")

    recorder = SessionRecorder(stale_threshold_ms=0)
    recorder.handle(RequestStart(url="https://example.com/", method="GET", resource_type="document"))
    recorder.handle(RequestStart(url="https://example.com/api", method="POST", resource_type="fetch"))
    recorder.handle(RequestStart(url="https://cdn.example.net/app.js", method="GET", resource_type="script"))
    recorder.handle(Response(url="https://example.com/", method="GET", status=200))
    recorder.handle(RequestFailed(url="https://example.com/api", method="POST", reason="net::ERR_ABORTED"))

    report = recorder.summarize()
    print(f"Successful: {report.successful} (clean: {report.clean})")
    print(f"Failed: {[entry.url for entry in report.failed_exchanges]}")
    print(f"Pending hosts: {list(report.pending_hosts)}")


async def main():
    await live_capture_example()
    recorder_example()


if __name__ == "__main__":
    asyncio.run(main())
