"""Unit tests for the session recorder."""

import pytest

from console_tap.capture.diagnostics import StatusPolicy
from console_tap.capture.recorder import SessionRecorder
from console_tap.models.events import (
    ConsoleEvent,
    PageError,
    RequestFailed,
    RequestStart,
    Response,
    WebSocketClosed,
    WebSocketError,
    WebSocketOpened,
)


class TestSessionRecorder:
    """Tests for event routing and snapshots."""

    def test_network_events_routed(self, recorder, clock):
        first = recorder.handle(RequestStart(url="https://example.com/", method="GET", resource_type="document"))
        second = recorder.handle(RequestStart(url="https://example.com/api", method="POST", body="{}"))
        clock.advance(50)
        recorder.handle(Response(url="https://example.com/", method="GET", status=200))
        recorder.handle(RequestFailed(url="https://example.com/api", method="POST", reason="aborted"))

        exchanges = recorder.network_snapshot()
        assert (first, second) == (0, 1)
        assert exchanges[0].outcome.status == 200
        assert exchanges[0].outcome.duration_ms == 50
        assert exchanges[1].outcome.reason == "aborted"

    def test_websocket_events_routed(self, recorder):
        closed = recorder.handle(WebSocketOpened(url="wss://example.com/a"))
        errored = recorder.handle(WebSocketOpened(url="wss://example.com/b"))
        recorder.handle(WebSocketClosed(handle=closed))
        recorder.handle(WebSocketError(handle=errored, reason="reset"))

        exchanges = recorder.network_snapshot()
        assert exchanges[closed].outcome.status == "CLOSED"
        assert exchanges[errored].outcome.reason == "WebSocket error: reset"

    def test_console_events_return_none(self, recorder):
        assert recorder.handle(ConsoleEvent(severity="log", raw_text="hi")) is None
        assert recorder.handle(PageError(message="boom")) is None
        assert len(recorder.console_snapshot()) == 2

    def test_unknown_event_rejected(self, recorder):
        with pytest.raises(TypeError):
            recorder.handle(object())

    def test_summarize_uses_recorder_settings(self, clock):
        recorder = SessionRecorder(
            clock=clock,
            stale_threshold_ms=100,
            status_policy=StatusPolicy(failure_threshold=500),
        )
        recorder.handle(RequestStart(url="https://example.com/a", method="GET"))
        recorder.handle(RequestStart(url="https://example.com/b", method="GET"))
        recorder.handle(Response(url="https://example.com/a", method="GET", status=404))
        clock.advance(150)

        report = recorder.summarize()

        assert report.successful == 1
        assert report.failed == 0
        assert len(report.stuck_exchanges) == 1
        assert report.stale_threshold_ms == 100
        assert report.generated_at == clock()

    def test_summarize_threshold_override(self, recorder, clock):
        recorder.handle(RequestStart(url="https://example.com/a", method="GET"))
        clock.advance(6000)

        assert len(recorder.summarize().stuck_exchanges) == 1
        assert len(recorder.summarize(stale_threshold_ms=10000).stuck_exchanges) == 0

    def test_stats(self, recorder):
        recorder.handle(ConsoleEvent(severity="error", raw_text="bad"))
        recorder.handle(RequestStart(url="https://example.com/", method="GET"))

        stats = recorder.get_stats()
        assert stats['console']['error_messages'] == 1
        assert stats['network']['pending_requests'] == 1
        assert "console=1" in repr(recorder)

    def test_exchanges_indexed_by_url(self, recorder, clock):
        """Test a page load with 200, 404 and a never-answered request, looked up by URL."""
        page_url = "http://127.0.0.1:8000/"
        recorder.handle(RequestStart(url=page_url, method="GET", resource_type="document"))
        recorder.handle(RequestStart(url=page_url + "missing.json", method="GET", resource_type="fetch"))
        recorder.handle(RequestStart(url=page_url + "slow.js", method="GET", resource_type="script"))
        clock.advance(40)
        recorder.handle(Response(url=page_url, method="GET", status=200))
        recorder.handle(Response(url=page_url + "missing.json", method="GET", status=404))
        clock.advance(960)

        by_url = {exchange.url: exchange for exchange in recorder.network_snapshot()}
        report = recorder.summarize()

        assert by_url[page_url].outcome.status == 200
        assert by_url[page_url].request.resource_type == "document"
        assert by_url[page_url + "missing.json"].outcome.status == 404
        assert by_url[page_url + "slow.js"].is_pending
        assert (report.successful, report.failed, report.pending) == (1, 1, 1)
        assert report.stuck_exchanges == ()
