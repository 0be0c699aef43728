"""Unit tests for network ledger and network observer."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from console_tap.capture.network_observer import (
    WEBSOCKET_CLOSED,
    NetworkLedger,
    NetworkObserver,
    is_websocket_upgrade,
    websocket_upgrade_headers,
)
from console_tap.models.capture import Completed, ExchangeKind, Failed, Pending


class TestNetworkLedger:
    """Tests for NetworkLedger correlation and lifecycle."""

    @pytest.fixture
    def ledger(self, clock):
        return NetworkLedger(clock=clock)

    def test_request_creates_pending_exchange(self, ledger):
        exchange_id = ledger.on_request_start(
            "https://example.com/api", "POST", {"content-type": "application/json"}, '{"a":1}', "fetch"
        )

        exchange = ledger.snapshot()[exchange_id]
        assert isinstance(exchange.outcome, Pending)
        assert exchange.kind == ExchangeKind.HTTP
        assert exchange.request.headers == {"content-type": "application/json"}
        assert exchange.request.body == '{"a":1}'
        assert exchange.request.resource_type == "fetch"

    def test_response_completes_with_duration(self, ledger, clock):
        exchange_id = ledger.on_request_start("https://example.com/", "GET")
        clock.advance(120)
        ledger.on_response("https://example.com/", "GET", 200, {"server": "x"})

        exchange = ledger.snapshot()[exchange_id]
        assert isinstance(exchange.outcome, Completed)
        assert exchange.outcome.status == 200
        assert exchange.outcome.duration_ms == 120
        assert exchange.outcome.headers == {"server": "x"}

    def test_fifo_matching_per_key(self, ledger, clock):
        """Test responses sharing (url, method) resolve requests in creation order."""
        first = ledger.on_request_start("https://example.com/poll", "GET")
        clock.advance(10)
        second = ledger.on_request_start("https://example.com/poll", "GET")
        clock.advance(10)

        ledger.on_response("https://example.com/poll", "GET", 200)
        snapshot = ledger.snapshot()
        assert snapshot[first].is_completed
        assert snapshot[second].is_pending

        ledger.on_response("https://example.com/poll", "GET", 304)
        snapshot = ledger.snapshot()
        assert snapshot[first].outcome.status == 200
        assert snapshot[second].outcome.status == 304
        assert snapshot[first].outcome.duration_ms == 20
        assert snapshot[second].outcome.duration_ms == 10

    def test_method_is_part_of_key(self, ledger):
        get_id = ledger.on_request_start("https://example.com/item", "GET")
        post_id = ledger.on_request_start("https://example.com/item", "POST")

        ledger.on_response("https://example.com/item", "POST", 201)

        snapshot = ledger.snapshot()
        assert snapshot[get_id].is_pending
        assert snapshot[post_id].outcome.status == 201

    def test_match_earliest_pending(self, ledger):
        key = ("https://example.com/a", "GET")
        assert ledger.match_earliest_pending(key) is None

        first = ledger.on_request_start(*key)
        second = ledger.on_request_start(*key)

        assert ledger.match_earliest_pending(key) == first
        assert ledger.match_earliest_pending(key) == second
        assert ledger.match_earliest_pending(key) is None

    def test_unmatched_response_is_dropped(self, ledger):
        """Test a response with no pending request creates nothing."""
        ledger.on_response("https://example.com/ghost", "GET", 200)

        assert len(ledger) == 0
        assert len(ledger.anomalies) == 1
        assert "ghost" in ledger.anomalies[0]

    def test_response_after_completion_is_dropped(self, ledger):
        exchange_id = ledger.on_request_start("https://example.com/", "GET")
        ledger.on_response("https://example.com/", "GET", 200)
        ledger.on_response("https://example.com/", "GET", 500)

        assert ledger.snapshot()[exchange_id].outcome.status == 200
        assert len(ledger.anomalies) == 1

    def test_request_failure(self, ledger):
        exchange_id = ledger.on_request_start("https://cdn.example.com/app.js", "GET", resource_type="script")
        ledger.on_request_failed("https://cdn.example.com/app.js", "GET", "net::ERR_CONNECTION_REFUSED", "script")

        exchange = ledger.snapshot()[exchange_id]
        assert isinstance(exchange.outcome, Failed)
        assert exchange.outcome.reason == "net::ERR_CONNECTION_REFUSED"
        assert ledger.anomalies == []

    def test_unmatched_failure_creates_failed_exchange(self, ledger):
        """Test a failure with no tracked request is still recorded."""
        ledger.on_request_failed(
            "https://example.com/beacon", "POST", "net::ERR_ABORTED", "ping",
            headers={"x": "1"}, body="payload",
        )

        snapshot = ledger.snapshot()
        assert len(snapshot) == 1
        exchange = snapshot[0]
        assert exchange.is_failed
        assert exchange.method == "POST"
        assert exchange.request.resource_type == "ping"
        assert exchange.request.headers == {"x": "1"}
        assert exchange.request.body == "payload"
        assert len(ledger.anomalies) == 1

    def test_failure_does_not_change_request(self, ledger):
        exchange_id = ledger.on_request_start("https://example.com/x", "GET", resource_type="fetch")
        ledger.on_request_failed("https://example.com/x", "GET", "aborted", "xhr")

        assert ledger.snapshot()[exchange_id].request.resource_type == "fetch"

    def test_upgrade_request_kind(self, ledger):
        exchange_id = ledger.on_request_start(
            "wss://example.com/socket", "GET", {"Upgrade": "websocket"}, is_upgrade=True
        )
        exchange = ledger.snapshot()[exchange_id]
        assert exchange.kind == ExchangeKind.WEBSOCKET_UPGRADE
        assert exchange.request_type == "WEBSOCKET_UPGRADE"

    def test_websocket_lifecycle_close(self, ledger, clock):
        exchange_id = ledger.on_websocket_open("wss://example.com/live")
        exchange = ledger.snapshot()[exchange_id]

        assert exchange.method == "WEBSOCKET"
        assert exchange.kind == ExchangeKind.WEBSOCKET
        assert exchange.request.resource_type == "websocket"
        assert exchange.request.headers["host"] == "example.com"
        assert exchange.request.headers["origin"] == "https://example.com"
        assert exchange.request.body is None

        clock.advance(1500)
        ledger.on_websocket_closed(exchange_id)

        outcome = ledger.snapshot()[exchange_id].outcome
        assert outcome.status == WEBSOCKET_CLOSED
        assert outcome.headers == {}
        assert outcome.duration_ms == 1500

    def test_websocket_error(self, ledger):
        exchange_id = ledger.on_websocket_open("ws://localhost:8080/ws")
        ledger.on_websocket_error(exchange_id, "connection reset")

        outcome = ledger.snapshot()[exchange_id].outcome
        assert isinstance(outcome, Failed)
        assert outcome.reason == "WebSocket error: connection reset"

    def test_websocket_single_transition(self, ledger):
        """Test a close after an error leaves the first outcome in place."""
        exchange_id = ledger.on_websocket_open("wss://example.com/live")
        ledger.on_websocket_error(exchange_id, "boom")
        ledger.on_websocket_closed(exchange_id)

        assert ledger.snapshot()[exchange_id].is_failed
        assert len(ledger.anomalies) == 1

    def test_websocket_events_for_other_exchanges(self, ledger):
        http_id = ledger.on_request_start("https://example.com/", "GET")
        ledger.on_websocket_closed(http_id)
        ledger.on_websocket_error(99, "unknown")

        assert ledger.snapshot()[http_id].is_pending
        assert len(ledger.anomalies) == 2

    def test_websocket_not_matched_by_http_events(self, ledger):
        ledger.on_websocket_open("wss://example.com/live")
        ledger.on_response("wss://example.com/live", "WEBSOCKET", 101)

        assert ledger.snapshot()[0].is_pending

    def test_snapshot_is_stable(self, ledger):
        exchange_id = ledger.on_request_start("https://example.com/", "GET")
        before = ledger.snapshot()
        ledger.on_response("https://example.com/", "GET", 200)

        assert before[exchange_id].is_pending
        assert ledger.snapshot()[exchange_id].is_completed

    def test_ids_follow_creation_order(self, ledger):
        ids = [
            ledger.on_request_start("https://example.com/a", "GET"),
            ledger.on_websocket_open("wss://example.com/b"),
            ledger.on_request_start("https://example.com/c", "GET"),
        ]
        assert ids == [0, 1, 2]
        assert [e.exchange_id for e in ledger.snapshot()] == ids

    def test_callbacks_on_create_and_resolve(self, ledger):
        seen = []
        ledger.add_callback(lambda exchange: seen.append(exchange.outcome.state))
        ledger.add_callback(MagicMock(side_effect=RuntimeError("bad callback")))

        ledger.on_request_start("https://example.com/", "GET")
        ledger.on_response("https://example.com/", "GET", 200)

        assert seen == ["pending", "completed"]

    def test_stats(self, ledger):
        ledger.on_request_start("https://example.com/a", "GET")
        ledger.on_request_start("https://example.com/b", "GET")
        ledger.on_request_start("https://example.com/c", "GET")
        ledger.on_response("https://example.com/a", "GET", 200)
        ledger.on_request_failed("https://example.com/b", "GET", "aborted")

        stats = ledger.get_stats()
        assert stats['total_requests'] == 3
        assert stats['completed_requests'] == 1
        assert stats['failed_requests'] == 1
        assert stats['pending_requests'] == 1
        assert stats['anomalies'] == 0


class TestWebSocketHelpers:
    """Tests for websocket header helpers."""

    @pytest.mark.parametrize("headers,expected", [
        ({"upgrade": "websocket"}, True),
        ({"Upgrade": "WebSocket"}, True),
        ({"upgrade": "h2c"}, False),
        ({}, False),
        (None, False),
    ])
    def test_is_websocket_upgrade(self, headers, expected):
        assert is_websocket_upgrade(headers) is expected

    def test_origin_scheme_follows_socket_scheme(self):
        assert websocket_upgrade_headers("ws://localhost:3000/ws")["origin"] == "http://localhost:3000"
        assert websocket_upgrade_headers("wss://example.com/ws")["origin"] == "https://example.com"

    def test_base_headers_present(self):
        headers = websocket_upgrade_headers("wss://example.com/ws")
        assert headers["upgrade"] == "websocket"
        assert headers["sec-websocket-version"] == "13"


class TestNetworkObserver:
    """Tests for NetworkObserver with mocked Playwright objects."""

    @pytest.fixture
    def mock_page(self):
        """Mock Playwright page."""
        page = AsyncMock()
        page.on = MagicMock()
        return page

    @pytest.fixture
    def observer(self, mock_page, recorder):
        return NetworkObserver(mock_page, recorder)

    @pytest.fixture
    def mock_request(self):
        """Mock Playwright request."""
        request = MagicMock()
        request.url = "https://example.com/api/data"
        request.method = "GET"
        request.resource_type = "xhr"
        request.headers = {"User-Agent": "Test"}
        request.post_data = None
        request.failure = None
        return request

    @pytest.fixture
    def mock_response(self, mock_request):
        """Mock Playwright response."""
        response = MagicMock()
        response.url = mock_request.url
        response.status = 200
        response.headers = {"content-type": "application/json"}
        response.request = mock_request
        return response

    def test_listeners_registered(self, observer, mock_page):
        events = [call.args[0] for call in mock_page.on.call_args_list]
        assert events == ["request", "response", "requestfailed", "websocket"]

    def test_request_and_response(self, observer, recorder, mock_request, mock_response):
        observer._on_request(mock_request)
        observer._on_response(mock_response)

        exchange = recorder.network_snapshot()[0]
        assert exchange.url == "https://example.com/api/data"
        assert exchange.request.resource_type == "xhr"
        assert exchange.outcome.status == 200
        assert exchange.outcome.headers == {"content-type": "application/json"}

    def test_request_failed(self, observer, recorder, mock_request):
        observer._on_request(mock_request)
        mock_request.failure = "net::ERR_FAILED"
        observer._on_request_failed(mock_request)

        assert recorder.network_snapshot()[0].outcome.reason == "net::ERR_FAILED"

    def test_request_failed_without_reason(self, observer, recorder, mock_request):
        observer._on_request(mock_request)
        observer._on_request_failed(mock_request)

        assert recorder.network_snapshot()[0].outcome.reason == "Unknown error"

    def test_upgrade_request_detected(self, observer, recorder, mock_request):
        mock_request.headers = {"upgrade": "websocket", "connection": "Upgrade"}
        observer._on_request(mock_request)

        assert recorder.network_snapshot()[0].kind == ExchangeKind.WEBSOCKET_UPGRADE

    def test_websocket_close(self, observer, recorder):
        websocket = MagicMock()
        websocket.url = "wss://example.com/live"
        observer._on_websocket(websocket)

        handlers = {call.args[0]: call.args[1] for call in websocket.on.call_args_list}
        assert set(handlers) == {"close", "socketerror"}

        handlers["close"](websocket)
        assert recorder.network_snapshot()[0].outcome.status == "CLOSED"

    def test_websocket_error(self, observer, recorder):
        websocket = MagicMock()
        websocket.url = "wss://example.com/live"
        observer._on_websocket(websocket)

        handlers = {call.args[0]: call.args[1] for call in websocket.on.call_args_list}
        handlers["socketerror"]("handshake failed")

        assert recorder.network_snapshot()[0].outcome.reason == "WebSocket error: handshake failed"

    def test_listener_errors_are_contained(self, observer, recorder):
        """Test a malformed event is logged and does not propagate."""
        request = MagicMock()
        request.url = None
        observer._on_request(request)

        assert len(recorder.network_snapshot()) == 0
