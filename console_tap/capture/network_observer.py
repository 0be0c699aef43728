"""Network exchange tracking and Playwright network observation.

``NetworkLedger`` owns every network exchange seen during an observation
window and correlates outcome notifications with the requests that caused
them. Playwright's response and failure events are matched on
``(url, method)`` plus arrival order: the earliest exchange still pending
for that key wins.

``NetworkObserver`` binds a ledger to a Playwright page through the
session recorder.
"""

import logging
from collections import deque
from datetime import datetime
from typing import TYPE_CHECKING, Callable, Deque, Dict, List, Mapping, Optional, Tuple, Union
from urllib.parse import urlparse

from playwright.async_api import Page, Request, Response as PlaywrightResponse, WebSocket

from ..models.capture import (
    Completed,
    ExchangeKind,
    Failed,
    NetworkExchange,
    Outcome,
    RequestInfo,
    elapsed_ms,
    utc_now,
)
from ..models.events import (
    RequestFailed,
    RequestStart,
    Response,
    WebSocketClosed,
    WebSocketError,
    WebSocketOpened,
)

if TYPE_CHECKING:
    from .recorder import SessionRecorder

logger = logging.getLogger(__name__)

CorrelationKey = Tuple[str, str]

WEBSOCKET_METHOD = "WEBSOCKET"
WEBSOCKET_CLOSED = "CLOSED"

# The browser does not expose the literal upgrade request of a page
# websocket, so a representative set of headers is recorded instead.
WEBSOCKET_UPGRADE_HEADERS = {
    'upgrade': 'websocket',
    'connection': 'Upgrade',
    'sec-websocket-key': 'dGhlIHNhbXBsZSBub25jZQ==',
    'sec-websocket-version': '13',
    'sec-websocket-extensions': 'permessage-deflate; client_max_window_bits',
    'accept-encoding': 'gzip, deflate, br, zstd',
    'accept-language': 'en-US,en;q=0.9,fr;q=0.8',
    'cache-control': 'no-cache',
    'pragma': 'no-cache',
    'user-agent': (
        'Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 '
        '(KHTML, like Gecko) Chrome/138.0.0.0 Safari/537.36'
    ),
}


def is_websocket_upgrade(headers: Optional[Mapping[str, str]]) -> bool:
    """Check whether request headers ask for a websocket upgrade."""
    if not headers:
        return False
    for name, value in headers.items():
        if name.lower() == 'upgrade':
            return str(value).lower() == 'websocket'
    return False


def websocket_upgrade_headers(url: str) -> Dict[str, str]:
    """Build the synthesized upgrade request headers for a websocket URL."""
    parsed = urlparse(url)
    origin_scheme = 'http' if parsed.scheme == 'ws' else 'https'
    headers = dict(WEBSOCKET_UPGRADE_HEADERS)
    headers['host'] = parsed.netloc
    headers['origin'] = f"{origin_scheme}://{parsed.netloc}"
    return headers


class NetworkLedger:
    """Tracks network exchanges from request start to outcome."""

    def __init__(self, clock: Callable[[], datetime] = utc_now):
        """Initialize an empty ledger.

        Args:
            clock: Returns the current timestamp (start times, durations)
        """
        self._clock = clock
        self._exchanges: List[NetworkExchange] = []
        self._pending: Dict[CorrelationKey, Deque[int]] = {}
        self._callbacks: List[Callable[[NetworkExchange], None]] = []
        self.anomalies: List[str] = []

    def add_callback(self, callback: Callable[[NetworkExchange], None]) -> None:
        """Add callback to be called whenever an exchange is created or resolved."""
        self._callbacks.append(callback)

    def _create(
        self,
        url: str,
        method: str,
        kind: ExchangeKind,
        headers: Optional[Mapping[str, str]],
        body: Optional[str],
        resource_type: str,
        outcome: Optional[Outcome] = None,
    ) -> NetworkExchange:
        exchange = NetworkExchange(
            exchange_id=len(self._exchanges),
            url=url,
            method=method,
            kind=kind,
            request=RequestInfo(
                headers=dict(headers or {}),
                body=body,
                resource_type=resource_type,
                started_at=self._clock(),
            ),
        )
        if outcome is not None:
            exchange = exchange.model_copy(update={'outcome': outcome})
        self._exchanges.append(exchange)
        self._notify(exchange)
        return exchange

    def _resolve(self, exchange_id: int, outcome: Outcome) -> NetworkExchange:
        """Record the single outcome transition of a pending exchange."""
        current = self._exchanges[exchange_id]
        if not current.is_pending:
            raise ValueError(f"Exchange {exchange_id} already has outcome {current.outcome.state}")
        resolved = current.model_copy(update={'outcome': outcome})
        self._exchanges[exchange_id] = resolved
        self._notify(resolved)
        return resolved

    def _notify(self, exchange: NetworkExchange) -> None:
        for callback in self._callbacks:
            try:
                callback(exchange)
            except Exception as e:
                logger.error(f"Error in network callback: {e}")

    def _note_anomaly(self, message: str) -> None:
        self.anomalies.append(message)
        logger.warning(message)

    def _duration_ms(self, exchange: NetworkExchange) -> int:
        return elapsed_ms(exchange.request.started_at, self._clock())

    def match_earliest_pending(self, key: CorrelationKey) -> Optional[int]:
        """Claim the earliest-created pending exchange for a correlation key.

        Exchanges sharing a key are matched first in, first out. The claimed
        exchange is removed from the pending queue; the caller must resolve it.

        Args:
            key: (url, method) of the outcome notification

        Returns:
            Exchange id, or None when nothing is pending for the key
        """
        queue = self._pending.get(key)
        if not queue:
            return None
        exchange_id = queue.popleft()
        if not queue:
            del self._pending[key]
        return exchange_id

    def on_request_start(
        self,
        url: str,
        method: str,
        headers: Optional[Mapping[str, str]] = None,
        body: Optional[str] = None,
        resource_type: str = "other",
        is_upgrade: bool = False,
    ) -> int:
        """Create a pending exchange for a new request.

        Returns:
            Exchange id usable for later correlation
        """
        kind = ExchangeKind.WEBSOCKET_UPGRADE if is_upgrade else ExchangeKind.HTTP
        exchange = self._create(url, method, kind, headers, body, resource_type)
        self._pending.setdefault(exchange.key, deque()).append(exchange.exchange_id)
        logger.debug(f"Request started: {method} {url}")
        return exchange.exchange_id

    def on_response(
        self,
        url: str,
        method: str,
        status: Union[int, str],
        headers: Optional[Mapping[str, str]] = None,
    ) -> None:
        """Complete the earliest pending exchange for (url, method)."""
        exchange_id = self.match_earliest_pending((url, method))
        if exchange_id is None:
            self._note_anomaly(f"Response received for unknown request: {method} {url} ({status})")
            return

        exchange = self._exchanges[exchange_id]
        self._resolve(exchange_id, Completed(
            status=status,
            headers=dict(headers or {}),
            duration_ms=self._duration_ms(exchange),
        ))
        logger.debug(f"Response received: {status} {method} {url}")

    def on_request_failed(
        self,
        url: str,
        method: str,
        reason: str,
        resource_type: str = "other",
        headers: Optional[Mapping[str, str]] = None,
        body: Optional[str] = None,
    ) -> None:
        """Fail the earliest pending exchange for (url, method).

        A failure without a tracked request is still recorded, as a new
        exchange that is already failed.
        """
        exchange_id = self.match_earliest_pending((url, method))
        if exchange_id is None:
            self._note_anomaly(f"Request failed for unknown request: {method} {url}")
            self._create(
                url, method, ExchangeKind.HTTP, headers, body, resource_type,
                outcome=Failed(reason=reason),
            )
            return

        self._resolve(exchange_id, Failed(reason=reason))
        logger.debug(f"Request failed: {method} {url} - {reason}")

    def on_websocket_open(self, url: str) -> int:
        """Create a pending websocket exchange.

        Returns:
            Exchange id to pass to on_websocket_closed/on_websocket_error
        """
        exchange = self._create(
            url,
            WEBSOCKET_METHOD,
            ExchangeKind.WEBSOCKET,
            websocket_upgrade_headers(url),
            None,
            "websocket",
        )
        logger.debug(f"WebSocket opened: {url}")
        return exchange.exchange_id

    def _websocket_exchange(self, exchange_id: int, event: str) -> Optional[NetworkExchange]:
        if not 0 <= exchange_id < len(self._exchanges):
            self._note_anomaly(f"WebSocket {event} for unknown exchange {exchange_id}")
            return None
        exchange = self._exchanges[exchange_id]
        if exchange.kind != ExchangeKind.WEBSOCKET:
            self._note_anomaly(f"WebSocket {event} for non-websocket exchange {exchange_id}")
            return None
        if not exchange.is_pending:
            self._note_anomaly(
                f"WebSocket {event} after {exchange.outcome.state} for {exchange.url}"
            )
            return None
        return exchange

    def on_websocket_closed(self, exchange_id: int) -> None:
        """Complete a websocket exchange with the CLOSED sentinel status."""
        exchange = self._websocket_exchange(exchange_id, "close")
        if exchange is None:
            return
        self._resolve(exchange_id, Completed(
            status=WEBSOCKET_CLOSED,
            headers={},
            duration_ms=self._duration_ms(exchange),
        ))
        logger.debug(f"WebSocket closed: {exchange.url}")

    def on_websocket_error(self, exchange_id: int, reason: str) -> None:
        """Fail a websocket exchange."""
        exchange = self._websocket_exchange(exchange_id, "error")
        if exchange is None:
            return
        self._resolve(exchange_id, Failed(reason=f"WebSocket error: {reason}"))
        logger.debug(f"WebSocket error: {exchange.url} - {reason}")

    def snapshot(self) -> Tuple[NetworkExchange, ...]:
        """All exchanges in creation order, in their current state."""
        return tuple(self._exchanges)

    def __len__(self) -> int:
        return len(self._exchanges)

    def get_stats(self) -> Dict[str, int]:
        """Get network exchange statistics.

        Returns:
            Dictionary with exchange counts by state
        """
        return {
            'total_requests': len(self._exchanges),
            'pending_requests': len([e for e in self._exchanges if e.is_pending]),
            'completed_requests': len([e for e in self._exchanges if e.is_completed]),
            'failed_requests': len([e for e in self._exchanges if e.is_failed]),
            'anomalies': len(self.anomalies),
        }

    def __repr__(self) -> str:
        stats = self.get_stats()
        return (
            f"NetworkLedger(total={stats['total_requests']}, "
            f"completed={stats['completed_requests']}, "
            f"pending={stats['pending_requests']}, "
            f"failed={stats['failed_requests']})"
        )


class NetworkObserver:
    """Observes network events on a Playwright page."""

    def __init__(self, page: Page, recorder: "SessionRecorder"):
        """Initialize network observer for a page.

        Args:
            page: Playwright page to observe
            recorder: Recorder receiving the notifications
        """
        self.page = page
        self.recorder = recorder

        self._setup_listeners()

    def _setup_listeners(self) -> None:
        """Setup Playwright event listeners for network events."""
        self.page.on("request", self._on_request)
        self.page.on("response", self._on_response)
        self.page.on("requestfailed", self._on_request_failed)
        self.page.on("websocket", self._on_websocket)

        logger.debug("Network observer listeners setup complete")

    def _on_request(self, request: Request) -> None:
        """Handle request start event."""
        try:
            headers = request.headers
            self.recorder.handle(RequestStart(
                url=request.url,
                method=request.method,
                headers=headers,
                body=request.post_data,
                resource_type=request.resource_type,
                is_upgrade=is_websocket_upgrade(headers),
            ))
        except Exception as e:
            logger.error(f"Error processing request start: {e}")

    def _on_response(self, response: PlaywrightResponse) -> None:
        """Handle response received event."""
        try:
            self.recorder.handle(Response(
                url=response.url,
                method=response.request.method,
                status=response.status,
                headers=response.headers,
            ))
        except Exception as e:
            logger.error(f"Error processing response: {e}")

    def _on_request_failed(self, request: Request) -> None:
        """Handle request failed event."""
        try:
            self.recorder.handle(RequestFailed(
                url=request.url,
                method=request.method,
                reason=request.failure or "Unknown error",
                resource_type=request.resource_type,
                headers=request.headers,
                body=request.post_data,
            ))
        except Exception as e:
            logger.error(f"Error processing request failure: {e}")

    def _on_websocket(self, websocket: WebSocket) -> None:
        """Track a websocket from open to close or error."""
        try:
            handle = self.recorder.handle(WebSocketOpened(url=websocket.url))
        except Exception as e:
            logger.error(f"Error processing websocket: {e}")
            return

        def on_close(_: WebSocket) -> None:
            try:
                self.recorder.handle(WebSocketClosed(handle=handle))
            except Exception as e:
                logger.error(f"Error processing websocket close: {e}")

        def on_error(error: str) -> None:
            try:
                self.recorder.handle(WebSocketError(handle=handle, reason=str(error)))
            except Exception as e:
                logger.error(f"Error processing websocket error: {e}")

        websocket.on("close", on_close)
        websocket.on("socketerror", on_error)
