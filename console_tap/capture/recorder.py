"""Session recorder: the single entry point for page session notifications.

The recorder owns one ``ConsoleTranscript`` and one ``NetworkLedger`` and
routes every ``CaptureEvent`` to its owner. Readers pull immutable
snapshots and the diagnostics report from here.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Tuple

from ..models.capture import (
    DiagnosticsReport,
    NetworkExchange,
    TranscriptEntry,
    utc_now,
)
from ..models.events import (
    CaptureEvent,
    ConsoleEvent,
    PageError,
    RequestFailed,
    RequestStart,
    Response,
    WebSocketClosed,
    WebSocketError,
    WebSocketOpened,
)
from .console_observer import ConsoleTranscript
from .diagnostics import DEFAULT_STALE_THRESHOLD_MS, StatusPolicy, summarize
from .formatting import DEFAULT_MAX_LENGTH
from .network_observer import NetworkLedger

logger = logging.getLogger(__name__)


class SessionRecorder:
    """Routes capture events to the transcript and the ledger."""

    def __init__(
        self,
        clock: Callable[[], datetime] = utc_now,
        stale_threshold_ms: int = DEFAULT_STALE_THRESHOLD_MS,
        status_policy: Optional[StatusPolicy] = None,
        max_value_length: Optional[int] = DEFAULT_MAX_LENGTH,
    ):
        """Initialize recorder.

        Args:
            clock: Time source shared by transcript, ledger and diagnostics
            stale_threshold_ms: Default staleness threshold for summarize()
            status_policy: Status thresholds for summarize()
            max_value_length: Limit applied to formatted console arguments
        """
        self.clock = clock
        self.stale_threshold_ms = stale_threshold_ms
        self.status_policy = status_policy or StatusPolicy()
        self.transcript = ConsoleTranscript(clock=clock, max_value_length=max_value_length)
        self.ledger = NetworkLedger(clock=clock)

    def handle(self, event: CaptureEvent) -> Optional[int]:
        """Deliver one notification to the component that owns it.

        Args:
            event: Any CaptureEvent variant

        Returns:
            Exchange id for RequestStart and WebSocketOpened, else None
        """
        if isinstance(event, ConsoleEvent):
            self.transcript.on_console_event(event.severity, event.raw_text, event.args)
        elif isinstance(event, PageError):
            self.transcript.on_page_error(event.message)
        elif isinstance(event, RequestStart):
            return self.ledger.on_request_start(
                event.url,
                event.method,
                event.headers,
                event.body,
                event.resource_type,
                event.is_upgrade,
            )
        elif isinstance(event, Response):
            self.ledger.on_response(event.url, event.method, event.status, event.headers)
        elif isinstance(event, RequestFailed):
            self.ledger.on_request_failed(
                event.url,
                event.method,
                event.reason,
                event.resource_type,
                headers=event.headers,
                body=event.body,
            )
        elif isinstance(event, WebSocketOpened):
            return self.ledger.on_websocket_open(event.url)
        elif isinstance(event, WebSocketClosed):
            self.ledger.on_websocket_closed(event.handle)
        elif isinstance(event, WebSocketError):
            self.ledger.on_websocket_error(event.handle, event.reason)
        else:
            raise TypeError(f"Unsupported capture event: {type(event).__name__}")
        return None

    def console_snapshot(self) -> Tuple[TranscriptEntry, ...]:
        """Console records and page errors in arrival order."""
        return self.transcript.snapshot()

    def network_snapshot(self) -> Tuple[NetworkExchange, ...]:
        """Network exchanges in creation order."""
        return self.ledger.snapshot()

    def summarize(
        self,
        now_fn: Optional[Callable[[], datetime]] = None,
        stale_threshold_ms: Optional[int] = None,
    ) -> DiagnosticsReport:
        """Diagnostics for the current ledger state."""
        return summarize(
            self.network_snapshot(),
            now_fn or self.clock,
            self.stale_threshold_ms if stale_threshold_ms is None else stale_threshold_ms,
            self.status_policy,
        )

    def get_stats(self) -> Dict[str, Any]:
        """Get combined statistics."""
        return {
            'console': self.transcript.get_stats(),
            'network': self.ledger.get_stats(),
        }

    def __repr__(self) -> str:
        return f"SessionRecorder(console={len(self.transcript)}, exchanges={len(self.ledger)})"
