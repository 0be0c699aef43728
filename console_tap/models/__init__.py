"""Data models for browser-console-tap."""

from .capture import (
    CaptureStatus,
    Completed,
    ConsoleRecord,
    ConsoleSeverity,
    DiagnosticsReport,
    DisplayClass,
    ExchangeEntry,
    ExchangeKind,
    Failed,
    NetworkExchange,
    Outcome,
    PageErrorRecord,
    Pending,
    RequestInfo,
    ResourceCategory,
    TapResult,
    TranscriptEntry,
    classify_severity,
    elapsed_ms,
    utc_now,
)
from .events import (
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

__all__ = [
    # Records
    "ConsoleRecord",
    "PageErrorRecord",
    "TranscriptEntry",
    "NetworkExchange",
    "RequestInfo",
    "Outcome",
    "Pending",
    "Completed",
    "Failed",
    "DiagnosticsReport",
    "ExchangeEntry",
    "TapResult",

    # Enums
    "ConsoleSeverity",
    "DisplayClass",
    "ExchangeKind",
    "ResourceCategory",
    "CaptureStatus",

    # Events
    "CaptureEvent",
    "ConsoleEvent",
    "PageError",
    "RequestStart",
    "Response",
    "RequestFailed",
    "WebSocketOpened",
    "WebSocketClosed",
    "WebSocketError",

    # Helpers
    "classify_severity",
    "elapsed_ms",
    "utc_now",
]
