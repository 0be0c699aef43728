"""Pydantic models for captured console activity and network exchanges.

This module defines the records produced during an observation window:
console and page-error records, network exchanges with their outcomes,
the derived diagnostics report and the overall capture result.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def elapsed_ms(start: datetime, end: datetime) -> int:
    """Whole milliseconds between two timestamps."""
    return int((end - start).total_seconds() * 1000)


class ConsoleSeverity(str, Enum):
    """Console message types reported by the browser."""
    LOG = "log"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    DEBUG = "debug"
    TRACE = "trace"


class DisplayClass(str, Enum):
    """Presentation class derived from a console severity."""
    NORMAL = "normal"
    CAUTION = "caution"
    ALERT = "alert"


def classify_severity(severity: str) -> DisplayClass:
    """Map a console severity to its display class."""
    if severity == ConsoleSeverity.ERROR.value:
        return DisplayClass.ALERT
    if severity == ConsoleSeverity.WARNING.value:
        return DisplayClass.CAUTION
    return DisplayClass.NORMAL


class ExchangeKind(str, Enum):
    """Kinds of tracked network exchange."""
    HTTP = "http"
    WEBSOCKET_UPGRADE = "websocket_upgrade"
    WEBSOCKET = "websocket"


class ResourceCategory(str, Enum):
    """Buckets used to classify pending resources."""
    SCRIPT = "script"
    STYLESHEET = "stylesheet"
    IMAGE = "image"
    OTHER = "other"

    @classmethod
    def from_resource_type(cls, resource_type: str) -> "ResourceCategory":
        try:
            return cls(resource_type)
        except ValueError:
            return cls.OTHER


class CaptureStatus(str, Enum):
    """Overall status of a capture session."""
    SUCCESS = "success"
    FAILED = "failed"
    TIMEOUT = "timeout"


class ConsoleRecord(BaseModel):
    """A single console message captured from the page."""

    model_config = ConfigDict(frozen=True)

    record_type: Literal["console"] = "console"
    severity: str = Field(description="Console message type (passed through unchanged)")
    raw_text: str = Field(description="Message text as reported by the browser")
    structured_args: Tuple[Any, ...] = Field(
        default=(),
        description="Resolved argument values, in call order"
    )
    display_args: Tuple[str, ...] = Field(
        default=(),
        description="Formatted argument strings"
    )
    appends_args: bool = Field(
        default=False,
        description=(
            "Whether formatted arguments are shown after the raw text; decided by "
            "comparing the untruncated first argument with the raw text"
        )
    )
    observed_at: datetime = Field(
        default_factory=utc_now,
        description="When the message was received"
    )

    @property
    def display_class(self) -> DisplayClass:
        return classify_severity(self.severity)

    @property
    def display_text(self) -> str:
        """Raw text, followed by the formatted arguments when they add information."""
        if self.appends_args:
            return " ".join((self.raw_text,) + self.display_args)
        return self.raw_text


class PageErrorRecord(BaseModel):
    """An uncaught exception reported by the page."""

    model_config = ConfigDict(frozen=True)

    record_type: Literal["page_error"] = "page_error"
    message: str = Field(description="Error message")
    observed_at: datetime = Field(
        default_factory=utc_now,
        description="When the error was received"
    )

    @property
    def display_class(self) -> DisplayClass:
        return DisplayClass.ALERT

    @property
    def display_text(self) -> str:
        return self.message


TranscriptEntry = Union[ConsoleRecord, PageErrorRecord]


class RequestInfo(BaseModel):
    """Request side of an exchange, fixed at creation."""

    model_config = ConfigDict(frozen=True)

    headers: Dict[str, str] = Field(default_factory=dict, description="Request headers")
    body: Optional[str] = Field(default=None, description="Request body (if any)")
    resource_type: str = Field(default="other", description="Resource type reported by the browser")
    started_at: datetime = Field(default_factory=utc_now, description="Request start timestamp")


class Pending(BaseModel):
    """No outcome observed yet."""

    model_config = ConfigDict(frozen=True)

    state: Literal["pending"] = "pending"


class Completed(BaseModel):
    """A response (or orderly websocket close) was observed."""

    model_config = ConfigDict(frozen=True)

    state: Literal["completed"] = "completed"
    status: Union[int, str] = Field(description="HTTP status code or sentinel string")
    headers: Dict[str, str] = Field(default_factory=dict, description="Response headers")
    duration_ms: int = Field(description="Time from request start to outcome")


class Failed(BaseModel):
    """The request failed before a response arrived."""

    model_config = ConfigDict(frozen=True)

    state: Literal["failed"] = "failed"
    reason: str = Field(description="Failure reason")


Outcome = Union[Pending, Completed, Failed]


class NetworkExchange(BaseModel):
    """One tracked request together with its eventual outcome."""

    model_config = ConfigDict(frozen=True)

    exchange_id: int = Field(description="Creation-order identity")
    url: str = Field(description="Request URL")
    method: str = Field(description="HTTP method (WEBSOCKET for sockets)")
    kind: ExchangeKind = Field(default=ExchangeKind.HTTP)
    request: RequestInfo = Field(default_factory=RequestInfo)
    outcome: Outcome = Field(default_factory=Pending, discriminator="state")

    @property
    def key(self) -> Tuple[str, str]:
        """Correlation key."""
        return (self.url, self.method)

    @property
    def is_pending(self) -> bool:
        return isinstance(self.outcome, Pending)

    @property
    def is_completed(self) -> bool:
        return isinstance(self.outcome, Completed)

    @property
    def is_failed(self) -> bool:
        return isinstance(self.outcome, Failed)

    @property
    def request_type(self) -> str:
        """Label used when listing the exchange."""
        if self.kind == ExchangeKind.WEBSOCKET:
            return "WEBSOCKET"
        if self.kind == ExchangeKind.WEBSOCKET_UPGRADE:
            return "WEBSOCKET_UPGRADE"
        return self.method


class ExchangeEntry(BaseModel):
    """Summary line for one exchange in a diagnostics report."""

    model_config = ConfigDict(frozen=True)

    exchange_id: int
    method: str
    url: str
    resource_type: str
    status: Optional[Union[int, str]] = None
    reason: Optional[str] = None
    age_ms: Optional[int] = None


class DiagnosticsReport(BaseModel):
    """Health summary derived from the ledger at window close."""

    model_config = ConfigDict(frozen=True)

    generated_at: datetime
    stale_threshold_ms: int
    successful: int = 0
    clean: int = 0
    failed: int = 0
    pending: int = 0
    failed_exchanges: Tuple[ExchangeEntry, ...] = ()
    pending_exchanges: Tuple[ExchangeEntry, ...] = ()
    pending_by_category: Dict[ResourceCategory, Tuple[ExchangeEntry, ...]] = Field(
        default_factory=dict
    )
    stuck_exchanges: Tuple[ExchangeEntry, ...] = ()
    pending_hosts: Tuple[str, ...] = ()

    @property
    def pending_host_count(self) -> int:
        return len(self.pending_hosts)

    @property
    def spans_multiple_hosts(self) -> bool:
        return self.pending_host_count > 1

    @property
    def has_issues(self) -> bool:
        return self.failed > 0 or self.pending > 0

    def pending_in(self, category: ResourceCategory) -> Tuple[ExchangeEntry, ...]:
        return self.pending_by_category.get(category, ())


class TapResult(BaseModel):
    """Everything captured during one observation window."""

    url: str = Field(description="Page URL that was observed")
    status: CaptureStatus = Field(default=CaptureStatus.SUCCESS)
    error: Optional[str] = Field(default=None, description="Session error, if any")
    started_at: datetime = Field(default_factory=utc_now)
    finished_at: Optional[datetime] = Field(default=None)
    console: List[Union[ConsoleRecord, PageErrorRecord]] = Field(default_factory=list)
    exchanges: List[NetworkExchange] = Field(default_factory=list)
    diagnostics: Optional[DiagnosticsReport] = Field(default=None)

    @property
    def console_message_count(self) -> int:
        return len(self.console)

    @property
    def is_successful(self) -> bool:
        return self.status == CaptureStatus.SUCCESS
