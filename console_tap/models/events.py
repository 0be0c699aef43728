"""Notifications delivered by a page session to the capture core.

Every notification kind is a small pydantic model with a ``kind`` literal,
and ``CaptureEvent`` is the discriminated union over all of them.
"""

from typing import Annotated, Any, Dict, Literal, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field


class _Event(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)


class ConsoleEvent(_Event):
    """A console API call on the page."""
    kind: Literal["console"] = "console"
    severity: str
    raw_text: str
    args: Sequence[Any] = Field(
        default=(),
        description="Argument handles exposing resolve_structured()/resolve_text()"
    )


class PageError(_Event):
    """An uncaught exception on the page."""
    kind: Literal["page_error"] = "page_error"
    message: str


class RequestStart(_Event):
    """A request was issued."""
    kind: Literal["request_start"] = "request_start"
    url: str
    method: str
    headers: Dict[str, str] = Field(default_factory=dict)
    body: Optional[str] = None
    resource_type: str = "other"
    is_upgrade: bool = False


class Response(_Event):
    """A response arrived for some request."""
    kind: Literal["response"] = "response"
    url: str
    method: str
    status: int
    headers: Dict[str, str] = Field(default_factory=dict)


class RequestFailed(_Event):
    """A request failed before a response arrived."""
    kind: Literal["request_failed"] = "request_failed"
    url: str
    method: str
    reason: str
    resource_type: str = "other"
    headers: Optional[Dict[str, str]] = None
    body: Optional[str] = None


class WebSocketOpened(_Event):
    kind: Literal["websocket_opened"] = "websocket_opened"
    url: str


class WebSocketClosed(_Event):
    kind: Literal["websocket_closed"] = "websocket_closed"
    handle: int


class WebSocketError(_Event):
    kind: Literal["websocket_error"] = "websocket_error"
    handle: int
    reason: str


CaptureEvent = Annotated[
    Union[
        ConsoleEvent,
        PageError,
        RequestStart,
        Response,
        RequestFailed,
        WebSocketOpened,
        WebSocketClosed,
        WebSocketError,
    ],
    Field(discriminator="kind"),
]
