"""Console transcript building and Playwright console observation.

``ConsoleTranscript`` owns the ordered record of console messages and page
errors for one observation window. ``ConsoleObserver`` binds it to a
Playwright page: it listens for ``console`` and ``pageerror`` events,
resolves message arguments and forwards notifications in arrival order.
"""

import asyncio
import logging
from datetime import datetime
from typing import (
    TYPE_CHECKING,
    Any,
    Awaitable,
    Callable,
    Dict,
    List,
    NamedTuple,
    Optional,
    Protocol,
    Sequence,
    Tuple,
)

from playwright.async_api import ConsoleMessage, JSHandle, Page

from ..models.capture import (
    ConsoleRecord,
    ConsoleSeverity,
    PageErrorRecord,
    TranscriptEntry,
    utc_now,
)
from ..models.events import ConsoleEvent, PageError
from .formatting import DEFAULT_MAX_LENGTH, format_value, to_text

if TYPE_CHECKING:
    from .recorder import SessionRecorder

logger = logging.getLogger(__name__)

UNRESOLVABLE = "<unresolvable argument>"


class Resolution(NamedTuple):
    """Outcome of one argument resolution attempt."""
    ok: bool
    value: Any = None

    @classmethod
    def success(cls, value: Any) -> "Resolution":
        return cls(True, value)

    @classmethod
    def failure(cls, reason: Any = None) -> "Resolution":
        return cls(False, reason)


class ArgumentHandle(Protocol):
    """Console argument as supplied by the page session."""

    def resolve_structured(self) -> Resolution:
        """Structured (JSON) value of the argument."""
        ...

    def resolve_text(self) -> Resolution:
        """Textual content of the argument."""
        ...


def _resolve_structured(handle: ArgumentHandle) -> Resolution:
    return handle.resolve_structured()


def _resolve_text(handle: ArgumentHandle) -> Resolution:
    return handle.resolve_text()


def _resolve_string(handle: Any) -> Resolution:
    return Resolution.success(str(handle))


# Tried in order, first success wins.
RESOLUTION_STRATEGIES: Tuple[Callable[[Any], Resolution], ...] = (
    _resolve_structured,
    _resolve_text,
    _resolve_string,
)


def resolve_argument(
    handle: Any,
    strategies: Sequence[Callable[[Any], Resolution]] = RESOLUTION_STRATEGIES,
) -> Any:
    """Resolve a console argument handle to a plain value.

    Args:
        handle: Argument handle supplied by the page session
        strategies: Resolution attempts, tried in order

    Returns:
        The first successfully resolved value, or UNRESOLVABLE
    """
    for strategy in strategies:
        try:
            result = strategy(handle)
        except Exception as e:
            logger.debug(f"Argument resolution via {strategy.__name__} raised: {e}")
            continue
        if result.ok:
            return result.value
    return UNRESOLVABLE


class ConsoleTranscript:
    """Ordered, append-only record of console activity."""

    def __init__(
        self,
        clock: Callable[[], datetime] = utc_now,
        max_value_length: Optional[int] = DEFAULT_MAX_LENGTH,
    ):
        """Initialize an empty transcript.

        Args:
            clock: Returns the timestamp recorded on each entry
            max_value_length: Limit applied to each formatted argument
        """
        self._clock = clock
        self.max_value_length = max_value_length
        self._entries: List[TranscriptEntry] = []
        self._callbacks: List[Callable[[TranscriptEntry], None]] = []

    def add_callback(self, callback: Callable[[TranscriptEntry], None]) -> None:
        """Add callback to be called with every new entry."""
        self._callbacks.append(callback)

    def on_console_event(self, severity: str, raw_text: str, raw_args: Sequence[ArgumentHandle]) -> ConsoleRecord:
        """Record a console message.

        Args:
            severity: Console message type, kept as reported
            raw_text: Message text as reported by the browser
            raw_args: Argument handles in call order

        Returns:
            The appended record
        """
        values = tuple(resolve_argument(handle) for handle in raw_args)
        display_args = tuple(format_value(value, self.max_value_length) for value in values)
        appends_args = bool(values) and to_text(values[0]) != raw_text

        record = ConsoleRecord(
            severity=severity,
            raw_text=raw_text,
            structured_args=values,
            display_args=display_args,
            appends_args=appends_args,
            observed_at=self._clock(),
        )
        self._append(record)
        logger.debug(f"Console {severity}: {raw_text[:100]}")
        return record

    def on_page_error(self, message: str) -> PageErrorRecord:
        """Record an uncaught page exception."""
        record = PageErrorRecord(message=message, observed_at=self._clock())
        self._append(record)
        logger.debug(f"Page error: {message[:100]}")
        return record

    def _append(self, entry: TranscriptEntry) -> None:
        self._entries.append(entry)
        for callback in self._callbacks:
            try:
                callback(entry)
            except Exception as e:
                logger.error(f"Error in console callback: {e}")

    def snapshot(self) -> Tuple[TranscriptEntry, ...]:
        """All entries in the order they were received."""
        return tuple(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def get_stats(self) -> Dict[str, int]:
        """Get transcript statistics.

        Returns:
            Dictionary with counts per severity and page errors
        """
        console = [e for e in self._entries if isinstance(e, ConsoleRecord)]
        return {
            'total_messages': len(console),
            'error_messages': len([e for e in console if e.severity == ConsoleSeverity.ERROR.value]),
            'warning_messages': len([e for e in console if e.severity == ConsoleSeverity.WARNING.value]),
            'info_messages': len([e for e in console if e.severity == ConsoleSeverity.INFO.value]),
            'log_messages': len([e for e in console if e.severity == ConsoleSeverity.LOG.value]),
            'debug_messages': len([e for e in console if e.severity == ConsoleSeverity.DEBUG.value]),
            'page_errors': len(self._entries) - len(console),
        }

    def __repr__(self) -> str:
        stats = self.get_stats()
        return (
            f"ConsoleTranscript(total={stats['total_messages']}, "
            f"errors={stats['error_messages']}, "
            f"warnings={stats['warning_messages']}, "
            f"page_errors={stats['page_errors']})"
        )


class PrefetchedArgument:
    """Console argument whose resolution attempts were awaited up front.

    Playwright resolves handles asynchronously, while the transcript works
    synchronously, so both attempts are made before the message is handed
    over.
    """

    def __init__(self, structured: Resolution, text: Resolution, label: str):
        self._structured = structured
        self._text = text
        self._label = label

    @classmethod
    async def prefetch(cls, handle: JSHandle) -> "PrefetchedArgument":
        """Run both resolution attempts against a live handle."""
        try:
            structured = Resolution.success(await handle.json_value())
        except Exception as e:
            structured = Resolution.failure(str(e))

        try:
            element = handle.as_element()
            if element is None:
                text = Resolution.failure("not an element")
            else:
                text = Resolution.success(await element.text_content())
        except Exception as e:
            text = Resolution.failure(str(e))

        return cls(structured, text, str(handle))

    def resolve_structured(self) -> Resolution:
        return self._structured

    def resolve_text(self) -> Resolution:
        return self._text

    def __str__(self) -> str:
        return self._label


class ConsoleObserver:
    """Observes console messages and page errors on a Playwright page."""

    def __init__(self, page: Page, recorder: "SessionRecorder"):
        """Initialize console observer for a page.

        Args:
            page: Playwright page to observe
            recorder: Recorder receiving the notifications
        """
        self.page = page
        self.recorder = recorder
        self._tail: Optional[asyncio.Task] = None

        self._setup_listeners()

    def _setup_listeners(self) -> None:
        """Setup Playwright console and page error listeners."""
        self.page.on("console", self._on_console_message)
        self.page.on("pageerror", self._on_page_error)
        logger.debug("Console observer listeners setup complete")

    def _enqueue(self, work: Callable[[], Awaitable[None]]) -> None:
        """Run work after everything queued before it, preserving arrival order."""
        previous = self._tail

        async def run_in_order() -> None:
            if previous is not None:
                await asyncio.gather(previous, return_exceptions=True)
            await work()

        self._tail = asyncio.get_running_loop().create_task(run_in_order())

    def _on_console_message(self, message: ConsoleMessage) -> None:
        """Handle console message event."""
        self._enqueue(lambda: self._process_message(message))

    def _on_page_error(self, error: Any) -> None:
        """Handle page error event."""
        self._enqueue(lambda: self._process_page_error(error))

    async def _process_message(self, message: ConsoleMessage) -> None:
        try:
            args = [await PrefetchedArgument.prefetch(handle) for handle in message.args]
        except Exception as e:
            logger.debug(f"Failed to read console arguments: {e}")
            args = []

        try:
            self.recorder.handle(ConsoleEvent(
                severity=message.type,
                raw_text=message.text,
                args=args,
            ))
        except Exception as e:
            logger.error(f"Error processing console message: {e}")

    async def _process_page_error(self, error: Any) -> None:
        try:
            message = getattr(error, "message", None) or str(error)
            self.recorder.handle(PageError(message=message))
        except Exception as e:
            logger.error(f"Error processing page error: {e}")

    async def drain(self) -> None:
        """Wait until every queued console message has been recorded."""
        while self._tail is not None:
            tail = self._tail
            await asyncio.gather(tail, return_exceptions=True)
            if tail is self._tail:
                break
