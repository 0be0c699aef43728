"""Bounded rendering of captured values.

Console arguments, header values and request bodies can be arbitrarily
large or not serializable at all. Everything shown to the user goes
through ``format_value`` so a single field can never exceed its limit.
"""

import json
import logging
from typing import Any, Dict, Mapping, Optional

logger = logging.getLogger(__name__)

DEFAULT_MAX_LENGTH = 512
ELLIPSIS = "..."


def to_text(value: Any) -> str:
    """Canonical, untruncated textual form of a value.

    Strings are returned unchanged, JSON-serializable values render as
    compact JSON and anything else falls back to ``str()``. Never raises.
    """
    if isinstance(value, str):
        return value

    try:
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    except (TypeError, ValueError, OverflowError, RecursionError) as e:
        logger.debug(f"Value of type {type(value).__name__} is not JSON serializable: {e}")

    try:
        return str(value)
    except Exception as e:
        logger.debug(f"String conversion failed for {type(value).__name__}: {e}")
        return f"<unformattable {type(value).__name__}>"


def truncate(text: str, max_length: Optional[int] = DEFAULT_MAX_LENGTH) -> str:
    """Cut text to max_length characters and mark the cut with an ellipsis."""
    if max_length is None or len(text) <= max_length:
        return text
    return f"{text[:max_length]}{ELLIPSIS}"


def format_value(value: Any, max_length: Optional[int] = DEFAULT_MAX_LENGTH) -> str:
    """Render any value as a display string of bounded length.

    Args:
        value: Value to render
        max_length: Maximum characters kept before the ellipsis marker,
            or None for no limit

    Returns:
        Display string of at most max_length + len(ELLIPSIS) characters
    """
    return truncate(to_text(value), max_length)


def format_headers(
    headers: Optional[Mapping[str, Any]],
    max_length: Optional[int] = DEFAULT_MAX_LENGTH,
) -> Dict[str, str]:
    """Format every header value independently."""
    if not headers:
        return {}
    return {key: format_value(value, max_length) for key, value in headers.items()}


def format_headers_block(
    headers: Optional[Mapping[str, Any]],
    max_length: Optional[int] = DEFAULT_MAX_LENGTH,
) -> str:
    """Render headers as an indented JSON block for verbose listings."""
    formatted = format_headers(headers, max_length)
    if not formatted:
        return "{}"
    return json.dumps(formatted, indent=2, ensure_ascii=False)
