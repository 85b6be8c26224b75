"""CLI output parsing.

Pure parsing logic - takes strings, returns structured data.
No process knowledge, no session awareness.

Classes:
    LineReassembler: Chunks in, complete newline-delimited records out.
    StreamJsonDecoder: One stream-json record in, DecodedEvents out.

Functions:
    is_rate_limit_error: Test text against the rate-limit patterns.
    is_auth_error: Test text against the authentication patterns.
    extract_reset_hint: Pull "resets 3pm (tz)" style hints out of a message.
    classify_error: Map text to an ErrorKind.

Example:
    >>> from conduit.core.parsers import LineReassembler, StreamJsonDecoder
    >>>
    >>> lines = LineReassembler()
    >>> decoder = StreamJsonDecoder()
    >>> for record in lines.feed(chunk):
    ...     for event in decoder.decode(record):
    ...         print(event.type)
"""

from conduit.core.parsers.errors import (
    AUTH_ERROR_PATTERNS,
    RATE_LIMIT_PATTERNS,
    classify_error,
    extract_reset_hint,
    is_auth_error,
    is_rate_limit_error,
)
from conduit.core.parsers.lines import LineReassembler
from conduit.core.parsers.stream_json import StreamJsonDecoder

__all__ = [
    "LineReassembler",
    "StreamJsonDecoder",
    "RATE_LIMIT_PATTERNS",
    "AUTH_ERROR_PATTERNS",
    "classify_error",
    "extract_reset_hint",
    "is_auth_error",
    "is_rate_limit_error",
]
