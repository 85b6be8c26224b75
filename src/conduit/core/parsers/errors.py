"""Error classification for CLI diagnostics.

Pure functions that test a text fragment against ordered pattern sets.
They are used both on stderr fragments and on the ``result``/``error``
strings of structured records, so they accept partial, multi-line text
and never raise.
"""

from __future__ import annotations

import re

from conduit.core.types import ErrorKind

# Order matters only for logging which pattern fired; first match wins.
RATE_LIMIT_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"rate_limit_error", re.IGNORECASE),
    re.compile(r"would exceed your account's rate limit", re.IGNORECASE),
    re.compile(r"exceeded.*rate limit", re.IGNORECASE),
    re.compile(r"5-hour limit reached", re.IGNORECASE),
    re.compile(r"weekly limit reached", re.IGNORECASE),
    re.compile(r"limit reached.*resets", re.IGNORECASE),
    re.compile(r"usage limit reached", re.IGNORECASE),
)

AUTH_ERROR_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"authenticate", re.IGNORECASE),
    re.compile(r"login", re.IGNORECASE),
    re.compile(r"unauthorized", re.IGNORECASE),
    re.compile(r"not logged in", re.IGNORECASE),
    re.compile(r"authentication required", re.IGNORECASE),
    re.compile(r"sign in", re.IGNORECASE),
)

# "resets 3pm", "resets 10:30 am (Europe/Berlin)", "reset 9"
RESET_HINT_PATTERN = re.compile(
    r"resets?\s+(\d{1,2}(?::\d{2})?\s*(?:am|pm)?(?:\s*\([^)]+\))?)",
    re.IGNORECASE,
)

AUTH_REQUIRED_MESSAGE = "Authentication required. Run 'claude' in terminal to login."


def _first_match(patterns: tuple[re.Pattern[str], ...], text: str | None) -> re.Pattern[str] | None:
    if not text:
        return None
    for pattern in patterns:
        if pattern.search(text):
            return pattern
    return None


def is_rate_limit_error(text: str | None) -> bool:
    """Check whether text reports a rate or usage limit.

    Args:
        text: Error type, message, result string or stderr fragment.

    Returns:
        True if any rate-limit pattern matches.
    """
    return _first_match(RATE_LIMIT_PATTERNS, text) is not None


def is_auth_error(text: str | None) -> bool:
    """Check whether text reports a missing or expired login."""
    return _first_match(AUTH_ERROR_PATTERNS, text) is not None


def extract_reset_hint(text: str | None) -> str | None:
    """Extract a human-readable reset time from an error message.

    Best effort: looks for a time expression after "reset"/"resets",
    optionally followed by a parenthetical such as a timezone.

    Args:
        text: The error message.

    Returns:
        The trimmed time expression (e.g. "3pm (Europe/Berlin)"), or None.
    """
    if not text:
        return None
    match = RESET_HINT_PATTERN.search(text)
    if match is None:
        return None
    hint = match.group(1).strip()
    return hint or None


def classify_error(text: str | None) -> ErrorKind:
    """Classify free text into an error kind.

    Rate limits take priority over authentication, so a limit message that
    happens to mention logging in is still reported as retryable.
    """
    if is_rate_limit_error(text):
        return ErrorKind.RATE_LIMITED
    if is_auth_error(text):
        return ErrorKind.AUTHENTICATION_REQUIRED
    return ErrorKind.GENERIC
