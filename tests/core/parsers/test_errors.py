"""Tests for error classification."""

import pytest

from conduit.core.parsers import classify_error, extract_reset_hint, is_auth_error, is_rate_limit_error
from conduit.core.types import ErrorKind


class TestRateLimitDetection:
    """Tests for is_rate_limit_error."""

    @pytest.mark.parametrize(
        "text",
        [
            "rate_limit_error",
            "This request would exceed your account's rate limit. Please try again later.",
            "You have exceeded the rate limit for this organization",
            "5-hour limit reached ∙ resets 3pm",
            "Weekly limit reached",
            "Claude AI usage limit reached|1760000000",
            "Limit reached, resets 10:30am (Europe/Berlin)",
        ],
    )
    def test_matches(self, text):
        assert is_rate_limit_error(text) is True

    @pytest.mark.parametrize("text", [None, "", "Connection reset by peer", "File not found"])
    def test_no_match(self, text):
        assert is_rate_limit_error(text) is False

    def test_case_insensitive(self):
        assert is_rate_limit_error("USAGE LIMIT REACHED") is True


class TestAuthDetection:
    """Tests for is_auth_error."""

    @pytest.mark.parametrize(
        "text",
        [
            "Invalid API key · Please run /login",
            "Error: Unauthorized",
            "You are not logged in",
            "Authentication required",
            "Please sign in to continue",
            "Failed to authenticate",
        ],
    )
    def test_matches(self, text):
        assert is_auth_error(text) is True

    @pytest.mark.parametrize("text", [None, "", "Traceback (most recent call last):"])
    def test_no_match(self, text):
        assert is_auth_error(text) is False


class TestResetHint:
    """Tests for extract_reset_hint."""

    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("5-hour limit reached ∙ resets 3pm", "3pm"),
            ("Limit reached, resets 10:30 am (Europe/Berlin)", "10:30 am (Europe/Berlin)"),
            ("weekly limit reached, resets 9", "9"),
        ],
    )
    def test_extracts(self, text, expected):
        assert extract_reset_hint(text) == expected

    @pytest.mark.parametrize("text", [None, "", "usage limit reached", "reset the counter"])
    def test_absent(self, text):
        assert extract_reset_hint(text) is None


class TestClassifyError:
    """Tests for classify_error priority."""

    def test_rate_limit_beats_auth(self):
        """A limit message that mentions login is still a rate limit."""
        text = "Usage limit reached. Login to upgrade your plan."
        assert is_auth_error(text) is True
        assert classify_error(text) == ErrorKind.RATE_LIMITED

    def test_auth(self):
        assert classify_error("Not logged in") == ErrorKind.AUTHENTICATION_REQUIRED

    def test_generic(self):
        assert classify_error("Something broke") == ErrorKind.GENERIC
        assert classify_error(None) == ErrorKind.GENERIC
