"""Tests for user-facing error descriptions."""

import pytest

from fetchspine.core.errors import ClassifiedError, ErrorKind, RequestCancelled
from fetchspine.messages import FriendlyMessage, describe, format_wait


class TestFormatWait:
    @pytest.mark.parametrize(
        "seconds,expected",
        [
            (None, "a few moments"),
            (0, "a few moments"),
            (1, "1 seconds"),
            (59, "59 seconds"),
            (60, "1 minutes"),
            (61, "2 minutes"),
            (600, "10 minutes"),
        ],
    )
    def test_format(self, seconds, expected):
        assert format_wait(seconds) == expected


class TestDescribe:
    def test_offline(self):
        assert describe(ClassifiedError(ErrorKind.OFFLINE, "x")).title == "You're Offline"

    def test_timeout(self):
        assert describe(ClassifiedError(ErrorKind.TIMEOUT, "x")).title == "Request Timed Out"

    def test_server_includes_status(self):
        message = describe(ClassifiedError(ErrorKind.SERVER, "x", status_code=502))
        assert message.title == "Server Error"
        assert "(502)" in message.message

    def test_rate_limit_seconds(self):
        message = describe(ClassifiedError(ErrorKind.RATE_LIMIT, "x", status_code=429, retry_after=30))
        assert message.title == "Rate Limit Exceeded"
        assert "30 seconds" in message.message
        assert message.action.startswith("The request will automatically retry after 30 seconds")

    def test_rate_limit_minutes(self):
        message = describe(ClassifiedError(ErrorKind.RATE_LIMIT, "x", status_code=429, retry_after=90))
        assert "2 minutes" in message.message

    def test_rate_limit_without_hint(self):
        message = describe(ClassifiedError(ErrorKind.RATE_LIMIT, "x", status_code=429))
        assert "a few moments" in message.message
        assert message.action == "Please wait a few seconds and try again."

    @pytest.mark.parametrize(
        "status,title",
        [(401, "Authentication Required"), (403, "Access Denied"), (404, "Not Found")],
    )
    def test_client_statuses(self, status, title):
        assert describe(ClassifiedError(ErrorKind.CLIENT, "x", status_code=status)).title == title

    def test_not_found_with_context(self):
        message = describe(ClassifiedError(ErrorKind.CLIENT, "x", status_code=404), context="resume")
        assert message.message == "The resume you're looking for could not be found."

    def test_network(self):
        assert describe(ClassifiedError(ErrorKind.NETWORK, "x")).title == "Connection Problem"

    def test_cancelled(self):
        assert describe(RequestCancelled()).title == "Request Cancelled"

    def test_fallback_uses_error_message(self):
        message = describe(ClassifiedError(ErrorKind.UNKNOWN, "Quota exhausted"))
        assert message.title == "Something Went Wrong"
        assert message.message == "Quota exhausted"

    def test_render(self):
        message = FriendlyMessage(title="T", message="M", action="A")
        assert message.render() == "T\n\nM\n\nA"
        assert FriendlyMessage(title="T", message="M").render() == "T\n\nM"
        assert message.to_dict() == {"title": "T", "message": "M", "action": "A"}
