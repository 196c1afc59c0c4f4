"""Tests for the error taxonomy."""

import pytest

from fetchspine.core.errors import (
    ClassifiedError,
    ConfigError,
    ErrorCategory,
    ErrorContext,
    ErrorKind,
    FetchSpineError,
    InvalidConfigError,
    RateLimitInfo,
    RequestCancelled,
    is_retryable,
)


class TestErrorKind:
    """Tests for ErrorKind and the retry flag derivation."""

    @pytest.mark.parametrize(
        "kind,expected",
        [
            (ErrorKind.OFFLINE, True),
            (ErrorKind.NETWORK, True),
            (ErrorKind.TIMEOUT, True),
            (ErrorKind.SERVER, True),
            (ErrorKind.RATE_LIMIT, True),
            (ErrorKind.CLIENT, False),
            (ErrorKind.UNKNOWN, False),
        ],
    )
    def test_retryable_by_kind(self, kind, expected):
        assert is_retryable(kind) is expected

    def test_client_408_is_retryable(self):
        assert is_retryable(ErrorKind.CLIENT, 408) is True
        assert is_retryable(ErrorKind.CLIENT, 404) is False

    def test_categories(self):
        assert ErrorKind.SERVER.category is ErrorCategory.SOURCE
        assert ErrorKind.CLIENT.category is ErrorCategory.SOURCE
        assert ErrorKind.TIMEOUT.category is ErrorCategory.NETWORK
        assert ErrorKind.UNKNOWN.category is ErrorCategory.UNKNOWN


class TestClassifiedError:
    """Tests for the canonical request failure."""

    def test_fields(self):
        info = RateLimitInfo(limit=100, remaining=0, reset_at=1700000000)
        error = ClassifiedError(
            ErrorKind.RATE_LIMIT,
            "Too many requests",
            status_code=429,
            retry_after=2,
            rate_limit=info,
        )
        assert error.kind is ErrorKind.RATE_LIMIT
        assert error.status_code == 429
        assert error.retryable is True
        assert error.retry_after == 2
        assert error.rate_limit == info
        assert error.cancelled is False
        assert str(error) == "Too many requests"

    def test_immutable_after_construction(self):
        error = ClassifiedError(ErrorKind.SERVER, "boom", status_code=500)
        with pytest.raises(AttributeError):
            error.kind = ErrorKind.CLIENT
        with pytest.raises(AttributeError):
            error.retryable = False
        assert error.kind is ErrorKind.SERVER

    def test_can_be_raised_and_chained(self):
        cause = ConnectionError("reset")
        with pytest.raises(ClassifiedError) as exc_info:
            try:
                raise cause
            except ConnectionError as exc:
                raise ClassifiedError(ErrorKind.NETWORK, "failed", cause=exc) from exc
        assert exc_info.value.__cause__ is cause
        assert exc_info.value.cause is cause

    def test_to_dict(self):
        error = ClassifiedError(
            ErrorKind.RATE_LIMIT,
            "slow down",
            status_code=429,
            retry_after=5,
            rate_limit=RateLimitInfo(limit=10),
        )
        data = error.to_dict()
        assert data["error_type"] == "ClassifiedError"
        assert data["kind"] == "rate_limit"
        assert data["status_code"] == 429
        assert data["retryable"] is True
        assert data["retry_after"] == 5
        assert data["rate_limit"] == {"limit": 10}

    def test_context_can_be_attached(self):
        error = ClassifiedError(ErrorKind.SERVER, "boom", status_code=503)
        error.with_context(method="GET", url="https://api.example.com", attempt=2, trace="abc")
        assert error.context.url == "https://api.example.com"
        assert error.context.attempt == 2
        assert error.context.metadata == {"trace": "abc"}

    def test_repr(self):
        error = ClassifiedError(ErrorKind.CLIENT, "nope", status_code=404)
        assert repr(error) == "ClassifiedError('nope', kind=client, status_code=404)"


class TestRequestCancelled:
    def test_classified_as_unknown_and_not_retryable(self):
        error = RequestCancelled()
        assert isinstance(error, ClassifiedError)
        assert error.kind is ErrorKind.UNKNOWN
        assert error.retryable is False
        assert error.cancelled is True
        assert error.category is ErrorCategory.CANCELLED
        assert error.message == "Request cancelled"

    def test_custom_reason(self):
        assert RequestCancelled("Request queue cleared").message == "Request queue cleared"


class TestFetchSpineError:
    def test_defaults(self):
        error = FetchSpineError("Something went wrong")
        assert error.retryable is False
        assert error.category is ErrorCategory.UNKNOWN
        assert error.context == ErrorContext()

    def test_to_dict_includes_context_and_cause(self):
        error = FetchSpineError("bad", cause=ValueError("x")).with_context(url="https://a")
        data = error.to_dict()
        assert data["context"] == {"url": "https://a"}
        assert "ValueError" in data["cause"]


class TestConfigErrors:
    def test_invalid_config_error(self):
        error = InvalidConfigError("timeout", -1)
        assert isinstance(error, ConfigError)
        assert error.key == "timeout"
        assert error.value == -1
        assert error.category is ErrorCategory.CONFIG
        assert error.retryable is False
        assert "timeout" in error.message


class TestRateLimitInfo:
    def test_empty(self):
        assert RateLimitInfo().is_empty()
        assert not RateLimitInfo(remaining=0).is_empty()

    def test_to_dict_omits_missing(self):
        assert RateLimitInfo(limit=5, reset_at=10).to_dict() == {"limit": 5, "reset_at": 10}
