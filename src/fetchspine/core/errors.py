"""
Structured error types for fetchspine.

Every failure that leaves the request layer is a typed error carrying retry
semantics, so callers never have to inspect raw transport exceptions.

Manifesto:
    - **Typed hierarchy:** ``FetchSpineError`` is the base for every error
    - **Explicit retry semantics:** Each error knows if it's retryable
    - **Rich context:** Errors carry metadata for logging and alerting
    - **Single translation boundary:** Outbound calls only ever surface
      ``ClassifiedError``

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────┐
        │                      FetchSpineError                         │
        │  (category, retryable, retry_after, context, cause)         │
        ├─────────────────────────────────────────────────────────────┤
        │                                                              │
        │  ClassifiedError            ConfigError                      │
        │  (kind, status_code,        (CONFIG, never retryable)        │
        │   rate_limit)                    │                           │
        │       │                     InvalidConfigError               │
        │  RequestCancelled                                            │
        │  (UNKNOWN, cancelled=True)                                   │
        └─────────────────────────────────────────────────────────────┘

Examples:
    >>> error = ClassifiedError(ErrorKind.SERVER, "Server error (503)", status_code=503)
    >>> error.retryable
    True
    >>> error.to_dict()["kind"]
    'server'

Tags:
    error-handling, exception-hierarchy, retry-logic, fetchspine

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Coarse error categories used for routing and alerting."""

    NETWORK = "NETWORK"  # Connectivity, timeout, rate limit
    SOURCE = "SOURCE"  # Upstream rejected the request
    CONFIG = "CONFIG"  # Invalid settings or request configuration
    CANCELLED = "CANCELLED"  # Caller gave up
    UNKNOWN = "UNKNOWN"


class ErrorKind(str, Enum):
    """
    Outcome classes of a failed outbound request.

    The kinds are mutually exclusive and exhaustive: every failure maps to
    exactly one of them.

    Attributes:
        OFFLINE: Connectivity failure while the host reports being offline
        NETWORK: Connectivity failure while the host reports being online
        TIMEOUT: Attempt deadline exceeded, or a 408 response
        SERVER: 5xx response
        CLIENT: 4xx response other than 408/429
        RATE_LIMIT: 429 response
        UNKNOWN: Anything else (including cancellation)
    """

    OFFLINE = "offline"
    NETWORK = "network"
    TIMEOUT = "timeout"
    SERVER = "server"
    CLIENT = "client"
    RATE_LIMIT = "rate_limit"
    UNKNOWN = "unknown"

    @property
    def category(self) -> ErrorCategory:
        if self in (ErrorKind.CLIENT, ErrorKind.SERVER):
            return ErrorCategory.SOURCE
        if self is ErrorKind.UNKNOWN:
            return ErrorCategory.UNKNOWN
        return ErrorCategory.NETWORK


_RETRYABLE_KINDS = frozenset(
    {
        ErrorKind.OFFLINE,
        ErrorKind.NETWORK,
        ErrorKind.TIMEOUT,
        ErrorKind.SERVER,
        ErrorKind.RATE_LIMIT,
    }
)


def is_retryable(kind: ErrorKind, status_code: int | None = None) -> bool:
    """Derive the retry flag from the error kind and status code.

    Client errors are retryable only for 408, which the classifier already
    files under ``TIMEOUT``.
    """
    if kind is ErrorKind.CLIENT:
        return status_code == 408
    return kind in _RETRYABLE_KINDS


@dataclass(frozen=True)
class RateLimitInfo:
    """Rate limit state reported by the server via ``X-RateLimit-*`` headers.

    Attributes:
        limit: Requests allowed per window
        remaining: Requests left in the current window
        reset_at: Unix timestamp when the window resets
    """

    limit: int | None = None
    remaining: int | None = None
    reset_at: int | None = None

    def is_empty(self) -> bool:
        return self.limit is None and self.remaining is None and self.reset_at is None

    def to_dict(self) -> dict[str, int]:
        fields = {"limit": self.limit, "remaining": self.remaining, "reset_at": self.reset_at}
        return {k: v for k, v in fields.items() if v is not None}


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Attributes:
        method: HTTP method of the failed request
        url: URL that was being accessed
        attempt: Zero-based attempt index at which the error was produced
        channel: Pacing channel the request went through, if any
        metadata: Additional key-value pairs
    """

    method: str | None = None
    url: str | None = None
    attempt: int | None = None
    channel: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["method", "url", "attempt", "channel"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class FetchSpineError(Exception):
    """
    Base exception for all fetchspine errors.

    Subclasses set ``default_category`` and ``default_retryable`` to give
    sensible defaults for their domain.

    Examples:
        >>> error = FetchSpineError("Something went wrong")
        >>> error.retryable
        False
        >>> error.with_context(url="https://api.example.com").context.url
        'https://api.example.com'
    """

    default_category: ErrorCategory = ErrorCategory.UNKNOWN
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        retry_after: int | None = None,
        context: ErrorContext | None = None,
        cause: Any = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.retry_after = retry_after
        self.context = context or ErrorContext()
        self.cause = cause

        if isinstance(cause, BaseException):
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> FetchSpineError:
        """
        Add context to this error (fluent API).

        Usage:
            raise error.with_context(method="GET", url="https://api.example.com")
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        if self.retry_after is not None:
            result["retry_after"] = self.retry_after
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = repr(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# CLASSIFIED REQUEST ERRORS
# =============================================================================


class ClassifiedError(FetchSpineError):
    """
    Canonical failure record of the request layer.

    Built once per failed attempt by the classifier and never mutated
    afterwards; the retry flag is derived from ``kind`` and ``status_code``
    so two errors with the same inputs always agree.

    Attributes:
        kind: ErrorKind of the failure
        status_code: HTTP status when a response was received
        retry_after: Server-provided wait hint in seconds
        rate_limit: Parsed ``X-RateLimit-*`` headers, if any were present
        cause: Underlying exception or response (diagnostics only)
    """

    _frozen = False

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        *,
        status_code: int | None = None,
        retry_after: int | None = None,
        rate_limit: RateLimitInfo | None = None,
        category: ErrorCategory | None = None,
        context: ErrorContext | None = None,
        cause: Any = None,
    ):
        super().__init__(
            message,
            category=category or kind.category,
            retryable=is_retryable(kind, status_code),
            retry_after=retry_after,
            context=context,
            cause=cause,
        )
        self.kind = kind
        self.status_code = status_code
        self.rate_limit = rate_limit
        self._frozen = True

    def __setattr__(self, name: str, value: Any) -> None:
        # Python's exception machinery sets these while raising and chaining.
        if self._frozen and name not in ("__traceback__", "__cause__", "__context__", "__suppress_context__", "__notes__"):
            raise AttributeError(f"{type(self).__name__} is immutable; cannot set {name!r}")
        super().__setattr__(name, value)

    @property
    def cancelled(self) -> bool:
        return False

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["kind"] = self.kind.value
        if self.status_code is not None:
            result["status_code"] = self.status_code
        if self.rate_limit is not None and not self.rate_limit.is_empty():
            result["rate_limit"] = self.rate_limit.to_dict()
        return result

    def __repr__(self) -> str:
        status = f", status_code={self.status_code}" if self.status_code is not None else ""
        return f"{self.__class__.__name__}({self.message!r}, kind={self.kind.value}{status})"


class RequestCancelled(ClassifiedError):
    """The caller cancelled the request, or its queue was cleared.

    Classified as ``UNKNOWN`` and never retryable; ``cancelled`` tells it
    apart from other unknown failures.
    """

    def __init__(self, message: str = "Request cancelled", *, context: ErrorContext | None = None, cause: Any = None):
        super().__init__(
            ErrorKind.UNKNOWN,
            message,
            category=ErrorCategory.CANCELLED,
            context=context,
            cause=cause,
        )

    @property
    def cancelled(self) -> bool:
        return True


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class ConfigError(FetchSpineError):
    """
    Configuration error.

    Never retryable - configuration must be fixed.
    """

    default_category = ErrorCategory.CONFIG
    default_retryable = False


class InvalidConfigError(ConfigError):
    """Configuration value is invalid."""

    def __init__(self, key: str, value: Any, message: str | None = None):
        self.key = key
        self.value = value
        super().__init__(message or f"Invalid configuration for {key}: {value!r}")


__all__ = [
    "ErrorCategory",
    "ErrorKind",
    "ErrorContext",
    "RateLimitInfo",
    "is_retryable",
    "FetchSpineError",
    "ClassifiedError",
    "RequestCancelled",
    "ConfigError",
    "InvalidConfigError",
]
