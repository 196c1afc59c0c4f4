"""Error classification: raw failure → ``ClassifiedError``.

Maps a connectivity exception, an expired attempt deadline, or a completed
response with a non-2xx status onto one ``ErrorKind`` with its retry flag
and server hints.  Pure: no I/O and no hidden state; the host's
connectivity and the current time are passed in, so identical inputs always
classify identically.

RULES (first match wins)
────────────────────────
::

    no response + connectivity failure + offline  → OFFLINE     retryable
    no response + connectivity failure + online   → NETWORK     retryable
    no response + attempt deadline exceeded       → TIMEOUT     retryable
    status >= 500                                 → SERVER      retryable
    status 408 / 504                              → TIMEOUT     retryable
    status 429                                    → RATE_LIMIT  retryable (+ hints)
    400 <= status < 500                           → CLIENT      not retryable
    anything else                                 → UNKNOWN     not retryable

Example::

    error = classify(response=Response(429, {"Retry-After": "2"}, b""))
    assert error.kind is ErrorKind.RATE_LIMIT and error.retry_after == 2
"""

from __future__ import annotations

import math
import socket
from collections.abc import Mapping
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from typing import TYPE_CHECKING, Any

import httpx

from fetchspine.core.errors import ClassifiedError, ErrorKind, RateLimitInfo
from fetchspine.execution.timeout import AttemptTimedOut

if TYPE_CHECKING:
    from fetchspine.execution.transport import Response


def utcnow() -> datetime:
    """Return timezone-aware UTC datetime."""
    return datetime.now(UTC)


def _header(headers: Mapping[str, str] | None, name: str) -> str | None:
    """Case-insensitive header lookup that works for plain dicts too."""
    if not headers:
        return None
    value = headers.get(name)
    if value is not None:
        return value
    lowered = name.lower()
    for key, candidate in headers.items():
        if key.lower() == lowered:
            return candidate
    return None


def _parse_int(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None


def parse_retry_after(value: str | None, now: datetime | None = None) -> int | None:
    """Parse a ``Retry-After`` value into whole seconds.

    Accepts delta-seconds (``"120"``) or an HTTP date; dates are converted
    to the seconds remaining until that instant, floored at 0.

    Returns:
        Seconds to wait, or None if the value is absent or unparseable
    """
    if value is None or not value.strip():
        return None

    seconds = _parse_int(value)
    if seconds is not None:
        return max(0, seconds)

    try:
        when = parsedate_to_datetime(value.strip())
    except (TypeError, ValueError, IndexError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=UTC)
    remaining = (when - (now or utcnow())).total_seconds()
    return max(0, math.ceil(remaining))


def parse_rate_limit_headers(headers: Mapping[str, str] | None) -> RateLimitInfo | None:
    """Parse ``X-RateLimit-Limit/Remaining/Reset``.

    Missing or malformed values leave the matching field unset; returns
    None when no field could be read.
    """
    info = RateLimitInfo(
        limit=_parse_int(_header(headers, "X-RateLimit-Limit")),
        remaining=_parse_int(_header(headers, "X-RateLimit-Remaining")),
        reset_at=_parse_int(_header(headers, "X-RateLimit-Reset")),
    )
    return None if info.is_empty() else info


# Raised for requests that could never be sent, whatever the network state
_MALFORMED_REQUEST = (httpx.UnsupportedProtocol, httpx.LocalProtocolError, httpx.InvalidURL)


def is_deadline_failure(failure: BaseException) -> bool:
    """True if the failure is an attempt running out of time."""
    return isinstance(failure, (AttemptTimedOut, httpx.TimeoutException, TimeoutError))


def is_connectivity_failure(failure: BaseException) -> bool:
    """True if the transport could not reach (or stay connected to) the host."""
    if is_deadline_failure(failure):
        return False
    if isinstance(failure, _MALFORMED_REQUEST):
        return False
    return isinstance(failure, (httpx.TransportError, ConnectionError, socket.gaierror, OSError))


def _classify_response(response: Response, now: datetime | None) -> ClassifiedError:
    status = response.status_code

    if status >= 500:
        return ClassifiedError(
            ErrorKind.SERVER,
            f"Server error ({status}). The server may be temporarily unavailable.",
            status_code=status,
            cause=response,
        )
    if status in (408, 504):
        return ClassifiedError(
            ErrorKind.TIMEOUT,
            "Request timed out. Please try again.",
            status_code=status,
            cause=response,
        )
    if status == 429:
        return ClassifiedError(
            ErrorKind.RATE_LIMIT,
            "Too many requests. Please wait before trying again.",
            status_code=status,
            retry_after=parse_retry_after(_header(response.headers, "Retry-After"), now),
            rate_limit=parse_rate_limit_headers(response.headers),
            cause=response,
        )
    if 400 <= status < 500:
        return ClassifiedError(
            ErrorKind.CLIENT,
            f"Request failed ({status}). Please check your input and try again.",
            status_code=status,
            cause=response,
        )
    return ClassifiedError(
        ErrorKind.UNKNOWN,
        f"Unexpected response status ({status}).",
        status_code=status,
        cause=response,
    )


def classify(
    failure: BaseException | None = None,
    response: Response | None = None,
    *,
    online: bool = True,
    now: datetime | None = None,
) -> ClassifiedError:
    """Classify a failed attempt.

    Args:
        failure: Exception raised by the attempt, if any
        response: Completed response with a non-2xx status, if any
        online: Host connectivity at classification time
        now: Reference time for HTTP-date ``Retry-After`` values

    Returns:
        ClassifiedError (already-classified failures are returned as-is)
    """
    if isinstance(failure, ClassifiedError):
        return failure

    if response is None and failure is not None:
        if is_connectivity_failure(failure):
            if not online:
                return ClassifiedError(
                    ErrorKind.OFFLINE,
                    "You are currently offline. Please check your internet connection.",
                    cause=failure,
                )
            return ClassifiedError(
                ErrorKind.NETWORK,
                "Network request failed. Please check your internet connection.",
                cause=failure,
            )
        if is_deadline_failure(failure):
            return ClassifiedError(
                ErrorKind.TIMEOUT,
                "Request timed out. The server may be slow or unavailable.",
                cause=failure,
            )

    if response is not None:
        return _classify_response(response, now)

    if failure is not None:
        return ClassifiedError(ErrorKind.UNKNOWN, str(failure) or type(failure).__name__, cause=failure)
    return ClassifiedError(ErrorKind.UNKNOWN, "An unknown network error occurred.")


def offline_error(cause: Any = None) -> ClassifiedError:
    """Error for calls short-circuited because the host is offline."""
    return ClassifiedError(
        ErrorKind.OFFLINE,
        "You are currently offline. Please check your internet connection.",
        cause=cause,
    )


__all__ = [
    "classify",
    "offline_error",
    "parse_retry_after",
    "parse_rate_limit_headers",
    "is_connectivity_failure",
    "is_deadline_failure",
]
