"""fetchspine - resilient request layer for asyncio HTTP clients.

Wraps outbound HTTP calls with error classification, linear backoff with
Retry-After support, per-attempt deadlines, deduplication of identical
in-flight requests, and per-channel pacing.  Callers see either a
``Response`` or a single ``ClassifiedError``.

Example::

    from fetchspine import RequestExecutor

    async with RequestExecutor() as executor:
        response = await executor.request("GET", "https://api.example.com/items")
"""

__version__ = "0.1.0"

from fetchspine.core.cancellation import CancellationToken
from fetchspine.core.connectivity import AlwaysOnline, ConnectivityChecker, ManualConnectivity
from fetchspine.core.errors import (
    ClassifiedError,
    ErrorKind,
    FetchSpineError,
    InvalidConfigError,
    RateLimitInfo,
    RequestCancelled,
)
from fetchspine.execution.executor import RequestConfig, RequestExecutor
from fetchspine.execution.json_client import fetch_json
from fetchspine.execution.transport import HttpxTransport, RequestSpec, Response, Transport
from fetchspine.messages import FriendlyMessage, describe

__all__ = [
    "__version__",
    "CancellationToken",
    "ConnectivityChecker",
    "AlwaysOnline",
    "ManualConnectivity",
    "FetchSpineError",
    "ClassifiedError",
    "RequestCancelled",
    "InvalidConfigError",
    "ErrorKind",
    "RateLimitInfo",
    "RequestConfig",
    "RequestExecutor",
    "RequestSpec",
    "Response",
    "Transport",
    "HttpxTransport",
    "fetch_json",
    "FriendlyMessage",
    "describe",
]
