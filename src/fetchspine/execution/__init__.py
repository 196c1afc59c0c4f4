"""fetchspine.execution -- the resilient request pipeline.

Architecture::

    classifier.py    failure / response → ClassifiedError
    backoff.py       delay before the next attempt
    timeout.py       per-attempt deadline, raced with cancellation
    dedup.py         shared executions for identical requests
    rate_limit.py    per-channel FIFO pacing queues
    transport.py     RequestSpec, Response, HttpxTransport
    executor.py      RequestExecutor facade composing all of the above
    json_client.py   fetch_json helper
"""

from fetchspine.execution.backoff import (
    BackoffPolicy,
    ConstantBackoff,
    ExponentialBackoff,
    LinearBackoff,
    backoff_from_settings,
)
from fetchspine.execution.classifier import classify, parse_rate_limit_headers, parse_retry_after
from fetchspine.execution.dedup import CacheEntry, DedupCache
from fetchspine.execution.executor import RequestConfig, RequestExecutor
from fetchspine.execution.rate_limit import PacingRegistry, QueuedRequest, RateLimitQueue
from fetchspine.execution.timeout import AttemptTimedOut, run_with_timeout
from fetchspine.execution.transport import HttpxTransport, RequestSpec, Response, Transport

__all__ = [
    "BackoffPolicy",
    "LinearBackoff",
    "ExponentialBackoff",
    "ConstantBackoff",
    "backoff_from_settings",
    "classify",
    "parse_retry_after",
    "parse_rate_limit_headers",
    "CacheEntry",
    "DedupCache",
    "RequestConfig",
    "RequestExecutor",
    "PacingRegistry",
    "QueuedRequest",
    "RateLimitQueue",
    "AttemptTimedOut",
    "run_with_timeout",
    "HttpxTransport",
    "RequestSpec",
    "Response",
    "Transport",
]
