"""Request Executor — the single entry point of the request layer.

WHY
───
Callers want one call that either returns a response or raises one
well-formed ``ClassifiedError``.  Behind that call sit five concerns that
must compose in a fixed order: connectivity pre-check, deduplication,
pacing, per-attempt deadlines, and classified retries with backoff.

ARCHITECTURE
────────────
::

    RequestExecutor.execute(request, config, token)
      │
      ├── offline?                 → raise ClassifiedError(OFFLINE), no attempt
      ├── config.deduplicate       → DedupCache.run(signature, …)
      │                               (only the first caller continues)
      ├── config.min_pacing_delay  → PacingRegistry.queue_for(channel).submit(…)
      │                               (nested run has pacing off)
      └── attempt loop (attempt = 0, 1, …, max_retries)
            ├── run_with_timeout(transport.send, config.timeout)
            ├── 2xx                → return Response
            ├── classify(failure | response, online=…)
            ├── stop if last attempt / not retryable / predicate says no
            └── cancellable_sleep(backoff.next_delay(attempt, error))

    RequestConfig      — per-request knobs (frozen, validated)
    RequestExecutor    — composes Transport, ConnectivityChecker,
                         DedupCache, PacingRegistry, BackoffPolicy

Related modules:
    classifier.py  — failure → ClassifiedError
    backoff.py     — delay between attempts
    timeout.py     — per-attempt deadline
    dedup.py       — shared executions for identical requests
    rate_limit.py  — per-channel pacing queues
    transport.py   — RequestSpec / Response / HttpxTransport

Example::

    async with RequestExecutor.from_settings() as executor:
        response = await executor.request(
            "GET", "https://api.example.com/items",
            max_retries=5, min_pacing_delay=0.5,
        )
        print(response.status_code, response.json())

Tags:
    fetchspine, execution, retry, timeout, dedup, rate-limit, facade

Doc-Types:
    api-reference
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, fields, replace
from typing import Any

from fetchspine.core.cancellation import CancellationToken, cancellable_sleep
from fetchspine.core.connectivity import AlwaysOnline, ConnectivityChecker
from fetchspine.core.errors import ClassifiedError, InvalidConfigError, RequestCancelled
from fetchspine.core.logging import LogContext, get_logger
from fetchspine.core.settings import FetchSpineSettings, get_settings
from fetchspine.execution.backoff import BackoffPolicy, LinearBackoff, backoff_from_settings
from fetchspine.execution.classifier import classify, offline_error
from fetchspine.execution.dedup import DedupCache
from fetchspine.execution.rate_limit import PacingRegistry
from fetchspine.execution.timeout import run_with_timeout
from fetchspine.execution.transport import Body, HttpxTransport, RequestSpec, Response, Transport

logger = get_logger(__name__)

RetryPredicate = Callable[[ClassifiedError], bool]


@dataclass(frozen=True)
class RequestConfig:
    """Per-request behaviour of the executor.

    Attributes:
        timeout: Deadline in seconds for each individual attempt
        max_retries: Retries after the first attempt (total attempts = max_retries + 1)
        base_retry_delay: Per-request base delay for the backoff policy; None keeps the policy's own
        retry_predicate: Extra veto on retrying a retryable error
        min_pacing_delay: Start-to-start gap on the pacing channel; 0 disables pacing
        pacing_channel: Queue key; defaults to the request URL's host
        deduplicate: Share one execution among identical concurrent requests
    """

    timeout: float = 30.0
    max_retries: int = 3
    base_retry_delay: float | None = None
    retry_predicate: RetryPredicate | None = None
    min_pacing_delay: float = 0.0
    pacing_channel: str | None = None
    deduplicate: bool = False

    def __post_init__(self) -> None:
        if self.timeout <= 0:
            raise InvalidConfigError("timeout", self.timeout, f"timeout must be positive, got {self.timeout}")
        if isinstance(self.max_retries, bool) or not isinstance(self.max_retries, int) or self.max_retries < 0:
            raise InvalidConfigError(
                "max_retries", self.max_retries, f"max_retries must be a non-negative integer, got {self.max_retries!r}"
            )
        if self.base_retry_delay is not None and self.base_retry_delay < 0:
            raise InvalidConfigError("base_retry_delay", self.base_retry_delay)
        if self.min_pacing_delay < 0:
            raise InvalidConfigError("min_pacing_delay", self.min_pacing_delay)
        if self.retry_predicate is not None and not callable(self.retry_predicate):
            raise InvalidConfigError("retry_predicate", self.retry_predicate, "retry_predicate must be callable")

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    @property
    def paced(self) -> bool:
        return self.min_pacing_delay > 0

    def with_overrides(self, **overrides: Any) -> RequestConfig:
        """Copy with the given fields replaced (validated again)."""
        known = {f.name for f in fields(self)}
        unknown = sorted(set(overrides) - known)
        if unknown:
            raise InvalidConfigError(unknown[0], overrides[unknown[0]], f"Unknown request option: {unknown[0]}")
        return replace(self, **overrides)


class RequestExecutor:
    """Resilient request facade.

    Args:
        transport: Sends requests; defaults to an owned ``HttpxTransport``
        connectivity: Host connectivity source; defaults to ``AlwaysOnline``
        dedup_cache: Shared-execution cache for ``deduplicate`` requests
        pacing: Per-channel queues for paced requests
        backoff: Policy for delays between attempts; defaults to linear
        defaults: ``RequestConfig`` used when a call passes none
        sleep: Sleep coroutine for backoff waits (injectable for tests)
    """

    def __init__(
        self,
        transport: Transport | None = None,
        *,
        connectivity: ConnectivityChecker | None = None,
        dedup_cache: DedupCache | None = None,
        pacing: PacingRegistry | None = None,
        backoff: BackoffPolicy | None = None,
        defaults: RequestConfig | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.transport = transport if transport is not None else HttpxTransport()
        self.connectivity = connectivity if connectivity is not None else AlwaysOnline()
        self.dedup_cache = dedup_cache if dedup_cache is not None else DedupCache()
        self.pacing = pacing if pacing is not None else PacingRegistry()
        self.backoff = backoff if backoff is not None else LinearBackoff()
        self.defaults = defaults if defaults is not None else RequestConfig()
        self._sleep = sleep

    @classmethod
    def from_settings(
        cls,
        settings: FetchSpineSettings | None = None,
        *,
        transport: Transport | None = None,
        connectivity: ConnectivityChecker | None = None,
    ) -> RequestExecutor:
        """Compose an executor from ``FetchSpineSettings`` (env / .env)."""
        settings = settings or get_settings()
        return cls(
            transport if transport is not None else HttpxTransport(user_agent=settings.user_agent),
            connectivity=connectivity,
            dedup_cache=DedupCache(ttl=settings.dedup_ttl),
            backoff=backoff_from_settings(settings.backoff, settings.base_retry_delay, settings.max_retry_delay),
            defaults=settings.to_request_config(),
        )

    # ── Call surface ─────────────────────────────────────────────────

    async def request(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        body: Body = None,
        config: RequestConfig | None = None,
        token: CancellationToken | None = None,
        **overrides: Any,
    ) -> Response:
        """Build a ``RequestSpec`` and execute it.

        Keyword overrides (``timeout=5``, ``max_retries=0``, ...) are applied
        on top of ``config`` or the executor defaults.
        """
        effective = config or self.defaults
        if overrides:
            effective = effective.with_overrides(**overrides)
        spec = RequestSpec(method=method, url=url, headers=headers or {}, body=body)
        return await self.execute(spec, effective, token=token)

    async def execute(
        self,
        request: RequestSpec,
        config: RequestConfig | None = None,
        *,
        token: CancellationToken | None = None,
    ) -> Response:
        """Run ``request`` through pre-check, dedup, pacing and the attempt loop.

        Returns:
            The first 2xx response

        Raises:
            ClassifiedError: The final classified failure
            RequestCancelled: If ``token`` fires first
        """
        config = config or self.defaults

        if not self.connectivity.is_online():
            error = offline_error()
            error.with_context(method=request.method, url=request.url, attempt=0)
            logger.warning("request_offline", method=request.method, url=request.url)
            raise error
        if token is not None:
            token.raise_if_cancelled()

        if config.deduplicate:
            # The shared execution carries no token; each waiter detaches on its own.
            return await self.dedup_cache.run(
                request.signature(),
                lambda: self._execute_paced(request, config, None),
                token=token,
            )
        return await self._execute_paced(request, config, token)

    async def _execute_paced(
        self,
        request: RequestSpec,
        config: RequestConfig,
        token: CancellationToken | None,
    ) -> Response:
        if not config.paced:
            return await self._attempt_loop(request, config, token)

        channel = self._channel_for(request, config)
        queue = self.pacing.queue_for(channel, config.min_pacing_delay)
        return await queue.submit(
            request,
            lambda: self._attempt_loop(request, config, token, channel=channel),
            token=token,
        )

    @staticmethod
    def _channel_for(request: RequestSpec, config: RequestConfig) -> str:
        return config.pacing_channel or request.host or "default"

    async def _attempt_loop(
        self,
        request: RequestSpec,
        config: RequestConfig,
        token: CancellationToken | None,
        *,
        channel: str | None = None,
    ) -> Response:
        scope = {"method": request.method, "url": request.url}
        if channel is not None:
            scope["channel"] = channel
        # Every event logged while this request runs carries its method and url
        with LogContext(**scope):
            return await self._run_attempts(request, config, token, channel=channel)

    async def _run_attempts(
        self,
        request: RequestSpec,
        config: RequestConfig,
        token: CancellationToken | None,
        *,
        channel: str | None = None,
    ) -> Response:
        backoff = self.backoff
        if config.base_retry_delay is not None:
            backoff = backoff.with_base_delay(config.base_retry_delay)
        attempt = 0

        while True:
            try:
                response = await run_with_timeout(
                    lambda: self.transport.send(request),
                    config.timeout,
                    token=token,
                    operation=f"{request.method} {request.url}",
                )
            except RequestCancelled as exc:
                exc.with_context(method=request.method, url=request.url, attempt=attempt, channel=channel)
                logger.info("request_cancelled", attempt=attempt, reason=exc.message)
                raise
            except Exception as exc:
                error = classify(exc, online=self.connectivity.is_online())
            else:
                if response.ok:
                    logger.debug("request_succeeded", status=response.status_code, attempts=attempt + 1)
                    return response
                error = classify(response=response, online=self.connectivity.is_online())

            error.with_context(method=request.method, url=request.url, attempt=attempt, channel=channel)

            if not self._should_retry(error, attempt, config):
                logger.warning(
                    "request_failed",
                    kind=error.kind.value,
                    status=error.status_code,
                    attempts=attempt + 1,
                    retryable=error.retryable,
                )
                raise error

            delay = backoff.next_delay(attempt, error)
            logger.info(
                "request_retry_scheduled",
                kind=error.kind.value,
                status=error.status_code,
                attempt=attempt,
                delay=delay,
            )
            await cancellable_sleep(delay, token, sleep=self._sleep)
            attempt += 1

    @staticmethod
    def _should_retry(error: ClassifiedError, attempt: int, config: RequestConfig) -> bool:
        if attempt >= config.max_retries or not error.retryable:
            return False
        if config.retry_predicate is not None and not config.retry_predicate(error):
            return False
        return True

    # ── Lifecycle ────────────────────────────────────────────────────

    async def aclose(self) -> None:
        """Reject queued requests, drop shared executions, close the transport."""
        await self.pacing.aclose()
        self.dedup_cache.clear()
        await self.transport.aclose()

    async def __aenter__(self) -> RequestExecutor:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()


__all__ = [
    "RequestConfig",
    "RequestExecutor",
    "RequestSpec",
    "Response",
    "RetryPredicate",
]
