"""Rate-Limit Queue — paced, serial execution per channel.

Manifesto:
External APIs enforce rate limits.  Exceeding them causes 429 errors or
bans.  A paced channel lets many independent callers share one upstream
politely: their requests run one at a time, in FIFO order, each starting
at least ``min_delay`` seconds after the previous one started.

ARCHITECTURE
────────────
::

    PacingRegistry
      └── channel key → RateLimitQueue (created on demand)

    RateLimitQueue(min_delay)              state: IDLE ⇄ DRAINING
      ├── .enqueue(request, run)  ─ append QueuedRequest, start drain
      ├── .submit(request, run, token) ─ enqueue + await (cancellable)
      ├── .clear()                ─ reject pending with RequestCancelled
      └── _drain()                ─ the single serial drain loop

    Drain loop:
      peek head → drop if withdrawn → wait until start-to-start gap ≥ min_delay
      → pop, record start → run → settle caller's future → next

    Exactly one drain task runs per queue.

Related modules:
    backoff.py   — waits between attempts of one request
    dedup.py     — collapses identical requests before they are queued
    executor.py  — routes paced requests here, runs them unpaced

Example::

    queue = RateLimitQueue(min_delay=0.5, name="api.example.com")
    response = await queue.submit(request, lambda: transport.send(request))

Tags:
    fetchspine, execution, rate-limit, pacing, queue

Doc-Types:
    api-reference
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from fetchspine.core.cancellation import CancellationToken, await_cancellable
from fetchspine.core.errors import ClassifiedError, RequestCancelled
from fetchspine.core.logging import get_logger
from fetchspine.execution.classifier import classify

logger = get_logger(__name__)


class QueueState(str, Enum):
    """Drain state of a queue.  IDLE is re-entered whenever the queue empties."""

    IDLE = "idle"
    DRAINING = "draining"


@dataclass
class QueuedRequest:
    """One pending unit of work awaiting paced admission.

    Attributes:
        request: Opaque description of the call (usually a RequestSpec)
        run: Zero-argument coroutine factory that executes the call
        future: Outcome channel resolved by the drain loop
        enqueued_at: Monotonic timestamp, for ordering and debugging only
    """

    request: Any
    run: Callable[[], Awaitable[Any]]
    future: asyncio.Future
    enqueued_at: float = field(default_factory=time.monotonic)

    @property
    def withdrawn(self) -> bool:
        return self.future.done()


class RateLimitQueue:
    """Serial queue enforcing a minimum start-to-start delay.

    Args:
        min_delay: Minimum seconds between the starts of two executions
        name: Channel name, for logs
        clock: Monotonic clock (injectable for tests)
        sleep: Sleep coroutine (injectable for tests)
    """

    def __init__(
        self,
        min_delay: float = 0.0,
        *,
        name: str = "default",
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        if min_delay < 0:
            raise ValueError(f"min_delay must be non-negative, got {min_delay}")
        self.min_delay = min_delay
        self.name = name
        self._clock = clock
        self._sleep = sleep
        self._queue: deque[QueuedRequest] = deque()
        self._state = QueueState.IDLE
        self._drain_task: asyncio.Task | None = None
        self._last_started: float | None = None

    @property
    def state(self) -> QueueState:
        return self._state

    @property
    def pending(self) -> int:
        return sum(1 for item in self._queue if not item.withdrawn)

    def enqueue(
        self,
        request: Any,
        run: Callable[[], Awaitable[Any]],
        *,
        min_delay: float | None = None,
    ) -> asyncio.Future:
        """Append a request and make sure the drain loop is running.

        Args:
            request: Opaque request description
            run: Executes the request (with pacing disabled)
            min_delay: Replaces the queue's delay when given

        Returns:
            Future settled with the request's outcome
        """
        if min_delay is not None:
            if min_delay < 0:
                raise ValueError(f"min_delay must be non-negative, got {min_delay}")
            self.min_delay = min_delay

        loop = asyncio.get_running_loop()
        item = QueuedRequest(request=request, run=run, future=loop.create_future(), enqueued_at=self._clock())
        self._queue.append(item)

        if self._state is QueueState.IDLE:
            self._state = QueueState.DRAINING
            self._drain_task = asyncio.ensure_future(self._drain())
        return item.future

    async def submit(
        self,
        request: Any,
        run: Callable[[], Awaitable[Any]],
        *,
        min_delay: float | None = None,
        token: CancellationToken | None = None,
    ) -> Any:
        """Enqueue and await the outcome.

        A fired token (or cancellation of the caller's task) withdraws the
        entry; the drain loop skips withdrawn entries.
        """
        if token is not None:
            token.raise_if_cancelled()
        future = self.enqueue(request, run, min_delay=min_delay)
        try:
            return await await_cancellable(future, token)
        except (RequestCancelled, asyncio.CancelledError):
            if not future.done():
                future.cancel()
            raise

    async def _wait_for_slot(self) -> None:
        if self._last_started is None:
            return
        while (remaining := self.min_delay - (self._clock() - self._last_started)) > 0:
            logger.debug("queue_paced", channel=self.name, wait=round(remaining, 3))
            await self._sleep(remaining)

    async def _drain(self) -> None:
        try:
            while self._queue:
                # The head stays queued while it waits for its slot so clear() can reject it
                item = self._queue[0]
                if item.withdrawn:
                    self._queue.popleft()
                    continue

                try:
                    await self._wait_for_slot()
                    if item.withdrawn:
                        continue
                    self._queue.popleft()
                    self._last_started = self._clock()
                    result = await item.run()
                except asyncio.CancelledError:
                    if self._queue and self._queue[0] is item:
                        self._queue.popleft()
                    self._settle(item, error=RequestCancelled("Request queue closed"))
                    raise
                except ClassifiedError as exc:
                    self._settle(item, error=exc)
                except Exception as exc:
                    self._settle(item, error=classify(exc))
                else:
                    self._settle(item, result=result)
        finally:
            self._state = QueueState.IDLE
            self._drain_task = None

    @staticmethod
    def _settle(item: QueuedRequest, *, result: Any = None, error: BaseException | None = None) -> None:
        if item.future.done():
            return
        if error is not None:
            item.future.set_exception(error)
        else:
            item.future.set_result(result)

    def clear(self, reason: str = "Request queue cleared") -> int:
        """Reject every pending entry with ``RequestCancelled``.

        Returns:
            Number of entries rejected
        """
        rejected = 0
        while self._queue:
            item = self._queue.popleft()
            if not item.future.done():
                item.future.set_exception(RequestCancelled(reason))
                rejected += 1
        if rejected:
            logger.info("queue_cleared", channel=self.name, rejected=rejected)
        return rejected

    async def aclose(self) -> None:
        """Clear pending entries and stop the drain loop."""
        self.clear()
        task = self._drain_task
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

    def __repr__(self) -> str:
        return f"RateLimitQueue(name={self.name!r}, min_delay={self.min_delay}, state={self._state.value}, pending={self.pending})"


class PacingRegistry:
    """Per-channel rate-limit queues, created on first use.

    Example:
        >>> registry = PacingRegistry()
        >>> queue = registry.queue_for("api.example.com", min_delay=0.5)
    """

    def __init__(self, *, queue_factory: Callable[..., RateLimitQueue] = RateLimitQueue):
        self._queue_factory = queue_factory
        self._queues: dict[str, RateLimitQueue] = {}

    def queue_for(self, channel: str, min_delay: float) -> RateLimitQueue:
        """Get or create the queue for ``channel``; the latest delay wins."""
        queue = self._queues.get(channel)
        if queue is None:
            queue = self._queue_factory(min_delay, name=channel)
            self._queues[channel] = queue
        elif queue.min_delay != min_delay:
            logger.debug("queue_delay_changed", channel=channel, old=queue.min_delay, new=min_delay)
            queue.min_delay = min_delay
        return queue

    def get(self, channel: str) -> RateLimitQueue | None:
        return self._queues.get(channel)

    def channels(self) -> list[str]:
        return list(self._queues)

    def clear_all(self) -> int:
        """Clear every queue.  Returns the total number of rejected entries."""
        return sum(queue.clear() for queue in self._queues.values())

    async def aclose(self) -> None:
        for queue in self._queues.values():
            await queue.aclose()


__all__ = ["QueueState", "QueuedRequest", "RateLimitQueue", "PacingRegistry"]
