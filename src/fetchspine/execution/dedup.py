"""Deduplication Cache — collapse identical requests into one execution.

WHY
───
Form editors re-submit, dashboards re-render, and two components ask for
the same resource at the same moment.  Within a short window, identical
requests (same method, normalized URL and body) should share a single
network execution and observe the same outcome.

ARCHITECTURE
────────────
::

    DedupCache(ttl=5.0)
      ├── .acquire(signature, execute_fn) ─ atomic check-then-insert → Task
      ├── .run(signature, execute_fn, token) ─ attach, await shared outcome
      ├── .get(signature)                 ─ live entry or None (lazy expiry)
      ├── .sweep()                        ─ drop entries older than ttl
      └── .clear()                        ─ cancel in-flight, drop all

    CacheEntry(signature, task, created_at, waiters)

    Visibility: an entry is returned only while now - created_at < ttl,
    even if it is still stored.

BEST PRACTICES
──────────────
- Only deduplicate idempotent reads, or writes that are safe to collapse.
- A waiter's cancellation detaches only that waiter; the execution is
  cancelled once no waiter is left.
- Failed executions are evicted as soon as they settle, so the next call
  retries instead of replaying the failure; successes stay for the ttl.

Example::

    cache = DedupCache(ttl=5.0)
    response = await cache.run(request.signature(), lambda: send(request))
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from fetchspine.core.cancellation import CancellationToken, await_cancellable
from fetchspine.core.errors import RequestCancelled
from fetchspine.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_TTL_SECONDS = 5.0


@dataclass
class CacheEntry:
    """One shared execution.

    Attributes:
        signature: Request signature the entry is keyed by
        task: The shared execution; settles once for every waiter
        created_at: Clock reading when the entry was inserted
        waiters: Callers currently awaiting the task through ``run``
    """

    signature: str
    task: asyncio.Task
    created_at: float
    waiters: int = field(default=0)

    def age(self, now: float) -> float:
        return now - self.created_at


class DedupCache:
    """Short-TTL map from request signature to a shared execution.

    Check-then-insert in ``acquire`` contains no ``await``, so it is atomic
    with respect to other coroutines on the same event loop.

    Args:
        ttl: Seconds an entry stays visible after insertion
        clock: Monotonic clock (injectable for tests)
    """

    def __init__(self, ttl: float = DEFAULT_TTL_SECONDS, *, clock: Callable[[], float] = time.monotonic):
        if ttl <= 0:
            raise ValueError(f"ttl must be positive, got {ttl}")
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def _is_live(self, entry: CacheEntry, now: float) -> bool:
        return entry.age(now) < self.ttl

    def get(self, signature: str) -> CacheEntry | None:
        """Live entry for ``signature``; expired entries are dropped."""
        entry = self._entries.get(signature)
        if entry is None:
            return None
        if not self._is_live(entry, self._clock()):
            self._evict(entry)
            return None
        return entry

    def sweep(self) -> int:
        """Remove every expired entry.  Returns the number removed."""
        now = self._clock()
        expired = [entry for entry in self._entries.values() if not self._is_live(entry, now)]
        for entry in expired:
            self._evict(entry)
        return len(expired)

    def acquire(self, signature: str, execute_fn: Callable[[], Awaitable[Any]]) -> asyncio.Task:
        """Return the live shared task for ``signature``, starting one if needed.

        ``execute_fn`` is invoked only when no live entry exists.  The new
        task is stored before it settles, so callers arriving while it is in
        flight attach to it.
        """
        entry = self.get(signature)
        if entry is not None:
            logger.debug("dedup_hit", signature=signature[:12], age=round(entry.age(self._clock()), 3))
            return entry.task

        self.sweep()
        task = asyncio.ensure_future(execute_fn())
        entry = CacheEntry(signature=signature, task=task, created_at=self._clock())
        self._entries[signature] = entry
        task.add_done_callback(lambda t, e=entry: self._on_settled(e, t))
        logger.debug("dedup_miss", signature=signature[:12], entries=len(self._entries))
        return task

    async def run(
        self,
        signature: str,
        execute_fn: Callable[[], Awaitable[Any]],
        *,
        token: CancellationToken | None = None,
    ) -> Any:
        """Attach to the shared execution for ``signature`` and await it.

        Raises:
            RequestCancelled: If ``token`` fires before the execution settles
            Exception: The shared execution's own error
        """
        task = self.acquire(signature, execute_fn)
        entry = self._entries.get(signature)
        if entry is not None and entry.task is not task:
            entry = None
        if entry is not None:
            entry.waiters += 1

        try:
            return await await_cancellable(task, token)
        except (RequestCancelled, asyncio.CancelledError):
            if entry is not None and not task.done():
                entry.waiters -= 1
                if entry.waiters <= 0:
                    logger.debug("dedup_abandoned", signature=signature[:12])
                    task.cancel()
                    self._evict(entry)
                entry = None
            raise
        finally:
            if entry is not None:
                entry.waiters -= 1

    def _on_settled(self, entry: CacheEntry, task: asyncio.Task) -> None:
        if task.cancelled() or task.exception() is not None:
            self._evict(entry)

    def _evict(self, entry: CacheEntry) -> None:
        if self._entries.get(entry.signature) is entry:
            del self._entries[entry.signature]

    def clear(self) -> None:
        """Cancel in-flight executions and drop every entry."""
        for entry in list(self._entries.values()):
            if not entry.task.done():
                entry.task.cancel()
        self._entries.clear()


__all__ = ["CacheEntry", "DedupCache", "DEFAULT_TTL_SECONDS"]
