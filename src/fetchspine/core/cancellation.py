"""Cooperative cancellation for in-flight requests.

A ``CancellationToken`` is handed to every suspension point of a request
(the network attempt, the backoff sleep, queue admission, the shared dedup
future).  Each of them waits on *either* its own completion *or* the token,
and resolves to ``RequestCancelled`` when the token fires first, so a
caller is never left waiting on something it has given up on.

Example::

    token = CancellationToken()
    token.cancel_after(10.0)
    try:
        response = await executor.request("GET", url, token=token)
    except RequestCancelled:
        ...
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from fetchspine.core.errors import RequestCancelled

T = TypeVar("T")


class CancellationToken:
    """One-shot cancellation signal shared by the stages of a request."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str:
        return self._reason or "Request cancelled"

    def cancel(self, reason: str = "Request cancelled") -> None:
        """Fire the token.  Later calls keep the first reason."""
        if self._event.is_set():
            return
        self._reason = reason
        self._event.set()

    def cancel_after(self, delay: float) -> asyncio.TimerHandle:
        """Schedule cancellation ``delay`` seconds from now on the running loop."""
        loop = asyncio.get_running_loop()
        return loop.call_later(delay, self.cancel, f"Cancelled after {delay}s")

    async def wait(self) -> None:
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise RequestCancelled(self.reason)

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self.cancelled})"


async def await_cancellable(awaitable: Awaitable[T], token: CancellationToken | None = None) -> T:
    """Await ``awaitable`` unless ``token`` fires first.

    The awaited object is *not* cancelled when the token fires; it may be
    shared with other waiters.  Callers that own it cancel it themselves.

    Raises:
        RequestCancelled: If the token fired first, or the awaited future
            was itself cancelled.
    """
    if token is None:
        future = asyncio.ensure_future(awaitable)
        try:
            return await asyncio.shield(future)
        except asyncio.CancelledError:
            if future.cancelled() and not _current_task_cancelling():
                raise RequestCancelled("Shared execution was cancelled") from None
            raise

    token.raise_if_cancelled()
    future = asyncio.ensure_future(awaitable)
    waiter = asyncio.ensure_future(token.wait())
    try:
        await asyncio.wait({future, waiter}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        waiter.cancel()

    if not future.done():
        raise RequestCancelled(token.reason)
    if future.cancelled():
        raise RequestCancelled("Shared execution was cancelled")
    return future.result()


async def cancellable_sleep(
    seconds: float,
    token: CancellationToken | None = None,
    *,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> None:
    """Sleep for ``seconds`` unless ``token`` fires first."""
    if token is None:
        await sleep(seconds)
        return

    sleeper = asyncio.ensure_future(sleep(seconds))
    try:
        await await_cancellable(sleeper, token)
    finally:
        if not sleeper.done():
            sleeper.cancel()


def _current_task_cancelling() -> bool:
    task = asyncio.current_task()
    return task is not None and task.cancelling() > 0


__all__ = ["CancellationToken", "await_cancellable", "cancellable_sleep"]
