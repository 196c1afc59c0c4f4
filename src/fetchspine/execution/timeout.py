"""Per-attempt deadlines with cooperative cancellation.

Every network attempt runs under its own deadline.  The attempt is started
as a task and raced against the deadline and (optionally) the caller's
``CancellationToken``; whichever finishes first decides the single outcome
of the invocation.

Architecture:
    ::

        run_with_timeout(attempt_fn, timeout, token=token)
            │
            ├── task(attempt_fn())  ─┐
            ├── deadline timer       ├── asyncio.wait(FIRST_COMPLETED)
            └── token.wait()        ─┘
                    │
                    ├── attempt first  → result / attempt's exception
                    ├── deadline first → cancel attempt, raise AttemptTimedOut
                    └── token first    → cancel attempt, raise RequestCancelled

    A late completion of a cancelled attempt is discarded: an invocation
    never yields both a timeout and a success.

Examples:
    >>> response = await run_with_timeout(lambda: transport.send(request), 5.0)

Guardrails:
    - The deadline is per attempt; a retry gets a fresh deadline.
    - Cancellation is cooperative: the attempt must honour
      ``asyncio.CancelledError`` (httpx does).

Tags:
    timeout, deadline, cancellation, resilience, fetchspine

Doc-Types:
    api-reference
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, TypeVar

from fetchspine.core.errors import RequestCancelled

if TYPE_CHECKING:
    from fetchspine.core.cancellation import CancellationToken

T = TypeVar("T")


class AttemptTimedOut(TimeoutError):
    """Raised when an attempt exceeds its deadline.

    Inherits from built-in TimeoutError for broad exception handling.

    Attributes:
        timeout: The timeout value that was exceeded
        elapsed: How long the attempt ran before being interrupted
        operation: Name/description of the operation
    """

    def __init__(
        self,
        timeout: float,
        elapsed: float | None = None,
        operation: str = "attempt",
    ):
        self.timeout = timeout
        self.elapsed = elapsed
        self.operation = operation

        msg = f"Operation '{operation}' timed out after {timeout}s"

        if elapsed is not None:
            msg += f" (ran for {elapsed:.2f}s)"

        super().__init__(msg)


def _discard_outcome(task: asyncio.Future) -> None:
    # Retrieve the exception so an abandoned attempt never logs
    # "Task exception was never retrieved".
    if not task.cancelled():
        task.exception()


async def run_with_timeout(
    attempt_fn: Callable[[], Awaitable[T]],
    timeout: float,
    *,
    token: CancellationToken | None = None,
    operation: str = "attempt",
) -> T:
    """Run one attempt under a deadline.

    Args:
        attempt_fn: Zero-argument callable returning the attempt's awaitable
        timeout: Deadline in seconds
        token: Optional cancellation token observed alongside the deadline
        operation: Name for error messages

    Returns:
        The attempt's result

    Raises:
        AttemptTimedOut: If the deadline fires first
        RequestCancelled: If the token fires first
        Exception: Whatever the attempt itself raised
    """
    if timeout <= 0:
        raise ValueError(f"Timeout must be positive, got {timeout}")
    if token is not None:
        token.raise_if_cancelled()

    start = time.monotonic()
    attempt = asyncio.ensure_future(attempt_fn())
    waiters: set[asyncio.Future] = {attempt}
    cancel_waiter = None
    if token is not None:
        cancel_waiter = asyncio.ensure_future(token.wait())
        waiters.add(cancel_waiter)

    try:
        done, _ = await asyncio.wait(waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        attempt.cancel()
        raise
    finally:
        if cancel_waiter is not None:
            cancel_waiter.cancel()

    if attempt in done:
        return attempt.result()

    attempt.cancel()
    attempt.add_done_callback(_discard_outcome)

    if token is not None and token.cancelled:
        raise RequestCancelled(token.reason)
    raise AttemptTimedOut(timeout=timeout, elapsed=time.monotonic() - start, operation=operation)


__all__ = ["AttemptTimedOut", "run_with_timeout"]
