"""Backoff policies: how long to wait before the next attempt.

A policy turns ``(attempt, classified_error)`` into a delay in seconds.
A ``RATE_LIMIT`` error carrying a server ``Retry-After`` hint always waits
exactly that long; otherwise the policy's own formula applies, the same
formula for every retryable kind.

Example:
    >>> from fetchspine.execution.backoff import LinearBackoff
    >>>
    >>> policy = LinearBackoff(base_delay=1.0)
    >>> for attempt in range(3):
    ...     print(f"Attempt {attempt}: wait {policy.next_delay(attempt, error):.2f}s")
    Attempt 0: wait 1.00s
    Attempt 1: wait 2.00s
    Attempt 2: wait 3.00s
"""

import random
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace

from fetchspine.core.errors import ClassifiedError, ErrorKind, InvalidConfigError
from fetchspine.core.settings import BackoffKind


class BackoffPolicy(ABC):
    """Abstract base for backoff policies."""

    def next_delay(self, attempt: int, error: ClassifiedError) -> float:
        """Calculate delay before the next attempt.

        Args:
            attempt: Zero-based index of the attempt that just failed
            error: The classified failure of that attempt

        Returns:
            Delay in seconds before the next attempt
        """
        if attempt < 0:
            raise ValueError(f"attempt must be >= 0, got {attempt}")
        if error.kind is ErrorKind.RATE_LIMIT and error.retry_after is not None:
            return float(error.retry_after)
        return self.compute_delay(attempt)

    @abstractmethod
    def compute_delay(self, attempt: int) -> float:
        """The policy's own formula, used when no server hint applies."""
        ...

    def with_base_delay(self, base_delay: float) -> "BackoffPolicy":
        """Copy of this policy scaled to a per-request base delay."""
        return replace(self, base_delay=base_delay)


@dataclass
class LinearBackoff(BackoffPolicy):
    """Attempt-scaled linear backoff (the default policy).

    Delay = min(base_delay * (attempt + 1), max_delay)
    """

    base_delay: float = 1.0
    max_delay: float = 60.0

    def compute_delay(self, attempt: int) -> float:
        """Calculate linear backoff delay."""
        return min(self.base_delay * (attempt + 1), self.max_delay)


@dataclass
class ExponentialBackoff(BackoffPolicy):
    """Exponential backoff with optional jitter.

    Delay = min(base_delay * (multiplier ** attempt), max_delay) + jitter

    Attributes:
        base_delay: Initial delay in seconds
        max_delay: Maximum delay cap in seconds
        multiplier: Exponential multiplier (default: 2)
        jitter: Add randomness to prevent thundering herd
        jitter_range: Range of jitter as fraction of delay (0.0-1.0)
    """

    base_delay: float = 1.0
    max_delay: float = 60.0
    multiplier: float = 2.0
    jitter: bool = False
    jitter_range: float = 0.25

    def compute_delay(self, attempt: int) -> float:
        """Calculate exponential backoff delay."""
        delay = min(
            self.base_delay * (self.multiplier**attempt),
            self.max_delay,
        )

        if self.jitter:
            jitter_amount = delay * self.jitter_range
            delay += random.uniform(-jitter_amount, jitter_amount)
            delay = max(0, delay)

        return delay


@dataclass
class ConstantBackoff(BackoffPolicy):
    """Constant delay between attempts."""

    base_delay: float = 1.0

    def compute_delay(self, attempt: int) -> float:
        """Return constant delay."""
        return self.base_delay


def backoff_from_settings(kind: BackoffKind | str, base_delay: float, max_delay: float = 60.0) -> BackoffPolicy:
    """Build the policy named in configuration."""
    try:
        kind = BackoffKind(kind)
    except ValueError:
        raise InvalidConfigError("backoff", kind) from None

    if kind is BackoffKind.EXPONENTIAL:
        return ExponentialBackoff(base_delay=base_delay, max_delay=max_delay)
    if kind is BackoffKind.CONSTANT:
        return ConstantBackoff(base_delay=base_delay)
    return LinearBackoff(base_delay=base_delay, max_delay=max_delay)


__all__ = [
    "BackoffPolicy",
    "LinearBackoff",
    "ExponentialBackoff",
    "ConstantBackoff",
    "backoff_from_settings",
]
