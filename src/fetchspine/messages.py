"""User-facing descriptions of classified request errors.

Read-only consumer of ``ClassifiedError``: turns a failure into a short
title, an explanation, and a suggested next step, suitable for a CLI or a
UI notification.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass

from fetchspine.core.errors import ClassifiedError, ErrorKind


@dataclass(frozen=True)
class FriendlyMessage:
    title: str
    message: str
    action: str | None = None

    def to_dict(self) -> dict[str, str | None]:
        return asdict(self)

    def render(self) -> str:
        parts = [self.title, self.message]
        if self.action:
            parts.append(self.action)
        return "\n\n".join(parts)


def format_wait(seconds: int | None) -> str:
    """``"N seconds"`` below a minute, whole minutes (rounded up) otherwise."""
    if not seconds:
        return "a few moments"
    if seconds < 60:
        return f"{seconds} seconds"
    return f"{math.ceil(seconds / 60)} minutes"


def describe(error: ClassifiedError, context: str | None = None) -> FriendlyMessage:
    """Describe ``error`` for an end user.

    Args:
        error: The classified failure
        context: What was being fetched ("resume", "job listing"), used in
            not-found messages
    """
    kind = error.kind
    status = error.status_code

    if error.cancelled:
        return FriendlyMessage(
            title="Request Cancelled",
            message="The request was cancelled before it completed.",
            action=None,
        )

    if kind is ErrorKind.OFFLINE:
        return FriendlyMessage(
            title="You're Offline",
            message="You are currently offline. Please check your internet connection and try again.",
            action="Make sure your device is connected to the internet. If you're on a mobile device, try disabling airplane mode.",
        )

    if kind is ErrorKind.TIMEOUT:
        return FriendlyMessage(
            title="Request Timed Out",
            message="The request took too long to complete. The server may be slow or overloaded.",
            action="Please try again in a moment. If the problem persists, the server may be experiencing issues.",
        )

    if kind is ErrorKind.SERVER and status:
        return FriendlyMessage(
            title="Server Error",
            message=f"The server returned an error ({status}). This is usually temporary.",
            action="Please try again in a few moments. If the problem persists, contact support.",
        )

    if kind is ErrorKind.RATE_LIMIT:
        wait = format_wait(error.retry_after)
        return FriendlyMessage(
            title="Rate Limit Exceeded",
            message=f"You've made too many requests. Please wait {wait} before trying again.",
            action=(
                f"The request will automatically retry after {wait}. You can also try again manually."
                if error.retry_after
                else "Please wait a few seconds and try again."
            ),
        )

    if kind is ErrorKind.CLIENT and status == 401:
        return FriendlyMessage(
            title="Authentication Required",
            message="You need to be logged in to perform this action.",
            action="Please log in and try again.",
        )

    if kind is ErrorKind.CLIENT and status == 403:
        return FriendlyMessage(
            title="Access Denied",
            message="You don't have permission to perform this action.",
            action="Please check your account permissions or contact support.",
        )

    if kind is ErrorKind.CLIENT and status == 404:
        return FriendlyMessage(
            title="Not Found",
            message=(
                f"The {context} you're looking for could not be found."
                if context
                else "The requested item could not be found."
            ),
            action="It may have been deleted or moved. Please refresh and try again.",
        )

    if kind is ErrorKind.NETWORK:
        return FriendlyMessage(
            title="Connection Problem",
            message="Unable to connect to the server. Please check your internet connection and try again.",
            action="Make sure you're connected to the internet. If the problem persists, the server may be temporarily unavailable.",
        )

    return FriendlyMessage(
        title="Something Went Wrong",
        message=error.message or "An unexpected error occurred.",
        action="Please try again. If the problem persists, contact support.",
    )


__all__ = ["FriendlyMessage", "describe", "format_wait"]
