"""In-memory test doubles shared by the fetchspine test suite."""

import asyncio
from typing import Any

from fetchspine.execution.transport import RequestSpec, Response


class FakeClock:
    """Monotonic clock driven by its own ``sleep``."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)


class RecordingSleep:
    """Sleep replacement that records delays and returns immediately."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        await asyncio.sleep(0)


class FakeTransport:
    """Transport replaying a script of responses and exceptions.

    Each ``send`` consumes the next step; the last step repeats once the
    script is exhausted.  A step is a ``Response``, an exception instance,
    or a ``(delay, step)`` tuple that waits ``delay`` real seconds first.
    """

    def __init__(self, *steps: Any, clock: Any = None):
        self.steps = list(steps) or [Response(200, {}, b"ok")]
        self.requests: list[RequestSpec] = []
        self.started_at: list[float] = []
        self.cancelled = 0
        self.closed = False
        self._clock = clock

    @property
    def calls(self) -> int:
        return len(self.requests)

    async def send(self, request: RequestSpec) -> Response:
        index = min(len(self.requests), len(self.steps) - 1)
        self.requests.append(request)
        if self._clock is not None:
            self.started_at.append(self._clock())

        step = self.steps[index]
        if isinstance(step, tuple):
            delay, step = step
            try:
                await asyncio.sleep(delay)
            except asyncio.CancelledError:
                self.cancelled += 1
                raise
        else:
            await asyncio.sleep(0)

        if isinstance(step, BaseException):
            raise step
        return step

    async def aclose(self) -> None:
        self.closed = True


def make_response(status: int = 200, body: bytes | str = b"", headers: dict[str, str] | None = None) -> Response:
    if isinstance(body, str):
        body = body.encode()
    return Response(status_code=status, headers=headers or {}, body=body)
