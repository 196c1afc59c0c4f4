"""Tests for the deduplication cache."""

import asyncio

import pytest

from fetchspine.core.cancellation import CancellationToken
from fetchspine.core.errors import ClassifiedError, ErrorKind, RequestCancelled
from fetchspine.execution.dedup import DedupCache


class Counter:
    """Execution factory that counts invocations."""

    def __init__(self, result="response", delay=0.01, error=None):
        self.calls = 0
        self.result = result
        self.delay = delay
        self.error = error
        self.cancelled = False

    async def __call__(self):
        self.calls += 1
        try:
            await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        if self.error is not None:
            raise self.error
        return f"{self.result}-{self.calls}"


class TestDedupCache:
    def test_ttl_must_be_positive(self):
        with pytest.raises(ValueError):
            DedupCache(ttl=0)

    @pytest.mark.asyncio
    async def test_concurrent_identical_requests_share_one_execution(self):
        cache = DedupCache()
        execute = Counter()

        results = await asyncio.gather(*(cache.run("sig", execute) for _ in range(5)))

        assert execute.calls == 1
        assert results == ["response-1"] * 5

    @pytest.mark.asyncio
    async def test_different_signatures_execute_separately(self):
        cache = DedupCache()
        execute = Counter()

        await asyncio.gather(cache.run("a", execute), cache.run("b", execute))
        assert execute.calls == 2

    @pytest.mark.asyncio
    async def test_settled_success_is_shared_within_ttl(self, fake_clock):
        cache = DedupCache(ttl=5.0, clock=fake_clock)
        execute = Counter()

        assert await cache.run("sig", execute) == "response-1"
        fake_clock.advance(4.9)
        assert await cache.run("sig", execute) == "response-1"
        assert execute.calls == 1

    @pytest.mark.asyncio
    async def test_entry_expires_after_ttl(self, fake_clock):
        cache = DedupCache(ttl=5.0, clock=fake_clock)
        execute = Counter()

        await cache.run("sig", execute)
        fake_clock.advance(5.0)
        assert cache.get("sig") is None
        assert await cache.run("sig", execute) == "response-2"
        assert execute.calls == 2

    @pytest.mark.asyncio
    async def test_failure_is_shared_then_evicted(self):
        cache = DedupCache()
        error = ClassifiedError(ErrorKind.SERVER, "boom", status_code=503)
        failing = Counter(error=error)

        results = await asyncio.gather(cache.run("sig", failing), cache.run("sig", failing), return_exceptions=True)
        assert results == [error, error]
        assert failing.calls == 1

        await asyncio.sleep(0)
        assert cache.get("sig") is None
        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_one_waiter_cancelling_does_not_affect_others(self):
        cache = DedupCache()
        execute = Counter(delay=0.05)
        token = CancellationToken()

        quitter = asyncio.ensure_future(cache.run("sig", execute, token=token))
        stayer = asyncio.ensure_future(cache.run("sig", execute))
        await asyncio.sleep(0.01)
        token.cancel()

        with pytest.raises(RequestCancelled):
            await quitter
        assert await stayer == "response-1"
        assert execute.cancelled is False

    @pytest.mark.asyncio
    async def test_last_waiter_cancelling_cancels_execution(self):
        cache = DedupCache()
        execute = Counter(delay=10)
        token = CancellationToken()

        waiter = asyncio.ensure_future(cache.run("sig", execute, token=token))
        await asyncio.sleep(0.01)
        token.cancel()

        with pytest.raises(RequestCancelled):
            await waiter
        await asyncio.sleep(0)
        assert execute.cancelled is True
        assert cache.get("sig") is None

    @pytest.mark.asyncio
    async def test_sweep_removes_expired(self, fake_clock):
        cache = DedupCache(ttl=1.0, clock=fake_clock)
        await cache.run("a", Counter(delay=0))
        fake_clock.advance(0.5)
        await cache.run("b", Counter(delay=0))
        fake_clock.advance(0.6)

        assert cache.sweep() == 1
        assert cache.get("a") is None
        assert cache.get("b") is not None

    @pytest.mark.asyncio
    async def test_clear_cancels_in_flight(self):
        cache = DedupCache()
        execute = Counter(delay=10)
        task = cache.acquire("sig", execute)
        await asyncio.sleep(0)

        cache.clear()
        await asyncio.sleep(0)
        assert task.cancelled()
        assert len(cache) == 0
