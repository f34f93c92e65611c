# tests/test_status_cache.py
"""
Subscription status cache tests
Tests: TTL, in-flight deduplication, timeout fallback, retry, invalidation
"""

import asyncio
import pytest

from billsync.client.status_cache import CacheState, SubscriptionStatusCache
from billsync.core.exceptions import ClientFetchError

from clock_helpers import FakeClock, ManualScheduler, settle


class CountingFetcher:
    def __init__(self, response=None, errors: int = 0, gate: asyncio.Event = None):
        self.calls = 0
        self.response = response or {
            "subscribed": True,
            "status": "active",
            "subscription_tier": "price_pro",
            "subscription_end": "2024-02-01T00:00:00",
        }
        self.errors = errors
        self.gate = gate

    async def __call__(self):
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.calls <= self.errors:
            raise ClientFetchError("check-subscription returned 503", upstream_status=503)
        return self.response


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def scheduler():
    return ManualScheduler()


def make_cache(fetcher, clock, scheduler) -> SubscriptionStatusCache:
    return SubscriptionStatusCache(
        fetcher,
        clock=clock,
        scheduler=scheduler,
        ttl=30.0,
        fetch_timeout=10.0,
        retry_delay=1.0,
        max_retries=1,
        fallback_subscribed=True,
        fallback_plan="free",
        fallback_ttl=10.0,
    )


class TestCacheLifecycle:

    @pytest.mark.asyncio
    async def test_initial_state(self, clock, scheduler):
        cache = make_cache(CountingFetcher(), clock, scheduler)

        assert cache.state is CacheState.UNINITIALIZED

    @pytest.mark.asyncio
    async def test_refresh_populates_cache(self, clock, scheduler):
        fetcher = CountingFetcher()
        cache = make_cache(fetcher, clock, scheduler)

        status = await cache.refresh()

        assert status.subscribed is True
        assert status.plan_id == "price_pro"
        assert status.is_fallback is False
        assert cache.get_status() == status
        assert cache.state is CacheState.CACHED

    @pytest.mark.asyncio
    async def test_get_status_before_first_fetch(self, clock, scheduler):
        """Test first read returns None and starts one background fetch"""

        fetcher = CountingFetcher()
        cache = make_cache(fetcher, clock, scheduler)

        assert cache.get_status() is None
        assert cache.get_status() is None
        await settle()

        assert fetcher.calls == 1
        assert cache.get_status().subscribed is True

    def test_get_status_from_sync_code(self, clock):
        """Test reads outside an event loop return the known value without scheduling"""

        fetcher = CountingFetcher()
        cache = SubscriptionStatusCache(fetcher, clock=clock)

        assert cache.get_status() is None
        assert cache.state is CacheState.UNINITIALIZED
        assert fetcher.calls == 0


class TestTtl:

    @pytest.mark.asyncio
    async def test_hit_before_ttl_and_refetch_after(self, clock, scheduler):
        """Test T+29s is served from cache and T+31s triggers one fetch"""

        fetcher = CountingFetcher()
        cache = make_cache(fetcher, clock, scheduler)
        first = await cache.refresh()

        clock.advance(29)
        assert cache.get_status() == first
        await settle()
        assert fetcher.calls == 1

        clock.advance(2)
        assert cache.state is CacheState.STALE
        assert cache.get_status() == first
        assert cache.get_status() == first
        await settle()
        assert fetcher.calls == 2
        assert cache.state is CacheState.CACHED


class TestDeduplication:

    @pytest.mark.asyncio
    async def test_concurrent_refreshes_share_one_fetch(self, clock, scheduler):
        """Test five concurrent refreshes issue a single network call"""

        gate = asyncio.Event()
        fetcher = CountingFetcher(gate=gate)
        cache = make_cache(fetcher, clock, scheduler)

        callers = [asyncio.ensure_future(cache.refresh()) for _ in range(5)]
        await settle()
        assert cache.state is CacheState.FETCHING

        gate.set()
        results = await asyncio.gather(*callers)

        assert fetcher.calls == 1
        assert all(result == results[0] for result in results)

    @pytest.mark.asyncio
    async def test_cancelled_caller_does_not_cancel_fetch(self, clock, scheduler):
        gate = asyncio.Event()
        fetcher = CountingFetcher(gate=gate)
        cache = make_cache(fetcher, clock, scheduler)

        impatient = asyncio.ensure_future(cache.refresh())
        patient = asyncio.ensure_future(cache.refresh())
        await settle()
        impatient.cancel()
        gate.set()

        status = await patient
        assert status.subscribed is True
        assert fetcher.calls == 1


class TestFailureHandling:

    @pytest.mark.asyncio
    async def test_timeout_yields_fallback(self, clock, scheduler):
        """Test a hung fetch resolves to the conservative default"""

        fetcher = CountingFetcher(gate=asyncio.Event())
        cache = make_cache(fetcher, clock, scheduler)

        pending = asyncio.ensure_future(cache.refresh())
        await settle()
        assert scheduler.pending(10.0) == 1

        scheduler.fire(10.0)
        status = await pending

        assert status.is_fallback is True
        assert status.subscribed is True
        assert status.plan_id == "free"
        assert cache.state is CacheState.CACHED
        assert fetcher.calls == 1

        fetcher.gate.set()

    @pytest.mark.asyncio
    async def test_retry_once_then_succeed(self, clock, scheduler):
        fetcher = CountingFetcher(errors=1)
        cache = make_cache(fetcher, clock, scheduler)

        pending = asyncio.ensure_future(cache.refresh())
        await settle()
        assert scheduler.pending(1.0) == 1

        scheduler.fire(1.0)
        status = await pending

        assert fetcher.calls == 2
        assert status.is_fallback is False

    @pytest.mark.asyncio
    async def test_retry_exhausted_yields_fallback(self, clock, scheduler):
        fetcher = CountingFetcher(errors=5)
        cache = make_cache(fetcher, clock, scheduler)

        pending = asyncio.ensure_future(cache.refresh())
        await settle()
        scheduler.fire(1.0)
        status = await pending

        assert fetcher.calls == 2
        assert status.is_fallback is True

    @pytest.mark.asyncio
    async def test_fallback_expires_sooner(self, clock, scheduler):
        fetcher = CountingFetcher(errors=2)
        cache = make_cache(fetcher, clock, scheduler)

        pending = asyncio.ensure_future(cache.refresh())
        await settle()
        scheduler.fire(1.0)
        await pending

        clock.advance(11)
        assert cache.state is CacheState.STALE

    @pytest.mark.asyncio
    async def test_retry_count_follows_configuration(self, clock, scheduler):
        fetcher = CountingFetcher(errors=5)
        cache = SubscriptionStatusCache(
            fetcher, clock=clock, scheduler=scheduler, retry_delay=2.0, max_retries=2,
        )

        pending = asyncio.ensure_future(cache.refresh())
        await settle()
        scheduler.fire(2.0)
        await settle()
        scheduler.fire(2.0)
        status = await pending

        assert fetcher.calls == 3
        assert status.is_fallback is True

    @pytest.mark.asyncio
    async def test_unexpected_error_never_reaches_caller(self, clock, scheduler):
        async def broken():
            raise RuntimeError("boom")

        cache = make_cache(broken, clock, scheduler)

        pending = asyncio.ensure_future(cache.refresh())
        await settle()
        scheduler.fire(1.0)
        status = await pending

        assert status.is_fallback is True


class TestInvalidation:

    @pytest.mark.asyncio
    async def test_invalidate_drops_value(self, clock, scheduler):
        cache = make_cache(CountingFetcher(), clock, scheduler)
        await cache.refresh()

        cache.invalidate()

        assert cache.state is CacheState.UNINITIALIZED

    @pytest.mark.asyncio
    async def test_fetch_finishing_after_logout_is_discarded(self, clock, scheduler):
        gate = asyncio.Event()
        fetcher = CountingFetcher(gate=gate)
        cache = make_cache(fetcher, clock, scheduler)

        pending = asyncio.ensure_future(cache.refresh())
        await settle()
        cache.on_logout()
        assert cache.state is CacheState.UNINITIALIZED

        gate.set()
        await pending

        assert cache.state is CacheState.UNINITIALIZED
        assert cache._value is None

    @pytest.mark.asyncio
    async def test_refresh_after_invalidate_starts_new_fetch(self, clock, scheduler):
        gate = asyncio.Event()
        fetcher = CountingFetcher(gate=gate)
        cache = make_cache(fetcher, clock, scheduler)

        first = asyncio.ensure_future(cache.refresh())
        await settle()
        cache.invalidate()
        second = asyncio.ensure_future(cache.refresh())
        await settle()
        gate.set()
        await asyncio.gather(first, second)

        assert fetcher.calls == 2
        assert cache.state is CacheState.CACHED
