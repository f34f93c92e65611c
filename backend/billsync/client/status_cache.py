# backend/billsync/client/status_cache.py
"""
Client-side subscription status cache.

One instance is shared by every consumer in the process. It serves the last
known status synchronously, keeps at most one fetch outstanding, and never
lets a billing failure reach the caller: timeouts and exhausted retries
populate a conservative fallback instead.
"""

import asyncio
from enum import Enum
from typing import Any, Awaitable, Callable, Mapping, Optional
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from billsync.client.api import BillingApiClient
from billsync.client.clock import AsyncioScheduler, Clock, Scheduler, SystemClock, with_timeout
from billsync.core.config import settings
from billsync.core.exceptions import BillingError, ClientTimeoutError
from billsync.core.logging import get_logger
from billsync.schemas.billing import SubscriptionStatus

logger = get_logger("client.status")

Fetcher = Callable[[], Awaitable[Mapping[str, Any]]]


class CacheState(str, Enum):
    UNINITIALIZED = "uninitialized"
    FETCHING = "fetching"
    CACHED = "cached"
    STALE = "stale"


class SubscriptionStatusCache:
    def __init__(
        self,
        fetcher: Fetcher,
        clock: Optional[Clock] = None,
        scheduler: Optional[Scheduler] = None,
        ttl: float = 30.0,
        fetch_timeout: float = 10.0,
        retry_delay: float = 1.0,
        max_retries: int = 1,
        fallback_subscribed: bool = True,
        fallback_plan: Optional[str] = "free",
        fallback_ttl: float = 10.0,
    ):
        self.fetcher = fetcher
        self.clock = clock or SystemClock()
        self.scheduler = scheduler or AsyncioScheduler()
        self.ttl = ttl
        self.fetch_timeout = fetch_timeout
        self.retry_delay = retry_delay
        self.max_retries = max_retries
        self.fallback_subscribed = fallback_subscribed
        self.fallback_plan = fallback_plan
        self.fallback_ttl = fallback_ttl

        self._value: Optional[SubscriptionStatus] = None
        self._in_flight: Optional["asyncio.Task[SubscriptionStatus]"] = None
        # Bumped by invalidate(); fetches started under an older generation are discarded
        self._generation = 0

    @classmethod
    def from_settings(
        cls,
        api_client: BillingApiClient,
        clock: Optional[Clock] = None,
        scheduler: Optional[Scheduler] = None,
    ) -> "SubscriptionStatusCache":
        return cls(
            api_client.check_subscription,
            clock=clock,
            scheduler=scheduler,
            ttl=settings.STATUS_CACHE_TTL_SECONDS,
            fetch_timeout=settings.STATUS_FETCH_TIMEOUT_SECONDS,
            retry_delay=settings.STATUS_RETRY_DELAY_SECONDS,
            max_retries=settings.STATUS_MAX_RETRIES,
            fallback_subscribed=settings.STATUS_FALLBACK_SUBSCRIBED,
            fallback_plan=settings.STATUS_FALLBACK_PLAN,
            fallback_ttl=settings.STATUS_FALLBACK_TTL_SECONDS,
        )

    # ==================== Public API ====================

    @property
    def state(self) -> CacheState:
        if self._in_flight is not None:
            return CacheState.FETCHING
        if self._value is None:
            return CacheState.UNINITIALIZED
        return CacheState.CACHED if self._is_fresh(self._value) else CacheState.STALE

    def get_status(self) -> Optional[SubscriptionStatus]:
        """
        Best-known status, returned without waiting.

        A missing or expired value schedules one background refresh; the
        caller still gets the expired value (or None before the first fetch
        has completed). Outside a running event loop nothing is scheduled.
        """
        value = self._value
        if value is None or not self._is_fresh(value):
            try:
                asyncio.get_running_loop()
            except RuntimeError:
                # Called from synchronous code; the next read inside the loop refreshes
                return value
            self._start_fetch()
        return value

    async def refresh(self) -> SubscriptionStatus:
        """Fetch now, joining the outstanding fetch when there is one"""
        task = self._start_fetch()
        # Shielded: one caller giving up must not cancel the shared fetch
        return await asyncio.shield(task)

    def invalidate(self) -> None:
        """Drop the cached value and forget any fetch in flight"""
        self._generation += 1
        self._value = None
        self._in_flight = None

    def on_logout(self) -> None:
        logger.info("Subscription status cleared on logout")
        self.invalidate()

    # ==================== Internals ====================

    def _ttl_for(self, value: SubscriptionStatus) -> float:
        return self.fallback_ttl if value.is_fallback else self.ttl

    def _is_fresh(self, value: SubscriptionStatus) -> bool:
        return self.clock.now() - value.fetched_at < self._ttl_for(value)

    def _start_fetch(self) -> "asyncio.Task[SubscriptionStatus]":
        if self._in_flight is None:
            self._in_flight = self.scheduler.spawn(self._run(self._generation))
        return self._in_flight

    async def _run(self, generation: int) -> SubscriptionStatus:
        try:
            status = await self._fetch_with_retry()
            if generation == self._generation:
                self._value = status
            else:
                logger.info("Discarding subscription status fetched before invalidation")
            return status
        finally:
            if generation == self._generation:
                self._in_flight = None

    async def _fetch_with_retry(self) -> SubscriptionStatus:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_fixed(self.retry_delay),
            # Timeouts go straight to the fallback; cancellation is never retried
            retry=retry_if_exception_type(Exception) & retry_if_not_exception_type(ClientTimeoutError),
            sleep=self.scheduler.sleep,
            before_sleep=self._log_retry,
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    data = await with_timeout(
                        self.scheduler, self.fetcher(), self.fetch_timeout, "Subscription status check"
                    )
                    status = SubscriptionStatus.from_response(data, fetched_at=self.clock.now())
            return status
        except ClientTimeoutError as e:
            logger.warning(f"{e.message}; using fallback status")
        except Exception as e:
            # Status failures never reach the caller
            logger.warning(
                f"Subscription status check failed after {self.max_retries + 1} attempts: {e}",
                exc_info=not isinstance(e, BillingError),
            )
        return self._fallback()

    def _log_retry(self, retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception()
        logger.warning(
            f"Subscription status check failed (attempt {retry_state.attempt_number}), retrying: {error}",
            exc_info=None if isinstance(error, BillingError) else error,
        )

    def _fallback(self) -> SubscriptionStatus:
        logger.info(
            f"Subscription status fallback applied (subscribed={self.fallback_subscribed}, plan={self.fallback_plan})"
        )
        return SubscriptionStatus(
            subscribed=self.fallback_subscribed,
            plan_id=self.fallback_plan,
            fetched_at=self.clock.now(),
            is_fallback=True,
        )
