"""Adaptive-backoff polling loop, one per subscription key."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum

from .cache import QuoteCache
from .chain import FallbackChain
from .errors import QuoteUnavailable
from .hub import BroadcastHub
from .models import Quote, SubscriptionKey

logger = logging.getLogger(__name__)


class SchedulerStatus(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    BACKOFF = "backoff"
    CANCELLED = "cancelled"  # terminal


class Backoff:
    """Doubling delay capped at ``cap``; success snaps back to ``base``.

    From base=5, cap=60, consecutive failures give 5, 10, 20, 40, 60, 60, ...
    """

    def __init__(self, base: float = 5.0, cap: float = 60.0) -> None:
        if base <= 0:
            raise ValueError(f"base delay must be positive, got {base}")
        if cap < base:
            raise ValueError(f"cap ({cap}) must be >= base ({base})")
        self.base = base
        self.cap = cap
        self._delay = base
        self._failures = 0

    @property
    def delay(self) -> float:
        return self._delay

    @property
    def failures(self) -> int:
        """Consecutive failures since the last success."""
        return self._failures

    def record_failure(self) -> float:
        self._failures += 1
        self._delay = min(self.cap, self._delay * 2)
        return self._delay

    def record_success(self) -> float:
        self._failures = 0
        self._delay = self.base
        return self._delay


class PollingScheduler:
    """Polls a FallbackChain for one SubscriptionKey and publishes to the hub.

    The first poll runs as soon as the task starts; later polls wait
    ``backoff.delay`` seconds, which is the key's interval while upstreams
    answer and doubles (up to ``max_delay``) while they all fail.

    Cancellation is cooperative: :meth:`cancel` sets a flag that is checked
    after every network call and immediately before each publish, so nothing
    is published once it returns. It also wakes the loop out of its wait.
    """

    def __init__(
        self,
        key: SubscriptionKey,
        chain: FallbackChain,
        hub: BroadcastHub,
        max_delay: float = 60.0,
        use_batch: bool = True,
    ) -> None:
        self._key = key
        self._chain = chain
        self._hub = hub
        self._use_batch = use_batch
        self._backoff = Backoff(base=key.interval, cap=max(max_delay, key.interval))
        self._cancelled = asyncio.Event()
        self._last = QuoteCache()
        self._status = SchedulerStatus.IDLE
        self._task: asyncio.Task | None = None
        self._polls = 0

    @property
    def key(self) -> SubscriptionKey:
        return self._key

    @property
    def status(self) -> SchedulerStatus:
        return self._status

    @property
    def backoff(self) -> Backoff:
        return self._backoff

    @property
    def delay(self) -> float:
        return self._backoff.delay

    @property
    def last_quotes(self) -> QuoteCache:
        return self._last

    @property
    def polls(self) -> int:
        """Number of completed (non-discarded) poll cycles."""
        return self._polls

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def start(self) -> None:
        """Spawn the polling task. The first poll is not delayed."""
        if self._status is not SchedulerStatus.IDLE:
            raise RuntimeError(f"Poller for {self._key} already {self._status.value}")
        self._status = SchedulerStatus.ACTIVE
        self._task = asyncio.create_task(self._run(), name=f"poller:{self._key}")
        logger.info("Poller started for %s (max delay %.0fs)", self._key, self._backoff.cap)

    def cancel(self) -> None:
        """Request the loop to stop. Idempotent; no publish happens after this."""
        if self._cancelled.is_set():
            return
        self._cancelled.set()
        self._status = SchedulerStatus.CANCELLED
        logger.info("Poller cancelled for %s", self._key)

    async def wait_closed(self) -> None:
        """Wait for the polling task to exit. An in-flight request may finish first."""
        task = self._task
        if task is not None and not task.done():
            await asyncio.wait([task])

    async def stop(self) -> None:
        """Cancel and wait for the task to exit. Safe to call multiple times."""
        self.cancel()
        await self.wait_closed()

    # --- Internal ---

    async def _run(self) -> None:
        while not self._cancelled.is_set():
            await self.poll_once()
            if self._cancelled.is_set():
                break
            if await self._wait(self._backoff.delay):
                break
        logger.debug("Poller loop exited for %s", self._key)

    async def _wait(self, delay: float) -> bool:
        """Sleep for ``delay`` seconds. Returns True if cancelled meanwhile."""
        try:
            await asyncio.wait_for(self._cancelled.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return False
        return True

    async def poll_once(self) -> bool:
        """Run one poll cycle. Returns True if anything was published."""
        try:
            quotes = await self._fetch()
        except Exception:
            logger.exception("Poll failed for %s", self._key)
            quotes = {}

        if self._cancelled.is_set():
            logger.debug("Discarding poll result for cancelled %s", self._key)
            return False

        self._polls += 1
        if not quotes:
            delay = self._backoff.record_failure()
            self._status = SchedulerStatus.BACKOFF
            logger.info(
                "No quotes for %s (%d consecutive failures), next poll in %.0fs",
                self._key,
                self._backoff.failures,
                delay,
            )
            return False

        self._last.update_many(quotes)
        self._backoff.record_success()
        self._status = SchedulerStatus.ACTIVE
        delivered = self._hub.publish(self._key, {cid: q.price for cid, q in quotes.items()})
        logger.debug("Published %d quotes for %s to %d listeners", len(quotes), self._key, delivered)
        return True

    async def _fetch(self) -> dict[str, Quote]:
        ids = self._key.sorted_ids()
        if self._use_batch and len(ids) > 1 and self._chain.batch_source is not None:
            try:
                return await self._chain.resolve_batch(ids)
            except QuoteUnavailable:
                return {}

        quotes: dict[str, Quote] = {}
        for canonical_id in ids:
            try:
                quotes[canonical_id] = await self._chain.resolve(canonical_id)
            except QuoteUnavailable:
                pass
            if self._cancelled.is_set():
                break
        return quotes

    def __repr__(self) -> str:
        return f"<PollingScheduler {self._key} {self._status.value} delay={self.delay:g}s>"
