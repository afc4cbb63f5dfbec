"""Reference-counted scheduler registry: one poller per subscription key."""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from .models import SubscriptionKey
from .scheduler import PollingScheduler

logger = logging.getLogger(__name__)

SchedulerFactory = Callable[[SubscriptionKey], PollingScheduler]

_handle_ids = itertools.count(1)


@dataclass(eq=False)
class RegistryHandle:
    """One caller's claim on a key. Released at most once."""

    key: SubscriptionKey
    id: int = field(default_factory=lambda: next(_handle_ids))
    released: bool = False


@dataclass
class _Entry:
    scheduler: PollingScheduler
    refs: int = 0


class SubscriptionRegistry:
    """Deduplicates subscriptions so each key has exactly one live scheduler.

    The map is only touched under an asyncio lock, and no network call ever
    happens while it is held: schedulers are started (which just spawns a
    task) and cancelled (which just sets a flag) under the lock, and their
    tasks are awaited after it is released.
    """

    def __init__(self, scheduler_factory: SchedulerFactory) -> None:
        self._factory = scheduler_factory
        self._entries: dict[SubscriptionKey, _Entry] = {}
        self._lock = asyncio.Lock()

    async def subscribe(self, key: SubscriptionKey) -> RegistryHandle:
        """Claim ``key``, creating and starting its scheduler on first use."""
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                scheduler = self._factory(key)
                scheduler.start()
                entry = self._entries[key] = _Entry(scheduler=scheduler)
            entry.refs += 1
            logger.debug("Subscribed to %s (refs=%d)", key, entry.refs)
        return RegistryHandle(key=key)

    async def unsubscribe(self, handle: RegistryHandle) -> None:
        """Release a claim. The last release cancels and reaps the scheduler."""
        doomed: PollingScheduler | None = None
        async with self._lock:
            if handle.released:
                return
            handle.released = True
            entry = self._entries.get(handle.key)
            if entry is None:
                return
            entry.refs -= 1
            logger.debug("Unsubscribed from %s (refs=%d)", handle.key, entry.refs)
            if entry.refs <= 0:
                del self._entries[handle.key]
                doomed = entry.scheduler
                doomed.cancel()
        if doomed is not None:
            await doomed.wait_closed()

    def scheduler_for(self, key: SubscriptionKey) -> PollingScheduler | None:
        entry = self._entries.get(key)
        return entry.scheduler if entry else None

    def refcount(self, key: SubscriptionKey) -> int:
        entry = self._entries.get(key)
        return entry.refs if entry else 0

    def active_keys(self) -> list[SubscriptionKey]:
        return list(self._entries)

    async def close(self) -> None:
        """Cancel every scheduler and wait for their tasks to exit."""
        async with self._lock:
            schedulers = [entry.scheduler for entry in self._entries.values()]
            self._entries.clear()
            for scheduler in schedulers:
                scheduler.cancel()
        if schedulers:
            await asyncio.gather(*(s.wait_closed() for s in schedulers))
        logger.info("Registry closed (%d pollers stopped)", len(schedulers))

    def __len__(self) -> int:
        return len(self._entries)
