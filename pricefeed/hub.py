"""Process-wide fan-out of price maps to subscribers."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from threading import Lock

from .models import SubscriptionKey

logger = logging.getLogger(__name__)

_CLOSED = None  # Queue sentinel: the listener was unsubscribed

DEFAULT_MAX_PENDING = 64


class Listener:
    """One subscriber's inbox for a SubscriptionKey.

    Receives publishes made for its key after it registered, in publish
    order. At most ``max_pending`` updates wait in the inbox; when a slow
    consumer falls further behind, the oldest update is dropped. Iterate with
    ``async for prices in listener``; iteration ends once the listener is
    unsubscribed.
    """

    def __init__(self, key: SubscriptionKey, max_pending: int = DEFAULT_MAX_PENDING) -> None:
        if max_pending < 1:
            raise ValueError(f"max_pending must be at least 1, got {max_pending}")
        self.key = key
        self.max_pending = max_pending
        self._queue: asyncio.Queue[dict[str, float] | None] = asyncio.Queue()
        self._closed = False
        self._dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def dropped(self) -> int:
        """Updates discarded because the inbox was full."""
        return self._dropped

    def pending(self) -> int:
        """Number of undelivered updates waiting in the inbox."""
        return self._queue.qsize()

    async def get(self) -> dict[str, float] | None:
        """Next price map, or None once the listener is closed and drained."""
        if self._closed and self._queue.empty():
            return None
        return await self._queue.get()

    def get_nowait(self) -> dict[str, float] | None:
        """Next price map if one is already waiting, else None."""
        try:
            return self._queue.get_nowait()
        except asyncio.QueueEmpty:
            return None

    def _deliver(self, prices: dict[str, float]) -> None:
        if self._closed:
            return
        # Bounded here, not via Queue(maxsize): the close sentinel must always fit
        while self._queue.qsize() >= self.max_pending:
            self._queue.get_nowait()
            self._dropped += 1
            if self._dropped == 1:
                logger.debug("Listener for %s fell behind, dropping oldest updates", self.key)
        self._queue.put_nowait(prices)

    def _close(self) -> None:
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(_CLOSED)

    def __aiter__(self) -> Listener:
        return self

    async def __anext__(self) -> dict[str, float]:
        prices = await self.get()
        if prices is None:
            raise StopAsyncIteration
        return prices

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"<Listener {self.key} {state}>"


class BroadcastHub:
    """Multicast, push-only fan-out keyed by SubscriptionKey.

    No replay: a new listener only sees publishes made after it registered.
    The hub knows nothing about upstreams. Listener bookkeeping is guarded by
    a short-lived lock; delivery itself never blocks.
    """

    def __init__(self, max_pending: int = DEFAULT_MAX_PENDING) -> None:
        self._listeners: dict[SubscriptionKey, list[Listener]] = {}
        self._lock = Lock()
        self._max_pending = max_pending

    def subscribe(self, key: SubscriptionKey) -> Listener:
        listener = Listener(key, self._max_pending)
        with self._lock:
            self._listeners.setdefault(key, []).append(listener)
        logger.debug("Listener added for %s", key)
        return listener

    def unsubscribe(self, listener: Listener) -> None:
        """Remove and close ``listener``. Safe to call multiple times."""
        with self._lock:
            listeners = self._listeners.get(listener.key)
            if listeners and listener in listeners:
                listeners.remove(listener)
                if not listeners:
                    del self._listeners[listener.key]
        listener._close()

    def publish(self, key: SubscriptionKey, prices: Mapping[str, float]) -> int:
        """Deliver ``prices`` to every listener of ``key``. Returns the listener count."""
        with self._lock:
            listeners = list(self._listeners.get(key, ()))
        for listener in listeners:
            listener._deliver(dict(prices))
        return len(listeners)

    def listener_count(self, key: SubscriptionKey | None = None) -> int:
        with self._lock:
            if key is not None:
                return len(self._listeners.get(key, ()))
            return sum(len(v) for v in self._listeners.values())

    def close(self) -> None:
        """Close every listener so their iterators finish."""
        with self._lock:
            listeners = [lst for group in self._listeners.values() for lst in group]
            self._listeners.clear()
        for listener in listeners:
            listener._close()
