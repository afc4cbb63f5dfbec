"""Consumer-facing price feed: subscriptions, one-shot quotes and history."""

from __future__ import annotations

import logging
from collections.abc import Iterable

import httpx

from .chain import FallbackChain
from .coingecko import CoinGeckoSource
from .config import FeedConfig
from .errors import PriceFeedError, QuoteUnavailable
from .hub import BroadcastHub, Listener
from .models import PricePoint, Quote, SubscriptionKey
from .registry import RegistryHandle, SubscriptionRegistry
from .scheduler import PollingScheduler
from .symbols import DEFAULT_SYMBOL_TABLE, SymbolTable

logger = logging.getLogger(__name__)


class Subscription:
    """A consumer's live stream of ``{canonical_id: price}`` maps.

    Usage:
        sub = await feed.subscribe(["BTC", "ETH"], interval=5)
        async for prices in sub:
            ...
        await feed.unsubscribe(sub)
    """

    def __init__(self, feed: PriceFeed, listener: Listener, handle: RegistryHandle) -> None:
        self._feed = feed
        self._listener = listener
        self._handle = handle

    @property
    def key(self) -> SubscriptionKey:
        return self._listener.key

    @property
    def listener(self) -> Listener:
        return self._listener

    @property
    def handle(self) -> RegistryHandle:
        return self._handle

    @property
    def closed(self) -> bool:
        return self._handle.released

    async def get(self) -> dict[str, float] | None:
        """Next price map, or None after unsubscribe."""
        return await self._listener.get()

    async def unsubscribe(self) -> None:
        await self._feed.unsubscribe(self)

    def __aiter__(self) -> Subscription:
        return self

    async def __anext__(self) -> dict[str, float]:
        return await self._listener.__anext__()

    async def __aenter__(self) -> Subscription:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.unsubscribe()

    def __repr__(self) -> str:
        return f"<Subscription {self.key}{' closed' if self.closed else ''}>"


class PriceFeed:
    """Entry point tying normalizer, chain, registry and hub together.

    Identical (symbol set, interval) subscriptions share one poller. The
    feed owns the registry and hub; it also closes ``http`` on shutdown when
    one is handed over.
    """

    def __init__(
        self,
        chain: FallbackChain,
        config: FeedConfig | None = None,
        symbols: SymbolTable = DEFAULT_SYMBOL_TABLE,
        hub: BroadcastHub | None = None,
        history_source: CoinGeckoSource | None = None,
        http: httpx.AsyncClient | None = None,
    ) -> None:
        self._chain = chain
        self._config = config or FeedConfig()
        self._symbols = symbols
        self._hub = hub or BroadcastHub()
        self._registry = SubscriptionRegistry(self._make_scheduler)
        self._history = history_source or next(
            (s for s in chain.sources if isinstance(s, CoinGeckoSource)), None
        )
        self._http = http
        self._closed = False

    @property
    def chain(self) -> FallbackChain:
        return self._chain

    @property
    def config(self) -> FeedConfig:
        return self._config

    @property
    def symbols(self) -> SymbolTable:
        return self._symbols

    @property
    def hub(self) -> BroadcastHub:
        return self._hub

    @property
    def registry(self) -> SubscriptionRegistry:
        return self._registry

    def key_for(self, symbols: str | Iterable[str], interval: float | None = None) -> SubscriptionKey:
        """Normalize ``symbols`` and build the key a subscription would use."""
        if isinstance(symbols, str):
            symbols = [symbols]
        ids = [self._symbols.normalize(s) for s in symbols]
        ids = [i for i in ids if i]
        return SubscriptionKey.of(ids, self._config.base_delay if interval is None else interval)

    async def subscribe(self, symbols: str | Iterable[str], interval: float | None = None) -> Subscription:
        """Start (or join) a live price stream for ``symbols``."""
        if self._closed:
            raise RuntimeError("PriceFeed is closed")
        key = self.key_for(symbols, interval)
        # Register the listener first so the poller's immediate first publish is seen
        listener = self._hub.subscribe(key)
        try:
            handle = await self._registry.subscribe(key)
        except BaseException:
            self._hub.unsubscribe(listener)
            raise
        return Subscription(self, listener, handle)

    async def unsubscribe(self, subscription: Subscription) -> None:
        """Stop receiving updates. Safe to call multiple times."""
        self._hub.unsubscribe(subscription.listener)
        await self._registry.unsubscribe(subscription.handle)

    async def change(
        self,
        subscription: Subscription,
        symbols: str | Iterable[str],
        interval: float | None = None,
    ) -> Subscription:
        """Move a consumer to a new key: cancel the old poller, then start the new.

        Returns the same subscription untouched when the key does not change.
        """
        key = self.key_for(symbols, interval)
        if key == subscription.key and not subscription.closed:
            logger.debug("Subscription already on %s, not resubscribing", key)
            return subscription
        await self.unsubscribe(subscription)
        return await self.subscribe(symbols, interval)

    async def fetch_once(self, symbol: str) -> Quote | None:
        """Resolve one symbol through the chain without scheduling. None if every source failed."""
        canonical_id = self._symbols.normalize(symbol)
        try:
            return await self._chain.resolve(canonical_id)
        except QuoteUnavailable as e:
            logger.info("One-shot quote for %s unavailable: %s", canonical_id, e)
            return None

    async def fetch_history(self, symbol: str, days: int | str = 1) -> list[PricePoint]:
        """Market-chart history for one symbol; empty when unavailable."""
        if self._history is None:
            logger.warning("No history source configured")
            return []
        canonical_id = self._symbols.normalize(symbol)
        try:
            return await self._history.fetch_market_chart(canonical_id, days)
        except PriceFeedError as e:
            logger.warning("History for %s unavailable: %s", canonical_id, e)
            return []

    def snapshot(self, key: SubscriptionKey) -> dict[str, float]:
        """Last published prices for a live key, without waiting for the next poll."""
        scheduler = self._registry.scheduler_for(key)
        return scheduler.last_quotes.prices() if scheduler else {}

    async def close(self) -> None:
        """Stop every poller, end every stream and release the HTTP client."""
        if self._closed:
            return
        self._closed = True
        await self._registry.close()
        self._hub.close()
        if self._http is not None:
            await self._http.aclose()
        logger.info("Price feed closed")

    async def __aenter__(self) -> PriceFeed:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # --- Internal ---

    def _make_scheduler(self, key: SubscriptionKey) -> PollingScheduler:
        return PollingScheduler(
            key,
            self._chain,
            self._hub,
            max_delay=self._config.max_delay,
            use_batch=self._config.use_batch,
        )
