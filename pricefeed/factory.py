"""Factories that wire sources, chain and feed from configuration."""

from __future__ import annotations

import logging

import httpx

from .binance import BinanceTickerSource
from .chain import FallbackChain
from .coingecko import CoinGeckoSource
from .config import FeedConfig
from .feed import PriceFeed
from .interface import PriceSource
from .spot import CoinbaseSpotClient, SpotPriceSource
from .symbols import DEFAULT_SYMBOL_TABLE, SymbolTable

logger = logging.getLogger(__name__)


def create_price_sources(
    config: FeedConfig,
    http: httpx.AsyncClient,
    symbols: SymbolTable = DEFAULT_SYMBOL_TABLE,
) -> list[PriceSource]:
    """Build the source list in fallback order.

    - primary spot source, chosen by ``config.primary``:
        coinbase  → Coinbase public spot API
        simulator → offline GBM simulator
        none      → skipped
    - Binance exchange ticker
    - CoinGecko aggregator (batch-capable)
    """
    sources: list[PriceSource] = []

    if config.primary == "coinbase":
        client = CoinbaseSpotClient(
            http, base_url=config.coinbase_url, symbols=symbols, timeout=config.request_timeout
        )
        sources.append(SpotPriceSource(client))
    elif config.primary == "simulator":
        from .simulator import SimulatedSpotClient

        sources.append(SpotPriceSource(SimulatedSpotClient()))

    sources.append(
        BinanceTickerSource(
            http, base_url=config.binance_url, symbols=symbols, timeout=config.request_timeout
        )
    )
    sources.append(CoinGeckoSource(http, base_url=config.coingecko_url, timeout=config.request_timeout))

    logger.info("Price sources: %s", " -> ".join(s.name for s in sources))
    return sources


def create_price_feed(
    config: FeedConfig | None = None,
    symbols: SymbolTable = DEFAULT_SYMBOL_TABLE,
    http: httpx.AsyncClient | None = None,
) -> PriceFeed:
    """Create a ready-to-use PriceFeed.

    Reads ``PRICEFEED_*`` environment variables when no config is given. If no
    HTTP client is passed, one is created and owned (closed) by the feed.
    Pollers only start on the first subscribe.
    """
    config = config or FeedConfig.from_env()
    owned = http is None
    if http is None:
        http = httpx.AsyncClient(timeout=config.request_timeout)

    sources = create_price_sources(config, http, symbols)
    history = next((s for s in sources if isinstance(s, CoinGeckoSource)), None)
    return PriceFeed(
        FallbackChain(sources),
        config=config,
        symbols=symbols,
        history_source=history,
        http=http if owned else None,
    )
