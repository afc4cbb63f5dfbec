"""Tests for source and feed factories."""

import os
from unittest.mock import patch

import httpx
import pytest

from pricefeed.binance import BinanceTickerSource
from pricefeed.coingecko import CoinGeckoSource
from pricefeed.config import FeedConfig
from pricefeed.factory import create_price_feed, create_price_sources
from pricefeed.feed import PriceFeed
from pricefeed.interface import SourceKind
from pricefeed.simulator import SimulatedSpotClient
from pricefeed.spot import CoinbaseSpotClient, SpotPriceSource


class TestCreatePriceSources:
    """Source order and primary selection."""

    def test_default_order(self):
        sources = create_price_sources(FeedConfig(), httpx.AsyncClient())
        assert [s.name for s in sources] == ["coinbase", "binance", "coingecko"]
        assert [s.kind for s in sources] == [
            SourceKind.SPOT,
            SourceKind.EXCHANGE_TICKER,
            SourceKind.AGGREGATOR,
        ]
        assert isinstance(sources[0], SpotPriceSource)
        assert isinstance(sources[0].client, CoinbaseSpotClient)
        assert isinstance(sources[1], BinanceTickerSource)
        assert isinstance(sources[2], CoinGeckoSource)

    def test_simulator_primary(self):
        sources = create_price_sources(FeedConfig(primary="simulator"), httpx.AsyncClient())
        assert sources[0].name == "simulator"
        assert isinstance(sources[0].client, SimulatedSpotClient)

    def test_no_primary(self):
        sources = create_price_sources(FeedConfig(primary="none"), httpx.AsyncClient())
        assert [s.name for s in sources] == ["binance", "coingecko"]

    def test_only_aggregator_is_batch_capable(self):
        sources = create_price_sources(FeedConfig(), httpx.AsyncClient())
        assert [s.supports_batch for s in sources] == [False, False, True]


@pytest.mark.asyncio
class TestCreatePriceFeed:
    """Feed wiring from config and environment."""

    async def test_reads_environment(self):
        env = {"PRICEFEED_PRIMARY": "none", "PRICEFEED_BASE_DELAY": "2"}
        with patch.dict(os.environ, env, clear=True):
            feed = create_price_feed()
        assert isinstance(feed, PriceFeed)
        assert feed.config.base_delay == 2.0
        assert [s.name for s in feed.chain.sources] == ["binance", "coingecko"]
        await feed.close()

    async def test_owned_client_closed_with_feed(self):
        feed = create_price_feed(FeedConfig())
        http = feed.chain.sources[1]._http
        await feed.close()
        assert http.is_closed

    async def test_borrowed_client_left_open(self):
        async with httpx.AsyncClient() as http:
            feed = create_price_feed(FeedConfig(), http=http)
            await feed.close()
            assert not http.is_closed
