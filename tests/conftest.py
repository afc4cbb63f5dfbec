"""Pytest configuration and shared fakes."""

import asyncio

import httpx
import pytest

from pricefeed.errors import NotFound
from pricefeed.hub import BroadcastHub
from pricefeed.interface import PriceSource, SourceKind
from pricefeed.models import Quote


class FakeSource(PriceSource):
    """In-memory PriceSource that records every call.

    ``gate`` (an asyncio.Event) holds each call until it is set, to simulate
    a slow in-flight request.
    """

    kind = SourceKind.SPOT

    def __init__(self, name="fake", prices=None, error=None, supports_batch=False, gate=None):
        self.name = name
        self.prices = dict(prices or {})
        self.error = error
        self.supports_batch = supports_batch
        self.gate = gate
        self.calls: list[str] = []
        self.batch_calls: list[list[str]] = []
        self.called = asyncio.Event()

    async def _enter(self):
        self.called.set()
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error

    async def fetch_quote(self, canonical_id):
        self.calls.append(canonical_id)
        await self._enter()
        if canonical_id not in self.prices:
            raise NotFound(f"{self.name}: no price for {canonical_id}")
        return Quote(canonical_id=canonical_id, price=self.prices[canonical_id], source=self.name)

    async def fetch_quotes(self, canonical_ids):
        if not self.supports_batch:
            return await super().fetch_quotes(canonical_ids)
        self.batch_calls.append(list(canonical_ids))
        await self._enter()
        quotes = {
            cid: Quote(canonical_id=cid, price=self.prices[cid], source=self.name)
            for cid in canonical_ids
            if cid in self.prices
        }
        if not quotes:
            raise NotFound(f"{self.name}: no prices")
        return quotes


@pytest.fixture
def make_source():
    """Factory for FakeSource instances."""

    def _make(name="fake", **kwargs):
        return FakeSource(name, **kwargs)

    return _make


@pytest.fixture
def hub():
    return BroadcastHub()


@pytest.fixture
def mock_http():
    """Build an httpx.AsyncClient whose requests are answered by ``handler``."""

    def _make(handler):
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return _make
