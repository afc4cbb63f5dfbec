"""Primary spot-price source and its built-in Coinbase client."""

from __future__ import annotations

import re
from typing import Protocol, runtime_checkable

import httpx

from .config import COINBASE_BASE_URL
from .errors import DecodeError, InvalidRequest, PriceFeedError, TransportError
from .interface import PriceSource, SourceKind
from .models import Quote
from .symbols import DEFAULT_SYMBOL_TABLE, SymbolTable
from .transport import get_json, parse_price

_TICKER_RE = re.compile(r"^[A-Z0-9]+$")


@runtime_checkable
class SpotPriceClient(Protocol):
    """Collaborator that knows how to price one canonical id."""

    name: str

    async def fetch_spot_price(self, canonical_id: str) -> float: ...


class SpotPriceSource(PriceSource):
    """PriceSource wrapping an opaque :class:`SpotPriceClient`.

    The client may raise anything; non-feed errors are reported as
    TransportError so the chain treats them like any other soft failure.
    """

    kind = SourceKind.SPOT

    def __init__(self, client: SpotPriceClient, name: str | None = None) -> None:
        self._client = client
        self.name = name or getattr(client, "name", "spot")

    @property
    def client(self) -> SpotPriceClient:
        return self._client

    async def fetch_quote(self, canonical_id: str) -> Quote:
        try:
            value = await self._client.fetch_spot_price(canonical_id)
        except PriceFeedError:
            raise
        except Exception as e:
            raise TransportError(f"{self.name}: {type(e).__name__}: {e}") from e
        price = parse_price(value, source=self.name)
        return Quote(canonical_id=canonical_id, price=price, source=self.name)


class CoinbaseSpotClient:
    """Spot prices from the public Coinbase API (no authentication).

    GET {base}/v2/prices/{TICKER}-USD/spot -> {"data": {"amount": "67000.12", ...}}
    """

    name = "coinbase"

    def __init__(
        self,
        http: httpx.AsyncClient,
        base_url: str = COINBASE_BASE_URL,
        symbols: SymbolTable = DEFAULT_SYMBOL_TABLE,
        timeout: float = 15.0,
    ) -> None:
        self._http = http
        self._base_url = base_url.rstrip("/")
        self._symbols = symbols
        self._timeout = timeout

    def product_for(self, canonical_id: str) -> str:
        ticker = self._symbols.ticker_for(canonical_id).upper()
        if not _TICKER_RE.match(ticker):
            raise InvalidRequest(f"{self.name}: no ticker for id {canonical_id!r}")
        return f"{ticker}-USD"

    async def fetch_spot_price(self, canonical_id: str) -> float:
        product = self.product_for(canonical_id)
        data = await get_json(
            self._http,
            f"{self._base_url}/v2/prices/{product}/spot",
            source=self.name,
            timeout=self._timeout,
        )
        try:
            amount = data["data"]["amount"]
        except (KeyError, TypeError):
            raise DecodeError(f"{self.name}: response missing data.amount") from None
        return parse_price(amount, source=self.name)
