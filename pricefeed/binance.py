"""Binance exchange ticker source."""

from __future__ import annotations

import re

import httpx

from .config import BINANCE_BASE_URL
from .errors import DecodeError, InvalidRequest
from .interface import PriceSource, SourceKind
from .models import Quote
from .symbols import DEFAULT_SYMBOL_TABLE, SymbolTable
from .transport import get_json, parse_price

_PAIR_RE = re.compile(r"^[A-Z0-9]+$")


class BinanceTickerSource(PriceSource):
    """Last trade price from the public Binance ticker endpoint.

    GET {base}/ticker/price?symbol=BTCUSDT -> {"symbol": "BTCUSDT", "price": "67000.12000000"}

    Binance quotes by ticker, so canonical ids are mapped back through the
    symbol table ("bitcoin" -> "BTCUSDT"); unmapped ids are used as-is.
    """

    name = "binance"
    kind = SourceKind.EXCHANGE_TICKER

    def __init__(
        self,
        http: httpx.AsyncClient,
        base_url: str = BINANCE_BASE_URL,
        symbols: SymbolTable = DEFAULT_SYMBOL_TABLE,
        timeout: float = 15.0,
    ) -> None:
        self._http = http
        self._base_url = base_url.rstrip("/")
        self._symbols = symbols
        self._timeout = timeout

    def pair_for(self, canonical_id: str) -> str:
        pair = self._symbols.ticker_for(canonical_id).upper() + "USDT"
        if not _PAIR_RE.match(pair):
            raise InvalidRequest(f"{self.name}: {canonical_id!r} is not a valid trading pair")
        return pair

    async def fetch_quote(self, canonical_id: str) -> Quote:
        pair = self.pair_for(canonical_id)
        data = await get_json(
            self._http,
            f"{self._base_url}/ticker/price",
            source=self.name,
            timeout=self._timeout,
            params={"symbol": pair},
        )
        if not isinstance(data, dict) or "price" not in data:
            raise DecodeError(f"{self.name}: response for {pair} has no price")
        price = parse_price(data["price"], source=self.name)
        return Quote(canonical_id=canonical_id, price=price, source=self.name)
