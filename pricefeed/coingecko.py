"""CoinGecko aggregator source: batched simple prices and market charts."""

from __future__ import annotations

import logging
import re
import time
from collections.abc import Sequence

import httpx

from .config import COINGECKO_BASE_URL
from .errors import DecodeError, InvalidRequest, NotFound
from .interface import PriceSource, SourceKind
from .models import PricePoint, Quote
from .transport import get_json, parse_price

logger = logging.getLogger(__name__)

_ID_RE = re.compile(r"^[a-z0-9][a-z0-9._-]*$")


class CoinGeckoSource(PriceSource):
    """Prices from the CoinGecko public API.

    GET {base}/simple/price?ids=bitcoin,ethereum&vs_currencies=usd
        -> {"bitcoin": {"usd": 67000.5}, "ethereum": {"usd": 3500.1}}

    Accepts a comma-joined id list, so one request can price a whole
    subscription. Ids absent from the response are simply not quoted.
    """

    name = "coingecko"
    kind = SourceKind.AGGREGATOR
    supports_batch = True

    def __init__(
        self,
        http: httpx.AsyncClient,
        base_url: str = COINGECKO_BASE_URL,
        timeout: float = 15.0,
    ) -> None:
        self._http = http
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout

    def _check_id(self, canonical_id: str) -> str:
        if not _ID_RE.match(canonical_id):
            raise InvalidRequest(f"{self.name}: {canonical_id!r} is not a valid coin id")
        return canonical_id

    async def fetch_quote(self, canonical_id: str) -> Quote:
        quotes = await self.fetch_quotes([canonical_id])
        return quotes[canonical_id]

    async def fetch_quotes(self, canonical_ids: Sequence[str]) -> dict[str, Quote]:
        ids: list[str] = []
        for canonical_id in dict.fromkeys(canonical_ids):
            try:
                ids.append(self._check_id(canonical_id))
            except InvalidRequest:
                if len(canonical_ids) == 1:
                    raise
                logger.debug("CoinGecko: dropping invalid id %r from batch", canonical_id)
        if not ids:
            raise InvalidRequest(f"{self.name}: no valid ids in {list(canonical_ids)}")

        data = await get_json(
            self._http,
            f"{self._base_url}/simple/price",
            source=self.name,
            timeout=self._timeout,
            params={"ids": ",".join(ids), "vs_currencies": "usd"},
        )
        if not isinstance(data, dict):
            raise DecodeError(f"{self.name}: expected an object, got {type(data).__name__}")

        now = time.time()
        quotes: dict[str, Quote] = {}
        decode_errors: list[str] = []
        for canonical_id in ids:
            entry = data.get(canonical_id)
            if entry is None:
                continue
            try:
                if not isinstance(entry, dict) or "usd" not in entry:
                    raise DecodeError(f"{self.name}: no usd price for {canonical_id}")
                price = parse_price(entry["usd"], source=self.name)
            except DecodeError as e:
                decode_errors.append(str(e))
                continue
            quotes[canonical_id] = Quote(
                canonical_id=canonical_id, price=price, source=self.name, timestamp=now
            )

        if not quotes:
            if decode_errors:
                raise DecodeError("; ".join(decode_errors))
            raise NotFound(f"{self.name}: no price for {', '.join(ids)}")
        return quotes

    async def fetch_market_chart(self, canonical_id: str, days: int | str = 1) -> list[PricePoint]:
        """Historical USD prices for one id over the last ``days`` days.

        GET {base}/coins/{id}/market_chart?vs_currency=usd&days=N
            -> {"prices": [[epoch_ms, price], ...], ...}
        """
        self._check_id(canonical_id)
        data = await get_json(
            self._http,
            f"{self._base_url}/coins/{canonical_id}/market_chart",
            source=self.name,
            timeout=self._timeout,
            params={"vs_currency": "usd", "days": str(days)},
        )
        rows = data.get("prices") if isinstance(data, dict) else None
        if not isinstance(rows, list):
            raise DecodeError(f"{self.name}: market chart for {canonical_id} has no prices")

        points: list[PricePoint] = []
        for row in rows:
            if not isinstance(row, (list, tuple)) or len(row) < 2:
                raise DecodeError(f"{self.name}: malformed chart row {row!r}")
            try:
                # CoinGecko timestamps are Unix milliseconds -> convert to seconds
                timestamp = float(row[0]) / 1000.0
            except (TypeError, ValueError, OverflowError):
                raise DecodeError(f"{self.name}: malformed chart row {row!r}") from None
            points.append(PricePoint(timestamp=timestamp, price=parse_price(row[1], source=self.name)))
        return points
